#!/usr/bin/env python3
"""Seed organizations and vendor accounts from a JSON file.

Usage:
    python scripts/seed_vendors.py vendors.json

The file holds a list of organizations, each with its vendors:

    [{"name": "Acme Solar", "auto_sync_enabled": true, "sync_interval_minutes": 15,
      "vendors": [{"name": "Acme Solarman", "vendor_type": "SOLARMAN",
                   "credentials": {"appId": "...", "appSecret": "...",
                                   "username": "...", "password": "..."}}]}]
"""

import asyncio
import json
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from sqlalchemy import select

from solarsync_engine.common.config import get_settings
from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.organizations.models import OrganizationModel
from solarsync_engine.organizations.service import OrganizationService
from solarsync_engine.vendors.models import VendorModel
from solarsync_engine.vendors.registry import parse_vendor_type
from solarsync_engine.vendors.service import VendorService


async def seed_vendors(path: Path) -> None:
    seeds = json.loads(path.read_text())
    db = DatabaseManager(get_settings())
    await db.init()
    await db.create_all()

    orgs = OrganizationService()
    vendors = VendorService()
    created = 0

    async with db.get_session() as session:
        for org_seed in seeds:
            existing = await session.execute(
                select(OrganizationModel).where(OrganizationModel.name == org_seed["name"])
            )
            org = existing.scalar_one_or_none()
            if org is None:
                org = await orgs.create_organization(
                    session,
                    name=org_seed["name"],
                    auto_sync_enabled=org_seed.get("auto_sync_enabled", False),
                    sync_interval_minutes=org_seed.get("sync_interval_minutes", 15),
                )
                print(f"  [created] organization {org.name}")

            for vendor_seed in org_seed.get("vendors", []):
                vendor_type = parse_vendor_type(vendor_seed["vendor_type"])
                found = await session.execute(
                    select(VendorModel).where(
                        VendorModel.org_id == org.id,
                        VendorModel.name == vendor_seed["name"],
                    )
                )
                if found.scalar_one_or_none() is not None:
                    print(f"  [skip] vendor {vendor_seed['name']} already exists")
                    continue
                await vendors.create_vendor(
                    session,
                    name=vendor_seed["name"],
                    vendor_type=vendor_type.value,
                    credentials=vendor_seed.get("credentials", {}),
                    org_id=org.id,
                    api_base_url=vendor_seed.get("api_base_url"),
                )
                created += 1
                print(f"  [created] vendor {vendor_seed['name']} ({vendor_type.value})")

    await db.close()
    print(f"\nDone. {created} vendors seeded.")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: seed_vendors.py <vendors.json>")
    asyncio.run(seed_vendors(Path(sys.argv[1])))
