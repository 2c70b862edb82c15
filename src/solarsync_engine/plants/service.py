"""Plant sync: fetch a vendor's plants and upsert them by (vendor_id, vendor_plant_id)."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.common.exceptions import NormalizationFailure
from solarsync_engine.common.logging import sync_context
from solarsync_engine.common.models import ensure_utc, utcnow
from solarsync_engine.plants.models import PlantModel
from solarsync_engine.sync.schemas import PhaseResult
from solarsync_engine.vendors.registry import AdapterRegistry
from solarsync_engine.vendors.service import VendorService
from solarsync_engine.vendors.types import NormalizedPlant

logger = logging.getLogger(__name__)

# Columns overwritten on every sync; identity columns are never touched
MUTABLE_FIELDS = (
    "name",
    "capacity_kw",
    "location_lat",
    "location_lng",
    "location_address",
    "current_power_kw",
    "daily_energy_mwh",
    "monthly_energy_mwh",
    "yearly_energy_mwh",
    "total_energy_mwh",
    "performance_ratio",
    "network_status",
    "contact_phone",
    "last_update_time",
    "vendor_created_date",
    "start_operating_time",
)


def plant_fields(plant: NormalizedPlant) -> dict[str, Any]:
    """Flatten a normalized plant into column values."""
    location = plant.location
    return {
        "name": plant.name,
        "capacity_kw": plant.capacity_kw,
        "location_lat": location.lat if location else None,
        "location_lng": location.lng if location else None,
        "location_address": location.address if location else None,
        "current_power_kw": plant.current_power_kw,
        "daily_energy_mwh": plant.daily_energy_mwh,
        "monthly_energy_mwh": plant.monthly_energy_mwh,
        "yearly_energy_mwh": plant.yearly_energy_mwh,
        "total_energy_mwh": plant.total_energy_mwh,
        "performance_ratio": plant.performance_ratio,
        "network_status": plant.network_status,
        "contact_phone": plant.contact_phone,
        "last_update_time": plant.last_update_time,
        "vendor_created_date": plant.vendor_created_date,
        "start_operating_time": plant.start_operating_time,
    }


def _same(current: Any, new: Any) -> bool:
    if isinstance(current, datetime) or isinstance(new, datetime):
        return ensure_utc(current) == ensure_utc(new)
    return current == new


def apply_fields(row: Any, fields: dict[str, Any], names: tuple[str, ...]) -> bool:
    """Copy ``fields`` onto ``row``; True if any value actually changed."""
    changed = False
    for name in names:
        new = fields[name]
        if not _same(getattr(row, name), new):
            setattr(row, name, new)
            changed = True
    return changed


class PlantSyncService:
    """Runs the plant phase of a vendor sync."""

    def __init__(
        self,
        db: DatabaseManager,
        registry: AdapterRegistry,
        vendor_service: VendorService,
    ):
        self.db = db
        self.registry = registry
        self.vendors = vendor_service

    async def sync_vendor(self, vendor_id: int) -> PhaseResult:
        """Fetch and upsert every plant for one vendor.

        A failed fetch raises and nothing is written. Records that fail
        normalization are skipped and reported in ``errors``.
        """
        async with self.db.get_session() as session:
            vendor = await self.vendors.get_vendor(session, vendor_id)
            config = self.vendors.to_config(vendor)

        with sync_context(
            vendor_id=config.id, vendor_name=config.name, operation="sync_plants"
        ):
            adapter = self.registry.create(config)
            raw_plants = await adapter.fetch_plants()

            result = PhaseResult(total=len(raw_plants))
            plants: list[NormalizedPlant] = []
            for raw in raw_plants:
                try:
                    plants.append(adapter.normalize_plant(raw))
                except NormalizationFailure as exc:
                    result.skipped += 1
                    result.record_error(exc.message)
                    logger.warning("Skipping plant record %s: %s", exc.record_id, exc.message)

            async with self.db.get_session() as session:
                await self.upsert_plants(session, config.id, config.org_id, plants, result)
                if result.synced > 0:
                    await self.vendors.mark_plants_synced(session, config.id)

            logger.info(
                "Plant sync for vendor %s: %d synced (%d created, %d updated) of %d",
                config.id, result.synced, result.created, result.updated, result.total,
            )
            return result

    async def upsert_plants(
        self,
        session: AsyncSession,
        vendor_id: int,
        org_id: int | None,
        plants: list[NormalizedPlant],
        result: PhaseResult,
    ) -> None:
        existing_rows = await session.execute(
            select(PlantModel).where(PlantModel.vendor_id == vendor_id)
        )
        by_key = {row.vendor_plant_id: row for row in existing_rows.scalars().all()}
        now = utcnow()

        for plant in plants:
            fields = plant_fields(plant)
            row = by_key.get(plant.vendor_plant_id)
            if row is None:
                row = PlantModel(
                    vendor_id=vendor_id,
                    vendor_plant_id=plant.vendor_plant_id,
                    org_id=org_id,
                    vendor_metadata=plant.metadata,
                    last_synced_at=now,
                    **fields,
                )
                session.add(row)
                by_key[plant.vendor_plant_id] = row
                result.created += 1
            else:
                if apply_fields(row, fields, MUTABLE_FIELDS):
                    result.updated += 1
                row.vendor_metadata = plant.metadata
                row.last_synced_at = now
            result.synced += 1
        await session.flush()

    async def get_plant(
        self, session: AsyncSession, vendor_id: int, vendor_plant_id: str
    ) -> PlantModel | None:
        result = await session.execute(
            select(PlantModel).where(
                PlantModel.vendor_id == vendor_id,
                PlantModel.vendor_plant_id == vendor_plant_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_plants(self, session: AsyncSession, vendor_id: int) -> list[PlantModel]:
        result = await session.execute(
            select(PlantModel)
            .where(PlantModel.vendor_id == vendor_id)
            .order_by(PlantModel.vendor_plant_id)
        )
        return list(result.scalars().all())
