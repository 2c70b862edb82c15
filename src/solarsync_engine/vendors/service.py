"""Vendor reads, adapter config assembly and sync bookkeeping."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solarsync_engine.common.exceptions import VendorNotFoundError
from solarsync_engine.common.models import utcnow
from solarsync_engine.organizations.models import OrganizationModel
from solarsync_engine.vendors.models import VendorModel
from solarsync_engine.vendors.types import VendorConfig


class VendorService:
    """Vendor account operations used by the sync engine."""

    async def create_vendor(
        self,
        session: AsyncSession,
        name: str,
        vendor_type: str,
        credentials: dict | None = None,
        org_id: int | None = None,
        api_base_url: str | None = None,
        is_active: bool = True,
    ) -> VendorModel:
        vendor = VendorModel(
            name=name,
            vendor_type=vendor_type,
            credentials=credentials or {},
            org_id=org_id,
            api_base_url=api_base_url,
            is_active=is_active,
        )
        session.add(vendor)
        await session.flush()
        return vendor

    async def get_vendor(self, session: AsyncSession, vendor_id: int) -> VendorModel:
        vendor = await session.get(VendorModel, vendor_id)
        if vendor is None:
            raise VendorNotFoundError(f"Vendor {vendor_id} not found")
        return vendor

    async def list_vendors(self, session: AsyncSession) -> list[VendorModel]:
        result = await session.execute(select(VendorModel).order_by(VendorModel.id))
        return list(result.scalars().all())

    async def list_active_vendors(
        self, session: AsyncSession, org_ids: list[int] | None = None
    ) -> list[VendorModel]:
        stmt = select(VendorModel).where(VendorModel.is_active.is_(True))
        if org_ids is not None:
            stmt = stmt.where(VendorModel.org_id.in_(org_ids))
        result = await session.execute(stmt.order_by(VendorModel.id))
        return list(result.scalars().all())

    @staticmethod
    def to_config(vendor: VendorModel) -> VendorConfig:
        return VendorConfig(
            id=vendor.id,
            name=vendor.name,
            vendor_type=vendor.vendor_type,
            credentials=dict(vendor.credentials or {}),
            is_active=vendor.is_active,
            org_id=vendor.org_id,
            api_base_url=vendor.api_base_url,
        )

    async def mark_plants_synced(
        self, session: AsyncSession, vendor_id: int, when: datetime | None = None
    ) -> None:
        vendor = await self.get_vendor(session, vendor_id)
        vendor.last_synced_at = when or utcnow()
        await session.flush()

    async def mark_alerts_synced(
        self, session: AsyncSession, vendor_id: int, when: datetime | None = None
    ) -> None:
        vendor = await self.get_vendor(session, vendor_id)
        vendor.last_alert_synced_at = when or utcnow()
        await session.flush()

    async def list_status_rows(
        self, session: AsyncSession
    ) -> list[tuple[VendorModel, OrganizationModel | None]]:
        """Every vendor with its owning organization, if any."""
        result = await session.execute(
            select(VendorModel, OrganizationModel)
            .outerjoin(OrganizationModel, VendorModel.org_id == OrganizationModel.id)
            .order_by(VendorModel.id)
        )
        return [(vendor, org) for vendor, org in result.all()]
