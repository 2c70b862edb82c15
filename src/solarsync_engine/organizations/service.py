"""Organization reads and per-organization SyncSettings."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solarsync_engine.organizations.models import OrganizationModel
from solarsync_engine.organizations.schemas import SyncSettings


class OrganizationService:

    async def create_organization(
        self,
        session: AsyncSession,
        name: str,
        auto_sync_enabled: bool = False,
        sync_interval_minutes: int = 15,
    ) -> OrganizationModel:
        # Enforces the 1-1440 interval bounds
        settings = SyncSettings(
            auto_sync_enabled=auto_sync_enabled,
            sync_interval_minutes=sync_interval_minutes,
        )
        org = OrganizationModel(name=name, **settings.model_dump())
        session.add(org)
        await session.flush()
        return org

    async def get_by_id(
        self, session: AsyncSession, org_id: int
    ) -> OrganizationModel | None:
        return await session.get(OrganizationModel, org_id)

    async def list_auto_sync_enabled(self, session: AsyncSession) -> list[OrganizationModel]:
        result = await session.execute(
            select(OrganizationModel)
            .where(OrganizationModel.auto_sync_enabled.is_(True))
            .order_by(OrganizationModel.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def sync_settings(org: OrganizationModel) -> SyncSettings:
        return SyncSettings(
            auto_sync_enabled=org.auto_sync_enabled,
            sync_interval_minutes=org.sync_interval_minutes,
        )

    async def update_sync_settings(
        self, session: AsyncSession, org_id: int, **updates
    ) -> OrganizationModel | None:
        org = await self.get_by_id(session, org_id)
        if org is None:
            return None
        merged = self.sync_settings(org).model_copy(
            update={k: v for k, v in updates.items() if v is not None}
        )
        # model_copy skips validation
        merged = SyncSettings.model_validate(merged.model_dump())
        org.auto_sync_enabled = merged.auto_sync_enabled
        org.sync_interval_minutes = merged.sync_interval_minutes
        await session.flush()
        return org
