"""Organization SyncSettings API router."""

from fastapi import APIRouter, Depends, HTTPException

from solarsync_engine.common.security import require_api_key
from solarsync_engine.organizations.schemas import (
    OrganizationSyncSettingsResponse,
    SyncSettingsUpdate,
)

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _get_service():
    from solarsync_engine.deps import get_organization_service
    return get_organization_service()


def _get_db():
    from solarsync_engine.deps import get_db
    return get_db()


def _to_response(org) -> OrganizationSyncSettingsResponse:
    return OrganizationSyncSettingsResponse(
        org_id=org.id,
        name=org.name,
        auto_sync_enabled=org.auto_sync_enabled,
        sync_interval_minutes=org.sync_interval_minutes,
    )


@router.get("/{org_id}/sync-settings", response_model=OrganizationSyncSettingsResponse)
async def get_sync_settings(org_id: int, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        org = await svc.get_by_id(session, org_id)
        if org is None:
            raise HTTPException(status_code=404, detail="Organization not found")
        return _to_response(org)


@router.put("/{org_id}/sync-settings", response_model=OrganizationSyncSettingsResponse)
async def update_sync_settings(
    org_id: int, body: SyncSettingsUpdate, _=Depends(require_api_key)
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        org = await svc.update_sync_settings(
            session, org_id, **body.model_dump(exclude_none=True)
        )
        if org is None:
            raise HTTPException(status_code=404, detail="Organization not found")
        return _to_response(org)
