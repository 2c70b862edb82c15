"""Sync trigger API router."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from solarsync_engine.common.exceptions import VendorNotFoundError
from solarsync_engine.common.security import require_api_key, require_cron_secret
from solarsync_engine.sync.schemas import VendorSyncStatus, WindowState

router = APIRouter(tags=["sync"])


def _get_orchestrator():
    from solarsync_engine.deps import get_orchestrator
    return get_orchestrator()


def _get_db():
    from solarsync_engine.deps import get_db
    return get_db()


async def _ensure_vendor(vendor_id: int) -> None:
    from solarsync_engine.deps import get_vendor_service

    db = _get_db()
    async with db.get_session() as session:
        try:
            await get_vendor_service().get_vendor(session, vendor_id)
        except VendorNotFoundError:
            raise HTTPException(status_code=404, detail="Vendor not found")


def _phase_response(result, phase: str) -> dict:
    data = result.summary_dict()
    phase_result = getattr(result, phase)
    if result.error and phase_result is None:
        status = 400 if result.error.startswith("CONFIGURATION_ERROR") else 502
        raise HTTPException(status_code=status, detail=result.error)
    if phase_result is not None and phase_result.error:
        raise HTTPException(status_code=502, detail=phase_result.error)
    return data


@router.post("/vendors/{vendor_id}/sync-plants")
async def sync_vendor_plants(vendor_id: int, _=Depends(require_api_key)):
    await _ensure_vendor(vendor_id)
    result = await _get_orchestrator().sync_vendor(vendor_id, phases=("plants",))
    return _phase_response(result, "plants")


@router.post("/vendors/{vendor_id}/sync-alerts")
async def sync_vendor_alerts(vendor_id: int, _=Depends(require_api_key)):
    await _ensure_vendor(vendor_id)
    result = await _get_orchestrator().sync_vendor(vendor_id, phases=("alerts",))
    return _phase_response(result, "alerts")


@router.post("/sync/run")
async def run_sync(_=Depends(require_api_key)):
    """Sync every active vendor now, ignoring the restricted window."""
    summary = await _get_orchestrator().run_all(trigger="manual")
    return summary.to_response()


@router.get("/sync/status", response_model=list[VendorSyncStatus])
async def sync_status(_=Depends(require_api_key)):
    return await _get_orchestrator().sync_status()


@router.get("/sync/window", response_model=WindowState)
async def sync_window(
    interval: Optional[int] = Query(None, ge=1, le=1440),
    _=Depends(require_api_key),
):
    return _get_orchestrator().window_state(interval_minutes=interval)


@router.post("/cron/sync")
async def cron_sync(_=Depends(require_cron_secret)):
    """Scheduler-style trigger for an external cron."""
    summary = await _get_orchestrator().run_scheduled()
    return summary.to_response()
