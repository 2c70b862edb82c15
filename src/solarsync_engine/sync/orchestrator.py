"""Runs plant then alert sync per vendor, all vendors concurrently."""

import asyncio
import logging
import time
import uuid
from datetime import datetime

from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.common.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    SolarSyncError,
    VendorNotFoundError,
)
from solarsync_engine.common.logging import sync_context
from solarsync_engine.common.models import ensure_utc, utcnow
from solarsync_engine.organizations.service import OrganizationService
from solarsync_engine.plants.service import PlantSyncService
from solarsync_engine.alerts.service import AlertSyncService
from solarsync_engine.sync.schemas import (
    PhaseResult,
    SyncSummary,
    VendorSyncResult,
    VendorSyncStatus,
    WindowState,
)
from solarsync_engine.sync.window import RestrictedWindow, is_interval_boundary
from solarsync_engine.vendors.service import VendorService

logger = logging.getLogger(__name__)

PLANTS = "plants"
ALERTS = "alerts"
ALL_PHASES = (PLANTS, ALERTS)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, SolarSyncError):
        return f"{exc.code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


class SyncOrchestrator:
    """Entry point for manual and scheduled syncs.

    A vendor never runs two syncs at once: callers asking for the same
    vendor and phases while a run is in flight share that run's result, and
    runs with different phases queue on the vendor's lock.
    """

    def __init__(
        self,
        db: DatabaseManager,
        settings: SolarSyncSettings,
        vendor_service: VendorService,
        organization_service: OrganizationService,
        plant_sync: PlantSyncService,
        alert_sync: AlertSyncService,
        window: RestrictedWindow | None = None,
    ):
        self.db = db
        self.settings = settings
        self.vendors = vendor_service
        self.organizations = organization_service
        self.plant_sync = plant_sync
        self.alert_sync = alert_sync
        self.window = window or RestrictedWindow.from_settings(settings)
        self._locks: dict[int, asyncio.Lock] = {}
        self._inflight: dict[tuple[int, tuple[str, ...]], asyncio.Task] = {}
        self.last_summary: SyncSummary | None = None

    # ── Per-vendor runs ──

    def _lock_for(self, vendor_id: int) -> asyncio.Lock:
        lock = self._locks.get(vendor_id)
        if lock is None:
            lock = self._locks[vendor_id] = asyncio.Lock()
        return lock

    def is_running(self, vendor_id: int) -> bool:
        return any(key[0] == vendor_id for key in self._inflight)

    async def sync_vendor(
        self,
        vendor_id: int,
        phases: tuple[str, ...] = ALL_PHASES,
        trigger: str = "manual",
    ) -> VendorSyncResult:
        phases = tuple(phase for phase in ALL_PHASES if phase in phases)
        key = (vendor_id, phases)
        task = self._inflight.get(key)
        if task is not None:
            logger.info("Vendor %s sync already running, waiting for it", vendor_id)
            return await asyncio.shield(task)

        task = asyncio.get_running_loop().create_task(
            self._locked_run(vendor_id, phases, trigger)
        )
        self._inflight[key] = task
        task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _locked_run(
        self, vendor_id: int, phases: tuple[str, ...], trigger: str
    ) -> VendorSyncResult:
        async with self._lock_for(vendor_id):
            return await self._run_vendor(vendor_id, phases, trigger)

    async def _run_vendor(
        self, vendor_id: int, phases: tuple[str, ...], trigger: str
    ) -> VendorSyncResult:
        result = VendorSyncResult(vendor_id=vendor_id, started_at=utcnow())
        with sync_context(source=trigger, vendor_id=vendor_id, operation="sync_vendor"):
            try:
                async with self.db.get_session() as session:
                    vendor = await self.vendors.get_vendor(session, vendor_id)
                    result.vendor_name = vendor.name
                    result.vendor_type = vendor.vendor_type
            except VendorNotFoundError as exc:
                result.error = _describe(exc)
                result.finished_at = utcnow()
                return result

            with sync_context(vendor_name=result.vendor_name):
                if PLANTS in phases:
                    result.plants = await self._run_phase(result, PLANTS, self.plant_sync.sync_vendor)
                if ALERTS in phases and result.error is None:
                    result.alerts = await self._run_phase(result, ALERTS, self.alert_sync.sync_vendor)

            result.finished_at = utcnow()
            logger.info("Vendor %s sync finished: %s", vendor_id, result.outcome.value)
            return result

    async def _run_phase(self, result: VendorSyncResult, phase: str, run) -> PhaseResult | None:
        """Run one phase; auth and config failures abort the vendor, others only the phase."""
        try:
            return await run(result.vendor_id)
        except (AuthenticationFailure, ConfigurationError, VendorNotFoundError) as exc:
            logger.error("Vendor %s %s sync aborted: %s", result.vendor_id, phase, exc)
            result.error = _describe(exc)
            return None
        except SolarSyncError as exc:
            logger.error("Vendor %s %s sync failed: %s", result.vendor_id, phase, exc)
            return PhaseResult(error=_describe(exc))
        except Exception as exc:
            logger.exception("Vendor %s %s sync crashed", result.vendor_id, phase)
            return PhaseResult(error=_describe(exc))

    # ── Multi-vendor runs ──

    async def run_all(
        self,
        trigger: str = "manual",
        org_ids: list[int] | None = None,
        phases: tuple[str, ...] = ALL_PHASES,
    ) -> SyncSummary:
        """Sync every active vendor (optionally only those of ``org_ids``) concurrently."""
        started = time.monotonic()
        started_at = utcnow()
        with sync_context(source=trigger, request_id=uuid.uuid4().hex[:12], operation="sync_all"):
            async with self.db.get_session() as session:
                vendors = await self.vendors.list_active_vendors(session, org_ids=org_ids)
            vendor_ids = [vendor.id for vendor in vendors]
            logger.info("Starting %s sync for %d vendors", trigger, len(vendor_ids))

            results = await asyncio.gather(
                *(self.sync_vendor(vendor_id, phases, trigger) for vendor_id in vendor_ids)
            )
            summary = SyncSummary.from_results(
                list(results),
                trigger=trigger,
                started_at=started_at,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            logger.info(
                "%s sync done: %d attempted, %d succeeded, %d partial, %d failed, %d plants",
                trigger, summary.vendors_attempted, summary.vendors_succeeded,
                summary.vendors_partial, summary.vendors_failed, summary.total_plants_synced,
            )
        self.last_summary = summary
        return summary

    async def run_scheduled(self, now: datetime | None = None) -> SyncSummary:
        """Automatic trigger: honours the enable flags, window and org intervals."""
        now = now or utcnow()
        local = self.window.localize(now)

        if not self.settings.scheduler_enabled:
            return SyncSummary(trigger="scheduler", skipped_reason="scheduler disabled")

        phases = tuple(
            phase
            for phase, enabled in (
                (PLANTS, self.settings.plant_sync_enabled),
                (ALERTS, self.settings.alert_sync_enabled),
            )
            if enabled
        )
        if not phases:
            return SyncSummary(trigger="scheduler", skipped_reason="all sync phases disabled")

        async with self.db.get_session() as session:
            orgs = await self.organizations.list_auto_sync_enabled(session)

        due: list[int] = []
        for org in orgs:
            if not is_interval_boundary(local, org.sync_interval_minutes):
                continue
            if self.window.is_restricted(local):
                logger.info(
                    "Skipping org %s: restricted window, next eligible %s",
                    org.id,
                    self.window.describe(self.window.next_eligible(local, org.sync_interval_minutes)),
                )
                continue
            due.append(org.id)

        if not due:
            reason = "restricted window" if self.window.is_restricted(local) else "no organization due"
            return SyncSummary(trigger="scheduler", skipped_reason=reason)
        return await self.run_all(trigger="scheduler", org_ids=due, phases=phases)

    # ── Observability ──

    def window_state(self, now: datetime | None = None, interval_minutes: int | None = None) -> WindowState:
        local = self.window.localize(now or utcnow())
        interval = interval_minutes or self.settings.default_sync_interval_minutes
        next_eligible = self.window.next_eligible(local, interval)
        return WindowState(
            timezone=self.settings.sync_timezone,
            window_start=self.settings.sync_window_start,
            window_end=self.settings.sync_window_end,
            now=local,
            restricted=self.window.is_restricted(local),
            next_eligible=next_eligible,
            next_eligible_display=self.window.describe(next_eligible),
        )

    async def sync_status(self) -> list[VendorSyncStatus]:
        async with self.db.get_session() as session:
            rows = await self.vendors.list_status_rows(session)
            return [
                VendorSyncStatus(
                    vendor_id=vendor.id,
                    vendor_name=vendor.name,
                    vendor_type=vendor.vendor_type,
                    is_active=vendor.is_active,
                    last_synced_at=ensure_utc(vendor.last_synced_at),
                    last_alert_synced_at=ensure_utc(vendor.last_alert_synced_at),
                    org_id=org.id if org else None,
                    org_name=org.name if org else None,
                    sync_settings=self.organizations.sync_settings(org) if org else None,
                )
                for vendor, org in rows
            ]
