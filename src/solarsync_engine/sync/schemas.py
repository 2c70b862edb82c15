"""Result and status models for sync runs."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from solarsync_engine.common.exceptions import PartialFailure, SolarSyncError
from solarsync_engine.organizations.schemas import SyncSettings

MAX_REPORTED_ERRORS = 50


class SyncOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class PhaseResult(BaseModel):
    """Counts for one phase (plants or alerts) of one vendor."""

    synced: int = 0
    created: int = 0
    updated: int = 0
    total: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def record_error(self, message: str) -> None:
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(message)


class VendorSyncResult(BaseModel):
    vendor_id: int
    vendor_name: str = ""
    vendor_type: str = ""
    plants: Optional[PhaseResult] = None
    alerts: Optional[PhaseResult] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def outcome(self) -> SyncOutcome:
        if self.error is not None:
            return SyncOutcome.FAILED
        phases = [phase for phase in (self.plants, self.alerts) if phase is not None]
        if not phases:
            return SyncOutcome.SKIPPED
        failed = [phase for phase in phases if not phase.ok]
        if not failed:
            return SyncOutcome.SUCCESS
        if len(failed) == len(phases):
            return SyncOutcome.FAILED
        return SyncOutcome.PARTIAL

    @property
    def succeeded(self) -> bool:
        return self.outcome == SyncOutcome.SUCCESS

    def raise_for_outcome(self) -> None:
        """Raise unless every phase that ran succeeded."""
        outcome = self.outcome
        if outcome == SyncOutcome.PARTIAL:
            raise PartialFailure(f"Vendor {self.vendor_id} partially synced", result=self)
        if outcome == SyncOutcome.FAILED:
            raise SolarSyncError(
                self.error or f"Vendor {self.vendor_id} sync failed", code="SYNC_FAILED"
            )

    def summary_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["outcome"] = self.outcome.value
        return data


class SyncSummary(BaseModel):
    trigger: str = "manual"
    vendors_attempted: int = 0
    vendors_succeeded: int = 0
    vendors_partial: int = 0
    vendors_failed: int = 0
    total_plants_synced: int = 0
    total_alerts_synced: int = 0
    results: list[VendorSyncResult] = Field(default_factory=list)
    skipped_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    duration_ms: int = 0

    @classmethod
    def from_results(cls, results: list[VendorSyncResult], **kwargs) -> "SyncSummary":
        summary = cls(results=results, vendors_attempted=len(results), **kwargs)
        for result in results:
            outcome = result.outcome
            if outcome == SyncOutcome.SUCCESS:
                summary.vendors_succeeded += 1
            elif outcome == SyncOutcome.PARTIAL:
                summary.vendors_partial += 1
            elif outcome == SyncOutcome.FAILED:
                summary.vendors_failed += 1
            if result.plants is not None:
                summary.total_plants_synced += result.plants.synced
            if result.alerts is not None:
                summary.total_alerts_synced += result.alerts.synced
        return summary

    def to_response(self) -> dict:
        data = self.model_dump(mode="json", exclude={"results"})
        data["results"] = [result.summary_dict() for result in self.results]
        return data


class VendorSyncStatus(BaseModel):
    vendor_id: int
    vendor_name: str
    vendor_type: str
    is_active: bool
    last_synced_at: Optional[datetime] = None
    last_alert_synced_at: Optional[datetime] = None
    org_id: Optional[int] = None
    org_name: Optional[str] = None
    sync_settings: Optional[SyncSettings] = None


class WindowState(BaseModel):
    timezone: str
    window_start: str
    window_end: str
    now: datetime
    restricted: bool
    next_eligible: datetime
    next_eligible_display: str
