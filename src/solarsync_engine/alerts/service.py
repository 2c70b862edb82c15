"""Alert sync: fetch a vendor's alerts and upsert them by (vendor_id, vendor_alert_id)."""

import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solarsync_engine.alerts.models import AlertModel
from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.common.exceptions import NormalizationFailure
from solarsync_engine.common.logging import sync_context
from solarsync_engine.common.models import utcnow
from solarsync_engine.plants.models import PlantModel
from solarsync_engine.plants.service import apply_fields
from solarsync_engine.sync.schemas import PhaseResult
from solarsync_engine.vendors.registry import AdapterRegistry
from solarsync_engine.vendors.service import VendorService
from solarsync_engine.vendors.types import NormalizedAlert

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = (
    "plant_id",
    "title",
    "description",
    "severity",
    "status",
    "alert_time",
    "end_time",
    "grid_down_seconds",
    "device_type",
    "device_sn",
)

_LOOKUP_CHUNK = 500


def resolve_alert_window(
    credentials: dict[str, Any],
    lookback_days: int,
    today: date,
    vendor_label: str = "",
) -> tuple[date, date]:
    """Start/end days for the alert query.

    ``alertsStartDate`` in the vendor credentials narrows the window but can
    never reach further back than ``lookback_days``.
    """
    earliest = today - timedelta(days=lookback_days)
    configured = credentials.get("alertsStartDate")
    if not configured:
        return earliest, today
    try:
        start = date.fromisoformat(str(configured)[:10])
    except ValueError:
        logger.warning(
            "Invalid alertsStartDate %r for vendor %s, using %d-day lookback",
            configured, vendor_label, lookback_days,
        )
        return earliest, today
    return max(start, earliest), today


def alert_fields(alert: NormalizedAlert, plant_id: int) -> dict[str, Any]:
    return {
        "plant_id": plant_id,
        "title": alert.title,
        "description": alert.description,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "alert_time": alert.alert_time,
        "end_time": alert.end_time,
        "grid_down_seconds": alert.grid_down_seconds,
        "device_type": alert.device_type,
        "device_sn": alert.device_sn,
    }


class AlertSyncService:
    """Runs the alert phase of a vendor sync."""

    def __init__(
        self,
        db: DatabaseManager,
        registry: AdapterRegistry,
        vendor_service: VendorService,
        settings: SolarSyncSettings,
    ):
        self.db = db
        self.registry = registry
        self.vendors = vendor_service
        self.settings = settings

    async def sync_vendor(self, vendor_id: int) -> PhaseResult:
        async with self.db.get_session() as session:
            vendor = await self.vendors.get_vendor(session, vendor_id)
            config = self.vendors.to_config(vendor)

        with sync_context(
            vendor_id=config.id, vendor_name=config.name, operation="sync_alerts"
        ):
            adapter = self.registry.create(config)
            start, end = resolve_alert_window(
                config.credentials,
                self.settings.alert_lookback_days,
                utcnow().astimezone(adapter.local_tz).date(),
                vendor_label=str(config.id),
            )
            raw_alerts = await adapter.fetch_alerts(start, end)

            result = PhaseResult(total=len(raw_alerts))
            alerts: list[NormalizedAlert] = []
            for raw in raw_alerts:
                try:
                    alert = adapter.normalize_alert(raw)
                except NormalizationFailure as exc:
                    result.skipped += 1
                    result.record_error(exc.message)
                    logger.warning("Skipping alert record %s: %s", exc.record_id, exc.message)
                    continue
                if adapter.include_alert(alert):
                    alerts.append(alert)

            async with self.db.get_session() as session:
                await self.upsert_alerts(session, config.id, alerts, result)
                if result.synced > 0:
                    await self.vendors.mark_alerts_synced(session, config.id)

            logger.info(
                "Alert sync for vendor %s: %d synced (%d created, %d updated, %d skipped) of %d",
                config.id, result.synced, result.created, result.updated,
                result.skipped, result.total,
            )
            return result

    async def _existing_alerts(
        self, session: AsyncSession, vendor_id: int, alert_ids: list[str]
    ) -> dict[str, AlertModel]:
        found: dict[str, AlertModel] = {}
        for i in range(0, len(alert_ids), _LOOKUP_CHUNK):
            chunk = alert_ids[i:i + _LOOKUP_CHUNK]
            rows = await session.execute(
                select(AlertModel).where(
                    AlertModel.vendor_id == vendor_id,
                    AlertModel.vendor_alert_id.in_(chunk),
                )
            )
            found.update({row.vendor_alert_id: row for row in rows.scalars().all()})
        return found

    async def upsert_alerts(
        self,
        session: AsyncSession,
        vendor_id: int,
        alerts: list[NormalizedAlert],
        result: PhaseResult,
    ) -> None:
        plant_rows = await session.execute(
            select(PlantModel.vendor_plant_id, PlantModel.id).where(
                PlantModel.vendor_id == vendor_id
            )
        )
        plant_ids = {vendor_plant_id: plant_id for vendor_plant_id, plant_id in plant_rows.all()}
        existing = await self._existing_alerts(
            session, vendor_id, list({alert.vendor_alert_id for alert in alerts})
        )

        for alert in alerts:
            plant_id = plant_ids.get(alert.vendor_plant_id) if alert.vendor_plant_id else None
            if plant_id is None:
                result.skipped += 1
                logger.debug(
                    "Alert %s references unknown plant %s, skipping",
                    alert.vendor_alert_id, alert.vendor_plant_id,
                )
                continue

            fields = alert_fields(alert, plant_id)
            row = existing.get(alert.vendor_alert_id)
            if row is None:
                row = AlertModel(
                    vendor_id=vendor_id,
                    vendor_alert_id=alert.vendor_alert_id,
                    vendor_plant_id=alert.vendor_plant_id,
                    vendor_metadata=alert.metadata,
                    **fields,
                )
                session.add(row)
                existing[alert.vendor_alert_id] = row
                result.created += 1
            else:
                if apply_fields(row, fields, MUTABLE_FIELDS):
                    result.updated += 1
                row.vendor_plant_id = alert.vendor_plant_id
                row.vendor_metadata = alert.metadata
            result.synced += 1
        await session.flush()

    async def get_alert(
        self, session: AsyncSession, vendor_id: int, vendor_alert_id: str
    ) -> AlertModel | None:
        result = await session.execute(
            select(AlertModel).where(
                AlertModel.vendor_id == vendor_id,
                AlertModel.vendor_alert_id == vendor_alert_id,
            )
        )
        return result.scalar_one_or_none()
