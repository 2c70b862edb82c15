"""SolarDM integration (DMS business API)."""

import logging
from datetime import date, timedelta
from typing import Any

from pydantic import ValidationError

from solarsync_engine.common.exceptions import (
    AuthenticationFailure,
    NormalizationFailure,
    VendorApiError,
)
from solarsync_engine.common.models import utcnow
from solarsync_engine.vendors.base import (
    VendorAdapter,
    check_energy_period,
    downtime_seconds,
    parse_vendor_datetime,
)
from solarsync_engine.vendors.pagination import is_last_page, resolve_page_count
from solarsync_engine.vendors.raw import (
    SolarDmEnvelope,
    SolarDmFaultPage,
    SolarDmFaultRecord,
    SolarDmPlant,
    SolarDmPlantList,
    SolarDmStats,
    SolarDmStatsItem,
    SolarDmTokenData,
)
from solarsync_engine.vendors.types import (
    AlertStatus,
    EnergyRecord,
    EnergyReport,
    NormalizedAlert,
    NormalizedPlant,
    PlantLocation,
    RealtimeReading,
    Severity,
    TelemetryPoint,
    TokenGrant,
)

logger = logging.getLogger(__name__)

COMMUNICATE_STATUS = {1: "NORMAL", 2: "ALL_OFFLINE", 3: "PARTIAL_OFFLINE"}

FAULT_LEVEL_SEVERITY = {
    1: Severity.LOW,
    2: Severity.MEDIUM,
    3: Severity.HIGH,
    4: Severity.CRITICAL,
}

# Daily stats are sampled every 20 minutes
SAMPLE_INTERVAL_HOURS = 20 / 60

_TOTAL_HISTORY_YEARS = 25


class SolarDmAdapter(VendorAdapter):
    vendor_type = "SOLARDM"
    default_base_url_setting = "solardm_api_base_url"

    def _unwrap(self, payload: Any, what: str) -> Any:
        """Return ``data`` from a ``{code, message, data}`` envelope, raising if code != 0."""
        envelope = self._parse_envelope(
            SolarDmEnvelope, payload if isinstance(payload, dict) else {}, f"{what} response"
        )
        if envelope.code != 0:
            raise VendorApiError(
                f"{self.config.name}: {what} failed: {envelope.message or 'unknown error'}",
                body=str(payload)[:2000],
            )
        return envelope.data

    async def _login(self) -> TokenGrant:
        body = {
            "email": self.credential("email"),
            "password": self.credential("passwordRSA"),
            "loginType": "email",
            "regionSign": "3",
        }
        try:
            payload = await self._request_json(
                "POST", f"{self.base_url}/ums/business/email_login",
                json=body,
                headers={"Content-Type": "application/json;charset=UTF-8"},
            )
        except VendorApiError as exc:
            raise AuthenticationFailure(
                f"{self.config.name}: SolarDM login failed",
                vendor_status=exc.status,
                vendor_message=exc.body,
            ) from exc

        envelope = SolarDmEnvelope.model_validate(payload if isinstance(payload, dict) else {})
        data = SolarDmTokenData.model_validate(envelope.data or {})
        if envelope.code != 0 or not data.token:
            raise AuthenticationFailure(
                f"{self.config.name}: SolarDM login rejected",
                vendor_status=200,
                vendor_message=envelope.message or "",
            )
        return TokenGrant(
            token=data.token,
            expires_in=data.expires_in,
            refresh_token=data.refresh_token,
        )

    # ── Plants ──

    async def fetch_plants(self) -> list[dict[str, Any]]:
        payload = await self._authorized_json("GET", f"{self.base_url}/dms/plant/list_all")
        plants = self._parse_envelope(
            SolarDmPlantList, self._unwrap(payload, "plant list") or {}, "plant list"
        )
        if plants.total and len(plants.records) < plants.total:
            logger.warning(
                "SolarDM vendor %s listed %d of %d plants",
                self.config.id, len(plants.records), plants.total,
            )
        return plants.records

    def normalize_plant(self, raw: dict[str, Any]) -> NormalizedPlant:
        try:
            plant = SolarDmPlant.model_validate(raw)
        except ValidationError as exc:
            raise self._validation_failure(exc, raw) from exc

        plant_id = str(plant.plant_id)
        try:
            capacity = float(plant.capacity) if plant.capacity not in (None, "") else 0.0
        except ValueError as exc:
            raise NormalizationFailure(
                f"{self.config.name}: capacity {plant.capacity!r} is not a number",
                record_id=plant_id,
            ) from exc

        location = None
        if plant.latitude or plant.longitude or plant.address:
            location = PlantLocation(
                lat=plant.latitude, lng=plant.longitude, address=plant.address
            )

        return NormalizedPlant(
            vendor_plant_id=plant_id,
            name=plant.plant_name or f"Plant {plant_id}",
            capacity_kw=capacity,
            location=location,
            network_status=COMMUNICATE_STATUS.get(plant.communicate_status),
            last_update_time=parse_vendor_datetime(plant.update_time, self.local_tz),
            vendor_created_date=parse_vendor_datetime(plant.create_time, self.local_tz),
            contact_phone=plant.owner_phone,
            metadata={
                "plantId": plant_id,
                "communicateStatus": plant.communicate_status,
                "alarmStatus": plant.alarm_status,
                "timeZone": plant.time_zone,
            },
        )

    # ── Alerts ──

    def _within(self, record: dict[str, Any], start: date, end: date) -> bool:
        happen = record.get("happenTime")
        if not isinstance(happen, str):
            return True
        try:
            when = parse_vendor_datetime(happen, self.local_tz)
        except NormalizationFailure:
            # Let normalization report the bad record
            return True
        if when is None:
            return True
        local_day = when.astimezone(self.local_tz).date()
        return start <= local_day <= end

    async def fetch_alerts(self, start: date, end: date) -> list[dict[str, Any]]:
        url = f"{self.base_url}/dms/inverter_fault/page_list/all"
        size = self.settings.vendor_page_size
        fault_filter = (
            self.credential("faultInfo", required=False)
            or self.settings.solardm_alert_fault_filter
        )
        records: list[dict[str, Any]] = []
        current, total_pages, total = 1, 1, None
        while current <= total_pages:
            params = {"current": current, "size": size}
            if fault_filter:
                params["faultInfo"] = fault_filter
            payload = await self._authorized_json("GET", url, params=params)
            page = self._parse_envelope(
                SolarDmFaultPage,
                self._unwrap(payload, f"alert page {current}") or {},
                f"alert page {current}",
            )
            if current == 1:
                total = page.total
                if page.total is None and page.pages is None:
                    # No counts at all: page until a short or empty page
                    total_pages = self.settings.max_vendor_pages
                else:
                    total_pages = resolve_page_count(
                        page.total, page.pages, size, self.settings.max_vendor_pages
                    ) or 1
            records.extend(page.records)
            if is_last_page(len(page.records), len(records), total, size):
                break
            current += 1

        in_range = [record for record in records if self._within(record, start, end)]
        logger.info(
            "SolarDM vendor %s returned %d alerts, %d between %s and %s",
            self.config.id, len(records), len(in_range), start, end,
        )
        return in_range

    def normalize_alert(self, raw: dict[str, Any]) -> NormalizedAlert:
        try:
            record = SolarDmFaultRecord.model_validate(raw)
        except ValidationError as exc:
            raise self._validation_failure(exc, raw) from exc

        alert_time = parse_vendor_datetime(record.happen_time, self.local_tz)
        end_time = parse_vendor_datetime(record.recover_time, self.local_tz)
        title = record.fault_info_en or record.fault_info or "Alert"
        return NormalizedAlert(
            vendor_alert_id=str(record.fault_id),
            title=title,
            severity=FAULT_LEVEL_SEVERITY.get(record.fault_level, Severity.MEDIUM),
            status=AlertStatus.RESOLVED if end_time else AlertStatus.ACTIVE,
            vendor_plant_id=str(record.plant_id) if record.plant_id is not None else None,
            description=record.fault_info,
            alert_time=alert_time,
            end_time=end_time,
            grid_down_seconds=downtime_seconds(alert_time, end_time),
            device_type=record.device_type,
            device_sn=record.device_sn,
            metadata=dict(raw),
        )

    # ── Telemetry ──

    async def _stats(self, plant_id: str, scope: str, kind: str, time_value: str) -> SolarDmStats:
        payload = await self._authorized_json(
            "GET", f"{self.base_url}/dms/data_panel/history/stats/{scope}/{plant_id}",
            params={"plantId": plant_id, "type": kind, "time": time_value},
        )
        data = self._unwrap(payload, f"{scope} stats")
        if not isinstance(data, dict) or "dataList" not in data:
            raise VendorApiError(
                f"{self.config.name}: {scope} stats returned no dataList",
                body=str(payload)[:2000],
            )
        return SolarDmStats.model_validate(data)

    async def get_telemetry(
        self, plant_id: str, start: date, end: date
    ) -> list[TelemetryPoint]:
        points: list[TelemetryPoint] = []
        day = start
        while day <= end:
            stats = await self._stats(plant_id, "daily", "date", day.isoformat())
            points.extend(
                self.normalize_telemetry(plant_id, item.model_dump(by_alias=True))
                for item in stats.data_list
            )
            day += timedelta(days=1)
        return points

    def normalize_telemetry(self, plant_id: str, raw: dict[str, Any]) -> TelemetryPoint:
        try:
            item = SolarDmStatsItem.model_validate(raw)
        except ValidationError as exc:
            raise self._validation_failure(exc, raw) from exc
        timestamp = parse_vendor_datetime(item.time, self.local_tz)
        if timestamp is None:
            raise NormalizationFailure(
                f"{self.config.name}: stats sample has no time", record_id=plant_id
            )
        return TelemetryPoint(
            plant_id=plant_id,
            timestamp=timestamp,
            generation_power_kw=(item.generation_power or 0.0) / 1000,
            metadata={"generationPowerW": item.generation_power},
        )

    async def get_energy(self, plant_id: str, period: str, when: date) -> EnergyReport:
        check_energy_period(period)
        if period == "month":
            stats = await self._stats(plant_id, "month", "month", f"{when.year}-{when.month:02d}")
        elif period == "year":
            stats = await self._stats(plant_id, "year", "year", str(when.year))
        else:
            first_year = when.year - _TOTAL_HISTORY_YEARS + 1
            stats = await self._stats(plant_id, "total", "all", f"{first_year} ~ {when.year}")

        records = []
        for item in stats.data_list:
            parts = [int(part) for part in item.time.split("-") if part.isdigit()]
            year, month, day = (parts + [0, 0, 0])[:3]
            records.append(
                EnergyRecord(
                    plant_id=plant_id,
                    year=year or when.year,
                    month=month,
                    day=day,
                    generation_kwh=item.generation_energy or 0.0,
                )
            )
        return EnergyReport(
            plant_id=plant_id,
            period=period,
            generation_kwh=sum(record.generation_kwh for record in records),
            records=records,
        )

    async def daily_generation_kwh(self, plant_id: str, day: date) -> float:
        """Integrate one day's 20-minute power samples into kWh."""
        points = await self.get_telemetry(plant_id, day, day)
        return sum(point.generation_power_kw * SAMPLE_INTERVAL_HOURS for point in points)

    async def get_realtime(self, plant_id: str) -> RealtimeReading:
        """Latest sample of today's power curve; SolarDM has no live endpoint."""
        today = utcnow().astimezone(self.local_tz).date()
        points = await self.get_telemetry(plant_id, today, today)
        latest = max(points, key=lambda point: point.timestamp, default=None)
        if latest is None:
            return RealtimeReading(plant_id=plant_id, timestamp=utcnow(), data={})
        return RealtimeReading(
            plant_id=plant_id,
            timestamp=latest.timestamp,
            data={
                "generation_power_kw": latest.generation_power_kw,
            },
        )
