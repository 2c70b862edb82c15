"""Solarman integration (open API for auth/telemetry, PRO API for plants/alerts)."""

import calendar
import logging
from datetime import date
from typing import Any
from urllib.parse import urlsplit

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
    from_unix_seconds,
    kwh_to_mwh,
    watts_to_kw,
)
from solarsync_engine.vendors.pagination import is_last_page, resolve_page_count
from solarsync_engine.vendors.raw import (
    SolarmanAlertPage,
    SolarmanAlertRecord,
    SolarmanDeviceDataResponse,
    SolarmanDeviceFrame,
    SolarmanDeviceHistoryResponse,
    SolarmanHistoryItem,
    SolarmanHistoryResponse,
    SolarmanRealtimeResponse,
    SolarmanStation,
    SolarmanStationPage,
    SolarmanTokenResponse,
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

DEFAULT_PRO_BASE_URL = "https://globalpro.solarmanpv.com"

_LEVEL_SEVERITY = {0: Severity.LOW, 1: Severity.MEDIUM, 2: Severity.HIGH}

# Inverter data-list keys to common telemetry names
DATA_KEY_MAP = {
    "APo_t1": "power_ac_w",
    "P_PV": "power_dc_w",
    "Et_ge0": "energy_total_kwh",
    "Etdy_ge1": "energy_today_kwh",
    "INV_T0": "temperature_c",
    "INV_ST1": "device_status_raw",
    "t_w_hou1": "running_hours_h",
    "AV1": "voltage_v_phase_1",
    "AV2": "voltage_v_phase_2",
    "AV3": "voltage_v_phase_3",
    "AC1": "current_a_phase_1",
    "AC2": "current_a_phase_2",
    "AC3": "current_a_phase_3",
    "PF0": "power_factor",
}

_TOTAL_HISTORY_YEARS = 25


def map_severity(level: int | None, influence: int | None) -> Severity:
    """Vendor level 0/1/2 upgraded by the alert's influence on safety/production."""
    severity = _LEVEL_SEVERITY.get(level if level is not None else 1, Severity.MEDIUM)
    if influence in (2, 3):
        return Severity.CRITICAL
    if influence == 1 and severity == Severity.LOW:
        return Severity.MEDIUM
    return severity


def normalize_data_key(key: str) -> str:
    return DATA_KEY_MAP.get(key, key)


def _to_float(value: str | None) -> float:
    try:
        return float(value) if value is not None else 0.0
    except ValueError:
        return 0.0


class SolarmanAdapter(VendorAdapter):
    vendor_type = "SOLARMAN"
    default_base_url_setting = "solarman_api_base_url"

    @property
    def auth_origin(self) -> str:
        """Login always goes to the ``globalapi`` host, never ``globalpro``."""
        parts = urlsplit(self.base_url.replace("globalpro", "globalapi"))
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def pro_base_url(self) -> str:
        if self.settings.solarman_pro_api_base_url:
            return self.settings.solarman_pro_api_base_url.rstrip("/")
        if "globalapi" in self.base_url:
            return self.base_url.replace("globalapi", "globalpro")
        if "globalpro" in self.base_url:
            return self.base_url
        return DEFAULT_PRO_BASE_URL

    def _check_success(self, payload: Any, what: str) -> None:
        if isinstance(payload, dict) and payload.get("success") is False:
            raise VendorApiError(
                f"{self.config.name}: {what} rejected: {payload.get('msg') or 'unknown error'}",
                body=str(payload)[:2000],
            )

    async def _login(self) -> TokenGrant:
        app_id = self.credential("appId")
        body: dict[str, Any] = {
            "appSecret": self.credential("appSecret"),
            "username": self.credential("username", "email"),
            "password": self.credential("password", "passwordSha256"),
        }
        org_id = self.credential("solarmanOrgId", "orgId", required=False)
        if org_id:
            body["orgId"] = org_id

        url = f"{self.auth_origin}/account/v1.0/token"
        try:
            payload = await self._request_json(
                "POST", url, params={"appId": app_id}, json=body
            )
        except VendorApiError as exc:
            raise AuthenticationFailure(
                f"{self.config.name}: Solarman login failed",
                vendor_status=exc.status,
                vendor_message=exc.body,
            ) from exc

        data = SolarmanTokenResponse.model_validate(payload)
        if not data.access_token:
            raise AuthenticationFailure(
                f"{self.config.name}: Solarman login returned no access token",
                vendor_status=200,
                vendor_message=data.msg or "",
            )
        return TokenGrant(
            token=data.access_token,
            expires_in=data.expires_in or self.settings.default_token_ttl_seconds,
            refresh_token=data.refresh_token,
        )

    # ── Plants ──

    async def fetch_plants(self) -> list[dict[str, Any]]:
        url = f"{self.pro_base_url}/maintain-s/operating/station/v2/search"
        size = self.settings.vendor_page_size
        stations: list[dict[str, Any]] = []
        page, seen, total, max_pages = 1, 0, None, self.settings.max_vendor_pages
        while True:
            payload = await self._authorized_json(
                "POST", url,
                params={"page": page, "size": size},
                json={"station": {"powerTypeList": ["PV"]}},
            )
            self._check_success(payload, "station search")
            if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
                raise VendorApiError(
                    f"{self.config.name}: station search returned no data array",
                    body=str(payload)[:2000],
                )
            data = self._parse_envelope(SolarmanStationPage, payload, "station page")
            if total is None:
                total = data.total
                if total:
                    max_pages = resolve_page_count(
                        total, 0, size, self.settings.max_vendor_pages
                    )
            seen += len(data.data)
            items = [item.get("station") for item in data.data]
            stations.extend(station for station in items if station is not None)
            if is_last_page(len(data.data), seen, total, size) or page >= max_pages:
                break
            page += 1
        logger.info("Solarman vendor %s reported %d stations", self.config.id, len(stations))
        return stations

    def normalize_plant(self, raw: dict[str, Any]) -> NormalizedPlant:
        try:
            station = SolarmanStation.model_validate(raw)
        except ValidationError as exc:
            raise self._validation_failure(exc, raw) from exc

        capacity = station.installed_capacity or 0.0
        location = None
        if station.location_lat or station.location_lng or station.location_address:
            location = PlantLocation(
                lat=station.location_lat,
                lng=station.location_lng,
                address=station.location_address,
            )

        if station.pr_yesterday is not None:
            performance_ratio = station.pr_yesterday
        elif station.generation_capacity is not None and capacity > 0:
            performance_ratio = station.generation_capacity / capacity
        else:
            performance_ratio = None

        return NormalizedPlant(
            vendor_plant_id=str(station.station_id),
            name=station.name or f"Station {station.station_id}",
            capacity_kw=capacity,
            location=location,
            current_power_kw=watts_to_kw(station.generation_power),
            daily_energy_mwh=kwh_to_mwh(station.generation_value),
            monthly_energy_mwh=kwh_to_mwh(station.generation_month),
            yearly_energy_mwh=kwh_to_mwh(station.generation_year),
            total_energy_mwh=kwh_to_mwh(station.generation_total),
            performance_ratio=performance_ratio,
            network_status=station.network_status.strip() if station.network_status else None,
            last_update_time=from_unix_seconds(station.last_update_time),
            vendor_created_date=from_unix_seconds(station.created_date),
            start_operating_time=from_unix_seconds(station.start_operating_time),
            contact_phone=station.contact_phone,
            metadata={
                "stationId": station.station_id,
                "regionTimezone": station.region_timezone,
                **{
                    key: raw.get(key)
                    for key in ("type", "powerType", "system", "fullPowerHoursDay", "operating")
                    if raw.get(key) is not None
                },
            },
        )

    # ── Alerts ──

    async def fetch_alerts(self, start: date, end: date) -> list[dict[str, Any]]:
        url = f"{self.pro_base_url}/maintain-s/operating/station/alert"
        size = self.settings.vendor_page_size
        body = {
            "alertQueryName": None,
            "language": "en",
            "status": "-1",
            "timeZone": self.credential("alertTimeZone", required=False) or "Asia/Calcutta",
            "deviceId": None,
            "startDay": start.isoformat(),
            "endDay": end.isoformat(),
            "plantIdList": None,
            "groupIdList": None,
        }
        records: list[dict[str, Any]] = []
        page, total, max_pages = 1, None, self.settings.max_vendor_pages
        while page <= max_pages:
            payload = await self._authorized_json(
                "POST", url,
                params={
                    "order.direction": "ASC",
                    "order.property": "alertTime",
                    "size": size,
                    "page": page,
                },
                json=body,
            )
            self._check_success(payload, f"alert page {page}")
            data = self._parse_envelope(SolarmanAlertPage, payload, f"alert page {page}")
            if page == 1:
                # Without a vendor total, paging ends on a short or empty page
                total = data.total
                if total:
                    max_pages = resolve_page_count(
                        total, 0, size, self.settings.max_vendor_pages
                    )
            records.extend(data.data)
            if is_last_page(len(data.data), len(records), total, size):
                break
            page += 1
        logger.info(
            "Solarman vendor %s returned %d alerts (%s to %s)",
            self.config.id, len(records), start, end,
        )
        return records

    def normalize_alert(self, raw: dict[str, Any]) -> NormalizedAlert:
        try:
            record = SolarmanAlertRecord.model_validate(raw)
        except ValidationError as exc:
            raise self._validation_failure(exc, raw) from exc

        alert_time = from_unix_seconds(record.alert_time)
        end_time = from_unix_seconds(record.end_time)
        return NormalizedAlert(
            vendor_alert_id=str(record.alert_id),
            title=record.alert_name or "Alert",
            severity=map_severity(record.level, record.influence),
            status=AlertStatus.RESOLVED if record.end_time else AlertStatus.ACTIVE,
            vendor_plant_id=str(record.station_id) if record.station_id is not None else None,
            description=record.description,
            alert_time=alert_time,
            end_time=end_time,
            grid_down_seconds=downtime_seconds(alert_time, end_time),
            device_type=record.device_type,
            device_sn=record.device_sn,
            metadata=dict(raw),
        )

    def include_alert(self, alert: NormalizedAlert) -> bool:
        return alert.device_type == "INVERTER"

    # ── Telemetry ──

    async def _station_history(
        self, plant_id: str, start: str, end: str, time_type: int
    ) -> SolarmanHistoryResponse:
        payload = await self._authorized_json(
            "POST", f"{self.base_url}/station/v1.0/history",
            params={"language": "en"},
            json={
                "stationId": int(plant_id) if plant_id.isdigit() else plant_id,
                "startTime": start,
                "endTime": end,
                "timeType": time_type,
            },
        )
        self._check_success(payload, "station history")
        return SolarmanHistoryResponse.model_validate(payload)

    async def get_telemetry(
        self, plant_id: str, start: date, end: date
    ) -> list[TelemetryPoint]:
        history = await self._station_history(plant_id, start.isoformat(), end.isoformat(), 1)
        return [
            self.normalize_telemetry(plant_id, item.model_dump(by_alias=True))
            for item in history.station_data_items
        ]

    def normalize_telemetry(self, plant_id: str, raw: dict[str, Any]) -> TelemetryPoint:
        try:
            item = SolarmanHistoryItem.model_validate(raw)
        except ValidationError as exc:
            raise self._validation_failure(exc, raw) from exc
        timestamp = from_unix_seconds(item.date_time)
        if timestamp is None:
            raise NormalizationFailure(
                f"{self.config.name}: history sample has no dateTime", record_id=plant_id
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
            last_day = calendar.monthrange(when.year, when.month)[1]
            start = when.replace(day=1).isoformat()
            end = when.replace(day=last_day).isoformat()
            time_type = 2
        elif period == "year":
            start, end, time_type = f"{when.year}-01", f"{when.year}-12", 3
        else:
            start, end, time_type = str(when.year - _TOTAL_HISTORY_YEARS + 1), str(when.year), 4

        history = await self._station_history(plant_id, start, end, time_type)
        records = [
            EnergyRecord(
                plant_id=plant_id,
                year=item.year or when.year,
                month=item.month or 0,
                day=item.day or 0,
                generation_kwh=item.generation_value or 0.0,
            )
            for item in history.station_data_items
        ]
        return EnergyReport(
            plant_id=plant_id,
            period=period,
            generation_kwh=sum(record.generation_kwh for record in records),
            records=records,
        )

    async def get_realtime(self, plant_id: str) -> RealtimeReading:
        payload = await self._authorized_json(
            "POST", f"{self.base_url}/station/v1.0/realTime",
            params={"language": "en"},
            json={"stationId": int(plant_id) if plant_id.isdigit() else plant_id},
        )
        self._check_success(payload, "station realtime")
        data = SolarmanRealtimeResponse.model_validate(payload)
        return RealtimeReading(
            plant_id=plant_id,
            timestamp=from_unix_seconds(data.last_update_time) or utcnow(),
            data={
                "generation_power_kw": watts_to_kw(data.generation_power),
                "raw": payload,
            },
        )

    # ── Device-level data ──

    async def get_device_realtime(self, device: int | str) -> RealtimeReading:
        body = {"deviceId": device} if isinstance(device, int) else {"deviceSn": device}
        payload = await self._authorized_json(
            "POST", f"{self.base_url}/device/v1.0/currentData", json=body
        )
        self._check_success(payload, "device realtime")
        data = SolarmanDeviceDataResponse.model_validate(payload)
        readings: dict[str, Any] = {
            normalize_data_key(item.key): {
                "value": _to_float(item.value),
                "unit": item.unit,
                "name": item.name,
            }
            for item in data.data_list
        }
        readings.update(
            deviceId=data.device_id, deviceSn=data.device_sn, connectStatus=data.connect_status
        )
        return RealtimeReading(
            plant_id=str(data.device_id or data.device_sn or device),
            timestamp=from_unix_seconds(data.collection_time) or utcnow(),
            data=readings,
        )

    async def get_device_telemetry(
        self, device_id: int, start: date, end: date, time_type: int = 1
    ) -> list[TelemetryPoint]:
        """Historical inverter frames (1), days (2), months (3) or years (4)."""
        payload = await self._authorized_json(
            "POST", f"{self.base_url}/device/v1.0/historical",
            json={
                "deviceId": device_id,
                "startTime": start.isoformat(),
                "endTime": end.isoformat(),
                "timeType": time_type,
            },
        )
        self._check_success(payload, "device history")
        history = SolarmanDeviceHistoryResponse.model_validate(payload)
        return [self.normalize_device_frame(str(device_id), frame) for frame in history.param_data_list]

    def normalize_device_frame(self, device_id: str, frame: SolarmanDeviceFrame) -> TelemetryPoint:
        metrics = {normalize_data_key(item.key): _to_float(item.value) for item in frame.data_list}
        return TelemetryPoint(
            plant_id=device_id,
            timestamp=from_unix_seconds(frame.collect_time) or utcnow(),
            generation_power_kw=metrics.get("power_ac_w", 0.0) / 1000,
            voltage=metrics.get("voltage_v_phase_1"),
            current=metrics.get("current_a_phase_1"),
            temperature=metrics.get("temperature_c"),
            metadata=metrics,
        )


