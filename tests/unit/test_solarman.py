"""Tests for the Solarman adapter: login, paging and normalization."""

from datetime import date, datetime, timezone

import httpx
import pytest

from solarsync_engine.common.exceptions import (
    AuthenticationFailure,
    NormalizationFailure,
    VendorApiError,
)
from solarsync_engine.vendors.solarman import SolarmanAdapter, map_severity, normalize_data_key
from solarsync_engine.vendors.types import AlertStatus, Severity
from tests.conftest import (
    SOLARMAN_ALERTS_PATH,
    SOLARMAN_STATIONS_PATH,
    SOLARMAN_TOKEN_PATH,
    request_json,
    solarman_alert,
    solarman_station,
    solarman_station_page,
    solarman_token,
)


@pytest.fixture
async def adapter(engine) -> SolarmanAdapter:
    vendor_id = await engine.add_vendor("SOLARMAN")
    return await engine.adapter(vendor_id)


class TestSeverity:
    @pytest.mark.parametrize(
        "level,influence,expected",
        [
            (0, None, Severity.LOW),
            (1, 0, Severity.MEDIUM),
            (2, 0, Severity.HIGH),
            (0, 1, Severity.MEDIUM),
            (2, 1, Severity.HIGH),
            (0, 2, Severity.CRITICAL),
            (1, 3, Severity.CRITICAL),
            (None, None, Severity.MEDIUM),
        ],
    )
    def test_level_and_influence(self, level, influence, expected):
        assert map_severity(level, influence) == expected

    def test_severity_ordering(self):
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL


class TestHosts:
    async def test_auth_and_pro_hosts_derived_from_base(self, adapter):
        assert adapter.auth_origin == "https://globalapi.solarmanpv.com"
        assert adapter.pro_base_url == "https://globalpro.solarmanpv.com"

    async def test_explicit_pro_base_url(self, engine):
        engine.settings.solarman_pro_api_base_url = "https://pro.example.com/"
        vendor_id = await engine.add_vendor("SOLARMAN")
        adapter = await engine.adapter(vendor_id)
        assert adapter.pro_base_url == "https://pro.example.com"


class TestLogin:
    async def test_login_request_shape(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token("abc"))

        assert await adapter.authenticate() == "abc"
        request = fake_vendor.requests_to(SOLARMAN_TOKEN_PATH)[0]
        assert request.url.host == "globalapi.solarmanpv.com"
        assert request.url.params["appId"] == "app-1"
        assert request_json(request) == {
            "appSecret": "app-secret",
            "username": "ops@example.com",
            "password": "sha256-of-password",
        }

    async def test_org_id_forwarded(self, engine, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        vendor_id = await engine.add_vendor(
            "SOLARMAN",
            credentials={
                "appId": "a", "appSecret": "s", "email": "e@example.com",
                "passwordSha256": "p", "solarmanOrgId": 42,
            },
        )
        adapter = await engine.adapter(vendor_id)
        await adapter.authenticate()
        body = request_json(fake_vendor.requests_to(SOLARMAN_TOKEN_PATH)[0])
        assert body["orgId"] == 42
        assert body["username"] == "e@example.com"

    async def test_rejected_login(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, (401, {"msg": "bad credentials"}))
        with pytest.raises(AuthenticationFailure) as exc_info:
            await adapter.authenticate()
        assert exc_info.value.vendor_status == 401
        assert "bad credentials" in exc_info.value.vendor_message

    async def test_login_without_token(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, {"success": False, "msg": "auth invalid"})
        with pytest.raises(AuthenticationFailure):
            await adapter.authenticate()

    async def test_missing_credentials_fail_before_any_request(self, engine, fake_vendor):
        vendor_id = await engine.add_vendor("SOLARMAN", credentials={"appId": "a"})
        adapter = await engine.adapter(vendor_id)
        with pytest.raises(AuthenticationFailure, match="appSecret"):
            await adapter.authenticate()
        assert fake_vendor.calls == []


class TestFetchPlants:
    async def test_pages_until_total_reached(self, adapter, fake_vendor, engine):
        engine.settings.vendor_page_size = 2
        pages = {
            1: [solarman_station(1), solarman_station(2)],
            2: [solarman_station(3), solarman_station(4)],
            3: [solarman_station(5)],
        }

        def stations(request: httpx.Request):
            page = int(request.url.params["page"])
            return solarman_station_page(pages[page], total=5)

        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, stations)

        raw = await adapter.fetch_plants()

        assert [station["id"] for station in raw] == [1, 2, 3, 4, 5]
        assert fake_vendor.count(SOLARMAN_STATIONS_PATH) == 3
        assert fake_vendor.count(SOLARMAN_TOKEN_PATH) == 1

    async def test_station_search_request(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token("tok"))
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, solarman_station_page([]))

        assert await adapter.fetch_plants() == []
        request = fake_vendor.requests_to(SOLARMAN_STATIONS_PATH)[0]
        assert request.url.host == "globalpro.solarmanpv.com"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request_json(request) == {"station": {"powerTypeList": ["PV"]}}

    async def test_vendor_reported_failure(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, {"success": False, "msg": "quota"})
        with pytest.raises(VendorApiError, match="quota"):
            await adapter.fetch_plants()

    async def test_failed_page_fails_whole_fetch(self, adapter, fake_vendor, engine):
        engine.settings.vendor_page_size = 1

        def stations(request: httpx.Request):
            if request.url.params["page"] == "2":
                return 500, {"error": "boom"}
            return solarman_station_page([solarman_station(1)], total=2)

        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, stations)
        with pytest.raises(VendorApiError) as exc_info:
            await adapter.fetch_plants()
        assert exc_info.value.status == 500

    async def test_unauthorized_response_invalidates_cached_token(self, adapter, fake_vendor, engine):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token("revoked"))
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, (401, {"msg": "token expired"}))

        with pytest.raises(VendorApiError):
            await adapter.fetch_plants()
        assert await engine.tokens.store.load(adapter.config.id) is None

    async def test_transport_error_becomes_vendor_error(self, adapter, fake_vendor):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, unreachable)
        with pytest.raises(VendorApiError, match="connection refused"):
            await adapter.fetch_plants()

    async def test_null_total_pages_until_short_page(self, adapter, fake_vendor, engine):
        engine.settings.vendor_page_size = 2
        pages = {
            1: [solarman_station(1), solarman_station(2)],
            2: [solarman_station(3)],
        }

        def stations(request: httpx.Request):
            page = int(request.url.params["page"])
            return {"success": True, "total": None, "data": pages[page]}

        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, stations)

        raw = await adapter.fetch_plants()

        assert [station["id"] for station in raw] == [1, 2, 3]
        assert fake_vendor.count(SOLARMAN_STATIONS_PATH) == 2

    async def test_malformed_page_is_vendor_error(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, {"success": True, "total": "lots", "data": []})
        with pytest.raises(VendorApiError, match="malformed station page"):
            await adapter.fetch_plants()


class TestNormalizePlant:
    async def test_units_and_times(self, adapter):
        plant = adapter.normalize_plant({
            "id": 101,
            "name": "Rooftop A",
            "installedCapacity": 50.0,
            "locationLat": 12.97,
            "locationLng": 77.59,
            "locationAddress": "Bengaluru",
            "generationPower": 2500,
            "generationValue": 120.0,
            "generationTotal": 45000.0,
            "prYesterday": 0.81,
            "networkStatus": " NORMAL ",
            "lastUpdateTime": 1760000000.75,
            "type": "HOUSE_ROOF",
        })
        assert plant.vendor_plant_id == "101"
        assert plant.capacity_kw == 50.0
        assert plant.current_power_kw == 2.5
        assert plant.daily_energy_mwh == pytest.approx(0.12)
        assert plant.total_energy_mwh == pytest.approx(45.0)
        assert plant.performance_ratio == 0.81
        assert plant.network_status == "NORMAL"
        assert plant.last_update_time == datetime.fromtimestamp(1760000000, tz=timezone.utc)
        assert plant.location.address == "Bengaluru"
        assert plant.metadata["type"] == "HOUSE_ROOF"

    async def test_zero_power_is_unknown(self, adapter):
        plant = adapter.normalize_plant({"id": 7, "installedCapacity": 5, "generationPower": 0})
        assert plant.current_power_kw is None
        assert plant.location is None
        assert plant.name == "Station 7"

    async def test_performance_ratio_fallback(self, adapter):
        plant = adapter.normalize_plant({"id": 7, "installedCapacity": 10, "generationCapacity": 4})
        assert plant.performance_ratio == pytest.approx(0.4)

    async def test_record_without_id(self, adapter):
        with pytest.raises(NormalizationFailure):
            adapter.normalize_plant({"name": "no id"})


class TestAlerts:
    async def test_fetch_alerts_request(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on(
            "POST", SOLARMAN_ALERTS_PATH,
            {"success": True, "total": 1, "data": [solarman_alert(1, 101)]},
        )

        records = await adapter.fetch_alerts(date(2026, 1, 1), date(2026, 1, 10))

        assert len(records) == 1
        request = fake_vendor.requests_to(SOLARMAN_ALERTS_PATH)[0]
        body = request_json(request)
        assert body["startDay"] == "2026-01-01"
        assert body["endDay"] == "2026-01-10"
        assert body["timeZone"] == "Asia/Calcutta"
        assert request.url.params["order.property"] == "alertTime"

    async def test_resolved_alert(self, adapter):
        alert = adapter.normalize_alert(
            solarman_alert(9, 101, level=2, alertTime=1760000000, endTime=1760003600)
        )
        assert alert.vendor_alert_id == "9"
        assert alert.vendor_plant_id == "101"
        assert alert.status == AlertStatus.RESOLVED
        assert alert.severity == Severity.HIGH
        assert alert.grid_down_seconds == 3600

    async def test_active_alert(self, adapter):
        alert = adapter.normalize_alert(solarman_alert(9, 101))
        assert alert.status == AlertStatus.ACTIVE
        assert alert.end_time is None
        assert alert.grid_down_seconds is None

    async def test_only_inverter_alerts_included(self, adapter):
        inverter = adapter.normalize_alert(solarman_alert(1, 101))
        meter = adapter.normalize_alert(solarman_alert(2, 101, device_type="METER"))
        assert adapter.include_alert(inverter) is True
        assert adapter.include_alert(meter) is False

    async def test_get_alerts_applies_filter(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_ALERTS_PATH, {
            "success": True, "total": 2,
            "data": [solarman_alert(1, 101), solarman_alert(2, 101, device_type="COLLECTOR")],
        })
        alerts = await adapter.get_alerts(date(2026, 1, 1), date(2026, 1, 2))
        assert [alert.vendor_alert_id for alert in alerts] == ["1"]

    @pytest.mark.parametrize("envelope", [{}, {"total": None}])
    async def test_alert_pages_without_total(self, adapter, fake_vendor, engine, envelope):
        engine.settings.vendor_page_size = 2
        pages = {
            1: [solarman_alert(1, 101), solarman_alert(2, 101)],
            2: [solarman_alert(3, 102)],
        }

        def alerts(request: httpx.Request):
            page = int(request.url.params["page"])
            return {"success": True, **envelope, "data": pages[page]}

        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_ALERTS_PATH, alerts)

        raw = await adapter.fetch_alerts(date(2026, 1, 1), date(2026, 1, 31))

        assert [alert["id"] for alert in raw] == [1, 2, 3]
        assert fake_vendor.count(SOLARMAN_ALERTS_PATH) == 2

    async def test_alert_pages_stop_at_reported_total(self, adapter, fake_vendor, engine):
        engine.settings.vendor_page_size = 2
        page_one = [solarman_alert(1, 101), solarman_alert(2, 101)]
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_ALERTS_PATH, {"success": True, "total": 2, "data": page_one})

        raw = await adapter.fetch_alerts(date(2026, 1, 1), date(2026, 1, 31))

        assert len(raw) == 2
        assert fake_vendor.count(SOLARMAN_ALERTS_PATH) == 1


class TestTelemetry:
    async def test_station_history(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", "/station/v1.0/history", {
            "success": True,
            "stationDataItems": [
                {"generationPower": 1500, "dateTime": 1760000000},
                {"generationPower": 3000, "dateTime": 1760000300},
            ],
        })

        points = await adapter.get_telemetry("101", date(2026, 1, 1), date(2026, 1, 1))

        assert [point.generation_power_kw for point in points] == [1.5, 3.0]
        body = request_json(fake_vendor.requests_to("/station/v1.0/history")[0])
        assert body["stationId"] == 101
        assert body["timeType"] == 1

    async def test_month_energy(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", "/station/v1.0/history", {
            "success": True,
            "stationDataItems": [
                {"generationValue": 20.5, "year": 2026, "month": 2, "day": 1},
                {"generationValue": 19.5, "year": 2026, "month": 2, "day": 2},
            ],
        })

        report = await adapter.get_energy("101", "month", date(2026, 2, 14))

        assert report.generation_kwh == 40.0
        assert [record.day for record in report.records] == [1, 2]
        body = request_json(fake_vendor.requests_to("/station/v1.0/history")[0])
        assert (body["startTime"], body["endTime"], body["timeType"]) == ("2026-02-01", "2026-02-28", 2)

    async def test_unknown_energy_period(self, adapter):
        with pytest.raises(ValueError):
            await adapter.get_energy("101", "week", date(2026, 2, 14))

    async def test_device_realtime_keys_normalized(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", "/device/v1.0/currentData", {
            "success": True,
            "deviceId": 5,
            "deviceSn": "INV-5",
            "collectionTime": 1760000000,
            "dataList": [
                {"key": "APo_t1", "value": "4200", "unit": "W", "name": "Total AC Output Power"},
                {"key": "INV_T0", "value": "41.5", "unit": "℃", "name": "Temperature"},
                {"key": "Vendor_X", "value": "n/a"},
            ],
        })

        reading = await adapter.get_device_realtime(5)

        assert reading.data["power_ac_w"]["value"] == 4200.0
        assert reading.data["temperature_c"]["value"] == 41.5
        assert reading.data["Vendor_X"]["value"] == 0.0
        assert reading.data["deviceSn"] == "INV-5"

    async def test_device_history_frames(self, adapter, fake_vendor):
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", "/device/v1.0/historical", {
            "success": True,
            "paramDataList": [
                {
                    "collectTime": 1760000000,
                    "dataList": [
                        {"key": "APo_t1", "value": "4200", "unit": "W"},
                        {"key": "AV1", "value": "231.5", "unit": "V"},
                        {"key": "AC1", "value": "6.1", "unit": "A"},
                        {"key": "INV_T0", "value": "41.5", "unit": "℃"},
                    ],
                },
                {"collectTime": 1760000300, "dataList": [{"key": "AV1", "value": "230.0"}]},
            ],
        })

        points = await adapter.get_device_telemetry(5, date(2026, 1, 1), date(2026, 1, 1))

        assert [point.generation_power_kw for point in points] == [4.2, 0.0]
        first = points[0]
        assert first.plant_id == "5"
        assert first.timestamp == datetime.fromtimestamp(1760000000, tz=timezone.utc)
        assert (first.voltage, first.current, first.temperature) == (231.5, 6.1, 41.5)
        assert first.metadata["power_ac_w"] == 4200.0
        body = request_json(fake_vendor.requests_to("/device/v1.0/historical")[0])
        assert body == {
            "deviceId": 5,
            "startTime": "2026-01-01",
            "endTime": "2026-01-01",
            "timeType": 1,
        }

    def test_unmapped_key_passes_through(self):
        assert normalize_data_key("AV1") == "voltage_v_phase_1"
        assert normalize_data_key("UNKNOWN") == "UNKNOWN"
