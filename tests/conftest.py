"""Shared test fixtures for SolarSync-Engine."""

import inspect
import json
from dataclasses import dataclass
from typing import Any, Callable

import httpx
import pytest

from solarsync_engine.alerts.service import AlertSyncService
from solarsync_engine.auth.tokens import TokenCache, TokenStore
from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.http.pool import ConnectionPool
from solarsync_engine.organizations.service import OrganizationService
from solarsync_engine.plants.service import PlantSyncService
from solarsync_engine.sync.orchestrator import SyncOrchestrator
from solarsync_engine.vendors.base import VendorAdapter
from solarsync_engine.vendors.registry import AdapterRegistry
from solarsync_engine.vendors.service import VendorService


API_KEY = "test-admin-api-key"
CRON_SECRET = "test-cron-secret"

SOLARMAN_CREDENTIALS = {
    "appId": "app-1",
    "appSecret": "app-secret",
    "username": "ops@example.com",
    "password": "sha256-of-password",
}
SOLARDM_CREDENTIALS = {
    "email": "ops@example.com",
    "passwordRSA": "rsa-encrypted-password",
}

SOLARMAN_TOKEN_PATH = "/account/v1.0/token"
SOLARMAN_STATIONS_PATH = "/maintain-s/operating/station/v2/search"
SOLARMAN_ALERTS_PATH = "/maintain-s/operating/station/alert"
SOLARDM_LOGIN_PATH = "/ums/business/email_login"
SOLARDM_PLANTS_PATH = "/dms/plant/list_all"
SOLARDM_FAULTS_PATH = "/dms/inverter_fault/page_list/all"


def make_settings(**overrides) -> SolarSyncSettings:
    defaults = {"api_key": API_KEY, "db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return SolarSyncSettings(**defaults)


# ── Vendor payload builders ──


def solarman_token(token: str = "sm-token-1", expires_in: int = 7200) -> dict:
    return {"access_token": token, "expires_in": expires_in, "success": True, "code": None}


def solarman_station(station_id: int, name: str = "Plant", capacity: float = 5.0, **extra) -> dict:
    return {"station": {"id": station_id, "name": name, "installedCapacity": capacity, **extra}}


def solarman_station_page(items: list[dict], total: int | None = None) -> dict:
    return {"success": True, "total": len(items) if total is None else total, "data": items}


def solarman_alert(alert_id: int, station_id: int, device_type: str = "INVERTER", **extra) -> dict:
    return {
        "id": alert_id,
        "stationId": station_id,
        "alertName": "Grid overvoltage",
        "level": 1,
        "influence": 0,
        "alertTime": 1760000000,
        "deviceType": device_type,
        "deviceSn": "SN-1",
        **extra,
    }


def solardm_ok(data: Any) -> dict:
    return {"code": 0, "message": "success", "data": data}


def solardm_login(token: str = "dm-token-1") -> dict:
    return solardm_ok({"token": token, "tokenHead": "Bearer ", "expiresIn": 3600})


# ── Fake vendor HTTP ──


class FakeVendor:
    """In-process stand-in for vendor APIs, routed by method and path.

    A route responds with a JSON payload, a ``(status, payload)`` tuple, an
    ``httpx.Response``, or a (possibly async) callable returning any of those.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def on(self, method: str, path: str, responder: Any) -> None:
        self.routes[(method.upper(), path)] = responder

    def count(self, path: str) -> int:
        return sum(1 for request in self.calls if request.url.path == path)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [request for request in self.calls if request.url.path == path]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})
        if callable(responder):
            responder = responder(request)
            if inspect.isawaitable(responder):
                responder = await responder
        if isinstance(responder, httpx.Response):
            return responder
        if isinstance(responder, tuple):
            status, payload = responder
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=responder)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


# ── Engine wiring ──


@dataclass
class Engine:
    settings: SolarSyncSettings
    db: DatabaseManager
    pool: ConnectionPool
    tokens: TokenCache
    registry: AdapterRegistry
    vendors: VendorService
    organizations: OrganizationService
    plant_sync: PlantSyncService
    alert_sync: AlertSyncService
    orchestrator: SyncOrchestrator

    async def add_org(self, name: str = "Acme Solar", **kwargs) -> int:
        async with self.db.get_session() as session:
            org = await self.organizations.create_organization(session, name, **kwargs)
            return org.id

    async def add_vendor(
        self,
        vendor_type: str = "SOLARMAN",
        name: str | None = None,
        credentials: dict | None = None,
        **kwargs,
    ) -> int:
        if credentials is None:
            credentials = SOLARDM_CREDENTIALS if vendor_type == "SOLARDM" else SOLARMAN_CREDENTIALS
        async with self.db.get_session() as session:
            vendor = await self.vendors.create_vendor(
                session,
                name=name or f"{vendor_type.title()} account",
                vendor_type=vendor_type,
                credentials=dict(credentials),
                **kwargs,
            )
            return vendor.id

    async def adapter(self, vendor_id: int) -> VendorAdapter:
        async with self.db.get_session() as session:
            vendor = await self.vendors.get_vendor(session, vendor_id)
            config = self.vendors.to_config(vendor)
        return self.registry.create(config)


def build_engine(settings: SolarSyncSettings, db: DatabaseManager, transport: httpx.MockTransport) -> Engine:
    pool = ConnectionPool(settings, transport=transport)
    tokens = TokenCache(TokenStore(db), settings)
    registry = AdapterRegistry(pool, tokens, settings)
    vendors = VendorService()
    organizations = OrganizationService()
    plant_sync = PlantSyncService(db, registry, vendors)
    alert_sync = AlertSyncService(db, registry, vendors, settings)
    orchestrator = SyncOrchestrator(
        db,
        settings,
        vendor_service=vendors,
        organization_service=organizations,
        plant_sync=plant_sync,
        alert_sync=alert_sync,
    )
    return Engine(
        settings=settings,
        db=db,
        pool=pool,
        tokens=tokens,
        registry=registry,
        vendors=vendors,
        organizations=organizations,
        plant_sync=plant_sync,
        alert_sync=alert_sync,
        orchestrator=orchestrator,
    )


@pytest.fixture
def settings(tmp_path):
    # File-backed so concurrent sessions see each other's commits
    return make_settings(db_url=f"sqlite+aiosqlite:///{tmp_path / 'solarsync.db'}")


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def fake_vendor():
    return FakeVendor()


@pytest.fixture
async def engine(settings, db, fake_vendor):
    built = build_engine(settings, db, fake_vendor.transport)
    yield built
    await built.pool.close()


@pytest.fixture
def solarman_ok(fake_vendor) -> Callable[..., None]:
    """Register a working Solarman login plus the given stations and alerts."""

    def install(stations: list[dict] | None = None, alerts: list[dict] | None = None) -> None:
        fake_vendor.on("POST", SOLARMAN_TOKEN_PATH, solarman_token())
        fake_vendor.on("POST", SOLARMAN_STATIONS_PATH, solarman_station_page(stations or []))
        alert_list = alerts or []
        fake_vendor.on(
            "POST", SOLARMAN_ALERTS_PATH,
            {"success": True, "total": len(alert_list), "data": alert_list},
        )

    return install


# ── API app ──


@pytest.fixture
def app(tmp_path, monkeypatch, fake_vendor):
    """Create a test app on a scratch DB whose vendor traffic hits ``fake_vendor``."""
    monkeypatch.setenv("SOLARSYNC_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("SOLARSYNC_API_KEY", API_KEY)
    monkeypatch.setenv("SOLARSYNC_CRON_SECRET", CRON_SECRET)

    # Clear caches and singletons so new env vars take effect
    from solarsync_engine.common.config import get_settings
    get_settings.cache_clear()

    from solarsync_engine import deps
    deps.reset_singletons()
    monkeypatch.setattr(
        deps, "_pool", ConnectionPool(get_settings(), transport=fake_vendor.transport)
    )

    from solarsync_engine.app import create_app
    yield create_app(start_scheduler=False)

    deps.reset_singletons()
    get_settings.cache_clear()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from solarsync_engine.deps import get_db, get_pool
    db = get_db()
    await db.init()
    await db.create_all()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await get_pool().close()
    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-SolarSync-Api-Key": API_KEY}


async def seed_vendor(vendor_type: str = "SOLARMAN", **kwargs) -> int:
    """Insert a vendor through the app's own singletons."""
    from solarsync_engine.deps import get_db, get_vendor_service

    credentials = SOLARDM_CREDENTIALS if vendor_type == "SOLARDM" else SOLARMAN_CREDENTIALS
    kwargs.setdefault("credentials", dict(credentials))
    async with get_db().get_session() as session:
        vendor = await get_vendor_service().create_vendor(
            session, name=f"{vendor_type.title()} account", vendor_type=vendor_type, **kwargs
        )
        return vendor.id


async def seed_org(name: str = "Acme Solar", **kwargs) -> int:
    from solarsync_engine.deps import get_db, get_organization_service

    async with get_db().get_session() as session:
        org = await get_organization_service().create_organization(session, name, **kwargs)
        return org.id
