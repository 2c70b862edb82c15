"""Dependency injection singletons for SolarSync-Engine."""

from solarsync_engine.alerts.service import AlertSyncService
from solarsync_engine.auth.tokens import TokenCache, TokenStore
from solarsync_engine.common.config import get_settings
from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.http.pool import ConnectionPool
from solarsync_engine.organizations.service import OrganizationService
from solarsync_engine.plants.service import PlantSyncService
from solarsync_engine.sync.orchestrator import SyncOrchestrator
from solarsync_engine.sync.scheduler import Scheduler
from solarsync_engine.vendors.registry import AdapterRegistry
from solarsync_engine.vendors.service import VendorService

_db: DatabaseManager | None = None
_pool: ConnectionPool | None = None
_token_cache: TokenCache | None = None
_registry: AdapterRegistry | None = None
_vendors: VendorService | None = None
_organizations: OrganizationService | None = None
_plant_sync: PlantSyncService | None = None
_alert_sync: AlertSyncService | None = None
_orchestrator: SyncOrchestrator | None = None
_scheduler: Scheduler | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        _pool = ConnectionPool(get_settings())
    return _pool


def get_token_cache() -> TokenCache:
    global _token_cache
    if _token_cache is None:
        _token_cache = TokenCache(TokenStore(get_db()), get_settings())
    return _token_cache


def get_adapter_registry() -> AdapterRegistry:
    global _registry
    if _registry is None:
        _registry = AdapterRegistry(get_pool(), get_token_cache(), get_settings())
    return _registry


def get_vendor_service() -> VendorService:
    global _vendors
    if _vendors is None:
        _vendors = VendorService()
    return _vendors


def get_organization_service() -> OrganizationService:
    global _organizations
    if _organizations is None:
        _organizations = OrganizationService()
    return _organizations


def get_plant_sync_service() -> PlantSyncService:
    global _plant_sync
    if _plant_sync is None:
        _plant_sync = PlantSyncService(get_db(), get_adapter_registry(), get_vendor_service())
    return _plant_sync


def get_alert_sync_service() -> AlertSyncService:
    global _alert_sync
    if _alert_sync is None:
        _alert_sync = AlertSyncService(
            get_db(), get_adapter_registry(), get_vendor_service(), get_settings()
        )
    return _alert_sync


def get_orchestrator() -> SyncOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = SyncOrchestrator(
            get_db(),
            get_settings(),
            vendor_service=get_vendor_service(),
            organization_service=get_organization_service(),
            plant_sync=get_plant_sync_service(),
            alert_sync=get_alert_sync_service(),
        )
    return _orchestrator


def get_scheduler() -> Scheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = Scheduler(get_orchestrator(), get_settings())
    return _scheduler


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _pool, _token_cache, _registry, _vendors, _organizations
    global _plant_sync, _alert_sync, _orchestrator, _scheduler
    _db = None
    _pool = None
    _token_cache = None
    _registry = None
    _vendors = None
    _organizations = None
    _plant_sync = None
    _alert_sync = None
    _orchestrator = None
    _scheduler = None
