"""Vendor type tags and the adapter table they resolve through."""

from enum import Enum

from solarsync_engine.auth.tokens import TokenCache
from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.exceptions import ConfigurationError
from solarsync_engine.http.pool import ConnectionPool
from solarsync_engine.vendors.base import VendorAdapter
from solarsync_engine.vendors.solardm import SolarDmAdapter
from solarsync_engine.vendors.solarman import SolarmanAdapter
from solarsync_engine.vendors.types import VendorConfig


class VendorType(str, Enum):
    SOLARMAN = "SOLARMAN"
    SOLARDM = "SOLARDM"


ADAPTERS: dict[VendorType, type[VendorAdapter]] = {
    VendorType.SOLARMAN: SolarmanAdapter,
    VendorType.SOLARDM: SolarDmAdapter,
}


def parse_vendor_type(tag: str) -> VendorType:
    try:
        return VendorType(tag.strip().upper())
    except (ValueError, AttributeError) as exc:
        raise ConfigurationError(f"Unknown vendor type: {tag!r}") from exc


class AdapterRegistry:
    """Builds adapters for vendor configs from an explicit type table."""

    def __init__(
        self,
        pool: ConnectionPool,
        tokens: TokenCache,
        settings: SolarSyncSettings,
        adapters: dict[VendorType, type[VendorAdapter]] | None = None,
    ):
        self.pool = pool
        self.tokens = tokens
        self.settings = settings
        self._adapters = dict(adapters or ADAPTERS)

    def register(self, vendor_type: VendorType, adapter_cls: type[VendorAdapter]) -> None:
        self._adapters[vendor_type] = adapter_cls

    def supported_types(self) -> list[str]:
        return sorted(vendor_type.value for vendor_type in self._adapters)

    def create(self, config: VendorConfig) -> VendorAdapter:
        """Resolve ``config.vendor_type`` to an adapter, failing before any I/O."""
        vendor_type = parse_vendor_type(config.vendor_type)
        adapter_cls = self._adapters.get(vendor_type)
        if adapter_cls is None:
            raise ConfigurationError(f"No adapter registered for {vendor_type.value}")
        return adapter_cls(config, self.pool, self.tokens, self.settings)
