"""SolarSync-Engine: multi-vendor solar monitoring sync engine."""

from solarsync_engine.vendors.types import (
    AlertStatus,
    NormalizedAlert,
    NormalizedPlant,
    Severity,
    VendorConfig,
)

__all__ = [
    "AlertStatus",
    "NormalizedAlert",
    "NormalizedPlant",
    "Severity",
    "VendorConfig",
]
__version__ = "0.1.0"
