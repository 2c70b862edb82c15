"""Common-schema records produced by vendor adapters."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    """Alert severity, ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    ACKNOWLEDGED = "ACKNOWLEDGED"


@dataclass
class VendorConfig:
    """Everything an adapter needs to talk to one vendor account."""

    id: int
    name: str
    vendor_type: str
    credentials: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    org_id: Optional[int] = None
    api_base_url: Optional[str] = None


@dataclass
class TokenGrant:
    """Result of a vendor login call."""

    token: str
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None


@dataclass
class PlantLocation:
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: Optional[str] = None


@dataclass
class NormalizedPlant:
    vendor_plant_id: str
    name: str
    capacity_kw: float
    location: Optional[PlantLocation] = None
    current_power_kw: Optional[float] = None
    daily_energy_mwh: Optional[float] = None
    monthly_energy_mwh: Optional[float] = None
    yearly_energy_mwh: Optional[float] = None
    total_energy_mwh: Optional[float] = None
    performance_ratio: Optional[float] = None
    network_status: Optional[str] = None
    last_update_time: Optional[datetime] = None
    vendor_created_date: Optional[datetime] = None
    start_operating_time: Optional[datetime] = None
    contact_phone: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class NormalizedAlert:
    vendor_alert_id: str
    title: str
    severity: Severity
    status: AlertStatus
    vendor_plant_id: Optional[str] = None
    description: Optional[str] = None
    alert_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    grid_down_seconds: Optional[int] = None
    device_type: Optional[str] = None
    device_sn: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class TelemetryPoint:
    plant_id: str
    timestamp: datetime
    generation_power_kw: float
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EnergyRecord:
    """One row of a day/month/year/total energy breakdown."""

    plant_id: str
    year: int
    month: int = 0
    day: int = 0
    generation_kwh: float = 0.0


@dataclass
class EnergyReport:
    plant_id: str
    period: str
    generation_kwh: float
    records: list[EnergyRecord] = field(default_factory=list)


@dataclass
class RealtimeReading:
    plant_id: str
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)
