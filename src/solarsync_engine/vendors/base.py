"""Vendor adapter interface and shared request plumbing."""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, ClassVar, TypeVar
from zoneinfo import ZoneInfo

import httpx
from pydantic import BaseModel, ValidationError

from solarsync_engine.auth.tokens import TokenCache
from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.exceptions import (
    AuthenticationFailure,
    NormalizationFailure,
    VendorApiError,
)
from solarsync_engine.http.pool import ConnectionPool
from solarsync_engine.vendors.types import (
    EnergyReport,
    NormalizedAlert,
    NormalizedPlant,
    RealtimeReading,
    TelemetryPoint,
    TokenGrant,
    VendorConfig,
)

logger = logging.getLogger(__name__)

_MAX_ERROR_BODY = 2000

PayloadT = TypeVar("PayloadT", bound=BaseModel)


# ── Unit and time conversion ──


def from_unix_seconds(value: float | int | None) -> datetime | None:
    """Vendor Unix seconds (possibly fractional) to an aware UTC datetime."""
    if value is None or value == 0:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def parse_vendor_datetime(value: str | None, tz: ZoneInfo) -> datetime | None:
    """Parse ``YYYY-MM-DD HH:mm:ss`` wall-clock text in ``tz`` into UTC."""
    if not value:
        return None
    try:
        local = datetime.fromisoformat(value.strip().replace(" ", "T"))
    except ValueError as exc:
        raise NormalizationFailure(f"Unparseable vendor timestamp: {value!r}") from exc
    if local.tzinfo is None:
        local = local.replace(tzinfo=tz)
    return local.astimezone(timezone.utc)


def watts_to_kw(value: float | None) -> float | None:
    return value / 1000 if value else None


def kwh_to_mwh(value: float | None) -> float | None:
    return value / 1000 if value else None


def downtime_seconds(start: datetime | None, end: datetime | None) -> int | None:
    if start is None or end is None:
        return None
    return max(int((end - start).total_seconds()), 0)


class VendorAdapter(ABC):
    """Capability set every vendor integration implements.

    ``fetch_*`` methods talk to the vendor and are all-or-nothing: any failed
    page raises ``VendorApiError``. ``normalize_*`` methods are pure and raise
    ``NormalizationFailure`` for a single bad record.
    """

    vendor_type: ClassVar[str]
    default_base_url_setting: ClassVar[str]

    def __init__(
        self,
        config: VendorConfig,
        pool: ConnectionPool,
        tokens: TokenCache,
        settings: SolarSyncSettings,
    ):
        self.config = config
        self.pool = pool
        self.tokens = tokens
        self.settings = settings

    @property
    def base_url(self) -> str:
        url = self.config.api_base_url or getattr(self.settings, self.default_base_url_setting)
        return url.rstrip("/")

    @property
    def local_tz(self) -> ZoneInfo:
        return ZoneInfo(self.credential("timezone", required=False) or self.settings.sync_timezone)

    def credential(self, *names: str, required: bool = True) -> Any:
        """First non-empty credential among ``names``."""
        for name in names:
            value = self.config.credentials.get(name)
            if value not in (None, ""):
                return value
        if required:
            raise AuthenticationFailure(
                f"{self.config.name}: missing credential {' or '.join(names)}"
            )
        return None

    # ── Authentication ──

    async def authenticate(self) -> str:
        """Return a bearer token, logging in only when the cached one is unusable."""
        return await self.tokens.get_token(self.config.id, self._login)

    @abstractmethod
    async def _login(self) -> TokenGrant:
        """Exchange the credential map for a fresh token."""

    # ── Transport ──

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.pool.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise VendorApiError(
                f"{self.config.name}: {method} {url.split('?')[0]} failed: {exc}"
            ) from exc

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Send a request and decode the JSON body, raising on non-2xx."""
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("Accept", "application/json, text/plain, */*")
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        response = await self._send(method, url, headers=headers, **kwargs)
        if not response.is_success:
            if response.status_code == 401 and token is not None:
                await self.tokens.invalidate(self.config.id, token)
            raise VendorApiError(
                f"{self.config.name}: {method} {url.split('?')[0]} returned {response.status_code}",
                status=response.status_code,
                body=response.text[:_MAX_ERROR_BODY],
            )
        try:
            return response.json()
        except ValueError as exc:
            raise VendorApiError(
                f"{self.config.name}: response is not JSON",
                status=response.status_code,
                body=response.text[:_MAX_ERROR_BODY],
            ) from exc

    async def _authorized_json(self, method: str, url: str, **kwargs: Any) -> Any:
        token = await self.authenticate()
        return await self._request_json(method, url, token=token, **kwargs)

    def _parse_envelope(self, model: type[PayloadT], payload: Any, what: str) -> PayloadT:
        """Validate a response envelope; a malformed one is a vendor API error."""
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise VendorApiError(
                f"{self.config.name}: malformed {what}: {exc.errors()[0]['msg']}",
                body=str(payload)[:_MAX_ERROR_BODY],
            ) from exc

    def _validation_failure(self, exc: ValidationError, record: dict[str, Any]) -> NormalizationFailure:
        record_id = record.get("id") if isinstance(record, dict) else None
        return NormalizationFailure(
            f"{self.config.name}: malformed record: {exc.errors()[0]['msg']}",
            record_id=str(record_id) if record_id is not None else None,
        )

    # ── Plants ──

    @abstractmethod
    async def fetch_plants(self) -> list[dict[str, Any]]:
        """Every raw plant record the vendor reports."""

    @abstractmethod
    def normalize_plant(self, raw: dict[str, Any]) -> NormalizedPlant:
        ...

    async def list_plants(self) -> list[NormalizedPlant]:
        """Fetch and normalize all plants; any bad record raises."""
        return [self.normalize_plant(raw) for raw in await self.fetch_plants()]

    # ── Alerts ──

    @abstractmethod
    async def fetch_alerts(self, start: date, end: date) -> list[dict[str, Any]]:
        """Every raw alert record between ``start`` and ``end`` (inclusive days)."""

    @abstractmethod
    def normalize_alert(self, raw: dict[str, Any]) -> NormalizedAlert:
        ...

    def include_alert(self, alert: NormalizedAlert) -> bool:
        """Whether a normalized alert belongs in this integration's feed."""
        return True

    async def get_alerts(self, start: date, end: date) -> list[NormalizedAlert]:
        alerts = [self.normalize_alert(raw) for raw in await self.fetch_alerts(start, end)]
        return [alert for alert in alerts if self.include_alert(alert)]

    # ── Telemetry ──

    @abstractmethod
    async def get_telemetry(
        self, plant_id: str, start: date, end: date
    ) -> list[TelemetryPoint]:
        """Intraday generation power samples for each day in the range."""

    @abstractmethod
    async def get_realtime(self, plant_id: str) -> RealtimeReading:
        ...

    @abstractmethod
    async def get_energy(self, plant_id: str, period: str, when: date) -> EnergyReport:
        """Energy breakdown for ``period`` in ``month``, ``year`` or ``total``."""

    @abstractmethod
    def normalize_telemetry(self, plant_id: str, raw: dict[str, Any]) -> TelemetryPoint:
        ...


def check_energy_period(period: str) -> None:
    if period not in ("month", "year", "total"):
        raise ValueError(f"Unknown energy period: {period!r}")
