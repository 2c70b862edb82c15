"""SolarSync-Engine configuration via pydantic-settings."""

import warnings
from datetime import time
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` string into a ``datetime.time``."""
    try:
        hour_str, minute_str = value.strip().split(":")
        return time(int(hour_str), int(minute_str))
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Expected HH:MM time of day, got: {value!r}") from exc


class SolarSyncSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SOLARSYNC_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/solarsync.db"

    # API
    api_title: str = "SolarSync-Engine"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    cron_secret: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Vendor endpoints (a vendor row's api_base_url takes precedence)
    solarman_api_base_url: str = "https://globalapi.solarmanpv.com"
    solarman_pro_api_base_url: str = ""
    solardm_api_base_url: str = "http://global.solar-dm.com:8010"
    solardm_alert_fault_filter: str = "There is no mains voltage"

    # Scheduler
    scheduler_enabled: bool = True
    plant_sync_enabled: bool = True
    alert_sync_enabled: bool = True
    sync_timezone: str = "Asia/Kolkata"
    sync_window_start: str = "19:00"
    sync_window_end: str = "06:00"
    scheduler_tick_seconds: int = 60
    default_sync_interval_minutes: int = Field(default=15, ge=1, le=1440)

    # Token cache
    token_safety_buffer_seconds: int = 300
    default_token_ttl_seconds: int = 3600

    # Vendor pagination
    vendor_page_size: int = 100
    max_vendor_pages: int = 500
    alert_lookback_days: int = 365

    # Outbound HTTP pool (per origin)
    http_max_connections: int = 10
    http_max_keepalive: int = 10
    http_keepalive_expiry: float = 60.0
    http_timeout: float = 30.0

    @property
    def window_start(self) -> time:
        return parse_time_of_day(self.sync_window_start)

    @property
    def window_end(self) -> time:
        return parse_time_of_day(self.sync_window_end)

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"SOLARSYNC_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default admin key, set SOLARSYNC_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )

        # Fail fast on malformed window bounds
        parse_time_of_day(self.sync_window_start)
        parse_time_of_day(self.sync_window_end)


@lru_cache
def get_settings() -> SolarSyncSettings:
    settings = SolarSyncSettings()
    settings.validate_for_production()
    return settings
