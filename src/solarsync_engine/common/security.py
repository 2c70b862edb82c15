"""API key and cron-secret authentication dependencies."""

import hmac

from fastapi import Header, HTTPException


async def require_api_key(
    x_solarsync_api_key: str = Header(..., alias="X-SolarSync-Api-Key"),
) -> str:
    """FastAPI dependency that validates admin API key from header."""
    from solarsync_engine.common.config import get_settings

    settings = get_settings()
    if not hmac.compare_digest(x_solarsync_api_key, settings.api_key):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_solarsync_api_key


async def require_cron_secret(
    authorization: str = Header(None, alias="Authorization"),
) -> None:
    """FastAPI dependency for the scheduler trigger.

    When ``SOLARSYNC_CRON_SECRET`` is unset the endpoint is open, matching a
    scheduler running on the same host.
    """
    from solarsync_engine.common.config import get_settings

    settings = get_settings()
    if not settings.cron_secret:
        return
    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
