"""Persisted bearer-token cache for vendor accounts.

The vendor row is the single source of truth for a vendor's token. Writes go
through a compare-and-swap on the previously stored token, so two tasks that
re-authenticate the same vendor at once cannot silently clobber each other:
the loser adopts the winner's token.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy import or_, update

from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.database import DatabaseManager
from solarsync_engine.common.models import ensure_utc, utcnow
from solarsync_engine.vendors.models import VendorModel
from solarsync_engine.vendors.types import TokenGrant

logger = logging.getLogger(__name__)

LoginCallable = Callable[[], Awaitable[TokenGrant]]


def decode_jwt_expiry(token: str) -> datetime | None:
    """Return the ``exp`` claim of a JWT-shaped token, or None.

    The signature is not verified; only the payload segment is decoded.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


@dataclass
class CachedToken:
    token: str
    expires_at: datetime | None = None
    refresh_token: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolved_expiry(self) -> datetime | None:
        """Stored expiry, else the token's own claim, else issued_at + expires_in."""
        if self.expires_at is not None:
            return ensure_utc(self.expires_at)
        jwt_expiry = decode_jwt_expiry(self.token)
        if jwt_expiry is not None:
            return jwt_expiry
        issued_at = self.metadata.get("issued_at")
        expires_in = self.metadata.get("expires_in")
        if issued_at and expires_in:
            try:
                issued = ensure_utc(datetime.fromisoformat(issued_at))
            except (TypeError, ValueError):
                return None
            return issued + timedelta(seconds=int(expires_in))
        return None


class TokenStore:
    """Reads and conditionally writes the token columns of a vendor row."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def load(self, vendor_id: int) -> CachedToken | None:
        async with self.db.get_session() as session:
            vendor = await session.get(VendorModel, vendor_id)
            if vendor is None or not vendor.access_token:
                return None
            return CachedToken(
                token=vendor.access_token,
                expires_at=ensure_utc(vendor.token_expires_at),
                refresh_token=vendor.refresh_token,
                metadata=dict(vendor.token_metadata or {}),
            )

    async def compare_and_swap(
        self, vendor_id: int, expected: str | None, new: CachedToken | None
    ) -> bool:
        """Replace the stored token only if it still equals ``expected``.

        Passing ``new=None`` clears the token. Returns True when the write won.
        """
        if expected is None:
            condition = or_(VendorModel.access_token.is_(None), VendorModel.access_token == "")
        else:
            condition = VendorModel.access_token == expected
        values: dict[str, Any] = {
            "access_token": new.token if new else None,
            "token_expires_at": new.expires_at if new else None,
            "refresh_token": new.refresh_token if new else None,
            "token_metadata": new.metadata if new else {},
        }
        async with self.db.get_session() as session:
            result = await session.execute(
                update(VendorModel)
                .where(VendorModel.id == vendor_id, condition)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1


class TokenCache:
    """Hands out bearer tokens, logging in only on a miss or near-expiry."""

    def __init__(self, store: TokenStore, settings: SolarSyncSettings):
        self.store = store
        self.safety_buffer = timedelta(seconds=settings.token_safety_buffer_seconds)
        self.default_ttl = settings.default_token_ttl_seconds

    def is_usable(self, cached: CachedToken | None, now: datetime | None = None) -> bool:
        if cached is None or not cached.token:
            return False
        expiry = cached.resolved_expiry()
        if expiry is None:
            return False
        now = now or utcnow()
        return now < expiry - self.safety_buffer

    def _from_grant(self, grant: TokenGrant, now: datetime) -> CachedToken:
        if grant.expires_in:
            expires_at = now + timedelta(seconds=grant.expires_in)
        else:
            expires_at = decode_jwt_expiry(grant.token) or now + timedelta(
                seconds=self.default_ttl
            )
        return CachedToken(
            token=grant.token,
            expires_at=expires_at,
            refresh_token=grant.refresh_token,
            metadata={
                "issued_at": now.isoformat(),
                "expires_in": grant.expires_in or self.default_ttl,
            },
        )

    async def get_token(self, vendor_id: int, login: LoginCallable) -> str:
        """Return a usable token for ``vendor_id``, calling ``login`` on a miss."""
        cached = await self.store.load(vendor_id)
        if self.is_usable(cached):
            return cached.token

        logger.info("No usable cached token for vendor %s, logging in", vendor_id)
        grant = await login()
        fresh = self._from_grant(grant, utcnow())

        expected = cached.token if cached else None
        if await self.store.compare_and_swap(vendor_id, expected, fresh):
            return fresh.token

        # Another task stored a token since we read; prefer it if still good.
        winner = await self.store.load(vendor_id)
        if self.is_usable(winner):
            logger.info("Vendor %s token was refreshed concurrently, reusing it", vendor_id)
            return winner.token
        return fresh.token

    async def invalidate(self, vendor_id: int, token: str) -> bool:
        """Drop ``token`` if it is still the stored one (e.g. after a 401)."""
        return await self.store.compare_and_swap(vendor_id, token, None)
