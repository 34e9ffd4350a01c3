"""
Toast Access Token Cache

Obtains a machine-client bearer token from Toast and caches it in the
token store. A cached token is reused only while it was issued on the
current UTC calendar day and has more than 60 seconds of life left.

Token record (stored as JSON):
    {"accessToken": str, "expiresAt": epoch-ms, "issuedAtDay": "YYYY-MM-DD"}

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from order_gateway.core.config import get_settings
from order_gateway.core.errors import (
    CacheReadError,
    CacheWriteError,
    MalformedAuthResponse,
    UpstreamAuthError,
    UpstreamFetchError,
)
from order_gateway.services.http import RetryingFetcher
from order_gateway.services.kv.base import BaseKeyValueStore

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "toast_machine_token_v1"
RESTAURANT_HEADER = "Toast-Restaurant-External-ID"
MACHINE_CLIENT_ACCESS = "TOAST_MACHINE_CLIENT"

EXPIRY_MARGIN_MS = 60_000
MIN_TTL_SECONDS = 120
MAX_TTL_SECONDS = 86_400
DEFAULT_TTL_SECONDS = 1800
MIN_STORE_TTL_SECONDS = 60
SNIPPET_LENGTH = 200


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_day(epoch_ms: int) -> str:
    """Calendar date (UTC) of an epoch-ms timestamp, as YYYY-MM-DD."""
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).date().isoformat()


@dataclass(frozen=True)
class AccessTokenRecord:
    """A cached Toast access token."""
    access_token: str
    expires_at: int
    issued_at_day: str

    def is_valid(self, now: int) -> bool:
        return self.issued_at_day == utc_day(now) and self.expires_at - now > EXPIRY_MARGIN_MS

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "expiresAt": self.expires_at,
            "issuedAtDay": self.issued_at_day,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["AccessTokenRecord"]:
        """Parse a stored record; anything malformed is treated as absent."""
        if not isinstance(data, dict):
            return None
        token = data.get("accessToken")
        expires_at = data.get("expiresAt")
        day = data.get("issuedAtDay")
        if not isinstance(token, str) or not isinstance(day, str):
            return None
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return None
        return cls(access_token=token, expires_at=int(expires_at), issued_at_day=day)


def clamp_ttl_seconds(expires_in: Any) -> int:
    """Clamp the vendor-declared TTL to [120, 86400] (1800 when absent or zero)."""
    try:
        ttl = int(float(expires_in)) if expires_in is not None else DEFAULT_TTL_SECONDS
    except (TypeError, ValueError):
        ttl = DEFAULT_TTL_SECONDS
    if ttl == 0:
        ttl = DEFAULT_TTL_SECONDS
    return max(MIN_TTL_SECONDS, min(MAX_TTL_SECONDS, ttl))


class TokenCache:
    """
    Day-scoped cache for the Toast machine-client token.

    Example:
        >>> cache = TokenCache(store=get_token_store(), fetcher=fetcher)
        >>> headers = await cache.get_authorization_headers()
        >>> headers["Authorization"]
        'Bearer eyJ...'
    """

    def __init__(
        self,
        store: BaseKeyValueStore,
        fetcher: RetryingFetcher,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        auth_url: Optional[str] = None,
        restaurant_guid: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        settings = get_settings()

        self.store = store
        self.fetcher = fetcher
        self.client_id = client_id if client_id is not None else settings.toast_client_id
        self.client_secret = client_secret if client_secret is not None else settings.toast_client_secret
        self.auth_url = auth_url or settings.toast_auth_url
        self.restaurant_guid = (
            restaurant_guid if restaurant_guid is not None else settings.toast_restaurant_guid
        )
        self.clock = clock or now_ms

        self.hits = 0
        self.refreshes = 0
        self.failures = 0

    async def _read_cached(self) -> Optional[AccessTokenRecord]:
        try:
            raw = await self.store.get(TOKEN_CACHE_KEY, "json")
        except CacheReadError as e:
            logger.warning(f"Token cache read failed, refreshing: {e}")
            return None
        return AccessTokenRecord.from_dict(raw)

    async def get_access_token(self) -> str:
        """
        Return a bearer token valid for today.

        Raises:
            UpstreamAuthError: Token endpoint answered non-2xx
            MalformedAuthResponse: Token payload without a bearer token
        """
        now = self.clock()
        cached = await self._read_cached()

        if cached is not None and cached.is_valid(now):
            self.hits += 1
            return cached.access_token

        try:
            record = await self._refresh(now)
        except (UpstreamAuthError, MalformedAuthResponse):
            self.failures += 1
            raise

        self.refreshes += 1
        return record.access_token

    async def _refresh(self, now: int) -> AccessTokenRecord:
        logger.info("Requesting new Toast access token")

        try:
            response = await self.fetcher.fetch(
                "POST",
                self.auth_url,
                json={
                    "clientId": self.client_id,
                    "clientSecret": self.client_secret,
                    "userAccessType": MACHINE_CLIENT_ACCESS,
                },
                headers={"Content-Type": "application/json"},
            )
        except UpstreamFetchError as e:
            raise UpstreamAuthError(e.status, (e.snippet or "")[:SNIPPET_LENGTH]) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, dict):
            token = {}

        access_token = str(token.get("accessToken") or "")
        token_type = str(token.get("tokenType") or "").lower()

        if not access_token or token_type != "bearer":
            logger.error("Toast auth response missing bearer token")
            raise MalformedAuthResponse()

        ttl_seconds = clamp_ttl_seconds(token.get("expiresIn"))
        record = AccessTokenRecord(
            access_token=access_token,
            expires_at=now + ttl_seconds * 1000,
            issued_at_day=utc_day(now),
        )

        try:
            await self.store.put(
                TOKEN_CACHE_KEY,
                record.to_dict(),
                ttl_seconds=max(MIN_STORE_TTL_SECONDS, ttl_seconds - 60),
            )
        except CacheWriteError as e:
            logger.warning(f"Token cache write failed: {e}")

        logger.info(f"Toast access token refreshed (ttl={ttl_seconds}s)")
        return record

    async def get_authorization_headers(self) -> dict[str, str]:
        """Headers for an authenticated Toast request."""
        access_token = await self.get_access_token()
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            RESTAURANT_HEADER: self.restaurant_guid or "",
        }

    def stats(self) -> dict[str, int]:
        return {"hits": self.hits, "refreshes": self.refreshes, "failures": self.failures}
