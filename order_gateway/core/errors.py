"""
Gateway Error Taxonomy

Every failure the gateway reports carries a message, an HTTP status the
route layer should answer with, and a machine-readable code.

Propagation:
    - ConfigError: fatal, surfaced at startup
    - UpstreamAuthError / MalformedAuthResponse: fatal to the calling request
    - UpstreamFetchError: surfaced to the caller with the last upstream status
    - CacheReadError / CacheWriteError: raised by stores, absorbed by callers

Author: Khalil_Bannouri
Version: 1.0.0
"""

from typing import Any, Optional

DEFAULT_UPSTREAM_STATUS = 502


def resolve_error_status(status: Optional[int]) -> int:
    """Map an upstream status onto a response status (1:1 in [400, 600), else 502)."""
    if isinstance(status, int) and 400 <= status < 600:
        return status
    return DEFAULT_UPSTREAM_STATUS


class GatewayError(Exception):
    """Base class for all gateway errors."""

    default_code = "GATEWAY_ERROR"
    default_status = DEFAULT_UPSTREAM_STATUS

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code or self.default_code

    @property
    def status_code(self) -> int:
        """HTTP status the route layer should respond with."""
        if self.status is None:
            return self.default_status
        return resolve_error_status(self.status)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the structured error payload."""
        return {"ok": False, "error": self.message, "code": self.code}


class ConfigError(GatewayError):
    """Required settings are missing or invalid."""

    default_code = "CONFIG_ERROR"
    default_status = 500

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class InvalidRequestError(GatewayError):
    """A query parameter could not be interpreted."""

    default_code = "INVALID_REQUEST"
    default_status = 400


class UpstreamFetchError(GatewayError):
    """A Toast data endpoint failed or retries were exhausted."""

    default_code = "UPSTREAM_FETCH_FAILED"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        snippet: Optional[str] = None,
        url: Optional[str] = None,
        attempts: int = 0,
    ):
        super().__init__(message, status=status)
        self.snippet = snippet
        self.url = url
        self.attempts = attempts


class UpstreamAuthError(GatewayError):
    """The token endpoint answered with a non-2xx status."""

    default_code = "UPSTREAM_AUTH_FAILED"

    def __init__(self, status: Optional[int], snippet: str = ""):
        message = f"Toast auth failed: {status} {snippet}".strip()
        super().__init__(message, status=status)
        self.snippet = snippet


class MalformedAuthResponse(GatewayError):
    """The token endpoint answered 2xx without a usable bearer token."""

    default_code = "MALFORMED_AUTH_RESPONSE"

    def __init__(self, message: str = "Toast auth response missing bearer token"):
        super().__init__(message)


class CacheReadError(GatewayError):
    """A key-value store read failed or returned an undecodable value."""

    default_code = "CACHE_READ_FAILED"

    def __init__(self, key: str, reason: str):
        super().__init__(f"Failed to read cache key {key!r}: {reason}")
        self.key = key


class CacheWriteError(GatewayError):
    """A key-value store write failed."""

    default_code = "CACHE_WRITE_FAILED"

    def __init__(self, key: str, reason: str):
        super().__init__(f"Failed to write cache key {key!r}: {reason}")
        self.key = key
