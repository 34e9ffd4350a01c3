"""
Toast Client Factory

Provides a single entry point for obtaining a Toast client instance.
Automatically selects Mock or the real API based on ENV_MODE configuration.

Usage:
    from order_gateway.services.toast import get_toast_client

    toast = get_toast_client()
    page = await toast.get_orders_bulk(start_iso, end_iso)

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

import httpx

from order_gateway.core.config import get_settings
from order_gateway.services.auth import TokenCache
from order_gateway.services.http import RetryingFetcher
from order_gateway.services.kv import get_token_store
from order_gateway.services.toast.base import (
    BaseToastClient,
    OrdersPage,
    PrepStationsPage,
)
from order_gateway.services.toast.api import ToastApiClient
from order_gateway.services.toast.mock import MockToastClient

logger = logging.getLogger(__name__)


@lru_cache()
def get_toast_client() -> BaseToastClient:
    """
    Get the configured Toast client instance.

    Returns:
        BaseToastClient: MockToastClient in development, ToastApiClient otherwise

    Raises:
        ConfigError: If a real client is requested without Toast credentials
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Toast Client: Using MockToastClient (development mode)")
        return MockToastClient()

    settings.require_toast_credentials()
    logger.info(f"Toast Client: Using ToastApiClient ({settings.env_mode.value} mode)")

    fetcher = RetryingFetcher(httpx.AsyncClient(timeout=settings.toast_timeout_seconds))
    token_cache = TokenCache(store=get_token_store(), fetcher=fetcher)
    return ToastApiClient(fetcher=fetcher, token_cache=token_cache)


def reset_toast_client() -> None:
    """
    Clear the cached Toast client instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_toast_client.cache_clear()
    logger.debug("Toast client cache cleared")


__all__ = [
    "get_toast_client",
    "reset_toast_client",
    "BaseToastClient",
    "OrdersPage",
    "PrepStationsPage",
    "ToastApiClient",
    "MockToastClient",
]
