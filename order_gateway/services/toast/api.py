"""
Toast API Client

Production client for the Toast REST API.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - TOAST_CLIENT_ID / TOAST_CLIENT_SECRET for the machine-client login
    - TOAST_RESTAURANT_GUID sent as Toast-Restaurant-External-ID

Every request carries a bearer token from the TokenCache and goes
through the RetryingFetcher, so 429/5xx answers are retried before an
UpstreamFetchError reaches the caller.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

import httpx

from order_gateway.core.config import get_settings
from order_gateway.core.errors import GatewayError, UpstreamFetchError
from order_gateway.services.auth import TokenCache
from order_gateway.services.http import RetryingFetcher
from order_gateway.services.toast.base import (
    BaseToastClient,
    OrdersPage,
    PrepStationsPage,
)

logger = logging.getLogger(__name__)

NEXT_PAGE_HEADER = "Toast-Next-Page-Token"


def _json_body(response: httpx.Response, url: str) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamFetchError(
            f"Toast returned invalid JSON for {httpx.URL(url).path}",
            status=response.status_code,
            snippet=response.text[:256],
            url=url,
        ) from e


class ToastApiClient(BaseToastClient):
    """
    Bearer-authenticated reader for Toast orders, menus and configuration.

    Example:
        >>> client = ToastApiClient(fetcher=fetcher, token_cache=token_cache)
        >>> page = await client.get_orders_bulk(start, end)
        >>> len(page.orders)
        42
    """

    def __init__(
        self,
        fetcher: RetryingFetcher,
        token_cache: TokenCache,
        base_url: Optional[str] = None,
    ):
        settings = get_settings()
        self.fetcher = fetcher
        self.token_cache = token_cache
        self.base_url = (base_url or settings.toast_api_base).rstrip("/")

        logger.info(f"ToastApiClient initialized ({self.base_url})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "toast"

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        headers = await self.token_cache.get_authorization_headers()
        query = {key: value for key, value in (params or {}).items() if value is not None}
        return await self.fetcher.fetch("GET", url, headers=headers, params=query)

    async def get_orders_bulk(
        self,
        start_iso: str,
        end_iso: str,
        page: int = 1,
        page_size: int = 100,
    ) -> OrdersPage:
        path = "/orders/v2/ordersBulk"
        response = await self._get(path, {
            "startDate": start_iso,
            "endDate": end_iso,
            "page": page,
            "pageSize": page_size,
        })
        body = _json_body(response, f"{self.base_url}{path}")

        if isinstance(body, list):
            orders = body
            next_page = page + 1 if len(body) >= page_size else None
        elif isinstance(body, dict):
            orders = body.get("orders") if isinstance(body.get("orders"), list) else []
            if isinstance(body.get("nextPage"), int):
                next_page = body["nextPage"]
            elif body.get("hasMore") is True:
                next_page = page + 1
            else:
                next_page = None
        else:
            orders, next_page = [], None

        logger.debug(f"Toast ordersBulk page {page}: {len(orders)} orders")
        return OrdersPage(orders=[o for o in orders if isinstance(o, dict)], page=page, next_page=next_page)

    async def get_published_menus(self) -> Optional[dict]:
        path = "/menus/v2/menus"
        body = _json_body(await self._get(path), f"{self.base_url}{path}")
        return body if isinstance(body, dict) else None

    async def get_menu_metadata(self) -> dict:
        path = "/menus/v2/metadata"
        body = _json_body(await self._get(path), f"{self.base_url}{path}")
        return body if isinstance(body, dict) else {}

    async def get_prep_stations(
        self,
        page_token: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> PrepStationsPage:
        path = "/kitchen/v1/published/prepStations"
        response = await self._get(path, {"pageToken": page_token, "lastModified": last_modified})
        body = _json_body(response, f"{self.base_url}{path}")

        stations = body if isinstance(body, list) else []
        next_token = (response.headers.get(NEXT_PAGE_HEADER) or "").strip() or None
        return PrepStationsPage(
            prep_stations=[s for s in stations if isinstance(s, dict)],
            next_page_token=next_token,
        )

    async def get_dining_options(self) -> list[dict]:
        path = "/config/v2/diningOptions"
        body = _json_body(await self._get(path), f"{self.base_url}{path}")
        return [option for option in body if isinstance(option, dict)] if isinstance(body, list) else []

    async def health_check(self) -> bool:
        try:
            await self.token_cache.get_access_token()
            return True
        except GatewayError as e:
            logger.error(f"Toast: Health check failed - {e}")
            return False

    def auth_stats(self) -> Optional[dict[str, Any]]:
        return self.token_cache.stats()

    async def close(self) -> None:
        await self.fetcher.client.aclose()
