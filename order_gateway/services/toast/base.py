"""
Toast Client Abstract Base Class

Defines the interface contract for the Toast POS read endpoints the
gateway uses. Both MockToastClient and ToastApiClient implement it.

Endpoints:
    - GET /orders/v2/ordersBulk                (orders in a time window, paged)
    - GET /menus/v2/menus                      (published menu document)
    - GET /menus/v2/metadata                   (menu lastUpdated stamp)
    - GET /kitchen/v1/published/prepStations   (token paged, lastModified filter)
    - GET /config/v2/diningOptions             (dining option configuration)

Author: Khalil_Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class OrdersPage:
    """
    One page of the ordersBulk endpoint.

    Attributes:
        orders: Raw Toast order documents
        page: Page number that was requested
        next_page: Next page number, or None on the last page
    """
    orders: list[dict]
    page: int
    next_page: Optional[int] = None

    def to_dict(self) -> dict:
        return {"orders": self.orders, "page": self.page, "nextPage": self.next_page}


@dataclass
class PrepStationsPage:
    """
    One page of kitchen prep stations.

    Attributes:
        prep_stations: Raw prep station documents
        next_page_token: Opaque Toast-Next-Page-Token, or None
    """
    prep_stations: list[dict] = field(default_factory=list)
    next_page_token: Optional[str] = None


class BaseToastClient(ABC):
    """
    Abstract base class for Toast API clients.

    Upstream failures surface as UpstreamFetchError (data endpoints) or
    UpstreamAuthError / MalformedAuthResponse (authentication).
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the client implementation."""
        pass

    @abstractmethod
    async def get_orders_bulk(
        self,
        start_iso: str,
        end_iso: str,
        page: int = 1,
        page_size: int = 100,
    ) -> OrdersPage:
        """Fetch one page of orders opened within [start_iso, end_iso]."""
        pass

    @abstractmethod
    async def get_published_menus(self) -> Optional[dict]:
        """Fetch the published menu document."""
        pass

    @abstractmethod
    async def get_menu_metadata(self) -> dict:
        """Fetch menu metadata ({"lastUpdated": ...})."""
        pass

    @abstractmethod
    async def get_prep_stations(
        self,
        page_token: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> PrepStationsPage:
        """Fetch one page of kitchen prep stations."""
        pass

    @abstractmethod
    async def get_dining_options(self) -> list[dict]:
        """Fetch the restaurant's dining option configuration."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if Toast is reachable with the configured credentials."""
        pass

    def auth_stats(self) -> Optional[dict[str, Any]]:
        """Token cache counters, when the client authenticates."""
        return None

    async def close(self) -> None:
        """Release network resources."""
        return None
