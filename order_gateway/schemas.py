"""
Pydantic Schemas for Response Validation

Response envelopes for the gateway routes. Expanded orders themselves
are passed through as plain JSON documents.

Author: Khalil_Bannouri
Version: 1.0.0
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Structured error payload returned by every route."""
    ok: bool = False
    error: str
    code: Optional[str] = None


class HealthResponse(BaseModel):
    """System health check response."""
    status: str
    environment: str
    token_store: str
    cache_store: str
    toast: str
    timestamp: datetime


class MenuMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_updated: Optional[str] = Field(None, alias="lastUpdated")


class MenusResponse(BaseModel):
    """Published menu with its cache provenance."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    menu: Optional[dict[str, Any]] = None
    metadata: MenuMetadata
    cache_hit: bool = Field(..., alias="cacheHit")
    cache_status: str = Field(..., alias="cacheStatus")


class PrepStationsRequestEcho(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_token: Optional[str] = Field(None, alias="pageToken")
    last_modified: Optional[str] = Field(None, alias="lastModified")


class PrepStationsResponse(BaseModel):
    """One page of kitchen prep stations."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    route: str = "/api/kitchen/prep-stations"
    count: int
    prep_stations: list[dict[str, Any]] = Field(..., alias="prepStations")
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")
    request: PrepStationsRequestEcho


class CompositionCacheStats(BaseModel):
    hits: int
    misses: int
    size: int
    evictions: int
    expirations: int
    capacity: int


class DebugCacheResponse(BaseModel):
    """Process-wide cache counters (debug mode only)."""
    ok: bool = True
    composition_cache: CompositionCacheStats
    token_cache: Optional[dict[str, int]] = None
