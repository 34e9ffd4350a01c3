"""
FastAPI Application Entry Point

Toast Order Gateway - edge gateway in front of the Toast POS REST API.
Uses the mock Toast client in development and the real API in production.

Endpoints:
    - GET /: Navigation links
    - GET /health: Store and Toast connectivity
    - GET /api/menus: Published menu (cached)
    - GET /api/menus/metadata: Menu lastUpdated stamp
    - GET /api/orders/latest: Raw orders from the last N minutes
    - GET /api/orders-detailed: Expanded, menu-resolved orders
    - GET /api/kitchen/prep-stations: Kitchen prep stations (paged)
    - GET /api/debug/composition-cache: Cache counters (debug mode only)

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from order_gateway.core.config import get_settings, setup_logging
from order_gateway.core.errors import GatewayError
from order_gateway.schemas import (
    DebugCacheResponse,
    ErrorResponse,
    HealthResponse,
    MenusResponse,
    PrepStationsResponse,
)
from order_gateway.services.kv import get_cache_store, get_token_store
from order_gateway.services.menu_cache import MenuCache, get_menu_cache
from order_gateway.services.orders import OrderComposer, get_composer
from order_gateway.services.pipeline import (
    DEFAULT_LIMIT,
    OrdersService,
    get_orders_service,
    parse_fulfillment_filters,
)
from order_gateway.services.toast import BaseToastClient, get_toast_client

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}}

_FALSY = {"", "0", "false", "off", "no", "null"}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Missing Toast credentials are fatal outside development
    settings.require_toast_credentials()

    toast = get_toast_client()
    logger.info(f"✅ Toast Client: {toast.provider_name}")
    logger.info(f"✅ Token Store: {get_token_store().provider_name}")
    logger.info(f"✅ Cache Store: {get_cache_store().provider_name}")
    logger.info("✅ Application ready!")

    yield

    logger.info("Shutting down...")
    await toast.close()
    await get_token_store().close()
    await get_cache_store().close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Edge gateway for the Toast POS API. Caches access tokens and menus, "
        "and expands raw orders into menu-resolved, kitchen-ordered tickets."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def clean_query(value: Optional[str]) -> Optional[str]:
    """Trim a query string value; blank becomes None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def is_truthy(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in _FALSY


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "menus": "/api/menus",
        "menuMetadata": "/api/menus/metadata",
        "ordersLatest": "/api/orders/latest",
        "ordersDetailed": "/api/orders-detailed",
        "prepStations": "/api/kitchen/prep-stations",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    toast: BaseToastClient = Depends(get_toast_client),
) -> HealthResponse:
    """Verify the stores and the Toast API are reachable."""
    token_status = "healthy" if await get_token_store().health_check() else "unhealthy"
    cache_status = "healthy" if await get_cache_store().health_check() else "unhealthy"
    toast_status = "healthy" if await toast.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [token_status, cache_status, toast_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        environment=settings.env_mode.value,
        token_store=token_status,
        cache_store=cache_status,
        toast=toast_status,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get(
    "/api/menus",
    response_model=MenusResponse,
    responses=ERROR_RESPONSES,
    tags=["Menus"],
    summary="Published Menu",
)
async def get_menus(
    refresh: Optional[str] = Query(None, description="Truthy value forces a refetch"),
    menu_cache: MenuCache = Depends(get_menu_cache),
) -> MenusResponse:
    """Serve the published menu from cache, refetching when stale."""
    snapshot = await menu_cache.get_published_menu(refresh=is_truthy(refresh))
    return MenusResponse(
        menu=snapshot.document,
        metadata={"lastUpdated": snapshot.last_updated},
        cacheHit=snapshot.cache_hit,
        cacheStatus=snapshot.cache_status,
    )


@app.get(
    "/api/menus/metadata",
    responses=ERROR_RESPONSES,
    tags=["Menus"],
    summary="Menu Metadata",
)
async def get_menus_metadata(
    toast: BaseToastClient = Depends(get_toast_client),
) -> dict[str, Any]:
    """Toast's menu metadata, always fetched live."""
    return {"ok": True, "metadata": await toast.get_menu_metadata()}


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get(
    "/api/orders/latest",
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Latest Raw Orders",
)
async def get_latest_orders(
    minutes: Optional[int] = Query(None, ge=1, description="Lookback window (default 24h)"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=500),
    service: OrdersService = Depends(get_orders_service),
) -> dict[str, Any]:
    """Raw Toast orders opened in the last `minutes`, newest first."""
    return await service.latest_orders(minutes=minutes, limit=limit)


@app.get(
    "/api/orders-detailed",
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Expanded Orders",
)
async def get_orders_detailed(
    limit: int = Query(DEFAULT_LIMIT, description="Clamped to 1-500"),
    start: Optional[str] = Query(None, description="Window start (ISO-8601)"),
    end: Optional[str] = Query(None, description="Window end (ISO-8601)"),
    minutes: Optional[int] = Query(None, description="Lookback window when start/end are absent"),
    fulfillment_status: Optional[list[str]] = Query(None, alias="fulfillmentStatus"),
    refresh: Optional[str] = Query(None),
    debug: Optional[str] = Query(None),
    service: OrdersService = Depends(get_orders_service),
) -> dict[str, Any]:
    """
    Orders expanded against the published menu.

    Each check becomes one order with resolved item names, flattened
    modifiers, integer-cent money and a deterministic item order.
    """
    return await service.orders_detailed(
        limit=limit,
        start=clean_query(start),
        end=clean_query(end),
        minutes=minutes,
        fulfillment_statuses=parse_fulfillment_filters(fulfillment_status or []),
        refresh=is_truthy(refresh),
        debug=is_truthy(debug),
    )


# =============================================================================
# KITCHEN ENDPOINTS
# =============================================================================

@app.get(
    "/api/kitchen/prep-stations",
    response_model=PrepStationsResponse,
    responses=ERROR_RESPONSES,
    tags=["Kitchen"],
    summary="Kitchen Prep Stations",
)
async def get_prep_stations(
    page_token: Optional[str] = Query(None, alias="pageToken"),
    last_modified: Optional[str] = Query(None, alias="lastModified"),
    toast: BaseToastClient = Depends(get_toast_client),
) -> PrepStationsResponse:
    """One page of prep stations; pass nextPageToken back as pageToken."""
    page_token = clean_query(page_token)
    last_modified = clean_query(last_modified)

    page = await toast.get_prep_stations(page_token=page_token, last_modified=last_modified)
    return PrepStationsResponse(
        count=len(page.prep_stations),
        prepStations=page.prep_stations,
        nextPageToken=page.next_page_token,
        request={"pageToken": page_token, "lastModified": last_modified},
    )


# =============================================================================
# DEBUG ENDPOINTS
# =============================================================================

@app.get(
    "/api/debug/composition-cache",
    response_model=DebugCacheResponse,
    tags=["Debug"],
    summary="Cache Counters (Debug)",
)
async def get_composition_cache_stats(
    composer: OrderComposer = Depends(get_composer),
    toast: BaseToastClient = Depends(get_toast_client),
) -> DebugCacheResponse:
    """Composition cache and token cache counters."""
    if not get_settings().debug:
        raise HTTPException(status_code=404, detail="Not Found")

    return DebugCacheResponse(
        composition_cache=composer.cache.stats(),
        token_cache=toast.auth_stats(),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(GatewayError)
async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Translate gateway errors into {ok: false, error, code}."""
    logger.warning(f"{request.url.path} failed ({exc.code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report bad query parameters in the gateway's error shape."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "query")
    message = f"Invalid {location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": message, "code": "INVALID_REQUEST"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": str(exc) if get_settings().debug else "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        },
    )


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "order_gateway.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
