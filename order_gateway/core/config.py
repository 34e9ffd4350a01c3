"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two families of modes:
    - DEVELOPMENT: Uses the mock Toast client and in-memory stores
    - PRODUCTION / STAGING: Uses the real Toast API (and Redis when configured)

The ENV_MODE variable controls which services are instantiated throughout
the application, enabling seamless switching between local testing and
production deployment.

Usage:
    from order_gateway.core.config import get_settings

    settings = get_settings()
    if settings.use_real_services:
        settings.require_toast_credentials()

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from order_gateway.core.errors import ConfigError


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with the mock Toast client
        PRODUCTION: Live environment against the Toast production API
        STAGING: Toast sandbox credentials, real HTTP calls
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class StoreBackend(str, Enum):
    """Key-value store implementations available to the gateway."""
    MEMORY = "memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Toast client secrets should NEVER be committed to version control.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Toast Order Gateway",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8001,
        description="API server port"
    )

    # ==========================================================================
    # TOAST API
    # ==========================================================================

    toast_api_base: str = Field(
        default="https://ws-api.toasttab.com",
        description="Toast API base URL"
    )
    toast_auth_url: str = Field(
        default="https://ws-api.toasttab.com/authentication/v1/authentication/login",
        description="Toast machine-client login endpoint"
    )
    toast_client_id: Optional[str] = Field(
        default=None,
        description="Toast machine client ID"
    )
    toast_client_secret: Optional[str] = Field(
        default=None,
        description="Toast machine client secret"
    )
    toast_restaurant_guid: Optional[str] = Field(
        default=None,
        description="Restaurant GUID sent as Toast-Restaurant-External-ID"
    )
    toast_timeout_seconds: float = Field(
        default=15.0,
        description="Per-request timeout for Toast calls"
    )

    # ==========================================================================
    # RETRY / BACKOFF
    # ==========================================================================

    retry_attempts: int = Field(
        default=3,
        ge=0,
        description="Retries after the first attempt for 429/5xx responses"
    )
    retry_initial_backoff_ms: int = Field(
        default=250,
        ge=0,
        description="Backoff before the first retry"
    )
    retry_max_backoff_ms: int = Field(
        default=4000,
        ge=0,
        description="Upper bound for a single backoff delay"
    )

    # ==========================================================================
    # KEY-VALUE STORES
    # ==========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    token_store_backend: StoreBackend = Field(
        default=StoreBackend.MEMORY,
        description="Backend for the access-token store"
    )
    cache_store_backend: StoreBackend = Field(
        default=StoreBackend.MEMORY,
        description="Backend for menu and snapshot caches"
    )
    token_store_prefix: str = Field(
        default="toast:token:",
        description="Key prefix for the token store"
    )
    cache_store_prefix: str = Field(
        default="toast:cache:",
        description="Key prefix for the cache store"
    )

    # ==========================================================================
    # CACHING & COMPOSITION
    # ==========================================================================

    menu_fresh_seconds: int = Field(
        default=1800,
        description="Seconds a cached menu is served without refetching"
    )
    menu_expire_seconds: int = Field(
        default=86400,
        description="Seconds a stale menu may still be served when Toast fails"
    )
    composition_cache_capacity: int = Field(
        default=512,
        ge=1,
        description="Maximum raw orders kept in the composition cache"
    )
    composition_cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds an expanded order stays in the composition cache"
    )
    handler_time_budget_ms: int = Field(
        default=10_000,
        description="Soft deadline for expanding orders in one request"
    )
    orders_page_size: int = Field(
        default=100,
        description="Page size used for ordersBulk requests"
    )
    orders_max_pages: int = Field(
        default=5,
        description="Maximum ordersBulk pages fetched per request"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    @field_validator("toast_api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def use_real_services(self) -> bool:
        """Check if the real Toast API should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.toast_client_id:
                missing.append("TOAST_CLIENT_ID")
            if not self.toast_client_secret:
                missing.append("TOAST_CLIENT_SECRET")
            if not self.toast_restaurant_guid:
                missing.append("TOAST_RESTAURANT_GUID")
            if not self.toast_api_base:
                missing.append("TOAST_API_BASE")
            if not self.toast_auth_url:
                missing.append("TOAST_AUTH_URL")

        return missing

    def require_toast_credentials(self) -> None:
        """
        Raise ConfigError when the Toast credentials are incomplete.

        Raises:
            ConfigError: Listing every missing environment variable
        """
        missing = self.validate_production_config()
        if missing:
            raise ConfigError(
                f"Missing required settings: {', '.join(missing)}",
                missing=missing,
            )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once,
    ensuring consistency across the application lifecycle.

    Returns:
        Settings: Configured application settings
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logging.getLogger("order_gateway")
