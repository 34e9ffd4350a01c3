"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from order_gateway.core.config import get_settings, Settings, EnvironmentMode
from order_gateway.core.errors import GatewayError, ConfigError

__all__ = ["get_settings", "Settings", "EnvironmentMode", "GatewayError", "ConfigError"]
