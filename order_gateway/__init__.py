"""
                Toast Order Gateway

Edge gateway that authenticates against the Toast POS API, fetches raw
orders, menus and kitchen configuration, and re-shapes them into
denormalized, client-friendly payloads with aggressive caching.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
