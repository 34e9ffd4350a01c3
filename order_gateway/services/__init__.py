"""
                        Services Module

Contains the gateway's business logic with the hybrid architecture pattern.
The Toast client has Mock (development) and Real (production) implementations,
and both key-value stores have Memory and Redis backends.

Services:
    - toast: Toast POS read endpoints (orders, menus, prep stations, dining options)
    - kv: Token and cache stores
    - auth: Day-scoped access token cache
    - http: Retrying upstream fetcher
    - menu_cache: Published menu with fresh/stale windows
    - orders: Menu resolution, item ordering and order composition
    - pipeline: Request-level orders flow
"""
