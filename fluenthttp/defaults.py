"""Process-wide defaults: the global settings level and the default client cache.

Both are conveniences for the clientless pattern. A ``FluentClientCache``
can always be constructed and used on its own, and ``set_client_cache``
lets an application install its own instance.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from fluenthttp.core.settings import FluentHttpSettings


if TYPE_CHECKING:
    from fluenthttp.client_cache import FluentClientCache
    from fluenthttp.config.settings import Settings


logger = structlog.get_logger(__name__)

_global_settings = FluentHttpSettings(level="global")

# Global instance for convenience
_default_cache: FluentClientCache | None = None
_cache_lock = threading.Lock()


def get_global_settings() -> FluentHttpSettings:
    """The global settings level, parent of every client's settings."""
    return _global_settings


def configure(action: Callable[[FluentHttpSettings], Any]) -> FluentHttpSettings:
    """Change global settings as a single unit.

    Example:
        fluenthttp.configure(lambda s: s.update(timeout=30))
    """
    return _global_settings.configure(action)


def configure_from_settings(settings: Settings) -> FluentHttpSettings:
    """Apply loaded configuration to the global level.

    Connection pool options apply to clients the default cache creates from
    now on.
    """
    http = settings.http
    _global_settings.update(
        timeout=http.timeout,
        allowed_http_status_range=http.allowed_http_status_range,
        redirects=http.redirects.model_dump(),
    )
    get_client_cache().http_settings = http
    logger.info(
        "global_settings_configured",
        timeout=http.timeout,
        allowed_http_status_range=http.allowed_http_status_range,
        category="config",
    )
    return _global_settings


def get_client_cache() -> FluentClientCache:
    """Get the default client cache, creating it on first use."""
    global _default_cache

    if _default_cache is None:
        from fluenthttp.client_cache import FluentClientCache

        with _cache_lock:
            if _default_cache is None:
                _default_cache = FluentClientCache()
                logger.debug("default_client_cache_created", category="cache")

    return _default_cache


def set_client_cache(cache: FluentClientCache | None) -> None:
    """Install ``cache`` as the default (None resets to a lazily created one)."""
    global _default_cache

    with _cache_lock:
        _default_cache = cache


async def close_client_cache() -> None:
    """Close the default client cache and clean up resources.

    This should be called during application shutdown.
    """
    global _default_cache

    with _cache_lock:
        cache, _default_cache = _default_cache, None

    if cache is not None:
        await cache.aclose()
        logger.info("default_client_cache_closed", category="cache")
