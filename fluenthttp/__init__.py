"""fluenthttp: a fluent, testable asyncio HTTP client built on httpx."""

from typing import Any

from ._version import __version__
from .client import FluentClient
from .client_cache import FluentClientBuilder, FluentClientCache
from .cookies import CookieJar, FluentCookie
from .core.call import HttpCall, HttpCallRedirect
from .core.settings import FluentHttpSettings
from .defaults import (
    close_client_cache,
    configure,
    configure_from_settings,
    get_client_cache,
    get_global_settings,
    set_client_cache,
)
from .exceptions import (
    ClientNotFoundError,
    ConfigurationError,
    FluentHttpError,
    HttpCallError,
    HttpNoResponseError,
    HttpParsingError,
    HttpTestAssertionError,
    HttpTimeoutError,
    StatusRangeError,
)
from .hooks import HookEvent
from .request import FluentRequest
from .response import FluentResponse
from .session import CookieSession
from .url import Url


def request(url: str | Url, *segments: Any) -> FluentRequest:
    """Start a clientless request, e.g. ``await request(base, "users").get_json()``."""
    return FluentRequest(url).append_path_segments(*segments)


__all__ = [
    "ClientNotFoundError",
    "ConfigurationError",
    "CookieJar",
    "CookieSession",
    "FluentClient",
    "FluentClientBuilder",
    "FluentClientCache",
    "FluentCookie",
    "FluentHttpError",
    "FluentHttpSettings",
    "FluentRequest",
    "FluentResponse",
    "HookEvent",
    "HttpCall",
    "HttpCallError",
    "HttpCallRedirect",
    "HttpNoResponseError",
    "HttpParsingError",
    "HttpTestAssertionError",
    "HttpTimeoutError",
    "StatusRangeError",
    "Url",
    "__version__",
    "close_client_cache",
    "configure",
    "configure_from_settings",
    "get_client_cache",
    "get_global_settings",
    "request",
    "set_client_cache",
]
