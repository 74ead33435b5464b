"""Client cache: long-lived fluent clients keyed by name.

The cache makes sure that:
- Each name maps to at most one client, even when threads race to create it
- Clientless requests to the same host share one client and its connection pool
- Pooled connections are closed on shutdown
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Self

import httpx
import structlog

from fluenthttp.client import FluentClient
from fluenthttp.config.http import HTTPSettings
from fluenthttp.core.configurable import HeadersConfigurable
from fluenthttp.core.http_client import HTTPClientFactory
from fluenthttp.core.settings import FluentHttpSettings
from fluenthttp.defaults import get_global_settings
from fluenthttp.exceptions import ClientNotFoundError, ConfigurationError


if TYPE_CHECKING:
    from fluenthttp.request import FluentRequest


logger = structlog.get_logger(__name__)

BuilderAction = Callable[["FluentClientBuilder"], Any]
CachingStrategy = Callable[["FluentRequest"], str]


def default_caching_strategy(request: FluentRequest) -> str:
    """Cache key of a clientless request: ``scheme://host:port``.

    The port is always included, so ``https://a.com`` and
    ``https://a.com:443`` share a client.
    """
    url = request.url
    if url.is_relative:
        raise ConfigurationError(
            "A request without a client needs an absolute URL",
            details={"url": str(url)},
        )
    return f"{url.scheme}://{url.host}:{url.effective_port}"


class FluentClientBuilder(HeadersConfigurable):
    """Configures a ``FluentClient`` before it is created.

    Header, settings and hook helpers act on the client being built. The
    ``httpx`` layer is configured with ``configure_httpx`` plus either
    ``use_transport`` or ``configure_transport``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        name: str | None = None,
        http_settings: HTTPSettings | None = None,
    ) -> None:
        self.base_url = base_url
        self.name = name
        self.http_settings = http_settings
        self.headers = httpx.Headers()
        self.settings = FluentHttpSettings(parent=get_global_settings(), level="client")
        self._httpx_options: dict[str, Any] = {}
        self._transport: httpx.AsyncBaseTransport | None = None
        self._transport_options: dict[str, Any] | None = None

    def configure_httpx(self, **options: Any) -> Self:
        """Extra ``httpx.AsyncClient`` arguments (e.g. ``event_hooks``, ``auth``)."""
        if "transport" in options:
            raise ConfigurationError("Use use_transport() to set the transport")
        self._httpx_options.update(options)
        return self

    def use_transport(self, transport: httpx.AsyncBaseTransport) -> Self:
        """Send through ``transport`` instead of a pooled one built here."""
        if self._transport_options is not None:
            raise ConfigurationError(
                "use_transport() cannot be combined with configure_transport()"
            )
        self._transport = transport
        return self

    def configure_transport(self, **options: Any) -> Self:
        """Options for the pooled ``httpx.AsyncHTTPTransport`` built here."""
        if self._transport is not None:
            raise ConfigurationError(
                "configure_transport() cannot be combined with use_transport()"
            )
        self._transport_options = {**(self._transport_options or {}), **options}
        return self

    def build(self) -> FluentClient:
        http_client = HTTPClientFactory.create_client(
            settings=self.http_settings,
            transport=self._transport,
            transport_options=self._transport_options,
            **self._httpx_options,
        )
        client = FluentClient(
            self.base_url,
            http_client=http_client,
            settings=self.settings,
            name=self.name,
        )
        client.headers.update(self.headers)
        return client


class FluentClientCache:
    """Thread-safe registry of named ``FluentClient`` instances.

    Args:
        http_settings: Connection pool settings for clients created here
    """

    def __init__(self, http_settings: HTTPSettings | None = None) -> None:
        self.http_settings = http_settings
        self._clients: dict[str, FluentClient] = {}
        self._defaults: list[BuilderAction] = []
        self._caching_strategy: CachingStrategy = default_caching_strategy
        self._lock = threading.Lock()

        logger.debug("client_cache_initialized", category="cache")

    def _build(
        self, name: str, base_url: str | None, configure: BuilderAction | None
    ) -> FluentClient:
        builder = FluentClientBuilder(
            base_url, name=name, http_settings=self.http_settings
        )
        for action in self._defaults:
            action(builder)
        if configure is not None:
            configure(builder)
        client = builder.build()
        logger.info(
            "client_created",
            name=name,
            base_url=base_url,
            category="cache",
        )
        return client

    def get(self, name: str) -> FluentClient:
        """Get the client cached under ``name``.

        Raises:
            ClientNotFoundError: If no client has that name
        """
        client = self._clients.get(name)
        if client is None:
            raise ClientNotFoundError(name)
        return client

    def get_or_add(
        self,
        name: str,
        base_url: str | None = None,
        configure: BuilderAction | None = None,
    ) -> FluentClient:
        """Get the client cached under ``name``, creating it if needed.

        Concurrent callers for the same name always receive the same
        instance; ``configure`` runs only for the caller that creates it.
        """
        client = self._clients.get(name)
        if client is not None:
            return client

        with self._lock:
            # Check again, another thread may have created it
            client = self._clients.get(name)
            if client is not None:
                logger.debug("reusing_existing_client", name=name, category="cache")
                return client
            client = self._build(name, base_url, configure)
            self._clients[name] = client
            return client

    def add(
        self,
        name: str,
        base_url: str | None = None,
        configure: BuilderAction | None = None,
    ) -> Self:
        """Create and cache a client under a new name.

        Raises:
            ConfigurationError: If ``name`` is already taken
        """
        with self._lock:
            if name in self._clients:
                raise ConfigurationError(
                    f"A client named '{name}' is already cached",
                    details={"name": name},
                )
            self._clients[name] = self._build(name, base_url, configure)
        return self

    def remove(self, name: str) -> FluentClient | None:
        """Remove the client cached under ``name`` and return it.

        The caller is responsible for closing the returned client; use
        ``close_client`` to do both.
        """
        with self._lock:
            return self._clients.pop(name, None)

    async def close_client(self, name: str) -> bool:
        """Remove and close the client cached under ``name``."""
        client = self.remove(name)
        if client is None:
            return False
        await client.aclose()
        logger.info("client_closed", name=name, category="cache")
        return True

    def clear(self) -> list[FluentClient]:
        """Remove every client and return them, unclosed."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        return clients

    async def aclose(self) -> None:
        """Close all clients and clean up resources.

        This should be called during application shutdown.
        """
        for client in self.clear():
            try:
                await client.aclose()
            except Exception as e:
                logger.error(
                    "client_close_error",
                    name=client.name,
                    error=str(e),
                    exc_info=e,
                )

        logger.info("all_clients_closed", category="cache")

    def with_defaults(self, configure: BuilderAction) -> Self:
        """Apply ``configure`` to every client this cache creates from now on."""
        self._defaults.append(configure)
        return self

    def use_caching_strategy(self, strategy: CachingStrategy) -> Self:
        """Change how clientless requests are mapped to cache keys.

        Clients already cached keep their keys.
        """
        with self._lock:
            if self._clients:
                logger.warning(
                    "caching_strategy_changed_with_cached_clients",
                    cached_clients=len(self._clients),
                    category="cache",
                )
            self._caching_strategy = strategy
        return self

    def get_client_for_request(self, request: FluentRequest) -> FluentClient:
        """Client for a request that was not given one explicitly.

        A name set with ``with_client_name`` wins over the caching strategy.
        """
        if request.client_name is not None:
            return self.get(request.client_name)
        key = self._caching_strategy(request)
        return self.get_or_add(key, request.url.root or None)

    @property
    def names(self) -> list[str]:
        with self._lock:
            return list(self._clients)

    def __contains__(self, name: object) -> bool:
        return name in self._clients

    def __len__(self) -> int:
        return len(self._clients)
