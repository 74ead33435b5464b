"""Creation of the ``httpx.AsyncClient`` instances that back fluent clients.

Every fluent client owns exactly one ``httpx.AsyncClient`` and therefore one
connection pool. Redirects are handled by the call pipeline, so clients are
always created with ``follow_redirects=False``.

Proxies come from the environment (``HTTP_PROXY``, ``HTTPS_PROXY``,
``ALL_PROXY`` and ``NO_PROXY``) through httpx's ``trust_env`` handling, which
only applies when httpx builds the pooled transport itself.
"""

import os
from pathlib import Path
from typing import Any

import httpx
import structlog

from fluenthttp.config.http import HTTPSettings


logger = structlog.get_logger(__name__)


class HTTPClientFactory:
    """Factory for the pooled ``httpx`` clients used by fluent clients.

    Provides centralized configuration for:
    - Connection limits
    - HTTP/2 multiplexing
    - TLS settings from the environment
    """

    @staticmethod
    def pool_options(settings: HTTPSettings | None = None) -> dict[str, Any]:
        """Connection pool arguments shared by ``AsyncClient`` and ``AsyncHTTPTransport``."""
        settings = settings or HTTPSettings()

        verify: bool | str = settings.verify
        if isinstance(verify, bool) and verify:
            verify = _get_ssl_context()

        return {
            "limits": httpx.Limits(
                max_keepalive_connections=settings.max_keepalive_connections,
                max_connections=settings.max_connections,
            ),
            "http2": settings.http2,
            "verify": verify,
        }

    @staticmethod
    def create_transport(
        *,
        settings: HTTPSettings | None = None,
        **transport_options: Any,
    ) -> httpx.AsyncHTTPTransport:
        """Create a pooled transport from settings plus explicit options.

        Args:
            settings: Optional HTTP settings providing pool defaults
            **transport_options: ``httpx.AsyncHTTPTransport`` arguments that
                override the settings, including ``proxy``

        Returns:
            Configured httpx.AsyncHTTPTransport instance
        """
        options = HTTPClientFactory.pool_options(settings)
        options.update(transport_options)
        return httpx.AsyncHTTPTransport(**options)

    @staticmethod
    def create_client(
        *,
        settings: HTTPSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        transport_options: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """Create the ``httpx.AsyncClient`` for one fluent client.

        Without ``transport`` or ``transport_options`` httpx builds the pooled
        transport, so environment proxies and ``NO_PROXY`` are honoured.

        Args:
            settings: Optional HTTP settings providing pool defaults
            transport: Ready-made transport (e.g. ``httpx.MockTransport``)
            transport_options: Options for a pooled transport built here
            **kwargs: Additional httpx.AsyncClient arguments

        Returns:
            Configured httpx.AsyncClient instance
        """
        client_config: dict[str, Any] = {
            # Timeouts are applied per request from the layered settings.
            "timeout": None,
            "trust_env": True,
        }
        if transport is not None:
            client_config["transport"] = transport
        elif transport_options:
            client_config["transport"] = HTTPClientFactory.create_transport(
                settings=settings, **transport_options
            )
        else:
            client_config.update(HTTPClientFactory.pool_options(settings))
        client_config.update(kwargs)
        client_config["follow_redirects"] = False

        logger.debug(
            "http_client_created",
            transport=type(client_config["transport"]).__name__
            if "transport" in client_config
            else "AsyncHTTPTransport",
            http2=settings.http2 if settings else False,
            category="http",
        )

        return httpx.AsyncClient(**client_config)


def _get_ssl_context() -> str | bool:
    """Get SSL verification configuration from environment variables.

    Returns:
        SSL verification configuration:
        - Path to CA bundle file
        - True for default verification
        - False to disable verification (insecure)
    """
    ca_bundle = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")

    # Check if SSL verification should be disabled (NOT RECOMMENDED)
    ssl_verify = os.environ.get("SSL_VERIFY", "true").lower()

    if ca_bundle and Path(ca_bundle).exists():
        logger.info(
            "ssl_ca_bundle_configured",
            ca_bundle_path=ca_bundle,
            operation="get_ssl_context",
        )
        return ca_bundle
    elif ssl_verify in ("false", "0", "no"):
        logger.warning(
            "ssl_verification_disabled",
            ssl_verify_value=ssl_verify,
            operation="get_ssl_context",
            security_warning=True,
        )
        return False
    else:
        return True
