"""Shared test fixtures and configuration for fluenthttp tests.

Fixtures keep the process-wide defaults isolated between tests and provide
``httpx.MockTransport`` based clients so no test touches the network.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import httpx
import pytest

from fluenthttp import FluentClient, FluentClientCache, get_global_settings
from fluenthttp.defaults import set_client_cache
from fluenthttp.testing import HttpTest
from fluenthttp.utils.logging import setup_logging


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom settings."""
    setup_logging(json_logs=False, log_level_name="DEBUG")


@pytest.fixture(autouse=True)
async def isolated_defaults() -> AsyncGenerator[FluentClientCache, None]:
    """Fresh global settings and a fresh default client cache for each test."""
    settings = get_global_settings()
    settings.reset()
    cache = FluentClientCache()
    set_client_cache(cache)
    try:
        yield cache
    finally:
        await cache.aclose()
        set_client_cache(None)
        settings.reset()


@pytest.fixture
def http_test() -> Generator[HttpTest, None, None]:
    """An active HttpTest for the duration of the test."""
    with HttpTest() as test:
        yield test


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it receives."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def make_client() -> Callable[..., Any]:
    """Build FluentClients backed by a RecordingTransport.

    Usage: ``client, transport = make_client(handler, base_url="https://api.test")``
    """

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        base_url: str | None = None,
    ) -> tuple[FluentClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        client = FluentClient(base_url, transport=transport)
        return client, transport

    return factory
