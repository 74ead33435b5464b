"""Fluent requests.

A ``FluentRequest`` collects a URL, headers, cookies and request-level
settings, then hands itself to a ``FluentClient`` to be sent::

    user = await (
        FluentRequest("https://api.example.com")
        .append_path_segments("users", 42)
        .with_oauth_bearer_token(token)
        .get_json(User)
    )

A request created without a client (the clientless pattern) gets one from
the default ``FluentClientCache`` when it is sent.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import ValidationError

from fluenthttp.core.configurable import HeadersConfigurable
from fluenthttp.core.settings import FluentHttpSettings
from fluenthttp.defaults import get_client_cache, get_global_settings
from fluenthttp.exceptions import HttpParsingError
from fluenthttp.url import Url


if TYPE_CHECKING:
    from fluenthttp.client import FluentClient
    from fluenthttp.cookies import CookieJar
    from fluenthttp.response import FluentResponse


Content = str | bytes | None


class FluentRequest(HeadersConfigurable):
    """One request to build and send.

    Args:
        url: Absolute URL, or a path relative to the client's ``base_url``
        client: Client to send through; resolved from the default cache if omitted
    """

    def __init__(
        self,
        url: str | Url | None = None,
        *,
        client: FluentClient | None = None,
    ) -> None:
        self.url = url.clone() if isinstance(url, Url) else Url(url or "")
        self.verb = "GET"
        self.headers = httpx.Headers()
        self.cookies: dict[str, str] = {}
        self.cookie_jar: CookieJar | None = None
        self.client_name: str | None = None
        # Redirect hops carry only the headers the redirect policy forwards.
        self.inherit_client_headers = True
        self.settings = FluentHttpSettings(parent=get_global_settings(), level="request")
        self._client: FluentClient | None = None
        if client is not None:
            self.client = client

    @property
    def client(self) -> FluentClient | None:
        return self._client

    @client.setter
    def client(self, client: FluentClient) -> None:
        self._client = client
        self.settings.parent = client.settings

    # Client binding

    def with_client(self, client: FluentClient) -> Self:
        self.client = client
        return self

    def with_client_name(self, name: str) -> Self:
        """Send through the client registered under ``name`` in the default cache."""
        self.client_name = name
        return self

    def _resolve_client(self) -> FluentClient:
        if self._client is None:
            self.client = get_client_cache().get_client_for_request(self)
        assert self._client is not None
        return self._client

    # URL passthroughs

    def append_path_segment(self, segment: Any, full_encode: bool = False) -> Self:
        self.url.append_path_segment(segment, full_encode)
        return self

    def append_path_segments(self, *segments: Any) -> Self:
        self.url.append_path_segments(*segments)
        return self

    def set_query_param(self, name: str, value: Any) -> Self:
        self.url.set_query_param(name, value)
        return self

    def set_query_params(
        self, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Self:
        self.url.set_query_params(params, **kwargs)
        return self

    def append_query_param(self, name: str, value: Any) -> Self:
        self.url.append_query_param(name, value)
        return self

    def remove_query_param(self, name: str) -> Self:
        self.url.remove_query_param(name)
        return self

    def remove_query_params(self, *names: str) -> Self:
        self.url.remove_query_params(*names)
        return self

    def set_fragment(self, fragment: str) -> Self:
        self.url.set_fragment(fragment)
        return self

    def remove_fragment(self) -> Self:
        self.url.remove_fragment()
        return self

    # Cookies

    def with_cookie(self, name: str, value: Any) -> Self:
        """Send a cookie with this request only. ``None`` removes it."""
        if value is None:
            self.cookies.pop(name, None)
        else:
            self.cookies[name] = str(value)
        return self

    def with_cookies(
        self, cookies: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Self:
        for name, value in {**(cookies or {}), **kwargs}.items():
            self.with_cookie(name, value)
        return self

    def with_cookie_jar(self, jar: CookieJar) -> Self:
        """Send cookies from ``jar`` and store the ones responses set."""
        self.cookie_jar = jar
        return self

    # Sending

    async def send(
        self,
        verb: str,
        content: Content = None,
        *,
        content_type: str | None = None,
    ) -> FluentResponse | None:
        """Send the request.

        Returns the response, or None when an on-error handler marked a call
        without a response as handled.
        """
        self.verb = verb.upper()
        client = self._resolve_client()
        return await client.send(self, self.verb, content=content, content_type=content_type)

    async def get(self) -> FluentResponse | None:
        return await self.send("GET")

    async def head(self) -> FluentResponse | None:
        return await self.send("HEAD")

    async def options(self) -> FluentResponse | None:
        return await self.send("OPTIONS")

    async def delete(self) -> FluentResponse | None:
        return await self.send("DELETE")

    async def post(
        self, content: Content = None, *, content_type: str | None = None
    ) -> FluentResponse | None:
        return await self.send("POST", content, content_type=content_type)

    async def put(
        self, content: Content = None, *, content_type: str | None = None
    ) -> FluentResponse | None:
        return await self.send("PUT", content, content_type=content_type)

    async def patch(
        self, content: Content = None, *, content_type: str | None = None
    ) -> FluentResponse | None:
        return await self.send("PATCH", content, content_type=content_type)

    async def _send_json(self, verb: str, data: Any) -> FluentResponse | None:
        body = self.settings.json_serializer.serialize(data)
        return await self.send(verb, body, content_type="application/json")

    async def post_json(self, data: Any) -> FluentResponse | None:
        return await self._send_json("POST", data)

    async def put_json(self, data: Any) -> FluentResponse | None:
        return await self._send_json("PUT", data)

    async def patch_json(self, data: Any) -> FluentResponse | None:
        return await self._send_json("PATCH", data)

    async def _send_url_encoded(self, verb: str, data: Any) -> FluentResponse | None:
        body = self.settings.url_encoded_serializer.serialize(data)
        return await self.send(
            verb, body, content_type="application/x-www-form-urlencoded"
        )

    async def post_url_encoded(self, data: Any) -> FluentResponse | None:
        return await self._send_url_encoded("POST", data)

    async def put_url_encoded(self, data: Any) -> FluentResponse | None:
        return await self._send_url_encoded("PUT", data)

    async def post_string(self, text: str) -> FluentResponse | None:
        return await self.send("POST", text, content_type="text/plain")

    async def put_string(self, text: str) -> FluentResponse | None:
        return await self.send("PUT", text, content_type="text/plain")

    async def patch_string(self, text: str) -> FluentResponse | None:
        return await self.send("PATCH", text, content_type="text/plain")

    # Receiving

    @staticmethod
    def _read(
        response: FluentResponse | None,
        expected_format: str,
        reader: Callable[[FluentResponse], Any],
    ) -> Any:
        if response is None:
            return None
        try:
            return reader(response)
        except (ValueError, ValidationError) as e:
            raise HttpParsingError(response.call, expected_format) from e

    async def get_json(self, model: Any = None) -> Any:
        """GET and deserialize the body, validating into ``model`` if given."""
        response = await self.get()
        return self._read(response, "JSON", lambda r: r.get_json(model))

    async def get_string(self) -> str | None:
        response = await self.get()
        return self._read(response, "string", lambda r: r.get_string())

    async def get_bytes(self) -> bytes | None:
        response = await self.get()
        return None if response is None else response.get_bytes()

    def __repr__(self) -> str:
        return f"<FluentRequest {self.verb} {self.url}>"
