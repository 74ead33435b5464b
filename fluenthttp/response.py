"""Response wrapper."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from fluenthttp.cookies import FluentCookie, parse_set_cookie


if TYPE_CHECKING:
    from fluenthttp.core.call import HttpCall


class FluentResponse:
    """A fully read ``httpx.Response`` plus the settings needed to decode it."""

    def __init__(self, http_response: httpx.Response, call: HttpCall) -> None:
        self.http_response = http_response
        self.call = call

    @property
    def status_code(self) -> int:
        return self.http_response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.http_response.headers

    @property
    def url(self) -> str:
        return str(self.call.url)

    @property
    def cookies(self) -> list[FluentCookie]:
        """Cookies set by this response, whether or not a jar stored them."""
        cookies = []
        for header in self.headers.get_list("set-cookie"):
            cookie = parse_set_cookie(header, str(self.call.url))
            if cookie is not None:
                cookies.append(cookie)
        return cookies

    def get_bytes(self) -> bytes:
        return self.http_response.content

    def get_string(self) -> str:
        return self.http_response.text

    def get_json(self, model: Any = None) -> Any:
        """Deserialize the body with the call's effective JSON serializer."""
        serializer = self.call.request.settings.json_serializer
        return serializer.deserialize(self.http_response.content, model)

    def get_url_encoded(self, model: Any = None) -> Any:
        serializer = self.call.request.settings.url_encoded_serializer
        return serializer.deserialize(self.http_response.content, model)

    def __repr__(self) -> str:
        return f"<FluentResponse [{self.status_code}] {self.url}>"
