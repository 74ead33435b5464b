"""Cookie sessions."""

from __future__ import annotations

from typing import Any

from fluenthttp.client import FluentClient
from fluenthttp.cookies import CookieJar
from fluenthttp.request import FluentRequest


class CookieSession:
    """Requests that share one cookie jar, like a browser session.

    Example:
        session = CookieSession("https://cookies.com")
        await session.request("login").post_url_encoded(credentials)
        await session.request("account").get_json()  # sends the login cookie
    """

    def __init__(
        self,
        base: str | FluentClient | None = None,
        jar: CookieJar | None = None,
    ) -> None:
        if isinstance(base, FluentClient):
            self.client: FluentClient | None = base
            self.base_url = base.base_url
        else:
            self.client = None
            self.base_url = base
        self.cookies = jar if jar is not None else CookieJar()

    def request(self, *segments: Any) -> FluentRequest:
        if self.client is not None:
            request = self.client.request(*segments)
        else:
            request = FluentRequest(self.base_url).append_path_segments(*segments)
        return request.with_cookie_jar(self.cookies)
