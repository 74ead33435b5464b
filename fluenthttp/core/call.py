"""Call records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx

from fluenthttp.url import Url


if TYPE_CHECKING:
    from fluenthttp.request import FluentRequest
    from fluenthttp.response import FluentResponse


@dataclass
class HttpCallRedirect:
    """Redirect decision for a call whose response is a redirect.

    On-redirect handlers may change ``follow`` or ``change_verb_to_get``
    before the pipeline acts on them.
    """

    url: Url
    change_verb_to_get: bool = False
    follow: bool = True
    reason: str | None = None


@dataclass(eq=False)
class HttpCall:
    """Record of one HTTP attempt.

    Each redirect hop gets its own record whose ``redirected_from`` points at
    the call that received the redirect response.
    """

    request: FluentRequest
    verb: str
    url: Url
    request_body: str | None = None
    http_request: httpx.Request | None = None
    http_response: httpx.Response | None = None
    response: FluentResponse | None = None
    redirected_from: HttpCall | None = None
    redirect: HttpCallRedirect | None = None
    exception: BaseException | None = None
    exception_handled: bool = False
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None
    succeeded: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.ended_at is not None

    @property
    def duration(self) -> timedelta | None:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    @property
    def status_code(self) -> int | None:
        return None if self.response is None else self.response.status_code

    @property
    def redirect_chain(self) -> list[HttpCall]:
        """Calls that led to this one, oldest first."""
        chain: list[HttpCall] = []
        previous = self.redirected_from
        while previous is not None:
            chain.append(previous)
            previous = previous.redirected_from
        return list(reversed(chain))

    @property
    def redirect_count(self) -> int:
        return len(self.redirect_chain)

    @property
    def request_headers(self) -> httpx.Headers:
        if self.http_request is not None:
            return self.http_request.headers
        return httpx.Headers(self.request.headers)

    def mark_ended(self) -> None:
        if self.ended_at is None:
            self.ended_at = datetime.now(UTC)

    def __repr__(self) -> str:
        status = self.status_code if self.status_code is not None else "-"
        return f"<HttpCall {self.verb} {self.url} status={status}>"
