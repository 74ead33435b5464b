"""Queued fake responses for ``HttpTest``."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Self

import httpx

from fluenthttp.core.call import HttpCall

from .matching import (
    CallPredicate,
    body_matches,
    header_matches,
    json_body_matches,
    query_param_matches,
    url_matches,
    verb_matches,
)


Headers = Mapping[str, str] | list[tuple[str, str]] | None


@dataclass
class FakeResponse:
    """One queued outcome: a response to build, or an exception to raise."""

    status: int = 200
    body: bytes | None = None
    json_data: Any = None
    has_json: bool = False
    headers: list[tuple[str, str]] = field(default_factory=list)
    cookies: dict[str, str] = field(default_factory=dict)
    error: Callable[[httpx.Request], BaseException] | None = None

    def build(self, call: HttpCall) -> httpx.Response:
        assert call.http_request is not None
        if self.error is not None:
            raise self.error(call.http_request)

        headers = list(self.headers)
        headers.extend(("Set-Cookie", f"{name}={value}") for name, value in self.cookies.items())
        content = self.body
        if self.has_json:
            # Serialized with the calling request's effective JSON serializer.
            content = call.request.settings.json_serializer.serialize(self.json_data).encode()
            if not any(name.lower() == "content-type" for name, _ in headers):
                headers.append(("Content-Type", "application/json"))
        return httpx.Response(
            self.status,
            headers=headers,
            content=content,
            request=call.http_request,
        )


def _header_list(headers: Headers) -> list[tuple[str, str]]:
    if headers is None:
        return []
    if isinstance(headers, Mapping):
        return [(str(k), str(v)) for k, v in headers.items()]
    return list(headers)


class HttpTestSetup:
    """A queue of fake outcomes.

    With more than one outcome queued each call consumes the next one. The
    last outcome is sticky: it answers every remaining call. An empty queue
    answers with an empty ``200``.
    """

    def __init__(self) -> None:
        self._responses: deque[FakeResponse] = deque()
        self._lock = threading.Lock()
        self.allows_real_http = False

    def _enqueue(self, response: FakeResponse) -> Self:
        with self._lock:
            self._responses.append(response)
        return self

    def respond_with(
        self,
        body: str | bytes = "",
        status: int = 200,
        headers: Headers = None,
        cookies: Mapping[str, str] | None = None,
    ) -> Self:
        content = body.encode() if isinstance(body, str) else body
        return self._enqueue(
            FakeResponse(
                status=status,
                body=content,
                headers=_header_list(headers),
                cookies=dict(cookies or {}),
            )
        )

    def respond_with_json(
        self,
        data: Any,
        status: int = 200,
        headers: Headers = None,
        cookies: Mapping[str, str] | None = None,
    ) -> Self:
        return self._enqueue(
            FakeResponse(
                status=status,
                json_data=data,
                has_json=True,
                headers=_header_list(headers),
                cookies=dict(cookies or {}),
            )
        )

    def simulate_timeout(self) -> Self:
        """Make the call fail as if the transport timed out."""
        return self._enqueue(
            FakeResponse(
                error=lambda request: httpx.ReadTimeout(
                    "Simulated timeout", request=request
                )
            )
        )

    def simulate_exception(self, error: BaseException) -> Self:
        """Make the call fail with ``error`` instead of returning a response."""
        return self._enqueue(FakeResponse(error=lambda request: error))

    def allow_real_http(self) -> Self:
        """Pass matching calls through to the real transport."""
        with self._lock:
            self._responses.clear()
            self.allows_real_http = True
        return self

    def next_response(self) -> FakeResponse | None:
        with self._lock:
            if not self._responses:
                return None
            if len(self._responses) > 1:
                return self._responses.popleft()
            return self._responses[0]

    async def respond(self, call: HttpCall) -> httpx.Response:
        fake = self.next_response() or FakeResponse()
        return fake.build(call)


class FilteredHttpTestSetup(HttpTestSetup):
    """Fake outcomes that only answer calls matching URL patterns and filters."""

    def __init__(self, *url_patterns: str) -> None:
        super().__init__()
        self.url_patterns = list(url_patterns) or ["*"]
        self._filters: list[CallPredicate] = []

    def is_match(self, call: HttpCall) -> bool:
        if not any(url_matches(call, pattern) for pattern in self.url_patterns):
            return False
        return all(f(call) for f in self._filters)

    def with_(self, predicate: CallPredicate) -> Self:
        self._filters.append(predicate)
        return self

    def without(self, predicate: CallPredicate) -> Self:
        self._filters.append(lambda call: not predicate(call))
        return self

    def with_verb(self, *verbs: str) -> Self:
        return self.with_(lambda call: verb_matches(call, *verbs))

    def with_query_param(self, name: str, value: Any = None) -> Self:
        return self.with_(lambda call: query_param_matches(call, name, value))

    def without_query_param(self, name: str, value: Any = None) -> Self:
        return self.without(lambda call: query_param_matches(call, name, value))

    def with_any_query_param(self, *names: str) -> Self:
        if not names:
            return self.with_(lambda call: bool(call.url.query_params))
        return self.with_(
            lambda call: any(query_param_matches(call, n) for n in names)
        )

    def with_header(self, name: str, value_pattern: str | None = None) -> Self:
        return self.with_(lambda call: header_matches(call, name, value_pattern))

    def without_header(self, name: str, value_pattern: str | None = None) -> Self:
        return self.without(lambda call: header_matches(call, name, value_pattern))

    def with_request_body(self, pattern: str) -> Self:
        return self.with_(lambda call: body_matches(call, pattern))

    def with_request_json(self, data: Any) -> Self:
        return self.with_(lambda call: json_body_matches(call, data))
