"""Fluent assertions over an ``HttpTest`` call log."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Self

from fluenthttp.core.call import HttpCall
from fluenthttp.exceptions import HttpTestAssertionError

from .matching import (
    CallPredicate,
    basic_auth_matches,
    bearer_token_matches,
    body_matches,
    content_type_matches,
    cookie_matches,
    header_matches,
    json_body_matches,
    query_param_matches,
    url_matches,
    verb_matches,
)


class HttpCallAssertion:
    """Narrows the call log step by step, asserting after every step.

    Each filter keeps only the calls that match it and then checks the
    expectation: at least one call (the default), exactly ``n`` calls after
    ``times(n)``, or no calls for a negated assertion.
    """

    def __init__(self, calls: Iterable[HttpCall], negate: bool = False) -> None:
        self._all_calls = list(calls)
        self._calls = list(self._all_calls)
        self._negate = negate
        self._expected_times: int | None = None
        self._criteria: list[str] = []

    @property
    def calls(self) -> list[HttpCall]:
        """Calls matching every criterion so far."""
        return list(self._calls)

    def times(self, expected: int) -> Self:
        if expected < 1:
            raise ValueError("times() expects a positive count")
        if self._negate:
            raise ValueError("times() cannot be used on a negated assertion")
        self._expected_times = expected
        self._check()
        return self

    def with_(self, predicate: CallPredicate, description: str = "custom predicate") -> Self:
        self._criteria.append(description)
        self._calls = [c for c in self._calls if predicate(c)]
        self._check()
        return self

    def without(self, predicate: CallPredicate, description: str = "custom predicate") -> Self:
        return self.with_(lambda call: not predicate(call), f"not {description}")

    def with_url(self, pattern: str) -> Self:
        return self.with_(lambda call: url_matches(call, pattern), f"URL pattern {pattern}")

    def with_verb(self, *verbs: str) -> Self:
        return self.with_(
            lambda call: verb_matches(call, *verbs), f"verb {' or '.join(verbs)}"
        )

    def with_query_param(self, name: str, value: Any = None) -> Self:
        return self.with_(
            lambda call: query_param_matches(call, name, value),
            _describe("query parameter", name, value),
        )

    def without_query_param(self, name: str, value: Any = None) -> Self:
        return self.without(
            lambda call: query_param_matches(call, name, value),
            _describe("query parameter", name, value),
        )

    def with_query_params(self, *names: str, **values: Any) -> Self:
        """All named parameters present, plus every ``name=value`` pair given."""
        for name in names:
            self.with_query_param(name)
        for name, value in values.items():
            self.with_query_param(name, value)
        return self

    def with_header(self, name: str, value_pattern: str | None = None) -> Self:
        return self.with_(
            lambda call: header_matches(call, name, value_pattern),
            _describe("header", name, value_pattern),
        )

    def without_header(self, name: str, value_pattern: str | None = None) -> Self:
        return self.without(
            lambda call: header_matches(call, name, value_pattern),
            _describe("header", name, value_pattern),
        )

    def with_request_body(self, pattern: str) -> Self:
        return self.with_(lambda call: body_matches(call, pattern), f"body {pattern}")

    def with_request_json(self, data: Any) -> Self:
        return self.with_(lambda call: json_body_matches(call, data), f"JSON body {data!r}")

    def with_content_type(self, pattern: str) -> Self:
        return self.with_(
            lambda call: content_type_matches(call, pattern), f"content type {pattern}"
        )

    def with_oauth_bearer_token(self, token: str | None = None) -> Self:
        return self.with_(
            lambda call: bearer_token_matches(call, token), "OAuth bearer token"
        )

    def with_basic_auth(self, username: str, password: str | None = None) -> Self:
        return self.with_(
            lambda call: basic_auth_matches(call, username, password),
            f"basic auth for {username}",
        )

    def with_cookie(self, name: str, value: str | None = None) -> Self:
        return self.with_(
            lambda call: cookie_matches(call, name, value), _describe("cookie", name, value)
        )

    def _check(self) -> None:
        count = len(self._calls)
        if self._negate:
            if count:
                self._fail("no calls", count)
        elif self._expected_times is not None:
            if count != self._expected_times:
                noun = "call" if self._expected_times == 1 else "calls"
                self._fail(f"{self._expected_times} {noun}", count)
        elif not count:
            self._fail("any calls", count)

    def _fail(self, expected: str, count: int) -> None:
        criteria = ", ".join(self._criteria) or "any criteria"
        made = "\n".join(f"  {call.verb} {call.url}" for call in self._all_calls)
        raise HttpTestAssertionError(
            f"Expected {expected} matching {criteria}, but {count} matched.\n"
            f"Calls made:\n{made or '  (none)'}"
        )


def _describe(kind: str, name: str, value: Any) -> str:
    return f"{kind} {name}" if value is None else f"{kind} {name}={value}"
