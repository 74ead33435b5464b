"""Ambient execution context for test interception.

The active ``HttpTest`` lives in a ``ContextVar`` so it follows the logical
execution context, including tasks spawned inside a test scope, without
being passed through every call site.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from fluenthttp.testing.http_test import HttpTest


_current_test: ContextVar[HttpTest | None] = ContextVar(
    "fluenthttp_current_test", default=None
)


def get_current_test() -> HttpTest | None:
    return _current_test.get()


def set_current_test(test: HttpTest | None) -> Token[HttpTest | None]:
    return _current_test.set(test)


def reset_current_test(token: Token[HttpTest | None]) -> None:
    _current_test.reset(token)
