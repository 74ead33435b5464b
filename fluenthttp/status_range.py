"""Allowed HTTP status range grammar.

A range is a comma separated list of items. Each item is ``*`` (any status),
a three character pattern such as ``404`` or ``4xx`` or a hyphenated range
such as ``400-404`` or ``4xx-5xx``. ``x``, ``X`` and ``*`` are wildcards that
match any single digit.

    >>> is_status_allowed(404, "400-404,6xx")
    True
    >>> is_status_allowed(500, "400-404,6xx")
    False
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fluenthttp.exceptions import StatusRangeError


_WILDCARDS = frozenset("xX*")
_DIGITS = frozenset("0123456789")


@dataclass(frozen=True, slots=True)
class _Pattern:
    chars: str

    def matches(self, status: int) -> bool:
        text = str(status)
        if len(text) != 3:
            return False
        return all(c in _WILDCARDS or c == d for c, d in zip(self.chars, text))

    def lower(self) -> int:
        return int("".join("0" if c in _WILDCARDS else c for c in self.chars))

    def upper(self) -> int:
        return int("".join("9" if c in _WILDCARDS else c for c in self.chars))


@dataclass(frozen=True, slots=True)
class _Span:
    low: int
    high: int

    def matches(self, status: int) -> bool:
        return self.low <= status <= self.high


@dataclass(frozen=True, slots=True)
class _Any:
    def matches(self, status: int) -> bool:
        return True


@dataclass(frozen=True)
class StatusRange:
    """A parsed allowed-status-range specification."""

    text: str
    items: tuple[_Pattern | _Span | _Any, ...]

    def matches(self, status: int) -> bool:
        return any(item.matches(status) for item in self.items)

    def __contains__(self, status: int) -> bool:
        return self.matches(status)

    def __str__(self) -> str:
        return self.text


def _parse_pattern(text: str, item: str) -> _Pattern:
    if len(item) != 3:
        raise StatusRangeError(
            text, f"'{item}' must be three characters (digits or x, X, *)"
        )
    bad = [c for c in item if c not in _DIGITS and c not in _WILDCARDS]
    if bad:
        raise StatusRangeError(text, f"'{item}' contains invalid character '{bad[0]}'")
    return _Pattern(item)


def _parse_item(text: str, item: str) -> _Pattern | _Span | _Any:
    if not item:
        raise StatusRangeError(text, "empty item")
    if item == "*":
        return _Any()
    if "-" in item:
        low_text, _, high_text = item.partition("-")
        if "-" in high_text:
            raise StatusRangeError(text, f"'{item}' has more than one '-'")
        low = _parse_pattern(text, low_text.strip()).lower()
        high = _parse_pattern(text, high_text.strip()).upper()
        if low > high:
            raise StatusRangeError(text, f"'{item}' has a lower bound above its upper bound")
        return _Span(low, high)
    return _parse_pattern(text, item)


def parse_status_range(text: str) -> StatusRange:
    """Parse a status range string, raising ``StatusRangeError`` if malformed."""
    if not isinstance(text, str):
        raise StatusRangeError(repr(text), "status range must be a string")
    return _parse_status_range(text)


@lru_cache(maxsize=256)
def _parse_status_range(text: str) -> StatusRange:
    if not text.strip():
        raise StatusRangeError(text, "status range is empty")
    items = tuple(_parse_item(text, part.strip()) for part in text.split(","))
    return StatusRange(text=text, items=items)


def is_status_allowed(status: int, text: str | None) -> bool:
    """Return True if ``status`` falls within the range ``text``.

    A ``None`` range allows nothing.
    """
    if not text:
        return False
    return parse_status_range(text).matches(status)


def merge_status_ranges(current: str | None, addition: str) -> str:
    """Combine two ranges so the result allows the union of both."""
    parse_status_range(addition)
    if not current:
        return addition
    return f"{current},{addition}"
