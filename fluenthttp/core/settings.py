"""Layered call settings.

Settings exist at four levels: global, client, request and test. Each level
stores only the options explicitly set on it, so an option's effective value
is found by probing the active test level first and then walking from the
narrowest level to the broadest, taking the first level where the key is
present. When no level has the key, the built-in default applies.

    >>> global_ = FluentHttpSettings(level="global")
    >>> client = FluentHttpSettings(parent=global_, level="client")
    >>> global_.timeout = 30
    >>> client.timeout
    30
    >>> client.timeout = None  # explicit None shadows the global value
    >>> client.timeout is None
    True
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from datetime import timedelta
from typing import Any

import structlog

from fluenthttp.core.context import get_current_test
from fluenthttp.exceptions import ConfigurationError
from fluenthttp.hooks import HookRegistry
from fluenthttp.serialization import (
    JsonSerializer,
    UrlEncodedSerializer,
    validate_serializer,
)
from fluenthttp.status_range import merge_status_ranges, parse_status_range


logger = structlog.get_logger(__name__)

REDIRECT_PREFIX = "redirects."

DEFAULTS: dict[str, Any] = {
    "timeout": 100.0,
    "allowed_http_status_range": None,
    "json_serializer": JsonSerializer(),
    "url_encoded_serializer": UrlEncodedSerializer(),
    "redirects.enabled": True,
    "redirects.allow_secure_to_insecure": False,
    "redirects.forward_headers": False,
    "redirects.forward_authorization_header": False,
    "redirects.max_auto_redirects": 10,
}


def _validate_timeout(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, timedelta):
        value = value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigurationError(
            "timeout must be a number of seconds, a timedelta or None",
            details={"value": repr(value)},
        )
    if value < 0:
        raise ConfigurationError(
            "timeout cannot be negative", details={"value": value}
        )
    return float(value)


def _validate_status_range(value: Any) -> str | None:
    if value is None:
        return None
    return parse_status_range(value).text


def _validate_bool(key: str) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        if not isinstance(value, bool):
            raise ConfigurationError(
                f"'{key}' must be a bool", details={"value": repr(value)}
            )
        return value

    return validate


def _validate_max_redirects(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(
            "'redirects.max_auto_redirects' must be a non-negative int",
            details={"value": repr(value)},
        )
    return value


VALIDATORS: dict[str, Callable[[Any], Any]] = {
    "timeout": _validate_timeout,
    "allowed_http_status_range": _validate_status_range,
    "json_serializer": lambda v: validate_serializer(v, "json_serializer"),
    "url_encoded_serializer": lambda v: validate_serializer(
        v, "url_encoded_serializer"
    ),
    "redirects.enabled": _validate_bool("redirects.enabled"),
    "redirects.allow_secure_to_insecure": _validate_bool(
        "redirects.allow_secure_to_insecure"
    ),
    "redirects.forward_headers": _validate_bool("redirects.forward_headers"),
    "redirects.forward_authorization_header": _validate_bool(
        "redirects.forward_authorization_header"
    ),
    "redirects.max_auto_redirects": _validate_max_redirects,
}


def _check_known(key: str) -> None:
    if key not in DEFAULTS:
        raise ConfigurationError(f"Unknown setting '{key}'", details={"key": key})


class _Option:
    """Descriptor exposing one settings key as an attribute."""

    def __init__(self, key: str) -> None:
        self.key = key

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj._get(self.key)

    def __set__(self, obj: Any, value: Any) -> None:
        obj._set(self.key, value)

    def __delete__(self, obj: Any) -> None:
        obj._reset(self.key)


class RedirectSettings:
    """Redirect policy view onto the keys of its owning settings level."""

    enabled = _Option("enabled")
    allow_secure_to_insecure = _Option("allow_secure_to_insecure")
    forward_headers = _Option("forward_headers")
    forward_authorization_header = _Option("forward_authorization_header")
    max_auto_redirects = _Option("max_auto_redirects")

    def __init__(self, owner: FluentHttpSettings) -> None:
        self._owner = owner

    def _get(self, key: str) -> Any:
        return self._owner.get(REDIRECT_PREFIX + key)

    def _set(self, key: str, value: Any) -> None:
        self._owner.set(REDIRECT_PREFIX + key, value)

    def _reset(self, key: str) -> None:
        self._owner.reset(REDIRECT_PREFIX + key)

    def __repr__(self) -> str:
        return (
            f"RedirectSettings(enabled={self.enabled}, "
            f"max_auto_redirects={self.max_auto_redirects})"
        )


class FluentHttpSettings:
    """One level of call settings."""

    timeout = _Option("timeout")
    allowed_http_status_range = _Option("allowed_http_status_range")
    json_serializer = _Option("json_serializer")
    url_encoded_serializer = _Option("url_encoded_serializer")

    def __init__(
        self,
        parent: FluentHttpSettings | None = None,
        *,
        level: str = "request",
    ) -> None:
        self.parent = parent
        self.level = level
        self.hooks = HookRegistry()
        self.redirects = RedirectSettings(self)
        self._values: dict[str, Any] = {}
        self._lock = threading.RLock()

    # Descriptor plumbing
    def _get(self, key: str) -> Any:
        return self.get(key)

    def _set(self, key: str, value: Any) -> None:
        self.set(key, value)

    def _reset(self, key: str) -> None:
        self.reset(key)

    def _lookup_local(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            if key in self._values:
                return True, self._values[key]
            return False, None

    def get(self, key: str) -> Any:
        """Effective value of ``key`` as seen from this level."""
        _check_known(key)
        test = get_current_test()
        if test is not None and test.settings is not self:
            found, value = test.settings._lookup_local(key)
            if found:
                return value

        return self._inherited(key)

    def _inherited(self, key: str) -> Any:
        """Value of ``key`` from this level and its parents, ignoring any test."""
        level: FluentHttpSettings | None = self
        while level is not None:
            found, value = level._lookup_local(key)
            if found:
                return value
            level = level.parent
        return DEFAULTS[key]

    def is_set(self, key: str) -> bool:
        """True if ``key`` is explicitly present on this level."""
        _check_known(key)
        return self._lookup_local(key)[0]

    def set(self, key: str, value: Any) -> None:
        _check_known(key)
        value = VALIDATORS[key](value)
        with self._lock:
            self._values[key] = value

    def update(self, **options: Any) -> FluentHttpSettings:
        """Set several options as a single unit.

        Every value is validated before any is applied, and all of them are
        applied while holding the lock, so readers never observe a partial
        update. ``redirects`` may be given as a mapping of redirect options.
        """
        flat: dict[str, Any] = {}
        for name, value in options.items():
            if name == "redirects" and isinstance(value, Mapping):
                for sub_name, sub_value in value.items():
                    flat[REDIRECT_PREFIX + sub_name] = sub_value
            else:
                flat[name] = value

        validated: dict[str, Any] = {}
        for key, value in flat.items():
            _check_known(key)
            validated[key] = VALIDATORS[key](value)

        with self._lock:
            self._values.update(validated)
        return self

    def configure(
        self, action: Callable[[FluentHttpSettings], Any]
    ) -> FluentHttpSettings:
        """Run ``action(self)`` while holding this level's lock.

        If ``action`` raises, every change it made to this level is rolled
        back before the exception propagates.
        """
        with self._lock:
            snapshot = dict(self._values)
            try:
                action(self)
            except BaseException:
                self._values.clear()
                self._values.update(snapshot)
                raise
        logger.debug("settings_configured", level=self.level, category="config")
        return self

    def reset(self, *keys: str) -> FluentHttpSettings:
        """Remove explicit values so they inherit again.

        With no keys every option and every hook handler on this level is
        removed. On the global level this restores the built-in defaults.
        """
        with self._lock:
            if not keys:
                self._values.clear()
                self.hooks.clear()
                return self
            for key in keys:
                _check_known(key)
                self._values.pop(key, None)
        return self

    def allow_http_status(self, *patterns: str) -> FluentHttpSettings:
        """Widen the allowed status range at this level.

        The addition is merged with the range inherited through the parent
        levels, so it can only allow more statuses, never fewer. An active
        test's range is not folded in.
        """
        with self._lock:
            current = self._inherited("allowed_http_status_range")
            for pattern in patterns:
                current = merge_status_ranges(current, pattern)
            self.allowed_http_status_range = current
        return self

    def local_values(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def levels(self) -> list[FluentHttpSettings]:
        """This level and its ancestors, broadest first."""
        chain: list[FluentHttpSettings] = []
        level: FluentHttpSettings | None = self
        while level is not None:
            chain.append(level)
            level = level.parent
        return list(reversed(chain))

    def hook_registries(self) -> list[HookRegistry]:
        """Handler registries in execution order, test level last."""
        registries = [level.hooks for level in self.levels()]
        test = get_current_test()
        if test is not None and test.settings.hooks not in registries:
            registries.append(test.settings.hooks)
        return registries

    def __repr__(self) -> str:
        return f"FluentHttpSettings(level={self.level!r}, values={self.local_values()!r})"
