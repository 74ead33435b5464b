"""Fluent configuration shared by clients, client builders, requests and tests."""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
from datetime import timedelta
from typing import Any, Self

import httpx

from fluenthttp.core.settings import FluentHttpSettings
from fluenthttp.hooks import Handler, HookEvent


class SettingsConfigurable:
    """Settings and hook helpers for anything that owns a settings level."""

    settings: FluentHttpSettings

    def with_settings(self, action: Callable[[FluentHttpSettings], Any]) -> Self:
        """Change several settings as one unit, e.g.
        ``client.with_settings(lambda s: s.update(timeout=5))``."""
        self.settings.configure(action)
        return self

    def with_timeout(self, timeout: float | timedelta | None) -> Self:
        self.settings.timeout = timeout
        return self

    def allow_http_status(self, *patterns: str) -> Self:
        """Treat the given statuses as success in addition to those already allowed."""
        self.settings.allow_http_status(*patterns)
        return self

    def allow_any_http_status(self) -> Self:
        self.settings.allowed_http_status_range = "*"
        return self

    def with_auto_redirect(self, enabled: bool) -> Self:
        self.settings.redirects.enabled = enabled
        return self

    def before_call(self, handler: Handler) -> Self:
        self.settings.hooks.register(HookEvent.BEFORE_CALL, handler)
        return self

    def after_call(self, handler: Handler) -> Self:
        self.settings.hooks.register(HookEvent.AFTER_CALL, handler)
        return self

    def on_error(self, handler: Handler) -> Self:
        self.settings.hooks.register(HookEvent.ON_ERROR, handler)
        return self

    def on_redirect(self, handler: Handler) -> Self:
        self.settings.hooks.register(HookEvent.ON_REDIRECT, handler)
        return self


class HeadersConfigurable(SettingsConfigurable):
    """Header helpers on top of the settings helpers."""

    headers: httpx.Headers

    def with_header(self, name: str, value: Any) -> Self:
        """Set a header, replacing any existing value. ``None`` removes it."""
        if value is None:
            return self.without_header(name)
        self.headers[name] = str(value)
        return self

    def with_headers(
        self,
        headers: Mapping[str, Any] | None = None,
        *,
        replace_underscore_with_hyphen: bool = True,
        **kwargs: Any,
    ) -> Self:
        """Set several headers.

        Keyword names have ``_`` replaced by ``-``, so
        ``with_headers(user_agent="x")`` sets ``user-agent``.
        """
        for name, value in (headers or {}).items():
            self.with_header(name, value)
        for name, value in kwargs.items():
            if replace_underscore_with_hyphen:
                name = name.replace("_", "-")
            self.with_header(name, value)
        return self

    def without_header(self, name: str) -> Self:
        if name in self.headers:
            del self.headers[name]
        return self

    def with_basic_auth(self, username: str, password: str) -> Self:
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        return self.with_header("Authorization", f"Basic {token}")

    def with_oauth_bearer_token(self, token: str) -> Self:
        return self.with_header("Authorization", f"Bearer {token}")
