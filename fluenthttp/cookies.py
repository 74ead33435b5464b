"""Transport-independent cookie handling.

A ``CookieJar`` is an explicit collection of cookies keyed by name, domain
and path. Jars are not tied to a connection pool, so any number of
independent sessions can share one client. Jars round-trip through a plain
text format, one cookie per line::

    <origin-url> <date-received ISO-8601> <Set-Cookie header value>
"""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime, parsedate_to_datetime
from typing import TextIO

import structlog

from fluenthttp.url import Url


logger = structlog.get_logger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[\s;,=\"()<>@:\\/\[\]?{}]")
_SAME_SITE_VALUES = {"strict": "Strict", "lax": "Lax", "none": "None"}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_expires(text: str) -> datetime | None:
    try:
        value = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        value = None
    if value is None:
        # Netscape style "Wdy, DD-Mon-YYYY HH:MM:SS GMT"
        try:
            value = datetime.strptime(text.strip(), "%a, %d-%b-%Y %H:%M:%S GMT")
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


@dataclass
class FluentCookie:
    """A cookie together with the URL it was received from."""

    name: str
    value: str
    origin_url: str
    date_received: datetime = field(default_factory=_utcnow)
    expires: datetime | None = None
    max_age: int | None = None
    domain: str | None = None
    path: str | None = None
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None

    @property
    def origin(self) -> Url:
        return Url(self.origin_url)

    @property
    def effective_domain(self) -> str:
        if self.domain:
            return self.domain.lstrip(".").lower()
        return self.origin.host.lower()

    @property
    def effective_path(self) -> str:
        """Cookie path, or the default path derived from the origin URL."""
        if self.path and self.path.startswith("/"):
            return self.path
        origin_path = self.origin.path or "/"
        if origin_path.count("/") <= 1:
            return "/"
        return origin_path[: origin_path.rfind("/")]

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.name, self.effective_domain, self.effective_path)

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or _utcnow()
        if self.max_age is not None:
            return self.max_age <= 0 or self.date_received + timedelta(
                seconds=self.max_age
            ) <= now
        return self.expires is not None and self.expires <= now

    def validate(self) -> str | None:
        """Return the reason this cookie is invalid, or None if it is valid."""
        if not self.name:
            return "Cookie name cannot be empty"
        if _INVALID_NAME_CHARS.search(self.name):
            return f"Cookie name '{self.name}' contains invalid characters"
        origin = self.origin
        if origin.is_relative:
            return "Cookie origin URL must be absolute"
        if self.domain and not _domain_matches(origin.host, self.effective_domain):
            return (
                f"Cookie domain '{self.domain}' does not match origin "
                f"host '{origin.host}'"
            )
        if self.secure and not origin.is_secure:
            return "Secure cookie cannot be set from an insecure origin"
        return None

    def should_send_to(self, url: Url | str) -> bool:
        target = url if isinstance(url, Url) else Url(url)
        if self.is_expired():
            return False
        if self.secure and not target.is_secure:
            return False
        if self.domain:
            if not _domain_matches(target.host, self.effective_domain):
                return False
        elif target.host.lower() != self.origin.host.lower():
            return False
        return _path_matches(target.path or "/", self.effective_path)

    def to_set_cookie_header(self) -> str:
        parts = [f"{self.name}={self.value}"]
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.expires is not None:
            parts.append(f"Expires={format_datetime(self.expires, usegmt=True)}")
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.secure:
            parts.append("Secure")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site}")
        return "; ".join(parts)

    def to_line(self) -> str:
        return f"{self.origin_url} {self.date_received.isoformat()} {self.to_set_cookie_header()}"


def _domain_matches(host: str, domain: str) -> bool:
    host = host.lower()
    return host == domain or host.endswith("." + domain)


def _path_matches(request_path: str, cookie_path: str) -> bool:
    if request_path == cookie_path:
        return True
    if request_path.startswith(cookie_path):
        return cookie_path.endswith("/") or request_path[len(cookie_path)] == "/"
    return False


def parse_set_cookie(
    header: str, origin_url: str, date_received: datetime | None = None
) -> FluentCookie | None:
    """Parse a ``Set-Cookie`` header value. Returns None if it has no name."""
    first, *attributes = header.split(";")
    name, sep, value = first.partition("=")
    name = name.strip()
    if not sep or not name:
        return None

    cookie = FluentCookie(
        name=name,
        value=value.strip(),
        origin_url=origin_url,
        date_received=date_received or _utcnow(),
    )
    for attribute in attributes:
        attr_name, _, attr_value = attribute.strip().partition("=")
        attr_key = attr_name.strip().lower()
        attr_value = attr_value.strip()
        if attr_key == "domain" and attr_value:
            cookie.domain = attr_value
        elif attr_key == "path" and attr_value:
            cookie.path = attr_value
        elif attr_key == "expires":
            cookie.expires = _parse_expires(attr_value)
        elif attr_key == "max-age":
            try:
                cookie.max_age = int(attr_value)
            except ValueError:
                logger.debug("cookie_max_age_ignored", value=attr_value, category="cookies")
        elif attr_key == "secure":
            cookie.secure = True
        elif attr_key == "httponly":
            cookie.http_only = True
        elif attr_key == "samesite":
            cookie.same_site = _SAME_SITE_VALUES.get(attr_value.lower(), attr_value)
    return cookie


def build_cookie_header(cookies: Iterable[tuple[str, str]]) -> str:
    return "; ".join(f"{name}={value}" for name, value in cookies)


class CookieJar:
    """A thread-safe collection of cookies."""

    def __init__(self, cookies: Iterable[FluentCookie] = ()) -> None:
        self._cookies: dict[tuple[str, str, str], FluentCookie] = {}
        self._lock = threading.Lock()
        for cookie in cookies:
            self.add_or_replace(cookie)

    def try_add_or_replace(self, cookie: FluentCookie) -> tuple[bool, str | None]:
        """Add ``cookie`` unless it is invalid. Returns (added, reason)."""
        reason = cookie.validate()
        if reason is not None:
            return False, reason
        with self._lock:
            if cookie.is_expired():
                # An expired cookie deletes any stored cookie with the same key.
                self._cookies.pop(cookie.key, None)
            else:
                self._cookies[cookie.key] = cookie
        return True, None

    def add_or_replace(
        self,
        cookie_or_name: FluentCookie | str,
        value: str | None = None,
        origin_url: str | None = None,
        date_received: datetime | None = None,
    ) -> CookieJar:
        """Add a cookie, raising ``ValueError`` if it is invalid."""
        if isinstance(cookie_or_name, FluentCookie):
            cookie = cookie_or_name
        else:
            if value is None or origin_url is None:
                raise ValueError("value and origin_url are required with a cookie name")
            cookie = FluentCookie(
                name=cookie_or_name,
                value=value,
                origin_url=origin_url,
                date_received=date_received or _utcnow(),
            )
        added, reason = self.try_add_or_replace(cookie)
        if not added:
            raise ValueError(reason)
        return self

    def add_from_response(self, set_cookie_headers: Iterable[str], url: str) -> int:
        """Store cookies from ``Set-Cookie`` headers. Returns how many were kept."""
        kept = 0
        for header in set_cookie_headers:
            cookie = parse_set_cookie(header, url)
            if cookie is None:
                continue
            added, reason = self.try_add_or_replace(cookie)
            if added:
                kept += 1
            else:
                logger.debug(
                    "cookie_rejected", name=cookie.name, reason=reason, category="cookies"
                )
        return kept

    def remove(self, predicate: Callable[[FluentCookie], bool]) -> CookieJar:
        with self._lock:
            self._cookies = {k: c for k, c in self._cookies.items() if not predicate(c)}
        return self

    def clear(self) -> CookieJar:
        with self._lock:
            self._cookies.clear()
        return self

    def cookies_for(self, url: Url | str) -> list[FluentCookie]:
        """Cookies that should be sent to ``url``, longest path first."""
        with self._lock:
            matches = [c for c in self._cookies.values() if c.should_send_to(url)]
        return sorted(matches, key=lambda c: len(c.effective_path), reverse=True)

    def to_string(self) -> str:
        with self._lock:
            return "\n".join(c.to_line() for c in self._cookies.values())

    def write_to(self, stream: TextIO) -> None:
        stream.write(self.to_string())

    @classmethod
    def load_from_string(cls, text: str) -> CookieJar:
        jar = cls()
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            origin_url, date_text, header = line.split(" ", 2)
            cookie = parse_set_cookie(
                header, origin_url, datetime.fromisoformat(date_text)
            )
            if cookie is not None:
                jar.try_add_or_replace(cookie)
        return jar

    @classmethod
    def load_from(cls, stream: TextIO) -> CookieJar:
        return cls.load_from_string(stream.read())

    def __iter__(self) -> Iterator[FluentCookie]:
        with self._lock:
            return iter(list(self._cookies.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._cookies)

    def __contains__(self, name: object) -> bool:
        return any(c.name == name for c in self)

    def get(self, name: str) -> FluentCookie | None:
        return next((c for c in self if c.name == name), None)

    def copy(self) -> CookieJar:
        return CookieJar(replace(c) for c in self)
