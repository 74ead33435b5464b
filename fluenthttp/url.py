"""Fluent URL building.

    >>> str(Url("https://api.example.com").append_path_segments("users", 42)
    ...     .set_query_params(active=True, tags=["a", "b"]))
    'https://api.example.com/users/42?active=true&tags=a&tags=b'
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote, unquote, unquote_plus

import httpx


DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}

# Characters left alone when appending a path segment without full encoding.
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"
_QUERY_SAFE = "/:@!$'()*,;-._~"


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_multi(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, str | bytes | Mapping)


class Url:
    """A mutable URL with fluent builder methods.

    Builder methods mutate the instance and return it so calls can be
    chained. Use ``clone()`` to branch.
    """

    def __init__(self, base: str | Url | httpx.URL = "") -> None:
        parsed = httpx.URL(str(base))
        self.scheme: str = parsed.scheme
        self.user_info: str = parsed.userinfo.decode("ascii")
        self.host: str = parsed.host
        self.port: int | None = parsed.port
        raw_path = parsed.raw_path.decode("ascii")
        self.path: str = raw_path.split("?", 1)[0]
        self.query_params: list[tuple[str, str]] = list(parsed.params.multi_items())
        self.fragment: str = parsed.fragment

    # Properties

    @property
    def is_relative(self) -> bool:
        return not self.scheme

    @property
    def is_secure(self) -> bool:
        return self.scheme in ("https", "wss")

    @property
    def effective_port(self) -> int | None:
        """Port number, falling back to the scheme's default port."""
        if self.port is not None:
            return self.port
        return DEFAULT_PORTS.get(self.scheme)

    @property
    def authority(self) -> str:
        authority = self.host
        if self.user_info:
            authority = f"{self.user_info}@{authority}"
        if self.port is not None:
            authority = f"{authority}:{self.port}"
        return authority

    @property
    def root(self) -> str:
        """Scheme, host and port, e.g. ``https://example.com:8443``."""
        if self.is_relative:
            return ""
        return f"{self.scheme}://{self.authority}"

    @property
    def path_segments(self) -> list[str]:
        return [unquote(s) for s in self.path.strip("/").split("/") if s]

    @property
    def query(self) -> str:
        return "&".join(
            f"{quote(name, safe=_QUERY_SAFE)}={quote(value, safe=_QUERY_SAFE)}"
            for name, value in self.query_params
        )

    def get_query_param(self, name: str) -> str | None:
        for key, value in self.query_params:
            if key == name:
                return value
        return None

    def get_query_params(self, name: str) -> list[str]:
        return [value for key, value in self.query_params if key == name]

    # Path builders

    def append_path_segment(self, segment: Any, full_encode: bool = False) -> Url:
        """Append one segment, adding exactly one ``/`` between segments.

        With ``full_encode`` a ``/`` inside the segment is encoded as well.
        """
        if segment is None:
            return self
        text = str(segment)
        encoded = quote(text, safe="" if full_encode else _PATH_SAFE)
        if not full_encode:
            encoded = encoded.strip("/")
        if not encoded:
            return self
        if self.path.endswith("/"):
            self.path = self.path + encoded
        else:
            self.path = f"{self.path}/{encoded}"
        return self

    def append_path_segments(self, *segments: Any) -> Url:
        for segment in segments:
            if _is_multi(segment):
                self.append_path_segments(*segment)
            else:
                self.append_path_segment(segment)
        return self

    def remove_path_segment(self) -> Url:
        """Remove the last path segment."""
        parts = self.path.rstrip("/").split("/")
        self.path = "/".join(parts[:-1])
        return self

    def remove_path(self) -> Url:
        self.path = ""
        return self

    # Query builders

    def set_query_param(self, name: str, value: Any) -> Url:
        """Set (replace) a query parameter.

        ``None`` removes the parameter and iterables produce repeated
        parameters. The parameter keeps the position of its first
        occurrence.
        """
        if value is None:
            values: list[str] = []
        elif _is_multi(value):
            values = [_query_value(v) for v in value if v is not None]
        else:
            values = [_query_value(value)]
        position = next(
            (i for i, (key, _) in enumerate(self.query_params) if key == name),
            len(self.query_params),
        )
        remaining = [(k, v) for k, v in self.query_params if k != name]
        position = min(position, len(remaining))
        self.query_params = (
            remaining[:position] + [(name, v) for v in values] + remaining[position:]
        )
        return self

    def set_query_params(
        self, values: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Url:
        for name, value in {**(values or {}), **kwargs}.items():
            self.set_query_param(name, value)
        return self

    def append_query_param(self, name: str, value: Any) -> Url:
        """Add a query parameter without touching existing ones of that name."""
        if value is None:
            return self
        if _is_multi(value):
            self.query_params.extend((name, _query_value(v)) for v in value)
        else:
            self.query_params.append((name, _query_value(value)))
        return self

    def remove_query_param(self, name: str) -> Url:
        self.query_params = [(k, v) for k, v in self.query_params if k != name]
        return self

    def remove_query_params(self, *names: str) -> Url:
        if not names:
            self.query_params = []
        for name in names:
            self.remove_query_param(name)
        return self

    # Fragment and misc

    def set_fragment(self, fragment: str) -> Url:
        self.fragment = fragment.lstrip("#")
        return self

    def remove_fragment(self) -> Url:
        self.fragment = ""
        return self

    def reset_to_root(self) -> Url:
        self.path = ""
        self.query_params = []
        self.fragment = ""
        return self

    def clone(self) -> Url:
        return Url(str(self))

    def to_httpx(self) -> httpx.URL:
        return httpx.URL(str(self))

    @staticmethod
    def combine(*parts: str) -> str:
        """Join URL parts with exactly one ``/`` between them.

        Parts starting with ``?`` or ``#`` are appended as-is.
        """
        result = ""
        for part in parts:
            if not part:
                continue
            if not result:
                result = part
            elif part.startswith(("?", "#")):
                result += part
            else:
                result = f"{result.rstrip('/')}/{part.lstrip('/')}"
        return result

    @staticmethod
    def encode(text: str, encode_space_as_plus: bool = False) -> str:
        encoded = quote(text, safe="")
        return encoded.replace("%20", "+") if encode_space_as_plus else encoded

    @staticmethod
    def decode(text: str, interpret_plus_as_space: bool = False) -> str:
        return unquote_plus(text) if interpret_plus_as_space else unquote(text)

    def __str__(self) -> str:
        text = self.root + self.path
        if self.query_params:
            text += "?" + self.query
        if self.fragment:
            text += "#" + quote(self.fragment, safe=_QUERY_SAFE + "?")
        return text

    def __repr__(self) -> str:
        return f"Url({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Url | str):
            return str(self) == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(str(self))
