"""Serializers used for request bodies and response deserialization.

Any object with ``serialize(obj) -> str`` and ``deserialize(text, model=None)``
can be installed through the ``json_serializer`` and
``url_encoded_serializer`` settings.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel, TypeAdapter


@runtime_checkable
class Serializer(Protocol):
    """Serializer contract."""

    def serialize(self, obj: Any) -> str: ...

    def deserialize(self, text: str | bytes, model: Any = None) -> Any: ...


class JsonSerializer:
    """JSON serializer with pydantic model support.

    ``serialize`` accepts pydantic models, plain containers and anything
    pydantic knows how to dump. ``deserialize`` returns plain Python data, or
    validates into ``model`` when one is given.
    """

    def __init__(self, *, indent: int | None = None, by_alias: bool = True) -> None:
        self.indent = indent
        self.by_alias = by_alias

    def serialize(self, obj: Any) -> str:
        if isinstance(obj, BaseModel):
            return obj.model_dump_json(by_alias=self.by_alias, indent=self.indent)
        try:
            return json.dumps(obj, indent=self.indent)
        except TypeError:
            data = TypeAdapter(type(obj)).dump_python(
                obj, mode="json", by_alias=self.by_alias
            )
            return json.dumps(data, indent=self.indent)

    def deserialize(self, text: str | bytes, model: Any = None) -> Any:
        if model is None:
            if not text:
                return None
            return json.loads(text)
        return TypeAdapter(model).validate_json(text)


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class UrlEncodedSerializer:
    """``application/x-www-form-urlencoded`` serializer.

    Mappings and pydantic models become ``name=value`` pairs; ``None`` values
    are skipped and iterables produce repeated names.
    """

    def serialize(self, obj: Any) -> str:
        if isinstance(obj, str):
            return obj
        if isinstance(obj, BaseModel):
            obj = obj.model_dump(mode="json", by_alias=True)
        if not isinstance(obj, Mapping):
            raise TypeError(
                f"Cannot url-encode object of type {type(obj).__name__}"
            )
        pairs: list[tuple[str, str]] = []
        for name, value in obj.items():
            if value is None:
                continue
            if isinstance(value, Iterable) and not isinstance(value, str | bytes):
                pairs.extend((name, _form_value(v)) for v in value if v is not None)
            else:
                pairs.append((name, _form_value(value)))
        return urlencode(pairs)

    def deserialize(self, text: str | bytes, model: Any = None) -> Any:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        data = dict(parse_qsl(text, keep_blank_values=True))
        if model is None:
            return data
        return TypeAdapter(model).validate_python(data)


def validate_serializer(value: Any, option: str) -> Any:
    """Fail fast if ``value`` does not honour the serializer contract."""
    from fluenthttp.exceptions import ConfigurationError

    if not isinstance(value, Serializer):
        raise ConfigurationError(
            f"'{option}' must provide serialize() and deserialize()",
            details={"option": option, "type": type(value).__name__},
        )
    return value
