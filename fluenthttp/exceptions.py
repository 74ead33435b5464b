"""Custom exceptions for fluenthttp."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from fluenthttp.core.call import HttpCall


class FluentHttpError(Exception):
    """Base exception for fluenthttp errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(FluentHttpError, ValueError):
    """Raised when configuration input is malformed or conflicting."""


class StatusRangeError(ConfigurationError):
    """Raised when an allowed-status-range string cannot be parsed."""

    def __init__(self, text: str, reason: str) -> None:
        super().__init__(
            f"Invalid HTTP status range {text!r}: {reason}",
            details={"range": text, "reason": reason},
        )
        self.text = text
        self.reason = reason


class ClientNotFoundError(FluentHttpError, KeyError):
    """Raised when a named client is not present in a client cache."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No client named '{name}' is cached", details={"name": name})
        self.name = name

    def __str__(self) -> str:
        return self.message


class HttpCallError(FluentHttpError):
    """An HTTP call failed.

    Carries the full call record so handlers can inspect the request, the
    response (if any) and timing.
    """

    def __init__(self, call: HttpCall, message: str | None = None) -> None:
        super().__init__(message or self._build_message(call))
        self.call = call

    @staticmethod
    def _build_message(call: HttpCall) -> str:
        target = f"{call.verb} {call.url}"
        if call.response is not None:
            return f"Call failed with status code {call.response.status_code}: {target}"
        return f"Call failed: {target}"

    @property
    def status_code(self) -> int | None:
        """Status code of the response, or ``None`` when none was received."""
        if self.call.response is None:
            return None
        return self.call.response.status_code

    def get_response_string(self) -> str | None:
        if self.call.response is None:
            return None
        return self.call.response.get_string()

    def get_response_bytes(self) -> bytes | None:
        if self.call.response is None:
            return None
        return self.call.response.get_bytes()

    def get_response_json(self, model: Any = None) -> Any:
        """Deserialize the error response body, e.g. an API error document.

        Returns ``None`` when no response was received.
        """
        if self.call.response is None:
            return None
        return self.call.response.get_json(model)


class HttpNoResponseError(HttpCallError):
    """The call produced no response (connection failure, DNS failure, ...)."""

    @staticmethod
    def _build_message(call: HttpCall) -> str:
        return f"Call failed, no response received: {call.verb} {call.url}"


class HttpTimeoutError(HttpNoResponseError):
    """The call timed out before a response was received."""

    @staticmethod
    def _build_message(call: HttpCall) -> str:
        return f"Call timed out: {call.verb} {call.url}"


class HttpParsingError(HttpCallError):
    """The response was received but its body could not be deserialized."""

    def __init__(self, call: HttpCall, expected_format: str) -> None:
        super().__init__(
            call,
            f"Response could not be deserialized to {expected_format}: "
            f"{call.verb} {call.url}",
        )
        self.expected_format = expected_format


class HttpTestAssertionError(AssertionError):
    """An ``HttpTest`` call-log assertion failed."""
