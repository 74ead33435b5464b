"""Per-level registry of call lifecycle handlers"""

from __future__ import annotations

import inspect
import threading
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from .events import HookEvent


if TYPE_CHECKING:
    from fluenthttp.core.call import HttpCall


Handler = Callable[["HttpCall"], Awaitable[Any] | Any]


@dataclass(frozen=True, slots=True)
class RegisteredHandler:
    handler: Handler
    is_async: bool

    @property
    def name(self) -> str:
        return getattr(self.handler, "__qualname__", repr(self.handler))


class HookRegistry:
    """Handlers registered at one level (global, client, request or test)"""

    def __init__(self) -> None:
        self._handlers: dict[HookEvent, list[RegisteredHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._logger = structlog.get_logger(__name__)

    def register(self, event: HookEvent, handler: Handler) -> None:
        """Register a handler; coroutine functions become async variants"""
        if not callable(handler):
            from fluenthttp.exceptions import ConfigurationError

            raise ConfigurationError(
                f"Handler for {event.value} must be callable",
                details={"event": event.value},
            )
        entry = RegisteredHandler(
            handler=handler, is_async=inspect.iscoroutinefunction(handler)
        )
        with self._lock:
            self._handlers[event].append(entry)
        self._logger.debug(
            "hook_registered", hook_event=event.value, handler=entry.name, category="hooks"
        )

    def unregister(self, event: HookEvent, handler: Handler) -> None:
        with self._lock:
            self._handlers[event] = [
                h for h in self._handlers[event] if h.handler is not handler
            ]

    def clear(self, event: HookEvent | None = None) -> None:
        with self._lock:
            if event is None:
                self._handlers.clear()
            else:
                self._handlers.pop(event, None)

    def get_handlers(self, event: HookEvent) -> list[RegisteredHandler]:
        """Snapshot of handlers for an event"""
        with self._lock:
            return list(self._handlers.get(event, []))

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._handlers.values())
