"""Hook execution for a single call.

Handlers are gathered from every settings level that applies to the call,
broadest first (global, client, request, test). For each event the sync
handlers run first in level order, followed by the async handlers in level
order.
"""

from __future__ import annotations

import inspect
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from .events import HookEvent
from .registry import HookRegistry, RegisteredHandler


if TYPE_CHECKING:
    from fluenthttp.core.call import HttpCall


class HookManager:
    """Runs the handlers of several registries for one call.

    Unlike observer-style hooks, handler exceptions are not swallowed: a
    handler that raises aborts the call the same way a transport failure
    would.
    """

    def __init__(self, registries: Sequence[HookRegistry]):
        """Initialize the hook manager.

        Args:
            registries: Registries ordered broadest level first
        """
        self._registries = list(registries)
        self._logger = structlog.get_logger(__name__)

    def _ordered_handlers(self, event: HookEvent) -> list[RegisteredHandler]:
        handlers = [h for r in self._registries for h in r.get_handlers(event)]
        return [h for h in handlers if not h.is_async] + [
            h for h in handlers if h.is_async
        ]

    def has_handlers(self, event: HookEvent) -> bool:
        return any(r.get_handlers(event) for r in self._registries)

    async def emit(self, event: HookEvent, call: HttpCall) -> None:
        """Invoke every handler registered for ``event`` with ``call``.

        Args:
            event: The lifecycle event
            call: The call record passed to each handler
        """
        handlers = self._ordered_handlers(event)
        if not handlers:
            return

        for entry in handlers:
            self._logger.debug(
                "hook_invoked",
                hook_event=event.value,
                handler=entry.name,
                is_async=entry.is_async,
                category="hooks",
            )
            result = entry.handler(call)
            if inspect.isawaitable(result):
                await result
