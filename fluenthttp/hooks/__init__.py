"""Call lifecycle hooks.

Key components:
- HookEvent: Enumeration of lifecycle events
- HookRegistry: Handlers registered at one settings level
- HookManager: Runs handlers across levels for a call
"""

from .events import HookEvent
from .manager import HookManager
from .registry import Handler, HookRegistry


__all__ = ["Handler", "HookEvent", "HookManager", "HookRegistry"]
