"""Event definitions for the hook system."""

from enum import Enum


class HookEvent(str, Enum):
    """Points in the call lifecycle where handlers are invoked"""

    BEFORE_CALL = "call.before"
    AFTER_CALL = "call.after"
    ON_ERROR = "call.error"
    ON_REDIRECT = "call.redirect"
