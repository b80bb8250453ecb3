"""
Lifecycle hooks for cascadeorm entities.
"""

from .dispatcher import (
    AFTER_COMMIT,
    AFTER_DELETE,
    AFTER_SAVE,
    BEFORE_DELETE,
    BEFORE_SAVE,
    EVENTS,
    HookDispatcher,
)

__all__ = [
    "AFTER_COMMIT",
    "AFTER_DELETE",
    "AFTER_SAVE",
    "BEFORE_DELETE",
    "BEFORE_SAVE",
    "EVENTS",
    "HookDispatcher",
]
