"""
Hook dispatcher coordinating lifecycle events.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Type

HookHandler = Callable[..., None]

BEFORE_SAVE = "before_save"
AFTER_SAVE = "after_save"
BEFORE_DELETE = "before_delete"
AFTER_DELETE = "after_delete"
AFTER_COMMIT = "after_commit"

EVENTS = (BEFORE_SAVE, AFTER_SAVE, BEFORE_DELETE, AFTER_DELETE, AFTER_COMMIT)


class HookDispatcher:
    """
    Maintains global and per-model hook handlers.

    A handler registered for a model also fires for instances of its
    subclasses.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._model_handlers: Dict[type, Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(self, event: str, handler: HookHandler, *, model: Optional[Type] = None) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown hook event '{event}'. Expected one of {EVENTS}.")
        if model is not None:
            self._model_handlers[model][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def unregister(self, event: str, handler: HookHandler, *, model: Optional[Type] = None) -> None:
        handlers = self._model_handlers[model][event] if model is not None else self._global_handlers[event]
        if handler in handlers:
            handlers.remove(handler)

    def fire(self, event: str, instance: Any, **context: Any) -> None:
        handlers = list(self._global_handlers.get(event, []))
        if instance is not None:
            for klass in type(instance).__mro__:
                model_handlers = self._model_handlers.get(klass)
                if model_handlers:
                    handlers.extend(model_handlers.get(event, []))
        for handler in handlers:
            handler(instance, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._model_handlers.clear()
