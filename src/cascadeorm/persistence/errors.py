"""
Error taxonomy raised by the unit of work and its persisters.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


def _type_name(entity_type: Any) -> Optional[str]:
    if entity_type is None:
        return None
    if isinstance(entity_type, str):
        return entity_type
    if isinstance(entity_type, type):
        return entity_type.__name__
    return type(entity_type).__name__


class ConfigurationError(RuntimeError):
    """Raised when unit of work configuration values are invalid."""


class UnitOfWorkError(RuntimeError):
    """
    Base class for persistence errors. The entity type, identifier and field
    are kept as attributes and rendered into the message when known.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_type: Any = None,
        identifier: Any = None,
        field: Optional[str] = None,
    ) -> None:
        self.entity_type = _type_name(entity_type)
        self.identifier = identifier
        self.field = field
        self.detail = message
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        context = []
        if self.entity_type:
            context.append(f"entity={self.entity_type}")
        if self.identifier is not None:
            context.append(f"id={self.identifier!r}")
        if self.field:
            context.append(f"field={self.field}")
        if not context:
            return self.detail
        return f"{self.detail} ({', '.join(context)})"


class InvalidStateError(UnitOfWorkError):
    """The operation is illegal for the entity's lifecycle state or for the unit of work state."""


class DetachedEntityError(InvalidStateError):
    """A persistence operation was attempted on an entity that is no longer managed."""


class MissingIdentityError(UnitOfWorkError):
    """The operation required an identifier that has not been assigned."""


class DuplicateIdentityError(UnitOfWorkError):
    """Registration would create a second live instance for one identity."""


class InvalidFieldValueError(UnitOfWorkError):
    """A field value failed validation while computing change sets."""

    def __init__(self, message: str, *, errors: Optional[Mapping[str, List[str]]] = None, **kwargs: Any) -> None:
        self.errors: Dict[str, List[str]] = {key: list(value) for key, value in (errors or {}).items()}
        super().__init__(message, **kwargs)


class StorageError(UnitOfWorkError):
    """Wraps a failure reported by a persister or the storage driver."""
