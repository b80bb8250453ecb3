"""Identifier generation strategies.

A generator is either *pre-insert* (the identifier is known when the entity
is saved, so it can be registered in the identity map straight away) or
*post-insert* (the database assigns it, so dependent rows can only be written
after the insert has run).
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Tuple

from .errors import MissingIdentityError

if TYPE_CHECKING:
    from .metadata import MetadataProvider


class IdGenerator(ABC):
    """Strategy producing identifier values for new entities."""

    is_post_insert = False

    @abstractmethod
    def generate(self, metadata: "MetadataProvider", entity: Any) -> Tuple[Any, ...] | None:
        """Return the identifier to assign, or None when storage assigns it."""


class AssignedGenerator(IdGenerator):
    """The application sets the identifier itself."""

    def generate(self, metadata: "MetadataProvider", entity: Any) -> Tuple[Any, ...]:
        values = metadata.identifier_values(entity)
        if not values or any(value is None for value in values):
            raise MissingIdentityError(
                "Entity uses an application-assigned identifier that has not been set",
                entity_type=type(entity),
                field=", ".join(metadata.identifier_fields(type(entity))),
            )
        return values


class IdentityGenerator(IdGenerator):
    """Auto-increment column; the value is read back after the insert."""

    is_post_insert = True

    def generate(self, metadata: "MetadataProvider", entity: Any) -> None:
        return None


class UUIDGenerator(IdGenerator):
    """Random UUIDv4 text assigned at save time.

    A value that is already set is returned unchanged. The unit of work only
    asks for identifiers of entities that have none (an instance arriving
    with a generated identifier is treated as detached), so that branch
    serves direct callers.
    """

    def generate(self, metadata: "MetadataProvider", entity: Any) -> Tuple[str]:
        current = metadata.identifier_values(entity)
        if current and current[0] is not None:
            return current
        return (str(uuid.uuid4()),)
