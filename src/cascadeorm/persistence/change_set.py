"""
Change set computation: compares entities with their snapshots.

For each candidate the computer produces ``{field: (old, new)}`` for the
columns that changed and a :class:`CollectionUpdate` for every owning
join-table collection whose membership changed. Walking associations also
discovers new entities reachable through cascading associations and
schedules them for insertion.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Deque, Dict, Hashable, Iterable, List, Optional

from ..core.relations import CASCADE_SAVE
from ..validation import ValidationError
from .errors import InvalidFieldValueError, InvalidStateError
from .identity_map import identity_hash
from .metadata import Association, MetadataProvider
from .states import EntityState

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


@dataclass
class CollectionUpdate:
    owner: Any
    association: Association
    added: List[Any] = field(default_factory=list)
    removed: List[Any] = field(default_factory=list)


def iter_targets(metadata: MetadataProvider, value: Any) -> List[Any]:
    """
    Entities held by an association value; raw foreign key values are skipped.
    """
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set)) else (value,)
    return [item for item in items if metadata.is_entity(item)]


class ChangeSetComputer:
    def __init__(self, unit_of_work: "UnitOfWork") -> None:
        self.uow = unit_of_work
        self.metadata = unit_of_work.metadata

    def current_data(self, entity: Any, *, include_collections: bool = True) -> Dict[str, Any]:
        """
        Values that are persisted for ``entity``: scalar columns, owning to-one
        references and, optionally, owning join-table collections.
        """
        model = type(entity)
        data = {name: self.metadata.get_value(entity, name) for name in self.metadata.field_names(model)}
        for association in self.metadata.associations(model):
            if association.is_owning_to_one:
                data[association.name] = self.metadata.get_value(entity, association.name)
            elif association.uses_join_table and include_collections:
                data[association.name] = tuple(self.metadata.get_value(entity, association.name) or ())
        return data

    def compute(self, entities: Optional[Iterable[Any]] = None) -> None:
        uow = self.uow
        candidates = list(entities) if entities is not None else uow._change_set_candidates()
        worklist: Deque[Any] = deque(candidates)
        seen = set()
        while worklist:
            entity = worklist.popleft()
            if id(entity) in seen:
                continue
            seen.add(id(entity))
            if not uow.is_tracked(entity) or uow.is_scheduled_for_delete(entity):
                continue
            self._compute_entity(entity, worklist)

    # ------------------------------------------------------------------ #
    def _compute_entity(self, entity: Any, worklist: Deque[Any]) -> None:
        uow = self.uow
        oid = id(entity)
        model = type(entity)
        associations = {association.name: association for association in self.metadata.associations(model)}
        actual = self.current_data(entity)
        inserting = uow.is_scheduled_for_insert(entity)
        original: Dict[str, Any] = {} if inserting else uow.snapshots.get(entity)

        if not inserting:
            for name in self.metadata.identifier_fields(model):
                if name in original and self._values_differ(original[name], actual.get(name)):
                    raise InvalidFieldValueError(
                        "Identifier of a managed entity cannot change",
                        entity_type=model,
                        identifier=original[name],
                        field=name,
                    )

        change_set = {}
        for name, value in actual.items():
            association = associations.get(name)
            if association is not None and association.is_collection:
                continue
            old = original.get(name)
            if inserting:
                change_set[name] = (None, value)
            elif association is not None:
                if self._reference_key(old, association) != self._reference_key(value, association):
                    change_set[name] = (old, value)
            elif self._values_differ(old, value):
                change_set[name] = (old, value)

        if change_set:
            self.validate(entity)
            uow._change_sets[oid] = change_set
            if not inserting:
                uow._schedule_update(entity)

        for association in associations.values():
            if association.uses_join_table:
                self._compute_collection_update(entity, association, actual[association.name], original)

        if inserting:
            uow.snapshots.capture(entity, actual)

        for association in associations.values():
            value = self.metadata.get_value(entity, association.name)
            self._compute_association_changes(entity, association, value, worklist)

    def _compute_collection_update(
        self, owner: Any, association: Association, current: Iterable[Any], original: Dict[str, Any]
    ) -> None:
        previous = original.get(association.name) or ()
        current_ids = {id(item) for item in current}
        previous_ids = {id(item) for item in previous}
        added = [item for item in current if id(item) not in previous_ids]
        removed = [item for item in previous if id(item) not in current_ids]
        if added or removed:
            self.uow._collection_updates.append(CollectionUpdate(owner, association, added, removed))

    def _compute_association_changes(
        self, entity: Any, association: Association, value: Any, worklist: Deque[Any]
    ) -> None:
        uow = self.uow
        for target in iter_targets(self.metadata, value):
            state = uow.get_entity_state(target)
            if state is EntityState.NEW:
                if association.cascades(CASCADE_SAVE):
                    uow._persist_new(target)
                    worklist.append(target)
            elif state is EntityState.DELETED and association.owning_side:
                raise InvalidStateError(
                    f"'{association.name}' references a deleted {type(target).__name__} entity",
                    entity_type=type(entity),
                    identifier=uow.get_entity_identifier(entity),
                    field=association.name,
                )

    def validate(self, entity: Any) -> None:
        try:
            self.metadata.validate(entity)
        except ValidationError as exc:
            fields = exc.fields
            raise InvalidFieldValueError(
                f"Invalid field value: {exc}",
                errors=exc.errors,
                entity_type=type(entity),
                identifier=self.uow.get_entity_identifier(entity),
                field=fields[0] if fields else None,
            ) from exc

    def is_modified(self, entity: Any, name: str, original: Dict[str, Any]) -> bool:
        """
        Whether ``name`` on ``entity`` differs from the value in ``original``.
        """
        if name not in original:
            return False
        value = self.metadata.get_value(entity, name)
        for association in self.metadata.associations(type(entity)):
            if association.name == name:
                return self._reference_key(original[name], association) != self._reference_key(value, association)
        return self._values_differ(original[name], value)

    def _values_differ(self, old: Any, new: Any) -> bool:
        if old is None or new is None:
            return (old is None) != (new is None)
        if self.metadata.is_entity(old) or self.metadata.is_entity(new):
            return old is not new
        return bool(old != new)

    def _reference_key(self, value: Any, association: Association) -> Optional[Hashable]:
        # Entity references compare by identity; an identified entity and the
        # raw key it was hydrated from compare equal.
        if value is None:
            return None
        if self.metadata.is_entity(value):
            id_hash = identity_hash(self.metadata.identifier_values(value))
            if id_hash:
                return (self.metadata.root_type(type(value)), id_hash)
            return ("instance", id(value))
        return (self.metadata.root_type(association.target), identity_hash((value,)))
