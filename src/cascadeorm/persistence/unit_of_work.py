"""
Unit of Work tracking entity lifecycle and writing pending changes.

Entities are tracked by object identity. ``save`` and ``delete`` only
schedule work; ``commit`` computes change sets, orders the writes so that
referenced rows exist before the rows pointing at them, hands each write to
the matching persister and finally re-captures snapshots. Entities whose
identifier is assigned by the database are inserted as soon as they are
saved so the identifier is available to the caller right away.
"""

from __future__ import annotations

import weakref
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..core.relations import CASCADE_DELETE, CASCADE_SAVE
from ..hooks import AFTER_DELETE, AFTER_SAVE, BEFORE_DELETE, BEFORE_SAVE, HookDispatcher
from ..utils import get_logger, time_call
from .change_set import ChangeSetComputer, CollectionUpdate, iter_targets
from .commit_order import CommitOrderCalculator
from .config import UnitOfWorkConfig
from .errors import (
    DetachedEntityError,
    DuplicateIdentityError,
    InvalidStateError,
    MissingIdentityError,
    StorageError,
)
from .identity_map import IdentityMap, identity_hash
from .metadata import Association, MetadataProvider, ModelMetadataProvider
from .snapshots import SnapshotStore
from .states import CommitState, EntityState


class UnitOfWork:
    """
    Tracks new, dirty and deleted entities and writes them on ``commit``.

    ``persisters`` is a dispatcher exposing ``entity_persister(model)`` and
    ``collection_persister(association)``.
    """

    def __init__(
        self,
        persisters: Any,
        *,
        metadata: Optional[MetadataProvider] = None,
        config: Optional[UnitOfWorkConfig] = None,
        hooks: Optional[HookDispatcher] = None,
    ) -> None:
        self.persisters = persisters
        if metadata is None:
            metadata = getattr(persisters, "metadata", None) or ModelMetadataProvider()
        self.metadata = metadata
        self.config = config or UnitOfWorkConfig()
        self.hooks = hooks or HookDispatcher()
        self.identity_map = IdentityMap(self.metadata)
        self.snapshots = SnapshotStore()
        self.logger = get_logger("persistence.unit_of_work")

        # dict[id(entity)] = entity for every managed or delete-scheduled entity
        self._objects: Dict[int, Any] = {}
        self._entity_states: Dict[int, EntityState] = {}
        self._detached: "weakref.WeakValueDictionary[int, Any]" = weakref.WeakValueDictionary()
        self._removed: "weakref.WeakValueDictionary[int, Any]" = weakref.WeakValueDictionary()

        self._new: Dict[int, Any] = {}
        self._dirty: Dict[int, Any] = {}
        self._deleted: Dict[int, Any] = {}
        self._dirty_check: Dict[int, Any] = {}

        self._change_sets: Dict[int, Dict[str, Tuple[Any, Any]]] = {}
        self._collection_updates: List[CollectionUpdate] = []
        self._extra_updates: List[Tuple[Any, Dict[str, Tuple[Any, Any]]]] = []
        self._pending: Set[int] = set()
        self._written: Dict[int, Tuple[Any, Dict[str, Any]]] = {}

        self._commit_order = CommitOrderCalculator()
        self._commit_state = CommitState.IDLE
        self._computer = ChangeSetComputer(self)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    @property
    def commit_state(self) -> CommitState:
        return self._commit_state

    def get_entity_state(self, entity: Any) -> EntityState:
        oid = id(entity)
        state = self._entity_states.get(oid)
        if state is not None:
            return state
        if oid in self._removed:
            return EntityState.DELETED
        if oid in self._detached:
            return EntityState.DETACHED
        model = type(entity)
        if not self.metadata.is_identifier_assigned_by_application(model) and self._has_identifier(entity):
            return EntityState.DETACHED
        return EntityState.NEW

    def is_tracked(self, entity: Any) -> bool:
        return id(entity) in self._entity_states

    def get_entity_identifier(self, entity: Any) -> Optional[Tuple[Any, ...]]:
        values = tuple(self.metadata.identifier_values(entity))
        if not identity_hash(values):
            return None
        return values

    def _has_identifier(self, entity: Any) -> bool:
        return bool(identity_hash(self.metadata.identifier_values(entity)))

    def _check_usable(self) -> None:
        if self._commit_state is CommitState.FAILED:
            raise InvalidStateError("Unit of work failed during commit; call reset() before reusing it")

    def _enter(self, state: CommitState) -> None:
        self.logger.debug("Unit of work %s -> %s", self._commit_state.value, state.value)
        self._commit_state = state

    def _error_context(self, entity: Any) -> Dict[str, Any]:
        return {"entity_type": type(entity), "identifier": self.get_entity_identifier(entity)}

    # ------------------------------------------------------------------ #
    # Tracking primitives
    # ------------------------------------------------------------------ #
    def _track(self, entity: Any, state: EntityState) -> None:
        oid = id(entity)
        self._objects[oid] = entity
        self._entity_states[oid] = state
        self._detached.pop(oid, None)
        self._removed.pop(oid, None)

    def _forget(self, entity: Any) -> None:
        oid = id(entity)
        self._objects.pop(oid, None)
        self._entity_states.pop(oid, None)
        for schedule in (self._new, self._dirty, self._deleted, self._dirty_check):
            schedule.pop(oid, None)
        self._change_sets.pop(oid, None)
        self.identity_map.remove(entity)
        self.snapshots.remove(entity)

    def add_to_identity_map(self, entity: Any) -> bool:
        return self.identity_map.register(entity)

    def _add_to_identity_map(self, entity: Any) -> None:
        if self.identity_map.register(entity) or self.identity_map.is_registered(entity):
            return
        if not self._has_identifier(entity):
            raise MissingIdentityError(
                "Entity has no identifier to register", entity_type=type(entity)
            )
        raise DuplicateIdentityError(
            "Another instance is already registered with this identity", **self._error_context(entity)
        )

    def _assign_identifier(self, entity: Any, values: Sequence[Any]) -> None:
        for name, value in zip(self.metadata.identifier_fields(type(entity)), values):
            self.metadata.set_value(entity, name, value)

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register_new(self, entity: Any) -> None:
        self._check_usable()
        oid = id(entity)
        if oid in self._dirty or oid in self._deleted:
            raise InvalidStateError(
                "Dirty or delete-scheduled entity cannot be registered as new", **self._error_context(entity)
            )
        if oid in self._new:
            raise InvalidStateError("Entity is already registered as new", **self._error_context(entity))
        if oid in self._detached:
            raise DetachedEntityError("Detached entity cannot be registered as new", **self._error_context(entity))
        if oid in self._entity_states or oid in self._removed:
            raise InvalidStateError("Only new entities can be registered as new", **self._error_context(entity))
        if self._has_identifier(entity):
            self._add_to_identity_map(entity)
        self._track(entity, EntityState.MANAGED)
        self._new[oid] = entity

    def register_dirty(self, entity: Any) -> None:
        self._check_usable()
        oid = id(entity)
        if not self._has_identifier(entity):
            raise MissingIdentityError(
                "Entity without identifier cannot be registered as dirty", entity_type=type(entity)
            )
        if oid in self._deleted or oid in self._removed:
            raise InvalidStateError(
                "Deleted entity cannot be registered as dirty", **self._error_context(entity)
            )
        if oid in self._new or oid in self._dirty:
            return
        if oid in self._detached:
            raise DetachedEntityError(
                "Detached entity cannot be registered as dirty", **self._error_context(entity)
            )
        if oid not in self._entity_states:
            self._add_to_identity_map(entity)
            self._track(entity, EntityState.MANAGED)
        self._dirty[oid] = entity

    def register_deleted(self, entity: Any) -> None:
        self._check_usable()
        oid = id(entity)
        if oid in self._new:
            # Never written: forgetting it is enough.
            self._forget(entity)
            return
        if not self.identity_map.is_registered(entity):
            return
        self.identity_map.remove(entity)
        self._dirty.pop(oid, None)
        self._dirty_check.pop(oid, None)
        self._change_sets.pop(oid, None)
        self._entity_states[oid] = EntityState.DELETED
        self._deleted.setdefault(oid, entity)

    def schedule_for_dirty_check(self, entity: Any) -> None:
        if self._entity_states.get(id(entity)) is not EntityState.MANAGED:
            raise InvalidStateError(
                "Only managed entities can be scheduled for dirty checking", **self._error_context(entity)
            )
        self._dirty_check[id(entity)] = entity

    def _schedule_update(self, entity: Any) -> None:
        oid = id(entity)
        if oid not in self._new:
            self._dirty.setdefault(oid, entity)

    # ------------------------------------------------------------------ #
    # save / delete / detach
    # ------------------------------------------------------------------ #
    def save(self, entity: Any) -> None:
        """
        Make ``entity`` managed, following associations that cascade saves.
        """
        self._check_usable()
        insert_now: Dict[int, Any] = {}
        self._do_save(entity, set(), insert_now)
        if insert_now:
            self._execute_immediate_inserts(insert_now)

    def _do_save(self, entity: Any, visited: Set[int], insert_now: Dict[int, Any]) -> None:
        oid = id(entity)
        if oid in visited:
            return
        visited.add(oid)

        state = self.get_entity_state(entity)
        if state is EntityState.MANAGED:
            if not self.config.automatic_dirty_checking and oid not in self._new:
                self._dirty_check[oid] = entity
        elif state is EntityState.NEW:
            self._persist_new(entity, insert_now)
        elif state is EntityState.DELETED:
            if oid not in self._deleted:
                raise InvalidStateError("Entity has already been deleted", **self._error_context(entity))
            # Saving an entity scheduled for deletion cancels the deletion.
            del self._deleted[oid]
            self._entity_states[oid] = EntityState.MANAGED
            self._add_to_identity_map(entity)
        else:
            raise DetachedEntityError("Cannot save a detached entity", **self._error_context(entity))

        self._cascade(entity, CASCADE_SAVE, lambda target: self._do_save(target, visited, insert_now))

    def _persist_new(self, entity: Any, insert_now: Optional[Dict[int, Any]] = None) -> None:
        generator = self.metadata.id_generator(type(entity))
        if not generator.is_post_insert:
            self._assign_identifier(entity, generator.generate(self.metadata, entity))
        elif insert_now is not None:
            insert_now[id(entity)] = entity
        self.register_new(entity)

    def delete(self, entity: Any) -> None:
        """
        Schedule ``entity`` for removal, following associations that cascade deletes.
        """
        self._check_usable()
        self._do_delete(entity, set())

    def _do_delete(self, entity: Any, visited: Set[int]) -> None:
        oid = id(entity)
        if oid in visited:
            return
        visited.add(oid)

        state = self.get_entity_state(entity)
        if state is EntityState.NEW or state is EntityState.DELETED:
            return
        if state is EntityState.DETACHED:
            raise DetachedEntityError("Cannot delete a detached entity", **self._error_context(entity))
        self.register_deleted(entity)
        self._cascade(entity, CASCADE_DELETE, lambda target: self._do_delete(target, visited))

    def _cascade(self, entity: Any, operation: str, visit: Any) -> None:
        for association in self.metadata.associations(type(entity)):
            if not association.cascades(operation):
                continue
            for target in iter_targets(self.metadata, self.metadata.get_value(entity, association.name)):
                visit(target)

    def detach(self, entity: Any) -> None:
        """
        Stop tracking ``entity``; further save or delete calls raise DetachedEntityError.
        """
        self._check_usable()
        self._forget(entity)
        self._detached[id(entity)] = entity

    # ------------------------------------------------------------------ #
    # Commit
    # ------------------------------------------------------------------ #
    def compute_change_sets(self, entities: Optional[Iterable[Any]] = None) -> None:
        self._check_usable()
        self._change_sets.clear()
        self._collection_updates = []
        self._computer.compute(entities)

    def _change_set_candidates(self) -> List[Any]:
        candidates = list(self._new.values())
        if self.config.automatic_dirty_checking:
            candidates.extend(entity for entity in self.identity_map.values() if id(entity) not in self._new)
        else:
            candidates.extend(self._dirty_check.values())
        candidates.extend(self._dirty.values())
        return candidates

    def commit(self) -> None:
        self._check_usable()
        try:
            with time_call("unit_of_work.commit", self.logger, threshold_ms=self.config.slow_query_ms):
                self._run_commit()
        except Exception as exc:
            phase = self._commit_state
            self._commit_state = CommitState.FAILED
            self.logger.error(
                "Commit failed during %s (entity=%s, id=%s): %s",
                phase.value,
                getattr(exc, "entity_type", None),
                getattr(exc, "identifier", None),
                exc,
            )
            raise

    def _run_commit(self) -> None:
        self._enter(CommitState.COMPUTING)
        self._change_sets.clear()
        self._collection_updates = []
        self._computer.compute()
        if not (self._new or self._change_sets or self._deleted or self._collection_updates):
            self._finish()
            return

        self._enter(CommitState.ORDERING)
        order = self._get_commit_order(self._scheduled_types())
        self.logger.debug("Commit order: %s", ", ".join(_node_name(key) for key in order))

        self._enter(CommitState.WRITING)
        self._pending = set(self._new)
        for key in order:
            if isinstance(key, type):
                self._execute_inserts(key)
        self._execute_extra_updates()
        for key in order:
            if isinstance(key, type):
                self._execute_updates(key)
        for key in order:
            if isinstance(key, Association):
                self._execute_collection_updates(key)
        for key in reversed(order):
            if isinstance(key, Association):
                self._execute_join_deletions(key)
            else:
                self._execute_deletions(key)

        self._enter(CommitState.SNAPSHOTTING)
        self._apply_written_snapshots()
        self._finish()

    def _finish(self) -> None:
        for schedule in (self._new, self._dirty, self._deleted, self._dirty_check, self._change_sets):
            schedule.clear()
        self._collection_updates = []
        self._extra_updates = []
        self._pending = set()
        self._written = {}
        self._enter(CommitState.IDLE)

    # Ordering -------------------------------------------------------------
    def _scheduled_types(self) -> List[type]:
        types: Dict[type, None] = {}
        for schedule in (self._new, self._dirty, self._deleted):
            for entity in schedule.values():
                types.setdefault(type(entity), None)
        for update in self._collection_updates:
            types.setdefault(type(update.owner), None)
        return list(types)

    def _get_commit_order(self, types: Iterable[type]) -> List[Any]:
        calculator = self._commit_order
        wanted: Set[Any] = set()
        added = False
        for model in types:
            keys: List[Any] = [model]
            keys.extend(a for a in self.metadata.associations(model) if a.uses_join_table)
            for key in keys:
                wanted.add(key)
                if not calculator.has_node(key):
                    calculator.add_node(key, key)
                    added = True
        if added:
            self._link_nodes(calculator)
        return [key for key in calculator.get_order() if key in wanted]

    def _link_nodes(self, calculator: CommitOrderCalculator) -> None:
        nodes = calculator.nodes()
        classes = [key for key in nodes if isinstance(key, type)]
        for key in nodes:
            if isinstance(key, type):
                for association in self.metadata.associations(key):
                    if not association.is_owning_to_one:
                        continue
                    for other in classes:
                        if other is not key and issubclass(other, association.target):
                            calculator.add_dependency(other, key)
            else:
                for other in classes:
                    if issubclass(other, key.source) or issubclass(other, key.target):
                        calculator.add_dependency(other, key)

    def _order_instances(self, model: type, entities: List[Any]) -> List[Any]:
        """
        Order rows of one class so rows referenced through a self-referencing
        association come first.
        """
        references = [
            association
            for association in self.metadata.associations(model)
            if association.is_owning_to_one and issubclass(model, association.target)
        ]
        if not references or len(entities) < 2:
            return entities
        calculator = CommitOrderCalculator("instance_order")
        for entity in entities:
            calculator.add_node(id(entity), entity)
        for entity in entities:
            for association in references:
                target = self.metadata.get_value(entity, association.name)
                if self.metadata.is_entity(target) and calculator.has_node(id(target)):
                    calculator.add_dependency(id(target), id(entity))
        return [calculator.get_node(key) for key in calculator.get_order()]

    # Writing --------------------------------------------------------------
    def _record_written(self, entity: Any, data: Mapping[str, Any]) -> None:
        _entity, written = self._written.setdefault(id(entity), (entity, {}))
        written.update(data)

    def _apply_written_snapshots(self) -> None:
        for entity, data in self._written.values():
            if not self.is_tracked(entity):
                continue
            snapshot = dict(self.snapshots.get(entity))
            snapshot.update(data)
            self.snapshots.capture(entity, snapshot)
        self._written = {}

    def _check_reference(self, entity: Any, name: str, target: Any) -> None:
        if self.get_entity_state(target) is EntityState.NEW or not self._has_identifier(target):
            raise StorageError(
                f"'{name}' references an unsaved {type(target).__name__} entity; "
                "save it first or enable cascading saves",
                field=name,
                **self._error_context(entity),
            )

    def _insert_entity(self, entity: Any, persister: Any) -> None:
        deferred: Dict[str, Tuple[Any, Any]] = {}
        for association in self.metadata.associations(type(entity)):
            if not association.is_owning_to_one:
                continue
            target = self.metadata.get_value(entity, association.name)
            if not self.metadata.is_entity(target):
                continue
            if id(target) in self._pending:
                # Written as NULL now, set once the target row exists.
                deferred[association.name] = (None, target)
            else:
                self._check_reference(entity, association.name, target)

        self.hooks.fire(BEFORE_SAVE, entity, unit_of_work=self, created=True)
        generated = persister.insert(entity, deferred=tuple(deferred))
        self._pending.discard(id(entity))
        written = self._computer.current_data(entity, include_collections=False)
        if generated is not None:
            self._assign_identifier(entity, (generated,))
            written.update(zip(self.metadata.identifier_fields(type(entity)), (generated,)))
            self._add_to_identity_map(entity)
        written.update((name, None) for name in deferred)
        self._record_written(entity, written)
        if deferred:
            self._extra_updates.append((entity, deferred))
        self.hooks.fire(AFTER_SAVE, entity, unit_of_work=self, created=True)

    def _execute_inserts(self, model: type) -> None:
        entities = [entity for entity in self._new.values() if type(entity) is model]
        if not entities:
            return
        persister = self.persisters.entity_persister(model)
        for entity in self._order_instances(model, entities):
            self._insert_entity(entity, persister)

    def _execute_extra_updates(self) -> None:
        for entity, changes in self._extra_updates:
            for name, (_old, target) in changes.items():
                self._check_reference(entity, name, target)
            self.persisters.entity_persister(type(entity)).update(entity, changes)
            self._record_written(entity, {name: target for name, (_old, target) in changes.items()})
        self._extra_updates = []

    def _execute_updates(self, model: type) -> None:
        persister = None
        for oid, entity in list(self._dirty.items()):
            if type(entity) is not model:
                continue
            change_set = self._change_sets.get(oid)
            if not change_set:
                continue
            for association in self.metadata.associations(model):
                if association.is_owning_to_one and association.name in change_set:
                    target = change_set[association.name][1]
                    if self.metadata.is_entity(target):
                        self._check_reference(entity, association.name, target)
            if persister is None:
                persister = self.persisters.entity_persister(model)
            self.hooks.fire(BEFORE_SAVE, entity, unit_of_work=self, created=False)
            persister.update(entity, change_set)
            self._record_written(entity, {name: new for name, (_old, new) in change_set.items()})
            self.hooks.fire(AFTER_SAVE, entity, unit_of_work=self, created=False)

    def _execute_collection_updates(self, association: Association) -> None:
        updates = [update for update in self._collection_updates if update.association == association]
        if not updates:
            return
        persister = self.persisters.collection_persister(association)
        for update in updates:
            for target in update.added:
                self._check_reference(update.owner, association.name, target)
            if update.removed:
                persister.delete_rows(update.owner, update.removed)
            if update.added:
                persister.insert_rows(update.owner, update.added)
            previous = self.snapshots.get(update.owner).get(association.name) or ()
            removed = {id(item) for item in update.removed}
            kept = [item for item in previous if id(item) not in removed]
            kept_ids = {id(item) for item in kept}
            kept.extend(item for item in update.added if id(item) not in kept_ids)
            self._record_written(update.owner, {association.name: tuple(kept)})

    def _execute_join_deletions(self, association: Association) -> None:
        owners = [entity for entity in self._deleted.values() if isinstance(entity, association.source)]
        targets = [entity for entity in self._deleted.values() if isinstance(entity, association.target)]
        if not owners and not targets:
            return
        persister = self.persisters.collection_persister(association)
        for owner in owners:
            persister.delete_all(owner)
        for target in targets:
            persister.delete_all_referencing(target)

    def _execute_deletions(self, model: type) -> None:
        entities = [entity for entity in self._deleted.values() if type(entity) is model]
        if not entities:
            return
        persister = self.persisters.entity_persister(model)
        for entity in reversed(self._order_instances(model, entities)):
            self.hooks.fire(BEFORE_DELETE, entity, unit_of_work=self)
            persister.delete(entity)
            self._forget(entity)
            self._removed[id(entity)] = entity
            self.hooks.fire(AFTER_DELETE, entity, unit_of_work=self)

    def _execute_immediate_inserts(self, insert_now: Dict[int, Any]) -> None:
        """
        Insert entities whose identifier is generated by storage, together
        with the scheduled entities they reference.
        """
        batch = dict(insert_now)
        worklist = list(batch.values())
        while worklist:
            entity = worklist.pop()
            for association in self.metadata.associations(type(entity)):
                if not association.is_owning_to_one:
                    continue
                target = self.metadata.get_value(entity, association.name)
                if self.metadata.is_entity(target) and id(target) in self._new and id(target) not in batch:
                    batch[id(target)] = target
                    worklist.append(target)

        types: Dict[type, None] = {}
        for entity in batch.values():
            types.setdefault(type(entity), None)

        self._pending = set(batch)
        try:
            for entity in batch.values():
                self._computer.validate(entity)
            for key in self._get_commit_order(types):
                if not isinstance(key, type):
                    continue
                persister = self.persisters.entity_persister(key)
                entities = [entity for entity in batch.values() if type(entity) is key]
                for entity in self._order_instances(key, entities):
                    self._insert_entity(entity, persister)
            self._execute_extra_updates()
        except Exception as exc:
            self._commit_state = CommitState.FAILED
            self.logger.error(
                "Immediate insert failed (entity=%s, id=%s): %s",
                getattr(exc, "entity_type", None),
                getattr(exc, "identifier", None),
                exc,
            )
            raise
        finally:
            self._pending = set()

        for oid in batch:
            self._new.pop(oid, None)
        self._apply_written_snapshots()

    # ------------------------------------------------------------------ #
    # Hydration
    # ------------------------------------------------------------------ #
    def create_or_update_managed(self, model: type, row: Mapping[str, Any], *, refresh: bool = False) -> Any:
        """
        Return the managed entity for ``row``, creating it on first sight.

        An entity already in the identity map keeps local modifications
        unless ``refresh`` is set; its snapshot always takes the row values.
        """
        self._check_usable()
        concrete = self.metadata.resolve_concrete_type(model, row)
        data = self.metadata.from_row(concrete, row)
        for association in self.metadata.associations(concrete):
            raw = data.get(association.name)
            if association.is_owning_to_one and raw is not None and not self.metadata.is_entity(raw):
                target = self.identity_map.get(association.target, raw)
                if target is not None:
                    data[association.name] = target

        identifier = tuple(data.get(name) for name in self.metadata.identifier_fields(concrete))
        id_hash = identity_hash(identifier)
        if not id_hash:
            raise MissingIdentityError("Row carries no identifier", entity_type=concrete)

        entity = self.identity_map.lookup(self.metadata.root_type(concrete), id_hash)
        if entity is not None:
            original = self.snapshots.get(entity)
            for name, value in data.items():
                if refresh or not self._computer.is_modified(entity, name, original):
                    self.metadata.set_value(entity, name, value)
        else:
            entity = self.metadata.new_instance(concrete)
            for name, value in data.items():
                self.metadata.set_value(entity, name, value)
            self._add_to_identity_map(entity)
            self._track(entity, EntityState.MANAGED)

        snapshot = dict(self.snapshots.get(entity))
        snapshot.update(data)
        self.snapshots.capture(entity, snapshot)
        return entity

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #
    def get_entity_change_set(self, entity: Any) -> Dict[str, Tuple[Any, Any]]:
        return dict(self._change_sets.get(id(entity), {}))

    def get_original_entity_data(self, entity: Any) -> Dict[str, Any]:
        return dict(self.snapshots.get(entity))

    def set_original_entity_property(self, entity: Any, name: str, value: Any) -> None:
        self.snapshots.set_field(entity, name, value)

    def is_scheduled_for_insert(self, entity: Any) -> bool:
        return id(entity) in self._new

    def is_scheduled_for_update(self, entity: Any) -> bool:
        return id(entity) in self._dirty

    def is_scheduled_for_delete(self, entity: Any) -> bool:
        return id(entity) in self._deleted

    def is_in_identity_map(self, entity: Any) -> bool:
        return self.identity_map.is_registered(entity)

    def try_get_by_id(self, model: type, identifier: Any) -> Optional[Any]:
        return self.identity_map.get(model, identifier)

    def size(self) -> int:
        return len(self.identity_map)

    def scheduled_insertions(self) -> List[Any]:
        return list(self._new.values())

    def scheduled_updates(self) -> List[Any]:
        return list(self._dirty.values())

    def scheduled_deletions(self) -> List[Any]:
        return list(self._deleted.values())

    # ------------------------------------------------------------------ #
    # Clearing
    # ------------------------------------------------------------------ #
    def detach_all(self) -> None:
        """
        Detach every tracked entity.
        """
        self._check_usable()
        self._detach_all()

    clear = detach_all

    def reset(self) -> None:
        """
        Detach every tracked entity and leave a failed commit behind.
        """
        self._detach_all()
        self._finish()

    def _detach_all(self) -> None:
        for oid, entity in self._objects.items():
            self._detached[oid] = entity
        # Removed rows may come back with a rollback; their handles are only detached.
        for oid, entity in list(self._removed.items()):
            self._detached[oid] = entity
        self._removed.clear()
        self._objects.clear()
        self._entity_states.clear()
        for schedule in (self._new, self._dirty, self._deleted, self._dirty_check, self._change_sets):
            schedule.clear()
        self._collection_updates = []
        self._extra_updates = []
        self.identity_map.clear()
        self.snapshots.clear()


def _node_name(key: Any) -> str:
    if isinstance(key, type):
        return key.__name__
    return repr(key)
