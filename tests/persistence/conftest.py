import itertools
from dataclasses import dataclass
from typing import Any

import pytest

from cascadeorm.persistence import ModelMetadataProvider, StorageError, UnitOfWork, UnitOfWorkConfig


@dataclass
class Call:
    op: str
    model: str
    entity: Any
    data: Any = None


class RecordingPersister:
    """
    Stands in for storage: records every write and hands out identifiers
    for identity columns.
    """

    def __init__(self, dispatch, model):
        self.dispatch = dispatch
        self.model = model

    def _plain(self, value):
        metadata = self.dispatch.metadata
        if metadata.is_entity(value):
            return metadata.identifier_values(value)[0]
        return value

    def insert(self, entity, deferred=()):
        metadata = self.dispatch.metadata
        self.dispatch.check("insert", entity)
        model = type(entity)
        row = {name: metadata.get_value(entity, name) for name in metadata.field_names(model)}
        for association in metadata.associations(model):
            if association.is_owning_to_one:
                value = None if association.name in deferred else metadata.get_value(entity, association.name)
                row[association.name] = self._plain(value)
        generated = None
        if metadata.id_generator(model).is_post_insert and metadata.identifier_values(entity)[0] is None:
            generated = next(self.dispatch.ids)
            row[metadata.identifier_fields(model)[0]] = generated
        self.dispatch.calls.append(Call("insert", model.__name__, entity, row))
        return generated

    def update(self, entity, change_set):
        self.dispatch.check("update", entity)
        data = {name: self._plain(new) for name, (_old, new) in change_set.items()}
        self.dispatch.calls.append(Call("update", type(entity).__name__, entity, data))

    def delete(self, entity):
        self.dispatch.check("delete", entity)
        self.dispatch.calls.append(Call("delete", type(entity).__name__, entity))


class RecordingCollectionPersister:
    def __init__(self, dispatch, association):
        self.dispatch = dispatch
        self.association = association

    def _record(self, op, owner, targets=None):
        self.dispatch.calls.append(Call(op, self.association.name, owner, targets))

    def insert_rows(self, owner, targets):
        self._record("link", owner, list(targets))

    def delete_rows(self, owner, targets):
        self._record("unlink", owner, list(targets))

    def delete_all(self, owner):
        self._record("unlink_all", owner)

    def delete_all_referencing(self, target):
        self._record("unlink_referencing", target)


class RecordingDispatch:
    def __init__(self):
        self.metadata = ModelMetadataProvider()
        self.calls = []
        self.ids = itertools.count(1)
        self.failures = set()

    def entity_persister(self, model):
        return RecordingPersister(self, model)

    def collection_persister(self, association):
        return RecordingCollectionPersister(self, association)

    def fail_on(self, op, model):
        self.failures.add((op, model))

    def check(self, op, entity):
        if (op, type(entity)) in self.failures:
            raise StorageError(f"simulated {op} failure", entity_type=type(entity))

    def ops(self):
        return [(call.op, call.model) for call in self.calls]

    def reset_calls(self):
        self.calls = []


@pytest.fixture
def dispatch():
    return RecordingDispatch()


@pytest.fixture
def uow(dispatch):
    return UnitOfWork(dispatch, config=UnitOfWorkConfig())
