"""
Persisters turning scheduled inserts, updates and deletes into SQL.

One entity persister exists per model class; the dispatcher picks the
implementation from the class's inheritance mapping. Join-table
associations get a collection persister each.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from ..adapters.base import DatabaseAdapter
from ..core.fields import GENERATION_IDENTITY, Field
from ..core.model import INHERITANCE_JOINED, INHERITANCE_SINGLE_TABLE, Model
from ..core.relations import RelatedField
from ..dialects.base import Dialect
from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from .errors import MissingIdentityError, StorageError, UnitOfWorkError
from .identity_map import normalize_identifier
from .metadata import Association, MetadataProvider

ChangeSet = Mapping[str, Tuple[Any, Any]]


class _SQLPersister:
    """
    Shared statement execution: timing, redacted logging and error wrapping.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        metadata: MetadataProvider,
        *,
        slow_query_ms: int = 200,
    ) -> None:
        self.adapter = adapter
        self.dialect: Dialect = adapter.dialect
        self.metadata = metadata
        self.slow_query_ms = slow_query_ms
        self.logger = get_logger("persistence.persisters")

    def _q(self, identifier: str) -> str:
        return self.dialect.quote_identifier(identifier)

    def _placeholders(self, count: int) -> str:
        return ", ".join(self.dialect.parameter_placeholder() for _ in range(count))

    def _where(self, columns: Sequence[str]) -> str:
        placeholder = self.dialect.parameter_placeholder()
        return " AND ".join(f"{self._q(column)} = {placeholder}" for column in columns)

    def _execute(self, sql: str, params: Sequence[Any], entity: Any = None) -> Any:
        with time_call(
            "persister.execute",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.slow_query_ms,
        ):
            try:
                return self.adapter.execute(sql, list(params))
            except UnitOfWorkError:
                raise
            except Exception as exc:
                raise StorageError(
                    f"Storage rejected statement: {exc}",
                    entity_type=type(entity) if entity is not None else None,
                    identifier=self._identifier_or_none(entity),
                ) from exc

    def _identifier_or_none(self, entity: Any) -> Optional[Tuple[Any, ...]]:
        if entity is None or not self.metadata.is_entity(entity):
            return None
        values = self.metadata.identifier_values(entity)
        if not values or any(value is None for value in values):
            return None
        return values

    def _require_identifier(self, entity: Any, *, referenced_by: Any = None, field: str | None = None) -> Tuple[Any, ...]:
        values = self._identifier_or_none(entity)
        if values is None:
            if referenced_by is not None:
                raise StorageError(
                    f"Reference to unsaved {type(entity).__name__} entity; save it first or enable cascade",
                    entity_type=type(referenced_by),
                    identifier=self._identifier_or_none(referenced_by),
                    field=field,
                )
            raise MissingIdentityError(
                "Entity has no identifier to address its row", entity_type=type(entity)
            )
        return values

    @staticmethod
    def _row_to_dict(cursor: Any, row: Any) -> Dict[str, Any]:
        columns = [description[0] for description in cursor.description]
        return {column: row[index] for index, column in enumerate(columns)}


class EntityPersister(_SQLPersister):
    """
    Base class for entity persisters.
    """

    def __init__(self, model: Type[Model], adapter: DatabaseAdapter, metadata: MetadataProvider, **kwargs: Any) -> None:
        super().__init__(adapter, metadata, **kwargs)
        self.model = model
        self.meta = model._meta

    def insert(self, entity: Model, deferred: Iterable[str] = ()) -> Any:
        raise NotImplementedError

    def update(self, entity: Model, change_set: ChangeSet) -> None:
        raise NotImplementedError

    def delete(self, entity: Model) -> None:
        raise NotImplementedError

    def load(self, identifier: Any) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    # Column values -------------------------------------------------------
    def column_value(self, entity: Model, field: Field, value: Any) -> Any:
        if isinstance(field, RelatedField):
            if value is None or not self.metadata.is_entity(value):
                return value
            return self._require_identifier(value, referenced_by=entity, field=field.name)[0]
        return field.to_db(value)

    def _generated_field(self, entity: Model) -> Optional[Field]:
        identifier = self.meta.identifier
        if len(identifier) == 1 and identifier[0].generation == GENERATION_IDENTITY:
            if entity._field_values.get(identifier[0].require_name()) is None:
                return identifier[0]
        return None

    def _identifier_params(self, entity: Model) -> List[Any]:
        values = self._require_identifier(entity)
        return [field.to_db(value) for field, value in zip(self.meta.identifier, values)]

    def _identifier_columns(self) -> List[str]:
        return [field.column_name() for field in self.meta.identifier]

    def _insert_row(
        self,
        entity: Model,
        table: str,
        columns: List[str],
        params: List[Any],
        generated: Optional[Field],
    ) -> Any:
        table_sql = self.dialect.format_table(table)
        if columns:
            column_sql = ", ".join(self._q(column) for column in columns)
            sql = f"INSERT INTO {table_sql} ({column_sql}) VALUES ({self._placeholders(len(columns))})"
        else:
            sql = f"INSERT INTO {table_sql} DEFAULT VALUES"
        if generated is not None and self.dialect.capabilities.supports_returning:
            sql += f" RETURNING {self._q(generated.column_name())}"
        cursor = self._execute(sql, params, entity)
        if generated is None:
            return None
        try:
            value = self.adapter.last_insert_id(cursor, table, generated.column_name())
        except Exception as exc:
            raise StorageError(
                f"Could not read generated identifier: {exc}", entity_type=type(entity)
            ) from exc
        return generated.from_db(value)

    def _row_values(
        self, entity: Model, fields: Iterable[Field], deferred: Iterable[str], generated: Optional[Field]
    ) -> Tuple[List[str], List[Any]]:
        deferred = set(deferred)
        columns: List[str] = []
        params: List[Any] = []
        for field in fields:
            if field is generated:
                continue
            name = field.require_name()
            value = None if name in deferred else self.metadata.get_value(entity, name)
            columns.append(field.column_name())
            params.append(self.column_value(entity, field, value))
        return columns, params

    def _assignments(self, entity: Model, fields: Mapping[str, Field], change_set: ChangeSet) -> Tuple[List[str], List[Any]]:
        placeholder = self.dialect.parameter_placeholder()
        assignments: List[str] = []
        params: List[Any] = []
        for name, (_old, new) in change_set.items():
            field = fields.get(name)
            if field is None or field.primary_key:
                continue
            assignments.append(f"{self._q(field.column_name())} = {placeholder}")
            params.append(self.column_value(entity, field, new))
        return assignments, params

    def _update_table(self, entity: Model, table: str, assignments: List[str], params: List[Any]) -> None:
        if not assignments:
            return
        sql = (
            f"UPDATE {self.dialect.format_table(table)} SET {', '.join(assignments)} "
            f"WHERE {self._where(self._identifier_columns())}"
        )
        cursor = self._execute(sql, params + self._identifier_params(entity), entity)
        self._require_affected(cursor, entity, table, "UPDATE")

    def _delete_from(self, entity: Model, table: str) -> None:
        sql = f"DELETE FROM {self.dialect.format_table(table)} WHERE {self._where(self._identifier_columns())}"
        cursor = self._execute(sql, self._identifier_params(entity), entity)
        self._require_affected(cursor, entity, table, "DELETE")

    def _require_affected(self, cursor: Any, entity: Model, table: str, statement: str) -> None:
        # Drivers report -1 when the count is unknown.
        if getattr(cursor, "rowcount", -1) == 0:
            raise StorageError(
                f"{statement} on '{table}' matched no row",
                entity_type=type(entity),
                identifier=self._identifier_or_none(entity),
            )

    def _select_row(self, table: str, columns: Sequence[str], identifier: Any, extra_sql: str = "", extra_params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        values = normalize_identifier(identifier)
        params = [field.to_db(value) for field, value in zip(self.meta.identifier, values)]
        column_sql = ", ".join(self._q(column) for column in columns)
        sql = (
            f"SELECT {column_sql} FROM {self.dialect.format_table(table)} "
            f"WHERE {self._where(self._identifier_columns())}{extra_sql}"
        )
        cursor = self._execute(sql, params + list(extra_params))
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_dict(cursor, row)


class StandardEntityPersister(EntityPersister):
    """
    One table per class, shared by the whole hierarchy under single-table
    inheritance (rows carry the discriminator column).
    """

    def insert(self, entity: Model, deferred: Iterable[str] = ()) -> Any:
        generated = self._generated_field(entity)
        columns, params = self._row_values(entity, self.meta.fields.values(), deferred, generated)
        if self.meta.inheritance == INHERITANCE_SINGLE_TABLE:
            columns.append(self.meta.discriminator_column)
            params.append(type(entity)._meta.discriminator_value)
        return self._insert_row(entity, self.meta.table, columns, params, generated)

    def update(self, entity: Model, change_set: ChangeSet) -> None:
        assignments, params = self._assignments(entity, self.meta.fields, change_set)
        self._update_table(entity, self.meta.table, assignments, params)

    def delete(self, entity: Model) -> None:
        self._delete_from(entity, self.meta.table)

    def load(self, identifier: Any) -> Optional[Dict[str, Any]]:
        columns = [field.column_name() for field in self.meta.fields.values()]
        extra_sql = ""
        extra_params: List[Any] = []
        if self.meta.inheritance == INHERITANCE_SINGLE_TABLE:
            for klass in self.meta.hierarchy():
                for field in klass._meta.fields.values():
                    if field.column_name() not in columns:
                        columns.append(field.column_name())
            columns.append(self.meta.discriminator_column)
            if self.model is not self.meta.root:
                values = [
                    klass._meta.discriminator_value
                    for klass in self.meta.hierarchy()
                    if issubclass(klass, self.model)
                ]
                extra_sql = f" AND {self._q(self.meta.discriminator_column)} IN ({self._placeholders(len(values))})"
                extra_params = values
        return self._select_row(self.meta.table, columns, identifier, extra_sql, extra_params)


class JoinedSubclassPersister(EntityPersister):
    """
    Class table inheritance: the root table holds the identifier, the
    discriminator and the root's fields; each subclass table holds the
    identifier plus the fields declared on that subclass.
    """

    @staticmethod
    def _chain(model: Type[Model]) -> List[Type[Model]]:
        chain: List[Type[Model]] = []
        current: Optional[Type[Model]] = model
        while current is not None:
            chain.insert(0, current)
            current = current._meta.parent
        return chain

    def insert(self, entity: Model, deferred: Iterable[str] = ()) -> Any:
        deferred = tuple(deferred)
        chain = self._chain(type(entity))
        root_meta = chain[0]._meta
        generated = self._generated_field(entity)
        columns, params = self._row_values(entity, root_meta.local_fields.values(), deferred, generated)
        columns.append(root_meta.discriminator_column)
        params.append(type(entity)._meta.discriminator_value)
        generated_value = self._insert_row(entity, root_meta.table, columns, params, generated)

        if generated_value is not None:
            id_params = [generated.to_db(generated_value)]
        else:
            id_params = self._identifier_params(entity)
        for klass in chain[1:]:
            columns, params = self._row_values(entity, klass._meta.local_fields.values(), deferred, None)
            self._insert_row(
                entity,
                klass._meta.table,
                self._identifier_columns() + columns,
                id_params + params,
                None,
            )
        return generated_value

    def update(self, entity: Model, change_set: ChangeSet) -> None:
        for klass in self._chain(type(entity)):
            assignments, params = self._assignments(entity, klass._meta.local_fields, change_set)
            self._update_table(entity, klass._meta.table, assignments, params)

    def delete(self, entity: Model) -> None:
        for klass in reversed(self._chain(type(entity))):
            self._delete_from(entity, klass._meta.table)

    def load(self, identifier: Any) -> Optional[Dict[str, Any]]:
        root = self.meta.root
        root_meta = root._meta
        columns = [field.column_name() for field in root_meta.local_fields.values()]
        columns.append(root_meta.discriminator_column)
        row = self._select_row(root_meta.table, columns, identifier)
        if row is None:
            return None
        concrete = self.metadata.resolve_concrete_type(root, row)
        if not issubclass(concrete, self.model):
            return None
        for klass in self._chain(concrete)[1:]:
            local_columns = [field.column_name() for field in klass._meta.local_fields.values()]
            if not local_columns:
                continue
            subclass_row = self._select_row(klass._meta.table, local_columns, identifier)
            if subclass_row is None:
                raise StorageError(
                    f"Missing '{klass._meta.table}' row for joined subclass",
                    entity_type=concrete,
                    identifier=normalize_identifier(identifier),
                )
            row.update(subclass_row)
        return row


class JoinTablePersister(_SQLPersister):
    """
    Inserts and deletes the rows of one association's join table.
    """

    def __init__(self, association: Association, adapter: DatabaseAdapter, metadata: MetadataProvider, **kwargs: Any) -> None:
        super().__init__(adapter, metadata, **kwargs)
        self.association = association
        self.table = association.join_table or ""

    def _pair_params(self, owner: Any, target: Any) -> List[Any]:
        owner_ids = self._require_identifier(owner)
        target_ids = self._require_identifier(target, referenced_by=owner, field=self.association.name)
        return list(owner_ids) + list(target_ids)

    def insert_rows(self, owner: Any, targets: Iterable[Any]) -> None:
        columns = list(self.association.join_columns) + list(self.association.inverse_join_columns)
        column_sql = ", ".join(self._q(column) for column in columns)
        sql = (
            f"INSERT INTO {self.dialect.format_table(self.table)} ({column_sql}) "
            f"VALUES ({self._placeholders(len(columns))})"
        )
        for target in targets:
            self._execute(sql, self._pair_params(owner, target), owner)

    def delete_rows(self, owner: Any, targets: Iterable[Any]) -> None:
        columns = list(self.association.join_columns) + list(self.association.inverse_join_columns)
        sql = f"DELETE FROM {self.dialect.format_table(self.table)} WHERE {self._where(columns)}"
        for target in targets:
            self._execute(sql, self._pair_params(owner, target), owner)

    def delete_all(self, owner: Any) -> None:
        sql = (
            f"DELETE FROM {self.dialect.format_table(self.table)} "
            f"WHERE {self._where(self.association.join_columns)}"
        )
        self._execute(sql, list(self._require_identifier(owner)), owner)

    def delete_all_referencing(self, target: Any) -> None:
        sql = (
            f"DELETE FROM {self.dialect.format_table(self.table)} "
            f"WHERE {self._where(self.association.inverse_join_columns)}"
        )
        self._execute(sql, list(self._require_identifier(target)), target)


class PersisterDispatch:
    """
    Selects and caches the persister for each model class and join-table
    association.
    """

    def __init__(self, adapter: DatabaseAdapter, metadata: MetadataProvider, *, slow_query_ms: int = 200) -> None:
        self.adapter = adapter
        self.metadata = metadata
        self.slow_query_ms = slow_query_ms
        self._entity_persisters: Dict[type, EntityPersister] = {}
        self._collection_persisters: Dict[Association, JoinTablePersister] = {}

    def entity_persister(self, model: Type[Model]) -> EntityPersister:
        persister = self._entity_persisters.get(model)
        if persister is None:
            if self.metadata.inheritance_type(model) == INHERITANCE_JOINED:
                persister_class: Type[EntityPersister] = JoinedSubclassPersister
            else:
                persister_class = StandardEntityPersister
            persister = persister_class(model, self.adapter, self.metadata, slow_query_ms=self.slow_query_ms)
            self._entity_persisters[model] = persister
        return persister

    def collection_persister(self, association: Association) -> JoinTablePersister:
        persister = self._collection_persisters.get(association)
        if persister is None:
            persister = JoinTablePersister(association, self.adapter, self.metadata, slow_query_ms=self.slow_query_ms)
            self._collection_persisters[association] = persister
        return persister
