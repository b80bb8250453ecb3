"""
Schema builder converting model metadata into DDL statements.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from ..core.fields import GENERATION_IDENTITY, Field
from ..core.model import INHERITANCE_JOINED, INHERITANCE_SINGLE_TABLE, Model
from ..core.relations import RelatedField
from ..dialects.base import Dialect
from ..persistence.commit_order import CommitOrderCalculator
from ..persistence.metadata import Association, ModelMetadataProvider
from ..utils import get_logger


class SchemaBuilder:
    """
    Produces dialect-specific SQL for model tables, inheritance tables and
    join tables.
    """

    def __init__(self, dialect: Dialect, metadata: Optional[ModelMetadataProvider] = None) -> None:
        self.dialect = dialect
        self.metadata = metadata or ModelMetadataProvider()
        self.logger = get_logger("schema.builder")

    # ------------------------------------------------------------------ #
    def create_table_sql(self, model: type[Model]) -> str:
        meta = model._meta
        inheritance = meta.inheritance
        pieces: List[str] = []
        constraints: List[str] = []
        if inheritance == INHERITANCE_JOINED and meta.parent is not None:
            pieces.extend(self._joined_identifier_columns(model))
            fields: Iterable[Field] = meta.local_fields.values()
            pieces.extend(self._column(field) for field in fields if not field.primary_key)
            root_meta = (meta.root or model)._meta
            constraints.append(self._reference([field.column_name() for field in meta.identifier], root_meta))
        elif inheritance == INHERITANCE_SINGLE_TABLE:
            fields = self._single_table_fields(model)
            root_fields = (meta.root or model)._meta.fields
            pieces.extend(self._column(field, force_nullable=field.name not in root_fields) for field in fields)
            pieces.append(
                self.dialect.render_column_definition(meta.discriminator_column, "TEXT", nullable=False)
            )
        else:
            fields = list(meta.fields.values())
            pieces.extend(self._column(field) for field in fields)
            if inheritance == INHERITANCE_JOINED:
                pieces.append(
                    self.dialect.render_column_definition(meta.discriminator_column, "TEXT", nullable=False)
                )
        if meta.is_composite:
            columns = ", ".join(self._q(field.column_name()) for field in meta.identifier)
            pieces.append(f"PRIMARY KEY ({columns})")
        pieces.extend(constraints)
        pieces.extend(self._foreign_keys(fields))
        return f"CREATE TABLE IF NOT EXISTS {self.dialect.format_table(meta.table)} ({', '.join(pieces)})"

    def create_join_table_sql(self, association: Association) -> str:
        source_meta = association.source._meta
        target_meta = association.target._meta
        pieces: List[str] = []
        for column, field in zip(association.join_columns, source_meta.identifier):
            pieces.append(self.dialect.render_column_definition(column, _reference_type(field), nullable=False))
        for column, field in zip(association.inverse_join_columns, target_meta.identifier):
            pieces.append(self.dialect.render_column_definition(column, _reference_type(field), nullable=False))
        all_columns = ", ".join(self._q(column) for column in association.join_columns + association.inverse_join_columns)
        pieces.append(f"PRIMARY KEY ({all_columns})")
        pieces.append(self._reference(association.join_columns, source_meta))
        pieces.append(self._reference(association.inverse_join_columns, target_meta))
        table = self.dialect.format_table(association.join_table or "")
        return f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(pieces)})"

    def create_all_sql(self, models: Iterable[type[Model]]) -> List[str]:
        """
        DDL for ``models`` and their join tables, referenced tables first.
        """
        calculator = CommitOrderCalculator("schema_order")
        tables: List[type[Model]] = []
        seen_tables = set()
        for model in models:
            table = model._meta.table
            if model._meta.abstract or (table in seen_tables and model._meta.inheritance == INHERITANCE_SINGLE_TABLE):
                continue
            seen_tables.add(table)
            tables.append(model)
            calculator.add_node(model, model)
        for model in tables:
            if model._meta.parent is not None:
                for other in tables:
                    if other is not model and issubclass(model, other):
                        calculator.add_dependency(other, model)
            for relation in model._meta.relations.values():
                if not relation.is_column:
                    continue
                target = relation.require_remote_model()
                for other in tables:
                    if other is not model and issubclass(target, other):
                        calculator.add_dependency(other, model)

        statements: List[str] = []
        join_tables: List[str] = []
        for model in calculator.get_order():
            statements.append(self.create_table_sql(model))
            for association in self.metadata.associations(model):
                if association.uses_join_table and association.source is model:
                    join_tables.append(self.create_join_table_sql(association))
        return statements + join_tables

    def create_all(self, adapter: Any, models: Iterable[type[Model]]) -> None:
        for statement in self.create_all_sql(models):
            adapter.execute(statement)

    def drop_table_sql(self, model: type[Model]) -> str:
        table_name = self.dialect.format_table(model._meta.table)
        self.logger.warning(
            "DROP TABLE generated for %s; confirm destructive migration before applying.",
            table_name,
        )
        return f"DROP TABLE IF EXISTS {table_name}"

    # ------------------------------------------------------------------ #
    def _q(self, identifier: str) -> str:
        return self.dialect.quote_identifier(identifier)

    def _column(self, field: Field, *, force_nullable: bool = False) -> str:
        meta = field.require_model()._meta
        single_identity = field.primary_key and not meta.is_composite
        if isinstance(field, RelatedField):
            column_type = _reference_type(field.require_remote_model()._meta.identifier[0])
        elif single_identity and field.generation == GENERATION_IDENTITY:
            column_type = self.dialect.identity_type
        else:
            column_type = field.db_type
        if not column_type:
            raise ValueError(f"Field '{field.name}' missing db_type for schema generation.")
        nullable = force_nullable or field.nullable
        column_def = self.dialect.render_column_definition(
            field.column_name(), column_type, nullable=nullable and not field.primary_key
        )
        extras: List[str] = []
        if single_identity:
            extras.append("PRIMARY KEY")
        elif field.unique:
            extras.append("UNIQUE")
        if extras:
            column_def = f"{column_def} {' '.join(extras)}"
        return column_def

    def _single_table_fields(self, model: type[Model]) -> List[Field]:
        root = model._meta.root or model
        fields = {name: field for name, field in root._meta.fields.items()}
        for member in root._meta.hierarchy():
            for name, field in member._meta.local_fields.items():
                fields.setdefault(name, field)
        return list(fields.values())

    def _joined_identifier_columns(self, model: type[Model]) -> List[str]:
        meta = model._meta
        return [
            self.dialect.render_column_definition(field.column_name(), _reference_type(field), nullable=False)
            + (" PRIMARY KEY" if not meta.is_composite else "")
            for field in meta.identifier
        ]

    def _foreign_keys(self, fields: Iterable[Field]) -> List[str]:
        clauses = []
        for field in fields:
            if isinstance(field, RelatedField) and field.is_column:
                target_meta = field.require_remote_model()._meta
                clauses.append(
                    f"FOREIGN KEY ({self._q(field.column_name())}) "
                    f"REFERENCES {self.dialect.format_table(target_meta.table)} "
                    f"({self._q(target_meta.identifier[0].column_name())})"
                )
        return clauses

    def _reference(self, columns: Iterable[str], target_meta: Any) -> str:
        local = ", ".join(self._q(column) for column in columns)
        remote = ", ".join(self._q(field.column_name()) for field in target_meta.identifier)
        return (
            f"FOREIGN KEY ({local}) REFERENCES {self.dialect.format_table(target_meta.table)} ({remote}) "
            "ON DELETE CASCADE"
        )


def _reference_type(field: Field) -> str:
    # Columns pointing at an identity column store plain integers.
    if field.generation == GENERATION_IDENTITY:
        return "INTEGER"
    return field.db_type or "TEXT"
