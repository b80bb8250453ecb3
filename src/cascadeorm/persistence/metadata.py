"""
Metadata provider consumed by the unit of work.

The unit of work never touches model internals directly; it reads field
values, associations and identifier rules through a :class:`MetadataProvider`.
:class:`ModelMetadataProvider` implements the protocol on top of
:class:`~cascadeorm.core.model.Model` classes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Protocol, Sequence, Tuple, Type

from ..core.fields import GENERATION_IDENTITY, GENERATION_UUID
from ..core.model import Model, ModelConfigurationError
from ..core.relations import (
    CASCADE_ALL,
    AssociationKind,
    CollectionField,
    RelatedField,
)
from ..utils import camel_to_snake, join_table_name
from ..validation import validate_instance
from .id_generators import AssignedGenerator, IdentityGenerator, IdGenerator, UUIDGenerator

TO_ONE = "one"
TO_MANY = "many"

_JOIN_TABLE_KINDS = (AssociationKind.OWNING_TO_MANY, AssociationKind.MANY_TO_MANY)


@dataclass(frozen=True)
class Association:
    """
    Resolved description of one association field.

    ``column`` is the foreign key column of owning to-one associations.
    ``join_columns``/``inverse_join_columns`` name the join-table columns
    referencing the source and target identifiers.
    """

    name: str
    source: type
    target: type
    kind: AssociationKind
    owning_side: bool
    cascade: FrozenSet[str]
    multiplicity: str
    mapped_by: Optional[str] = None
    column: Optional[str] = None
    nullable: bool = True
    join_table: Optional[str] = None
    join_columns: Tuple[str, ...] = ()
    inverse_join_columns: Tuple[str, ...] = ()

    def cascades(self, operation: str) -> bool:
        return CASCADE_ALL in self.cascade or operation in self.cascade

    @property
    def is_collection(self) -> bool:
        return self.multiplicity == TO_MANY

    @property
    def uses_join_table(self) -> bool:
        return self.owning_side and self.kind in _JOIN_TABLE_KINDS

    @property
    def is_owning_to_one(self) -> bool:
        return self.kind is AssociationKind.OWNING_TO_ONE

    def __repr__(self) -> str:
        return f"<Association {self.source.__name__}.{self.name} {self.kind.value}>"


class MetadataProvider(Protocol):
    def field_names(self, model: type) -> Sequence[str]: ...

    def associations(self, model: type) -> Sequence[Association]: ...

    def identifier_fields(self, model: type) -> Sequence[str]: ...

    def is_identifier_assigned_by_application(self, model: type) -> bool: ...

    def id_generator(self, model: type) -> IdGenerator: ...

    def root_type(self, model: type) -> type: ...

    def type_name(self, model: type) -> str: ...

    def inheritance_type(self, model: type) -> Optional[str]: ...

    def get_value(self, entity: Any, name: str) -> Any: ...

    def set_value(self, entity: Any, name: str, value: Any) -> None: ...

    def identifier_values(self, entity: Any) -> Tuple[Any, ...]: ...

    def validate(self, entity: Any) -> None: ...

    def is_entity(self, obj: Any) -> bool: ...

    def resolve_concrete_type(self, model: type, row: Mapping[str, Any]) -> type: ...

    def new_instance(self, model: type) -> Any: ...

    def from_row(self, model: type, row: Mapping[str, Any]) -> Dict[str, Any]: ...


class ModelMetadataProvider:
    """
    Metadata provider backed by ``Model._meta``. Resolved associations and
    identifier generators are cached per class on the provider instance.
    """

    def __init__(self) -> None:
        self._associations: Dict[type, List[Association]] = {}
        self._generators: Dict[type, IdGenerator] = {}

    # Structure ----------------------------------------------------------
    def field_names(self, model: Type[Model]) -> List[str]:
        return [
            name
            for name, field in model._meta.fields.items()
            if not isinstance(field, RelatedField)
        ]

    def associations(self, model: Type[Model]) -> List[Association]:
        cached = self._associations.get(model)
        if cached is None:
            cached = [self._describe(model, relation) for relation in model._meta.relations.values()]
            self._associations[model] = cached
        return cached

    def association(self, model: Type[Model], name: str) -> Association:
        for association in self.associations(model):
            if association.name == name:
                return association
        raise KeyError(f"Unknown association '{name}' on model '{model.__name__}'")

    def identifier_fields(self, model: Type[Model]) -> List[str]:
        return [field.require_name() for field in model._meta.identifier]

    def is_identifier_assigned_by_application(self, model: Type[Model]) -> bool:
        return isinstance(self.id_generator(model), AssignedGenerator)

    def id_generator(self, model: Type[Model]) -> IdGenerator:
        root = self.root_type(model)
        generator = self._generators.get(root)
        if generator is None:
            identifier = root._meta.identifier
            generation = identifier[0].generation if len(identifier) == 1 else None
            if generation == GENERATION_IDENTITY:
                generator = IdentityGenerator()
            elif generation == GENERATION_UUID:
                generator = UUIDGenerator()
            else:
                generator = AssignedGenerator()
            self._generators[root] = generator
        return generator

    def root_type(self, model: Type[Model]) -> Type[Model]:
        return model._meta.root or model

    def type_name(self, model: Type[Model]) -> str:
        return model.__name__

    def inheritance_type(self, model: Type[Model]) -> Optional[str]:
        return model._meta.inheritance

    # Field access --------------------------------------------------------
    def get_value(self, entity: Model, name: str) -> Any:
        return getattr(entity, name)

    def set_value(self, entity: Model, name: str, value: Any) -> None:
        setattr(entity, name, value)

    def identifier_values(self, entity: Model) -> Tuple[Any, ...]:
        return tuple(entity._field_values.get(field.require_name()) for field in entity._meta.identifier)

    def has_identifier(self, entity: Model) -> bool:
        values = self.identifier_values(entity)
        return bool(values) and all(value is not None for value in values)

    def validate(self, entity: Model) -> None:
        validate_instance(entity)

    def is_entity(self, obj: Any) -> bool:
        return isinstance(obj, Model)

    # Hydration -------------------------------------------------------------
    def resolve_concrete_type(self, model: Type[Model], row: Mapping[str, Any]) -> Type[Model]:
        meta = model._meta
        if meta.inheritance is None:
            return model
        value = row.get(meta.discriminator_column)
        if value is None:
            return model
        concrete = meta.discriminator_map.get(value)
        if concrete is None:
            raise ModelConfigurationError(
                f"Unknown discriminator value {value!r} for hierarchy of '{model.__name__}'"
            )
        return concrete

    def new_instance(self, model: Type[Model]) -> Model:
        instance = model.__new__(model)
        instance._field_values = {}
        return instance

    def from_row(self, model: Type[Model], row: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Convert a storage row, keyed by column or field name, into field values.
        Foreign keys come back as raw identifier values.
        """
        data: Dict[str, Any] = {}
        for field in model._meta.fields.values():
            column = field.column_name()
            if column in row:
                raw = row[column]
            elif field.name in row:
                raw = row[field.name]
            else:
                continue
            data[field.require_name()] = field.from_db(raw) if raw is not None else None
        return data

    # Internals -------------------------------------------------------------
    def _describe(self, model: Type[Model], relation: RelatedField) -> Association:
        target = relation.require_remote_model()
        kind = relation.kind
        column = None
        join_table = None
        join_columns: Tuple[str, ...] = ()
        inverse_join_columns: Tuple[str, ...] = ()

        if kind is AssociationKind.OWNING_TO_ONE:
            if target._meta.is_composite:
                raise ModelConfigurationError(
                    f"{model.__name__}.{relation.name} references '{target.__name__}', "
                    "whose identifier is composite"
                )
            column = relation.column_name()
        elif relation.uses_join_table:
            join_table, join_columns, inverse_join_columns = self._join_table(model, relation, target)

        return Association(
            name=relation.require_name(),
            source=relation.model or model,
            target=target,
            kind=kind,
            owning_side=relation.owning_side,
            cascade=relation.cascade,
            multiplicity=TO_MANY if isinstance(relation, CollectionField) else TO_ONE,
            mapped_by=relation.mapped_by,
            column=column,
            nullable=relation.nullable,
            join_table=join_table,
            join_columns=join_columns,
            inverse_join_columns=inverse_join_columns,
        )

    @staticmethod
    def _join_table(
        model: Type[Model], relation: CollectionField, target: Type[Model]
    ) -> Tuple[str, Tuple[str, ...], Tuple[str, ...]]:
        owner = relation.model or model
        source_prefix = camel_to_snake(owner.__name__)
        target_prefix = camel_to_snake(target.__name__)
        if target_prefix == source_prefix:
            target_prefix = relation.require_name()
        source_columns = tuple(
            f"{source_prefix}_{field.column_name()}" for field in owner._meta.identifier
        )
        target_columns = tuple(
            f"{target_prefix}_{field.column_name()}" for field in target._meta.identifier
        )
        table = relation.db_table or join_table_name(owner._meta.table_name, relation.require_name())
        return table, source_columns, target_columns
