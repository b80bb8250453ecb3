"""
Association fields and the registry resolving string model references.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Type, cast

from ..utils import foreign_key_column
from .fields import Field

CASCADE_SAVE = "save"
CASCADE_DELETE = "delete"
CASCADE_ALL = "all"
_CASCADE_OPTIONS = {CASCADE_SAVE, CASCADE_DELETE, CASCADE_ALL}


class RelationshipError(RuntimeError):
    pass


class AssociationKind(enum.Enum):
    OWNING_TO_ONE = "owning_to_one"
    INVERSE_TO_ONE = "inverse_to_one"
    OWNING_TO_MANY = "owning_to_many"
    INVERSE_TO_MANY = "inverse_to_many"
    MANY_TO_MANY = "many_to_many"


def _normalize_cascade(cascade: str | Iterable[str] | None) -> FrozenSet[str]:
    if not cascade:
        return frozenset()
    options = {cascade} if isinstance(cascade, str) else set(cascade)
    unknown = options - _CASCADE_OPTIONS
    if unknown:
        raise RelationshipError(f"Unknown cascade option(s): {sorted(unknown)}")
    return frozenset(options)


class RelatedField(Field):
    """
    Base class for association fields.
    """

    is_relation = True

    def __init__(
        self,
        to: Type | str,
        *,
        mapped_by: Optional[str] = None,
        cascade: str | Iterable[str] | None = None,
        on_delete: str = "CASCADE",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.to = to
        self.mapped_by = mapped_by
        self.cascade = _normalize_cascade(cascade)
        self.on_delete = on_delete
        self._remote_model: Optional[Type] = to if isinstance(to, type) else None

    @property
    def kind(self) -> AssociationKind:
        raise NotImplementedError

    @property
    def owning_side(self) -> bool:
        return self.mapped_by is None

    @property
    def uses_join_table(self) -> bool:
        return False

    @property
    def remote_model(self) -> Optional[Type]:
        if self._remote_model is None and isinstance(self.to, str):
            if self.to == "self":
                return self.model
            self._remote_model = relation_registry.lookup(self.to, self.model)
        return self._remote_model

    def require_remote_model(self) -> Type:
        if self.remote_model is None:
            owner = self.model.__name__ if self.model else "?"
            raise RelationshipError(f"Unresolved relation target {self.to!r} on {owner}.{self.name}")
        return self.remote_model


class ForeignKeyIdDescriptor:
    """
    Exposes ``<name>_id``: the referenced entity's identifier, or the raw
    foreign key value when the target has not been loaded.
    """

    def __init__(self, field: "ForeignKey") -> None:
        self.field = field

    def __get__(self, instance, owner):
        if instance is None:
            return self
        value = instance._field_values.get(self.field.require_name())
        if value is None:
            return None
        if hasattr(value, "_meta"):
            return value.pk
        return value

    def __set__(self, instance, value) -> None:
        instance._field_values[self.field.require_name()] = value


class ForeignKey(RelatedField):
    """
    Many-to-one reference; the owning side that stores the foreign key column.
    """

    def __init__(self, to: Type | str, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "INTEGER")
        kwargs.setdefault("nullable", False)
        super().__init__(to, **kwargs)

    @property
    def kind(self) -> AssociationKind:
        return AssociationKind.OWNING_TO_ONE

    def contribute_to_class(self, model: Type, name: str) -> None:
        super().contribute_to_class(model, name)
        id_attr = foreign_key_column(name)
        if id_attr not in model.__dict__:
            setattr(model, id_attr, ForeignKeyIdDescriptor(self))

    def column_name(self) -> str:
        return self.db_column or foreign_key_column(self.require_name())

    def clean(self, value: Any) -> Any:
        if value is None or hasattr(value, "_meta"):
            return value
        self.run_validators(value)
        return value


class OneToOneField(ForeignKey):
    """
    One-to-one reference. With ``mapped_by`` it is the inverse side and
    stores nothing in its own table.
    """

    def __init__(self, to: Type | str, *, mapped_by: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("unique", True)
        if mapped_by is not None:
            kwargs.setdefault("nullable", True)
        super().__init__(to, mapped_by=mapped_by, **kwargs)
        if mapped_by is not None:
            self.is_column = False

    @property
    def kind(self) -> AssociationKind:
        if self.mapped_by is not None:
            return AssociationKind.INVERSE_TO_ONE
        return AssociationKind.OWNING_TO_ONE

    def contribute_to_class(self, model: Type, name: str) -> None:
        if self.mapped_by is not None:
            Field.contribute_to_class(self, model, name)
            return
        super().contribute_to_class(model, name)


class CollectionField(RelatedField):
    """
    To-many association exposed as a plain list on the instance.
    """

    is_column = False

    def __init__(self, to: Type | str, *, db_table: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.pop("db_type", None)
        super().__init__(to, db_type=None, **kwargs)
        self.db_table = db_table

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        values = cast(Any, instance)._field_values
        name = self.require_name()
        if values.get(name) is None:
            values[name] = []
        return values[name]

    def __set__(self, instance: object, value: Any) -> None:
        cast(Any, instance)._field_values[self.require_name()] = list(value or [])

    @property
    def uses_join_table(self) -> bool:
        return self.mapped_by is None


class OneToMany(CollectionField):
    """
    With ``mapped_by`` this mirrors a ForeignKey on the target; without it the
    collection is persisted through a unidirectional join table.
    """

    @property
    def kind(self) -> AssociationKind:
        if self.mapped_by is not None:
            return AssociationKind.INVERSE_TO_MANY
        return AssociationKind.OWNING_TO_MANY


class ManyToManyField(CollectionField):
    @property
    def kind(self) -> AssociationKind:
        return AssociationKind.MANY_TO_MANY


class RelationRegistry:
    """
    Resolves relation targets given as class names. Lookups happen on first
    use, so a name prefers the model declared in the referencing module.
    """

    def __init__(self) -> None:
        self.models: Dict[str, Type] = {}

    def register_model(self, model: Type) -> None:
        self.models[model.__name__] = model
        self.models[f"{model.__module__}.{model.__name__}"] = model

    def get_model(self, name: str) -> Optional[Type]:
        return self.models.get(name) or self.models.get(name.split(".")[-1])

    def lookup(self, name: str, owner: Optional[Type]) -> Optional[Type]:
        if owner is not None and "." not in name:
            local = self.models.get(f"{owner.__module__}.{name}")
            if local is not None:
                return local
        return self.get_model(name)


relation_registry = RelationRegistry()
