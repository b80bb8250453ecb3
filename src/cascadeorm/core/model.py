"""
Model base classes and metadata orchestration for cascadeorm.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from ..utils import camel_to_snake
from .fields import GENERATION_ASSIGNED, AutoField, Field
from .relations import RelatedField, relation_registry

INHERITANCE_SINGLE_TABLE = "single_table"
INHERITANCE_JOINED = "joined"
DEFAULT_DISCRIMINATOR_COLUMN = "discr"


class ModelConfigurationError(Exception):
    """Raised when a model class is misconfigured."""


@dataclass
class ModelOptions:
    """
    Container for model metadata calculated by :class:`ModelMeta`.

    ``fields`` holds every column-backed field of the class, inherited ones
    included; ``local_fields`` only those declared on the class itself, which
    under joined inheritance are the columns of the class's own table.
    """

    model: Type["Model"]
    table_name: str = ""
    schema: Optional[str] = None
    abstract: bool = False
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    local_fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    relations: "OrderedDict[str, RelatedField]" = field(default_factory=OrderedDict)
    declared_fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    identifier: List[Field] = field(default_factory=list)
    parent: Optional[Type["Model"]] = None
    root: Optional[Type["Model"]] = None
    declared_inheritance: Optional[str] = None
    discriminator_column: str = DEFAULT_DISCRIMINATOR_COLUMN
    discriminator_value: Optional[str] = None
    discriminator_map: Dict[str, Type["Model"]] = field(default_factory=dict)

    def add_field(self, field_obj: Field, *, local: bool = True) -> None:
        name = field_obj.require_name()
        if field_obj.is_column:
            if name in self.fields:
                raise ModelConfigurationError(
                    f"Duplicate field name '{name}' on model '{self.model.__name__}'"
                )
            self.fields[name] = field_obj
            if local:
                self.local_fields[name] = field_obj
        if isinstance(field_obj, RelatedField):
            self.relations[name] = field_obj
        if field_obj.primary_key:
            self.identifier.append(field_obj)
        if local:
            self.declared_fields[name] = field_obj

    @property
    def table(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.table_name}"
        return self.table_name

    @property
    def primary_key(self) -> Optional[Field]:
        if len(self.identifier) == 1:
            return self.identifier[0]
        return None

    @property
    def is_composite(self) -> bool:
        return len(self.identifier) > 1

    @property
    def inheritance(self) -> Optional[str]:
        """
        Mapping strategy of the hierarchy, or None for a plain model.
        """
        root_meta = self.root._meta if self.root is not None else self
        if root_meta.declared_inheritance:
            return root_meta.declared_inheritance
        if len(root_meta.discriminator_map) > 1:
            return INHERITANCE_SINGLE_TABLE
        return None

    def hierarchy(self) -> List[Type["Model"]]:
        return list(self.discriminator_map.values())

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError as exc:
            raise KeyError(f"Unknown field '{name}' on model '{self.model.__name__}'") from exc

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()


TModel = TypeVar("TModel", bound="Model")


def _ordered(fields: "OrderedDict[str, Field]") -> "OrderedDict[str, Field]":
    return OrderedDict(
        sorted(fields.items(), key=lambda item: (0 if item[1].primary_key else 1, item[1].creation_counter))
    )


class ModelMeta(type):
    """
    Metaclass responsible for collecting fields and establishing metadata.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "ModelMeta":
        # The base Model class itself carries no metadata.
        if not any(isinstance(base, ModelMeta) for base in bases):
            return super().__new__(mcls, name, bases, attrs)

        declared: Dict[str, Field] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared[attr_name] = attrs.pop(attr_name)

        # Meta is read from the class body only, never inherited.
        meta = attrs.get("Meta")
        cls = super().__new__(mcls, name, bases, attrs)

        abstract = getattr(meta, "abstract", False)
        options = ModelOptions(
            model=cls,
            table_name=getattr(meta, "table", camel_to_snake(name)),
            schema=getattr(meta, "schema", None),
            abstract=abstract,
        )

        parent = next((base for base in bases if isinstance(base, ModelMeta) and hasattr(base, "_meta")), None)
        concrete_parent = None
        if parent is not None and parent._meta.abstract:
            for field_name, field_obj in parent._meta.declared_fields.items():
                declared.setdefault(field_name, field_obj.clone())
        elif parent is not None:
            if abstract:
                raise ModelConfigurationError(
                    f"Abstract model '{name}' cannot extend concrete model '{parent.__name__}'"
                )
            concrete_parent = parent

        if concrete_parent is not None:
            mcls._join_hierarchy(options, concrete_parent, meta)
            if any(field_obj.primary_key for field_obj in declared.values()):
                raise ModelConfigurationError(
                    f"Model '{name}' inherits its identifier from '{concrete_parent.__name__}'"
                )
        else:
            options.root = cls
            options.declared_inheritance = getattr(meta, "inheritance", None)
            if options.declared_inheritance not in (None, INHERITANCE_SINGLE_TABLE, INHERITANCE_JOINED):
                raise ModelConfigurationError(
                    f"Unknown inheritance strategy '{options.declared_inheritance}' on '{name}'"
                )
            options.discriminator_column = getattr(
                meta, "discriminator_column", DEFAULT_DISCRIMINATOR_COLUMN
            )

        for attr_name, field_obj in sorted(declared.items(), key=lambda item: item[1].creation_counter):
            field_obj.contribute_to_class(cls, attr_name)
            options.add_field(field_obj)

        if concrete_parent is None and not abstract and not options.identifier:
            if "id" in options.fields:
                raise ModelConfigurationError(
                    f"Model '{name}' defines a field named 'id' but no primary key. "
                    "Either set primary_key=True on that field or define a different name."
                )
            auto_field = AutoField()
            auto_field.contribute_to_class(cls, "id")
            options.add_field(auto_field)

        options.fields = _ordered(options.fields)
        options.local_fields = _ordered(options.local_fields)
        cls._meta = options

        if not abstract:
            mcls._validate_identifier(options)
            value = getattr(meta, "discriminator_value", name)
            if value in options.discriminator_map:
                raise ModelConfigurationError(
                    f"Discriminator value '{value}' of '{name}' is already used by "
                    f"'{options.discriminator_map[value].__name__}'"
                )
            options.discriminator_value = value
            options.discriminator_map[value] = cls
            relation_registry.register_model(cls)

        return cls

    @staticmethod
    def _join_hierarchy(options: ModelOptions, parent: Type["Model"], meta: Any) -> None:
        parent_meta = parent._meta
        root = parent_meta.root
        root_meta = root._meta
        options.parent = parent
        options.root = root
        options.discriminator_column = root_meta.discriminator_column
        options.discriminator_map = root_meta.discriminator_map
        if (root_meta.declared_inheritance or INHERITANCE_SINGLE_TABLE) == INHERITANCE_SINGLE_TABLE:
            options.table_name = root_meta.table_name
            options.schema = root_meta.schema
        for inherited in parent_meta.fields.values():
            options.add_field(inherited, local=False)
        for relation_name, relation in parent_meta.relations.items():
            options.relations.setdefault(relation_name, relation)

    @staticmethod
    def _validate_identifier(options: ModelOptions) -> None:
        if not options.is_composite:
            return
        for identifier in options.identifier:
            if identifier.generation != GENERATION_ASSIGNED:
                raise ModelConfigurationError(
                    f"Composite identifier of '{options.model.__name__}' cannot use generated "
                    f"field '{identifier.name}'"
                )


class Model(metaclass=ModelMeta):
    """
    Base model providing the data container. Persistence is handled by the
    unit of work; instances carry no tracking state of their own.
    """

    _meta: ModelOptions

    def __init__(self, **kwargs: Any) -> None:
        self._field_values: Dict[str, Any] = {}
        meta = self._meta
        if meta.abstract:
            raise ModelConfigurationError(f"Cannot instantiate abstract model '{type(self).__name__}'")

        for field_obj in meta.fields.values():
            name = field_obj.require_name()
            if name in kwargs:
                setattr(self, name, kwargs.pop(name))
            elif field_obj.has_default and not field_obj.primary_key:
                setattr(self, name, field_obj.get_default())

        for name in list(kwargs):
            if name in meta.relations:
                setattr(self, name, kwargs.pop(name))
            elif name.endswith("_id") and name[:-3] in meta.fields:
                self._field_values[name[:-3]] = kwargs.pop(name)

        if kwargs:
            raise TypeError(
                f"{type(self).__name__}() got unexpected field(s): {', '.join(sorted(kwargs))}"
            )

    def __repr__(self) -> str:
        parts = []
        for field_obj in self._meta.get_fields():
            if field_obj.name not in self._field_values:
                continue
            value = self._field_values[field_obj.name]
            if isinstance(value, Model):
                value = f"<{type(value).__name__} pk={value.pk!r}>"
            else:
                value = repr(value)
            parts.append(f"{field_obj.name}={value}")
        return f"<{self.__class__.__name__} {', '.join(parts)}>"

    @property
    def pk(self) -> Any:
        identifier = self._meta.identifier
        if not identifier:
            raise ModelConfigurationError(
                f"Model '{self.__class__.__name__}' does not define a primary key."
            )
        if len(identifier) == 1:
            return getattr(self, identifier[0].require_name())
        return tuple(getattr(self, field_obj.require_name()) for field_obj in identifier)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for field_obj in self._meta.get_fields():
            value = getattr(self, field_obj.require_name())
            data[field_obj.require_name()] = value.pk if isinstance(value, Model) else value
        return data

    # Validation --------------------------------------------------------
    def full_clean(self) -> None:
        from ..validation import validate_instance

        validate_instance(self)

    def clean(self) -> None:
        """
        Hook for subclasses to implement model-level validation.
        """
        return None
