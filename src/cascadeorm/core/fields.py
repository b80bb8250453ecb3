"""
Column field descriptors for cascadeorm models.

A field stores whatever the application assigns. Conversion and validation
are deferred to :meth:`Field.clean`, which the validation pipeline runs when
the unit of work computes change sets, so a bad value surfaces as an error
naming the entity and field instead of failing at assignment time.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence, cast

if TYPE_CHECKING:
    from .model import Model


class FieldError(Exception):
    """Internal exception for field configuration issues."""


# Identifier generation strategies understood by the persistence layer.
GENERATION_ASSIGNED = "assigned"
GENERATION_IDENTITY = "identity"
GENERATION_UUID = "uuid"


class Field:
    """
    Base class for column-backed model field descriptors.
    """

    _creation_counter = 0

    # Collections and inverse associations set this to False.
    is_column = True
    is_relation = False
    generation = GENERATION_ASSIGNED

    def __init__(
        self,
        *,
        primary_key: bool = False,
        unique: bool = False,
        nullable: bool = True,
        default: Any = None,
        db_type: Optional[str] = None,
        db_column: Optional[str] = None,
        index: bool = False,
        choices: Optional[Sequence[Any]] = None,
        validators: Optional[Iterable[Callable[[Any], None]]] = None,
        help_text: Optional[str] = None,
    ) -> None:
        self.primary_key = primary_key
        self.unique = unique
        self.nullable = nullable
        self.default = default
        self.db_type = db_type
        self.db_column = db_column
        self.index = index
        self.choices = tuple(choices) if choices is not None else None
        self.validators = list(validators or [])
        self.help_text = help_text

        self.model: type["Model"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    def __repr__(self) -> str:
        owner = self.model.__name__ if self.model is not None else "?"
        return f"<{self.__class__.__name__} {owner}.{self.name}>"

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return cast("Model", instance)._field_values.get(self.require_name())

    def __set__(self, instance: object, value: Any) -> None:
        cast("Model", instance)._field_values[self.require_name()] = value

    # Metadata helpers ----------------------------------------------------
    def bind(self, model: type["Model"], name: str) -> None:
        self.model = model
        self.name = name

    def contribute_to_class(self, model: type["Model"], name: str) -> None:
        """
        Attach the field to the model class as a descriptor.
        """
        self.bind(model, name)
        setattr(model, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def require_model(self) -> type["Model"]:
        if self.model is None:
            raise FieldError("Field model is not set.")
        return self.model

    def column_name(self) -> str:
        return self.db_column or self.require_name()

    # Conversion / validation ---------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def to_python(self, value: Any) -> Any:
        return value

    def clean(self, value: Any) -> Any:
        """
        Convert and validate ``value``; raise ``ValueError`` when it is unusable.
        """
        if value is None:
            return None
        python_value = self.to_python(value)
        if self.choices and python_value not in self.choices:
            raise ValueError(f"Value '{value}' not in choices {self.choices}")
        self.run_validators(python_value)
        return python_value

    def run_validators(self, value: Any) -> None:
        for validator in self.validators:
            validator(value)

    def to_db(self, value: Any) -> Any:
        return value

    def from_db(self, value: Any) -> Any:
        return value

    # Utilities -----------------------------------------------------------
    def clone(self) -> "Field":
        """
        Copy used when an abstract model contributes fields to a subclass.
        """
        cloned = copy.copy(self)
        cloned.validators = list(self.validators)
        cloned.model = None
        cloned.name = None
        return cloned


class AutoField(Field):
    """
    Integer primary key assigned by the database on insert.
    """

    generation = GENERATION_IDENTITY

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "INTEGER")
        super().__init__(primary_key=True, nullable=False, **kwargs)

    def to_python(self, value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value '{value}' for AutoField") from exc


class IntegerField(Field):
    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "INTEGER")
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer value '{value}'")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class FloatField(Field):
    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "REAL")
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc


class BooleanField(Field):
    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "BOOLEAN")
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    def to_python(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")

    def from_db(self, value: Any) -> bool | None:
        if value is None:
            return None
        return bool(value)


class StringField(Field):
    def __init__(self, *, max_length: int = 255, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "TEXT")
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError(f"Expected a string, received {value!r}")
        if self.max_length and len(value) > self.max_length:
            raise ValueError(f"Value exceeds max_length {self.max_length}")
        return value


class DateTimeField(Field):
    """
    Timestamps are stored as ISO-8601 text.
    """

    def __init__(self, *, auto_now_add: bool = False, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "TEXT")
        super().__init__(**kwargs)
        self.auto_now_add = auto_now_add

    @property
    def has_default(self) -> bool:
        return self.auto_now_add or super().has_default

    def get_default(self) -> Any:
        if self.auto_now_add:
            return datetime.now(timezone.utc)
        return super().get_default()

    def to_python(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        raise ValueError(f"Expected datetime, received {value!r}")

    def to_db(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def from_db(self, value: Any) -> Any:
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return value


class UUIDField(Field):
    """
    UUID stored as text. As a primary key the value is generated before insert.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "TEXT")
        super().__init__(**kwargs)
        if self.primary_key:
            self.nullable = False
            self.generation = GENERATION_UUID

    def to_python(self, value: Any) -> str:
        try:
            return str(uuid.UUID(str(value)))
        except ValueError as exc:
            raise ValueError(f"Invalid UUID value '{value}'") from exc
