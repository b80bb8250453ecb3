"""
cascadeorm public package initialization.
"""

from .core.fields import (  # noqa: F401
    AutoField,
    BooleanField,
    DateTimeField,
    FloatField,
    IntegerField,
    StringField,
    UUIDField,
)
from .core.model import Model, ModelConfigurationError  # noqa: F401
from .core.relations import (  # noqa: F401
    CASCADE_ALL,
    CASCADE_DELETE,
    CASCADE_SAVE,
    ForeignKey,
    ManyToManyField,
    OneToMany,
    OneToOneField,
)
from .persistence import (  # noqa: F401
    DetachedEntityError,
    DuplicateIdentityError,
    EntityState,
    InvalidFieldValueError,
    InvalidStateError,
    MissingIdentityError,
    Session,
    StorageError,
    UnitOfWork,
    UnitOfWorkConfig,
    UnitOfWorkError,
)
from .schema import SchemaBuilder  # noqa: F401
from .validation import ValidationError  # noqa: F401

__all__ = [
    "Model",
    "AutoField",
    "BooleanField",
    "DateTimeField",
    "FloatField",
    "IntegerField",
    "StringField",
    "UUIDField",
    "ForeignKey",
    "OneToOneField",
    "OneToMany",
    "ManyToManyField",
    "CASCADE_ALL",
    "CASCADE_DELETE",
    "CASCADE_SAVE",
    "ModelConfigurationError",
    "Session",
    "UnitOfWork",
    "UnitOfWorkConfig",
    "EntityState",
    "UnitOfWorkError",
    "DetachedEntityError",
    "DuplicateIdentityError",
    "InvalidFieldValueError",
    "InvalidStateError",
    "MissingIdentityError",
    "StorageError",
    "SchemaBuilder",
    "ValidationError",
]
