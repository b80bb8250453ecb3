"""
Core building blocks for cascadeorm models and metadata handling.
"""

from .fields import (
    AutoField,
    BooleanField,
    DateTimeField,
    Field,
    FloatField,
    IntegerField,
    StringField,
    UUIDField,
)
from .model import Model, ModelConfigurationError, ModelMeta, ModelOptions
from .relations import (
    AssociationKind,
    ForeignKey,
    ManyToManyField,
    OneToMany,
    OneToOneField,
    RelatedField,
    RelationshipError,
)

__all__ = [
    "AssociationKind",
    "AutoField",
    "BooleanField",
    "DateTimeField",
    "Field",
    "FloatField",
    "ForeignKey",
    "IntegerField",
    "ManyToManyField",
    "Model",
    "ModelConfigurationError",
    "ModelMeta",
    "ModelOptions",
    "OneToMany",
    "OneToOneField",
    "RelatedField",
    "RelationshipError",
    "StringField",
    "UUIDField",
]
