"""
Validation pipeline run against an instance before it is written.
"""

from __future__ import annotations

from typing import Dict, List

from ..core.fields import GENERATION_ASSIGNED, Field
from ..core.model import Model
from .errors import NON_FIELD_ERRORS, ValidationError


def validate_instance(instance: Model) -> None:
    errors: Dict[str, List[str]] = {}

    for field in instance._meta.get_fields():
        field_name = field.require_name()
        value = instance._field_values.get(field_name)
        try:
            _validate_field(field, value)
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)

    try:
        instance.clean()
    except ValidationError as exc:
        _merge_errors(errors, exc.errors)
    except ValueError as exc:
        _add_error(errors, NON_FIELD_ERRORS, str(exc))

    if errors:
        raise ValidationError(errors)


def _validate_field(field: Field, value) -> None:
    field_name = field.require_name()
    if value is None:
        # Generated identifiers are filled in by the persistence layer.
        if field.primary_key and field.generation != GENERATION_ASSIGNED:
            return
        if not field.nullable:
            raise ValidationError({field_name: ["This field cannot be null."]})
        return

    try:
        field.clean(value)
    except ValueError as exc:
        raise ValidationError({field_name: [str(exc)]}) from exc


def _add_error(errors: Dict[str, List[str]], field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def _merge_errors(target: Dict[str, List[str]], source: Dict[str, List[str]]) -> None:
    for field, messages in source.items():
        target.setdefault(field, []).extend(messages)
