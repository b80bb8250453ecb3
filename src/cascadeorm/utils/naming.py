"""
Naming utilities for cascadeorm tables and join columns.
"""

import re


_FIRST_CAP_RE = re.compile("(.)([A-Z][a-z]+)")
_ALL_CAP_RE = re.compile("([a-z0-9])([A-Z])")


def camel_to_snake(name: str) -> str:
    """
    Convert ``CamelCase`` class names to ``snake_case`` table names.
    """
    step1 = _FIRST_CAP_RE.sub(r"\1_\2", name)
    return _ALL_CAP_RE.sub(r"\1_\2", step1).lower()


def join_table_name(source_table: str, relation_name: str) -> str:
    return f"{source_table}_{relation_name}"


def foreign_key_column(name: str) -> str:
    return f"{name}_id"
