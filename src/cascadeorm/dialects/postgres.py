"""
PostgreSQL dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, QuotedIdentifierMixin


class PostgresDialect(QuotedIdentifierMixin):
    """
    PostgreSQL dialect using percent-style parameters and RETURNING.
    """

    name: Final[str] = "postgresql"
    param_style: Final[str] = "pyformat"
    identity_type: Final[str] = "SERIAL"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=True,
        supports_savepoints=True,
    )

    def format_table(self, table_name: str) -> str:
        if "." in table_name:
            schema, table = table_name.split(".", 1)
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table_name)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"
