"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, QuotedIdentifierMixin


class SQLiteDialect(QuotedIdentifierMixin):
    """
    SQLite dialect using qmark parameters. ``INTEGER PRIMARY KEY`` columns
    alias the rowid, so identity columns need no extra keyword.
    """

    name: Final[str] = "sqlite"
    param_style: Final[str] = "qmark"
    identity_type: Final[str] = "INTEGER"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=False,
        supports_savepoints=True,
    )

    def format_table(self, table_name: str) -> str:
        return self.quote_identifier(table_name)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "?"
