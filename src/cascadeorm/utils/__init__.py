"""
Utility helpers shared across cascadeorm packages.
"""

from .logging import configure_logging, get_correlation_id, get_logger, set_correlation_id, time_call
from .naming import camel_to_snake, foreign_key_column, join_table_name

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "foreign_key_column",
    "get_correlation_id",
    "get_logger",
    "join_table_name",
    "set_correlation_id",
    "time_call",
]
