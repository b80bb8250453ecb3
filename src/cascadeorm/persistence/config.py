"""
Unit of work configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

FLUSH_AUTO = "auto"
FLUSH_COMMIT = "commit"
FLUSH_MANUAL = "manual"
FLUSH_MODES = (FLUSH_AUTO, FLUSH_COMMIT, FLUSH_MANUAL)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class UnitOfWorkConfig:
    """
    ``automatic_dirty_checking`` examines every managed entity on commit;
    when disabled only entities passed to ``save``, ``register_dirty`` or
    ``schedule_for_dirty_check`` are compared with their snapshot.

    ``flush_mode`` controls when a session writes pending work: after every
    save/delete (``auto``), on ``Session.commit`` (``commit``), or only on an
    explicit ``flush()`` (``manual``).
    """

    automatic_dirty_checking: bool = True
    flush_mode: str = FLUSH_COMMIT
    slow_query_ms: int = 200

    def __post_init__(self) -> None:
        if self.flush_mode not in FLUSH_MODES:
            raise ConfigurationError(
                f"Invalid flush mode {self.flush_mode!r}; expected one of {FLUSH_MODES}."
            )
        if self.slow_query_ms < 0:
            raise ConfigurationError("slow_query_ms must not be negative.")

    @classmethod
    def from_env(
        cls, prefix: str = "CASCADEORM_", environ: Optional[Mapping[str, str]] = None
    ) -> "UnitOfWorkConfig":
        env = os.environ if environ is None else environ
        config = cls()
        raw = env.get(f"{prefix}AUTOMATIC_DIRTY_CHECKING")
        automatic = config.automatic_dirty_checking if raw is None else _parse_bool(raw, f"{prefix}AUTOMATIC_DIRTY_CHECKING")
        flush_mode = env.get(f"{prefix}FLUSH_MODE", config.flush_mode).strip().lower()
        raw = env.get(f"{prefix}SLOW_QUERY_MS")
        slow_query_ms = config.slow_query_ms if raw is None else _parse_int(raw, f"{prefix}SLOW_QUERY_MS")
        return cls(
            automatic_dirty_checking=automatic,
            flush_mode=flush_mode,
            slow_query_ms=slow_query_ms,
        )


def _parse_bool(value: str, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for {key}: {value!r}")


def _parse_int(value: str, key: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value for {key}: {value!r}") from exc
