"""
Transaction boundary with savepoint-based nesting.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from typing import Generator, List, Optional

from ..adapters.base import DatabaseAdapter
from ..dialects.base import Dialect
from ..utils import get_logger


class TransactionError(RuntimeError):
    pass


class TransactionManager:
    """
    The outermost ``begin`` opens a storage transaction; nested calls open
    savepoints named ``sp_<n>`` when the dialect supports them.
    """

    def __init__(self, adapter: DatabaseAdapter, dialect: Dialect) -> None:
        self.adapter = adapter
        self.dialect = dialect
        self.logger = get_logger("persistence.transaction")
        self._stack: List[Optional[str]] = []
        self._savepoints = itertools.count(1)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def active(self) -> bool:
        return bool(self._stack)

    def begin(self) -> None:
        if not self._stack:
            self.adapter.begin()
            self._stack.append(None)
            self.logger.debug("Transaction started")
            return
        if not self.dialect.capabilities.supports_savepoints:
            raise TransactionError("Nested transactions are not supported by the current dialect.")
        name = f"sp_{next(self._savepoints)}"
        self.adapter.execute(f"SAVEPOINT {name}")
        self._stack.append(name)
        self.logger.debug("Savepoint %s created", name)

    def commit(self) -> None:
        if not self._stack:
            raise TransactionError("No active transaction to commit.")
        name = self._stack.pop()
        if name is None:
            self.adapter.commit()
            self.logger.debug("Transaction committed")
        else:
            self.adapter.execute(f"RELEASE SAVEPOINT {name}")

    def rollback(self) -> None:
        if not self._stack:
            raise TransactionError("No active transaction to roll back.")
        name = self._stack.pop()
        if name is None:
            self.adapter.rollback()
            self.logger.debug("Transaction rolled back")
            return
        self.adapter.execute(f"ROLLBACK TO SAVEPOINT {name}")
        self.adapter.execute(f"RELEASE SAVEPOINT {name}")

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        self.begin()
        try:
            yield
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()
