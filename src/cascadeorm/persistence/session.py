"""
Session coordinating the adapter, transaction boundary and unit of work.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional, Type

from ..adapters.base import ConnectionConfig, DatabaseAdapter
from ..core.model import Model
from ..dialects.base import Dialect
from ..dialects.sqlite import SQLiteDialect
from ..hooks import AFTER_COMMIT, HookDispatcher
from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from .config import FLUSH_AUTO, FLUSH_MANUAL, UnitOfWorkConfig
from .metadata import MetadataProvider, ModelMetadataProvider
from .persisters import PersisterDispatch
from .transaction import TransactionManager
from .unit_of_work import UnitOfWork


class Session:
    """
    Entry point for application code.

    Writes are scheduled on the unit of work and flushed according to
    ``config.flush_mode``; ``commit`` wraps the flush in a storage
    transaction and ``rollback`` discards all in-memory state.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        *,
        connection_config: Optional[ConnectionConfig] = None,
        dsn: Optional[str] = None,
        config: Optional[UnitOfWorkConfig] = None,
        metadata: Optional[MetadataProvider] = None,
    ) -> None:
        if connection_config is not None and dsn is not None:
            raise ValueError("Pass either connection_config or dsn, not both.")
        if connection_config is None:
            connection_config = ConnectionConfig.from_dsn(dsn) if dsn else ConnectionConfig(url="sqlite:///:memory:")
        self.adapter = adapter
        self.connection_config = connection_config
        self.config = config or UnitOfWorkConfig()
        self.dialect: Dialect = getattr(adapter, "dialect", None) or SQLiteDialect()
        self.metadata = metadata or ModelMetadataProvider()
        self.logger = get_logger("persistence.session")
        self.transaction_manager = TransactionManager(adapter, self.dialect)
        self.persisters = PersisterDispatch(adapter, self.metadata, slow_query_ms=self.config.slow_query_ms)
        self.unit_of_work = UnitOfWork(self.persisters, metadata=self.metadata, config=self.config)
        self.hooks: HookDispatcher = self.unit_of_work.hooks
        self.logger.debug("Opening session on %s", connection_config.descriptive_label())
        self.adapter.connect(connection_config)

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "Session":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type:
                self.rollback()
            else:
                self.commit()
        finally:
            self.close()

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin(self) -> None:
        if self.transaction_manager.depth > 0:
            self.flush()
        self.transaction_manager.begin()

    def commit(self) -> None:
        if self.transaction_manager.depth == 0:
            self.begin()
        if self.config.flush_mode != FLUSH_MANUAL:
            self.flush()
        self.transaction_manager.commit()
        if self.transaction_manager.depth == 0:
            self.hooks.fire(AFTER_COMMIT, None, session=self)

    def rollback(self) -> None:
        if self.transaction_manager.depth > 0:
            self.transaction_manager.rollback()
        # In-memory state may no longer match storage.
        self.unit_of_work.reset()

    @contextmanager
    def transaction(self) -> Iterator["Session"]:
        """
        Nested transaction scope backed by savepoints.
        """
        self.begin()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()

    def close(self) -> None:
        self.adapter.close()
        self.unit_of_work.reset()

    # ------------------------------------------------------------------ #
    # Unit of work operations
    # ------------------------------------------------------------------ #
    def save(self, instance: Model) -> None:
        self.unit_of_work.save(instance)
        if self.config.flush_mode == FLUSH_AUTO:
            self.flush()

    def delete(self, instance: Model) -> None:
        self.unit_of_work.delete(instance)
        if self.config.flush_mode == FLUSH_AUTO:
            self.flush()

    def register_dirty(self, instance: Model) -> None:
        self.unit_of_work.register_dirty(instance)

    def detach(self, instance: Model) -> None:
        self.unit_of_work.detach(instance)

    def clear(self) -> None:
        self.unit_of_work.clear()

    def flush(self) -> None:
        self.unit_of_work.commit()

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    def get(self, model: Type[Model], identifier: Any, *, refresh: bool = False) -> Optional[Model]:
        """
        Return the instance of ``model`` with ``identifier``, from the identity
        map when possible, otherwise loaded from storage.
        """
        if not refresh:
            cached = self.unit_of_work.try_get_by_id(model, identifier)
            if cached is not None:
                return cached
        row = self.persisters.entity_persister(model).load(identifier)
        if row is None:
            return None
        instance = self.unit_of_work.create_or_update_managed(model, row, refresh=refresh)
        if not isinstance(instance, model):
            return None
        return instance

    def execute(self, sql: str, params: Iterable[Any] | None = None) -> Any:
        param_list = list(params or [])
        with time_call(
            "session.execute",
            self.logger,
            sql=sql,
            params=redact_params(param_list),
            threshold_ms=self.config.slow_query_ms,
        ):
            return self.adapter.execute(sql, param_list)
