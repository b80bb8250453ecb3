"""
Persistence layer: unit of work, identity map, commit ordering and sessions.
"""

from .commit_order import CommitOrderCalculator
from .config import FLUSH_AUTO, FLUSH_COMMIT, FLUSH_MANUAL, UnitOfWorkConfig
from .errors import (
    ConfigurationError,
    DetachedEntityError,
    DuplicateIdentityError,
    InvalidFieldValueError,
    InvalidStateError,
    MissingIdentityError,
    StorageError,
    UnitOfWorkError,
)
from .id_generators import AssignedGenerator, IdentityGenerator, IdGenerator, UUIDGenerator
from .identity_map import IdentityMap, identity_hash
from .metadata import Association, MetadataProvider, ModelMetadataProvider
from .persisters import (
    JoinedSubclassPersister,
    JoinTablePersister,
    PersisterDispatch,
    StandardEntityPersister,
)
from .session import Session
from .snapshots import SnapshotStore
from .states import CommitState, EntityState
from .transaction import TransactionError, TransactionManager
from .unit_of_work import UnitOfWork

__all__ = [
    "AssignedGenerator",
    "Association",
    "CommitOrderCalculator",
    "CommitState",
    "ConfigurationError",
    "DetachedEntityError",
    "DuplicateIdentityError",
    "EntityState",
    "FLUSH_AUTO",
    "FLUSH_COMMIT",
    "FLUSH_MANUAL",
    "IdGenerator",
    "IdentityGenerator",
    "IdentityMap",
    "InvalidFieldValueError",
    "InvalidStateError",
    "JoinTablePersister",
    "JoinedSubclassPersister",
    "MetadataProvider",
    "MissingIdentityError",
    "ModelMetadataProvider",
    "PersisterDispatch",
    "Session",
    "SnapshotStore",
    "StandardEntityPersister",
    "StorageError",
    "TransactionError",
    "TransactionManager",
    "UUIDGenerator",
    "UnitOfWork",
    "UnitOfWorkConfig",
    "UnitOfWorkError",
    "identity_hash",
]
