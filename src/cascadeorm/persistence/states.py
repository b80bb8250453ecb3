"""
Lifecycle states of entities and of the unit of work commit protocol.
"""

from __future__ import annotations

import enum


class EntityState(enum.Enum):
    NEW = "new"
    MANAGED = "managed"
    DETACHED = "detached"
    DELETED = "deleted"


class CommitState(enum.Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    ORDERING = "ordering"
    WRITING = "writing"
    SNAPSHOTTING = "snapshotting"
    FAILED = "failed"
