"""
Snapshot store holding the field values last synchronized with storage.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple


def _copy_value(value: Any) -> Any:
    # Collections are snapshotted as tuples so later appends to the live
    # list do not leak into the snapshot.
    if isinstance(value, (list, set, tuple)):
        return tuple(value)
    return value


class SnapshotStore:
    """
    Original entity data keyed by entity instance.

    Each entry holds the entity itself, so an ``id()`` key is never reused
    by another object while its snapshot is stored.
    """

    def __init__(self) -> None:
        self._data: Dict[int, Tuple[Any, Dict[str, Any]]] = {}

    def capture(self, entity: Any, data: Mapping[str, Any]) -> None:
        self._data[id(entity)] = (entity, {name: _copy_value(value) for name, value in data.items()})

    def get(self, entity: Any) -> Dict[str, Any]:
        entry = self._data.get(id(entity))
        if entry is None or entry[0] is not entity:
            return {}
        return entry[1]

    def has(self, entity: Any) -> bool:
        entry = self._data.get(id(entity))
        return entry is not None and entry[0] is entity

    def set_field(self, entity: Any, field: str, value: Any) -> None:
        if not self.has(entity):
            self._data[id(entity)] = (entity, {})
        self._data[id(entity)][1][field] = _copy_value(value)

    def remove(self, entity: Any) -> None:
        if self.has(entity):
            del self._data[id(entity)]

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
