"""
Identity map ensuring a single in-memory instance per stored row.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from .metadata import MetadataProvider

IDENTITY_SEPARATOR = " "


def identity_hash(values: Iterable[Any]) -> str:
    """
    Join identifier components into the registry key; empty when any
    component is missing.
    """
    parts = list(values)
    if not parts or any(value is None for value in parts):
        return ""
    return IDENTITY_SEPARATOR.join(str(value) for value in parts)


def normalize_identifier(identifier: Any) -> Tuple[Any, ...]:
    if isinstance(identifier, tuple):
        return identifier
    if isinstance(identifier, list):
        return tuple(identifier)
    return (identifier,)


class IdentityMap:
    """
    Stores entities keyed by (root type, identity hash).

    Subclasses in an inheritance hierarchy share their root's key space, so a
    lookup by the root class finds any concrete subtype. The key an entity was
    registered under is remembered, which keeps removal correct even if the
    identifier attribute was changed afterwards.
    """

    def __init__(self, metadata: MetadataProvider) -> None:
        self.metadata = metadata
        self._store: Dict[Tuple[type, str], Any] = {}
        self._keys: Dict[int, Tuple[type, str]] = {}

    def key_for(self, entity: Any) -> Tuple[type, str]:
        model = type(entity)
        return self.metadata.root_type(model), identity_hash(self.metadata.identifier_values(entity))

    def register(self, entity: Any) -> bool:
        root, id_hash = self.key_for(entity)
        if not id_hash:
            return False
        if (root, id_hash) in self._store or id(entity) in self._keys:
            return False
        self._store[(root, id_hash)] = entity
        self._keys[id(entity)] = (root, id_hash)
        return True

    def lookup(self, root_type: type, id_hash: str) -> Optional[Any]:
        return self._store.get((root_type, id_hash))

    def get(self, model: type, identifier: Any) -> Optional[Any]:
        id_hash = identity_hash(normalize_identifier(identifier))
        if not id_hash:
            return None
        found = self.lookup(self.metadata.root_type(model), id_hash)
        if found is not None and not isinstance(found, model):
            return None
        return found

    def remove(self, entity: Any) -> bool:
        key = self._keys.pop(id(entity), None)
        if key is None:
            return False
        self._store.pop(key, None)
        return True

    def is_registered(self, entity: Any) -> bool:
        return id(entity) in self._keys

    def clear(self) -> None:
        self._store.clear()
        self._keys.clear()

    def values(self) -> List[Any]:
        return list(self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, entity: Any) -> bool:
        return self.is_registered(entity)
