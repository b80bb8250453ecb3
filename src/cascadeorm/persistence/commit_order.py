"""
Commit order calculator: a depth-first topological sort that tolerates cycles.

Nodes are arbitrary hashable keys (entity classes, join-table associations,
or entity instance ids when ordering rows of a single type). An edge
``dependency -> dependent`` means the dependency must be written first.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

from ..utils import get_logger

NOT_VISITED = 0
IN_PROGRESS = 1
VISITED = 2


class CommitOrderCalculator:
    """
    Builds the dependency graph lazily and produces a deterministic order.

    Nodes are visited in insertion order and each node's dependencies are
    emitted before the node itself. When the walk meets a node that is still
    in progress the edge closes a cycle; it is skipped, so the order falls
    back to discovery order for the nodes on that cycle. The computed order is
    cached until a node or edge is added.
    """

    def __init__(self, name: str = "commit_order") -> None:
        self.logger = get_logger(f"persistence.{name}")
        self._nodes: Dict[Hashable, Any] = {}
        self._dependencies: Dict[Hashable, Dict[Hashable, None]] = {}
        self._order: Optional[List[Hashable]] = None
        self.cycles: List[Tuple[Hashable, Hashable]] = []

    def add_node(self, key: Hashable, item: Any = None) -> None:
        if key in self._nodes:
            return
        self._nodes[key] = item
        self._dependencies[key] = {}
        self._order = None

    def has_node(self, key: Hashable) -> bool:
        return key in self._nodes

    def get_node(self, key: Hashable) -> Any:
        return self._nodes[key]

    def nodes(self) -> List[Hashable]:
        return list(self._nodes)

    def add_dependency(self, dependency: Hashable, dependent: Hashable) -> None:
        """
        Record that ``dependency`` must come before ``dependent``.
        """
        if dependency == dependent:
            return
        if dependency not in self._nodes or dependent not in self._nodes:
            raise KeyError(f"Both nodes must be added before linking {dependency!r} -> {dependent!r}")
        edges = self._dependencies[dependent]
        if dependency not in edges:
            edges[dependency] = None
            self._order = None

    before = add_dependency

    def get_order(self) -> List[Hashable]:
        if self._order is None:
            self._order = self._sort()
        return list(self._order)

    def clear(self) -> None:
        self._nodes.clear()
        self._dependencies.clear()
        self._order = None
        self.cycles = []

    def __len__(self) -> int:
        return len(self._nodes)

    def _sort(self) -> List[Hashable]:
        state = {key: NOT_VISITED for key in self._nodes}
        order: List[Hashable] = []
        self.cycles = []

        # Iterative walk so long chains of self-referencing rows cannot hit
        # the recursion limit.
        for start in self._nodes:
            if state[start] != NOT_VISITED:
                continue
            state[start] = IN_PROGRESS
            stack: List[Tuple[Hashable, Iterator[Hashable]]] = [(start, iter(self._dependencies[start]))]
            while stack:
                key, pending = stack[-1]
                for dependency in pending:
                    dependency_state = state[dependency]
                    if dependency_state == NOT_VISITED:
                        state[dependency] = IN_PROGRESS
                        stack.append((dependency, iter(self._dependencies[dependency])))
                        break
                    if dependency_state == IN_PROGRESS:
                        self.cycles.append((dependency, key))
                        self.logger.debug(
                            "Cycle between %r and %r; falling back to discovery order", key, dependency
                        )
                else:
                    stack.pop()
                    state[key] = VISITED
                    order.append(key)
        return order
