"""
Hierarchy tracking.

The tracker is an arena of nodes keyed by CorrelationScope. Each node
holds the stack of item handles opened under that scope and the
(possibly still unresolved) handle of the ancestor it was registered
under. Handles are pushed as soon as a start call is submitted, so
the recorded ancestry follows event arrival order rather than the
order in which the reporting service answers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from .handles import ItemHandle
    from .identifiers import CorrelationScope

logger = logging.getLogger(__name__)


@dataclass
class HierarchyNode:
    """Tracking state for one suite or test."""
    scope: CorrelationScope
    parent: ItemHandle | None = None  # None means the launch is the parent
    handles: list[ItemHandle] = field(default_factory=list)

    @property
    def top(self) -> ItemHandle | None:
        return self.handles[-1] if self.handles else None


class HierarchyTracker:
    """
    Per-scope parent stacks.

    Invariants:
        - a scope's stack length is pushes minus pops for that scope
        - pop on an empty or unknown scope is a no-op
        - a node is removed from the arena as soon as its stack empties
    """

    def __init__(self):
        self._nodes: dict[CorrelationScope, HierarchyNode] = {}

    def parent_of(self, scope: CorrelationScope | None) -> ItemHandle | None:
        """
        Top of the stack for a scope.

        Returns:
            The handle, or None when the scope has nothing open (the
            launch itself is then the parent)
        """
        if scope is None:
            return None
        node = self._nodes.get(scope)
        return node.top if node else None

    def push(
        self,
        scope: CorrelationScope,
        handle: ItemHandle,
        parent: ItemHandle | None = None,
    ) -> HierarchyNode:
        """
        Append a handle to a scope's stack, creating the node if needed.

        The parent is only recorded when the node is created.
        """
        node = self._nodes.get(scope)
        if node is None:
            node = HierarchyNode(scope=scope, parent=parent)
            self._nodes[scope] = node
        node.handles.append(handle)
        return node

    def pop(self, scope: CorrelationScope | None) -> ItemHandle | None:
        """Remove and return the top handle of a scope; None if there is none."""
        if scope is None:
            return None
        node = self._nodes.get(scope)
        if node is None or not node.handles:
            logger.debug(f"Ignoring pop on empty scope {scope}")
            return None
        handle = node.handles.pop()
        if not node.handles:
            del self._nodes[scope]
        return handle

    def node(self, scope: CorrelationScope | None) -> HierarchyNode | None:
        if scope is None:
            return None
        return self._nodes.get(scope)

    def depth(self, scope: CorrelationScope | None) -> int:
        node = self.node(scope)
        return len(node.handles) if node else 0

    def open_scopes(self) -> Iterator[CorrelationScope]:
        """Scopes with something still open, oldest first."""
        return iter(sorted(self._nodes))

    def __contains__(self, scope: object) -> bool:
        return scope in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)
