"""
Remote handles for launches and items.

A handle is issued the moment a start call is submitted, long before
the reporting service has answered. It carries a temporary id for
local bookkeeping and a future that resolves to the remote id.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future
from enum import Enum


class HandleKind(str, Enum):
    LAUNCH = "launch"
    SUITE = "suite"
    TEST = "test"


class ItemHandle:
    """
    Future-resolved identifier of a launch, suite or test.

    Besides the remote id, a handle remembers the operations that were
    submitted against it (child starts and finishes, logs) until they
    settle. A finish call on the handle waits for all of them first.
    """

    def __init__(
        self,
        kind: HandleKind,
        name: str,
        future: Future,
        parent: ItemHandle | None = None,
    ):
        self.temp_id = f"{kind.value}-{uuid.uuid4().hex[:12]}"
        self.kind = kind
        self.name = name
        self.future = future
        self.parent = parent
        # Settled operations drop out from their done-callbacks.
        self._operations: set[Future] = set()
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        return self.future.done() and not self.future.cancelled() and self.future.exception() is None

    @property
    def remote_id(self) -> str | None:
        """The remote id once resolved, None before or on failure."""
        return self.future.result() if self.resolved else None

    @property
    def tracked(self) -> int:
        with self._lock:
            return len(self._operations)

    def track(self, operation: Future) -> None:
        with self._lock:
            self._operations.add(operation)
        operation.add_done_callback(self._settled)

    def pending_operations(self) -> list[Future]:
        """Snapshot of tracked operations that have not settled yet."""
        with self._lock:
            return [op for op in self._operations if not op.done()]

    def _settled(self, operation: Future) -> None:
        with self._lock:
            self._operations.discard(operation)

    def __repr__(self) -> str:
        state = f"remote_id={self.remote_id!r}" if self.resolved else "unresolved"
        return f"ItemHandle({self.temp_id}, {self.name!r}, {state})"
