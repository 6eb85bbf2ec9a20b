"""
Async completion ledger.

Maps each in-flight test to the future of its start call. Entries are
purged on every terminal transition, so the ledger holds at most the
tests that are open right now. Start futures of failed tests are kept
in a side table for later correlation.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .identifiers import CorrelationScope


class CompletionLedger:
    """Test scope → start future, plus a side table for failures."""

    def __init__(self):
        self._pending: dict[CorrelationScope, Future] = {}
        self._failed: dict[CorrelationScope, Future] = {}

    def record(self, scope: CorrelationScope, future: Future) -> None:
        self._pending[scope] = future

    def get(self, scope: CorrelationScope | None) -> Future | None:
        if scope is None:
            return None
        return self._pending.get(scope)

    def purge(self, scope: CorrelationScope | None) -> Future | None:
        """Drop a test's entry; purging an unknown scope is a no-op."""
        if scope is None:
            return None
        return self._pending.pop(scope, None)

    def retain_failure(self, scope: CorrelationScope | None) -> Future | None:
        """Copy a test's start future into the failure table before it is purged."""
        future = self.get(scope)
        if future is not None:
            self._failed[scope] = future
        return future

    def failed(self, scope: CorrelationScope) -> Future | None:
        return self._failed.get(scope)

    @property
    def failed_count(self) -> int:
        return len(self._failed)

    def __contains__(self, scope: object) -> bool:
        return scope in self._pending

    def __len__(self) -> int:
        return len(self._pending)
