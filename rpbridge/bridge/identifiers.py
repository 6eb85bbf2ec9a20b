"""
Correlation identifiers for suites and tests.

Every suite or test that starts gets a CorrelationScope under which all
of its later events are tracked. Scopes are ordered by allocation time
and unique for the lifetime of their allocator, even when the clock
returns the same reading twice.
"""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass
from typing import Callable

SUITE = "suite"
TEST = "test"


@dataclass(frozen=True, order=True)
class CorrelationScope:
    """Opaque, comparable identity of one suite or test instance."""
    stamp_ns: int
    seq: int
    kind: str

    @property
    def is_suite(self) -> bool:
        return self.kind == SUITE

    def __str__(self) -> str:
        return f"{self.kind}-{self.stamp_ns}-{self.seq}"


class IdentifierAllocator:
    """
    Hands out CorrelationScopes.

    The clock reading orders scopes in time; the counter breaks ties so
    that two allocations within the same clock tick never collide.
    """

    def __init__(self, clock: Callable[[], int] = time.monotonic_ns):
        self._clock = clock
        self._counter = itertools.count()
        self._last_stamp = 0

    def suite_scope(self) -> CorrelationScope:
        return self._allocate(SUITE)

    def test_scope(self) -> CorrelationScope:
        return self._allocate(TEST)

    def _allocate(self, kind: str) -> CorrelationScope:
        # Clamp so ordering survives a clock that steps backwards.
        stamp = max(self._clock(), self._last_stamp)
        self._last_stamp = stamp
        return CorrelationScope(stamp_ns=stamp, seq=next(self._counter), kind=kind)
