"""
Per-run state of a lifecycle bridge.

One RunContext belongs to one bridge and one run. Nothing here is
module-level, so two runs in the same process never see each other's
suites, tests or handles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..reporting.summary import RunSummary
from .errors import Diagnostics
from .hierarchy import HierarchyTracker
from .ledger import CompletionLedger

if TYPE_CHECKING:
    from ..runner.events import Suite, Test
    from .handles import ItemHandle


@dataclass
class RunContext:
    """Everything the bridge knows about the run in progress."""
    launch: ItemHandle | None = None
    finished: bool = False
    tracker: HierarchyTracker = field(default_factory=HierarchyTracker)
    ledger: CompletionLedger = field(default_factory=CompletionLedger)
    suite_chain: list[Suite] = field(default_factory=list)  # innermost last
    current_test: Test | None = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    summary: RunSummary = field(default_factory=RunSummary)

    @property
    def started(self) -> bool:
        return self.launch is not None

    @property
    def innermost_suite(self) -> Suite | None:
        return self.suite_chain[-1] if self.suite_chain else None

    def enclosing_handle(self) -> ItemHandle | None:
        """Handle of the innermost open suite; None when only the launch is open."""
        suite = self.innermost_suite
        return self.tracker.parent_of(suite.cid) if suite is not None else None

    def enter_suite(self, suite: Suite) -> None:
        self.suite_chain.append(suite)

    def leave_suite(self, suite: Suite) -> None:
        # Suites normally end innermost first, but tolerate any order.
        for index in range(len(self.suite_chain) - 1, -1, -1):
            if self.suite_chain[index] is suite:
                del self.suite_chain[index]
                return

    def log_target(self) -> ItemHandle | None:
        """Where an out-of-band log goes: the current test, else the innermost suite."""
        if self.current_test is not None:
            handle = self.tracker.parent_of(self.current_test.cid)
            if handle is not None:
                return handle
        return self.enclosing_handle()
