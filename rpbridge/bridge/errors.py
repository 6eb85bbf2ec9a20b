"""
Error channel and diagnostics for the bridge.

Remote calls fail asynchronously. Their futures are watched by an
ErrorSink which logs each failure and keeps it until drained; nothing
is ever raised back into the runner. Malformed event sequences are
not errors at all: they are counted by Diagnostics and skipped.
"""

from __future__ import annotations

import logging
import queue
from collections import Counter
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..client.models import ClientError
    from .handles import ItemHandle

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class ReportingError(Exception):
    """Base class for failures of reporting calls."""


class RemoteCallError(ReportingError):
    """The reporting service (or the way to it) rejected a call."""

    def __init__(self, operation: str, error: ClientError):
        super().__init__(f"{operation} failed: {error}")
        self.operation = operation
        self.error = error


class DependencyError(ReportingError):
    """A call was not sent because a handle it depends on never resolved."""

    def __init__(self, operation: str, handle: ItemHandle):
        super().__init__(f"{operation} skipped: {handle.temp_id} ({handle.name!r}) did not resolve")
        self.operation = operation
        self.handle = handle


# ─────────────────────────────────────────────────────────────────────────────
# Error sink
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class CallFailure:
    """One failed remote call."""
    operation: str
    target: str | None
    error: BaseException
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_dependency_failure(self) -> bool:
        return isinstance(self.error, DependencyError)

    def __str__(self) -> str:
        target = f" [{self.target}]" if self.target else ""
        return f"{self.operation}{target}: {self.error}"


class ErrorSink:
    """
    Collects failures of remote calls.

    watch() returns a done-callback for a call's future. The callback
    runs on the dispatcher's loop thread; failures are handed over
    through a thread-safe queue and read back with drain().
    """

    def __init__(self):
        self._failures: queue.SimpleQueue[CallFailure] = queue.SimpleQueue()
        self._total = 0

    def watch(self, operation: str, target: str | None = None) -> Callable[[Future], None]:
        """Done-callback that records the future's exception, if any."""
        def on_done(future: Future) -> None:
            try:
                error = future.exception()
            except CancelledError:
                logger.warning(f"Reporting call {operation} [{target}] was cancelled")
                return
            if error is not None:
                self.record(CallFailure(operation, target, error))

        return on_done

    def record(self, failure: CallFailure) -> None:
        self._total += 1
        if failure.is_dependency_failure:
            logger.warning(f"Reporting call skipped: {failure}")
        else:
            logger.error(f"Reporting call failed: {failure}")
        self._failures.put(failure)

    @property
    def total(self) -> int:
        """Failures recorded since creation, drained or not."""
        return self._total

    def drain(self) -> list[CallFailure]:
        """Remove and return every failure recorded so far."""
        failures = []
        while True:
            try:
                failures.append(self._failures.get_nowait())
            except queue.Empty:
                return failures


# ─────────────────────────────────────────────────────────────────────────────
# Diagnostics
# ─────────────────────────────────────────────────────────────────────────────

UNMATCHED_SUITE_END = "unmatched_suite_end"
UNMATCHED_TEST_FINISH = "unmatched_test_finish"
IGNORED_UNTITLED = "ignored_untitled"
DUPLICATE_RUN_START = "duplicate_run_start"
DUPLICATE_TEST_START = "duplicate_test_start"
EVENTS_WITHOUT_LAUNCH = "events_without_launch"
EVENTS_AFTER_END = "events_after_end"
IMPLICIT_TEST_START = "implicit_test_start"
FAILURE_AFTER_FINISH = "failure_after_finish"
UNCLOSED_AT_END = "unclosed_at_end"
HANDLER_ERRORS = "handler_errors"

# Expected in normal runs; logged at DEBUG instead of WARNING.
_ROUTINE = {IGNORED_UNTITLED, IMPLICIT_TEST_START}


class Diagnostics:
    """Counters for event sequences the bridge chose to skip or patch up."""

    def __init__(self):
        self._counts: Counter[str] = Counter()

    def bump(self, name: str, detail: str = "") -> None:
        self._counts[name] += 1
        message = f"{name}{': ' + detail if detail else ''}"
        if name in _ROUTINE:
            logger.debug(message)
        else:
            logger.warning(f"Event sequence anomaly {message}")

    def __getitem__(self, name: str) -> int:
        return self._counts[name]

    def as_dict(self) -> dict[str, int]:
        return dict(self._counts)
