"""
Lifecycle bridge: runner events in, ordered reporting calls out.

The bridge subscribes to a runner's EventEmitter and turns each event
into zero or more dispatcher calls. It never waits on the network:
every call returns a handle straight away and the dispatcher takes
care of ordering on its own loop. What the bridge does keep is the
shape of the run: which suites are open, which handle each suite or
test was registered under, and which tests are still in flight.

Usage:
    from rpbridge.bridge import AsyncDispatcher, LifecycleBridge
    from rpbridge.client import InMemoryClient
    from rpbridge.config import dry_run_config

    bridge = LifecycleBridge(AsyncDispatcher(InMemoryClient()), dry_run_config())
    bridge.attach(emitter)
    ...                       # the runner emits its events
    summary = bridge.finalize()
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Callable

from ..reporting import payloads
from ..reporting.models import (
    FinishItemRequest,
    Issue,
    IssueType,
    ItemStatus,
    LogEntry,
    LogLevel,
)
from ..runner.events import EventType
from .context import RunContext
from .errors import (
    DUPLICATE_RUN_START,
    DUPLICATE_TEST_START,
    EVENTS_AFTER_END,
    EVENTS_WITHOUT_LAUNCH,
    FAILURE_AFTER_FINISH,
    HANDLER_ERRORS,
    IGNORED_UNTITLED,
    IMPLICIT_TEST_START,
    UNCLOSED_AT_END,
    UNMATCHED_SUITE_END,
    UNMATCHED_TEST_FINISH,
)
from .identifiers import IdentifierAllocator

if TYPE_CHECKING:
    from ..config import ReporterConfig
    from ..reporting.models import Attachment
    from ..reporting.summary import RunSummary
    from ..runner.events import EventEmitter, Suite, Test
    from .dispatcher import AsyncDispatcher, RemoteCall
    from .errors import Diagnostics
    from .handles import ItemHandle

logger = logging.getLogger(__name__)


class LifecycleBridge:
    """
    Maps one run's lifecycle events onto the reporting service.

    Handlers can be called directly or wired to an emitter with
    attach(). Attached handlers never raise into the runner.
    """

    def __init__(
        self,
        dispatcher: AsyncDispatcher,
        config: ReporterConfig,
        allocator: IdentifierAllocator | None = None,
    ):
        self.dispatcher = dispatcher
        self.config = config
        self.allocator = allocator or IdentifierAllocator()
        self.context = RunContext()
        self._subscriptions: list[tuple[EventType, Callable[..., None]]] = []

    @property
    def diagnostics(self) -> Diagnostics:
        return self.context.diagnostics

    @property
    def summary(self) -> RunSummary:
        return self.context.summary

    # ─────────────────────────────────────────────────────────────────────
    # Wiring
    # ─────────────────────────────────────────────────────────────────────

    def attach(self, emitter: EventEmitter) -> None:
        """Subscribe a shielded handler for every runner event."""
        handlers = {
            EventType.RUN_START: self.on_run_start,
            EventType.SUITE_START: self.on_suite_start,
            EventType.SUITE_END: self.on_suite_end,
            EventType.TEST_START: self.on_test_start,
            EventType.TEST_PENDING: self.on_test_pending,
            EventType.TEST_PASS: self.on_test_pass,
            EventType.TEST_FAIL: self.on_test_fail,
            EventType.RUN_END: self.on_run_end,
            EventType.LOG: self.on_log,
        }
        for event, handler in handlers.items():
            shielded = self._shield(event, handler)
            emitter.on(event, shielded)
            self._subscriptions.append((event, shielded))

    def detach(self, emitter: EventEmitter) -> None:
        for event, handler in self._subscriptions:
            emitter.off(event, handler)
        self._subscriptions.clear()

    def _shield(self, event: EventType, handler: Callable[..., None]) -> Callable[..., None]:
        @functools.wraps(handler)
        def shielded(*args: Any) -> None:
            try:
                handler(*args)
            except Exception:
                logger.exception(f"Reporter failed handling {event.value!r} event")
                self.context.diagnostics.bump(HANDLER_ERRORS, event.value)

        return shielded

    # ─────────────────────────────────────────────────────────────────────
    # Run
    # ─────────────────────────────────────────────────────────────────────

    def on_run_start(self) -> None:
        ctx = self.context
        if ctx.started:
            ctx.diagnostics.bump(DUPLICATE_RUN_START)
            return

        request = payloads.start_launch_request(self.config)
        ctx.launch = self.dispatcher.start_launch(request).handle
        ctx.summary.launch_name = request.name
        ctx.summary.start()
        logger.info(f"Launch {request.name!r} started ({ctx.launch.temp_id})")

    def on_run_end(self) -> None:
        ctx = self.context
        if not self._accepting("end"):
            return

        for scope in ctx.tracker.open_scopes():
            ctx.diagnostics.bump(UNCLOSED_AT_END, str(scope))

        self.dispatcher.finish_launch(ctx.launch, payloads.finish_launch_request())
        ctx.finished = True
        ctx.summary.complete()
        ctx.summary.anomalies = ctx.diagnostics.as_dict()
        logger.info(f"Launch {ctx.summary.launch_name!r} finished")

    def finalize(self, timeout: float | None = None) -> RunSummary:
        """
        Wait for outstanding calls, shut the dispatcher down and settle the summary.

        Returns:
            The run summary, with remote failures counted
        """
        if timeout is None:
            timeout = self.config.reporter.drain_timeout_s
        if not self.dispatcher.close(timeout):
            logger.warning("Reporting calls were still pending when the dispatcher closed")

        failures = self.dispatcher.sink.drain()
        summary = self.context.summary
        summary.remote_errors = self.dispatcher.sink.total
        summary.anomalies = self.context.diagnostics.as_dict()
        if failures:
            logger.warning(f"{len(failures)} reporting call(s) failed during the run")
        return summary

    # ─────────────────────────────────────────────────────────────────────
    # Suites
    # ─────────────────────────────────────────────────────────────────────

    def on_suite_start(self, suite: Suite) -> None:
        ctx = self.context
        if not self._accepting("suite") or not self._titled(suite.title, "suite"):
            return

        # Looked up before this suite pushes its own handle.
        parent = ctx.enclosing_handle()
        scope = self.allocator.suite_scope()
        suite.cid = scope
        call = self.dispatcher.start_item(payloads.start_suite_request(suite), ctx.launch, parent)
        ctx.tracker.push(scope, call.handle, parent)
        ctx.enter_suite(suite)
        ctx.summary.suites += 1
        logger.debug(f"Suite {suite.title!r} started as {call.handle.temp_id} under {parent or 'launch'}")

    def on_suite_end(self, suite: Suite) -> None:
        ctx = self.context
        if not self._accepting("suite end") or not self._titled(suite.title, "suite end"):
            return

        handle = ctx.tracker.pop(suite.cid)
        if handle is None:
            ctx.diagnostics.bump(UNMATCHED_SUITE_END, suite.title)
            return
        self.dispatcher.finish_item(handle, payloads.finish_suite_request())
        ctx.leave_suite(suite)

    # ─────────────────────────────────────────────────────────────────────
    # Tests
    # ─────────────────────────────────────────────────────────────────────

    def on_test_start(self, test: Test) -> None:
        ctx = self.context
        if not self._accepting("test") or not self._titled(test.title, "test"):
            return
        if test.cid is not None and test.cid in ctx.ledger:
            ctx.diagnostics.bump(DUPLICATE_TEST_START, test.title)
            return
        self._start_test(test)

    def on_test_pending(self, test: Test) -> None:
        if not self._accepting("pending") or not self._titled(test.title, "pending"):
            return
        if self._already_finished(test):
            self.context.diagnostics.bump(UNMATCHED_TEST_FINISH, test.title)
            return

        self._open_test(test)
        request = FinishItemRequest(
            end_time=payloads.timestamp(),
            status=ItemStatus.SKIPPED,
            issue=Issue(IssueType.NOT_ISSUE),
        )
        self._finish_test(test, request)

    def on_test_pass(self, test: Test) -> None:
        ctx = self.context
        if not self._accepting("pass") or not self._titled(test.title, "pass"):
            return
        if ctx.tracker.parent_of(test.cid) is None:
            ctx.diagnostics.bump(UNMATCHED_TEST_FINISH, test.title)
            return

        request = FinishItemRequest(
            end_time=payloads.timestamp(),
            status=ItemStatus.PASSED,
            description=test.body,
        )
        self._finish_test(test, request)

    def on_test_fail(self, test: Test) -> None:
        ctx = self.context
        if not self._accepting("fail") or not self._titled(test.title, "fail"):
            return
        if self._already_finished(test):
            self._late_failure(test)
            return

        handle = self._open_test(test)
        node = ctx.tracker.node(test.cid)
        log_target = node.parent if node.parent is not None else ctx.launch

        entry = LogEntry(
            message=payloads.failure_message(test.err),
            level=LogLevel.ERROR,
            time=payloads.timestamp(),
        )
        attachment = payloads.screenshot_attachment(test.title, self.config.reporter.screenshot_dir)
        log_call = self.dispatcher.send_log(log_target, entry, attachment)
        # The finish below must not overtake the failure log.
        handle.track(log_call.future)

        ctx.ledger.retain_failure(test.cid)
        message = test.err.message if test.err is not None else ""
        request = FinishItemRequest(
            end_time=payloads.timestamp(),
            status=ItemStatus.FAILED,
            description=payloads.failure_description(test.body, message),
        )
        self._finish_test(test, request, message)

    def _start_test(self, test: Test) -> ItemHandle:
        ctx = self.context
        parent = ctx.enclosing_handle()
        scope = self.allocator.test_scope()
        test.cid = scope
        call = self.dispatcher.start_item(payloads.start_test_request(test), ctx.launch, parent)
        ctx.ledger.record(scope, call.future)
        ctx.tracker.push(scope, call.handle, parent)
        ctx.current_test = test
        return call.handle

    def _late_failure(self, test: Test) -> None:
        """A failure reported after the test already has its outcome (an after-each hook)."""
        ctx = self.context
        ctx.diagnostics.bump(FAILURE_AFTER_FINISH, test.title)
        target = ctx.log_target() or ctx.launch
        entry = LogEntry(
            message=f"{test.title} failed after finishing:\n{payloads.failure_message(test.err)}",
            level=LogLevel.ERROR,
            time=payloads.timestamp(),
        )
        self.dispatcher.send_log(target, entry)

    def _already_finished(self, test: Test) -> bool:
        return test.cid is not None and self.context.tracker.parent_of(test.cid) is None

    def _open_test(self, test: Test) -> ItemHandle:
        """The test's handle, starting the test first if it never was."""
        handle = self.context.tracker.parent_of(test.cid)
        if handle is None:
            self.context.diagnostics.bump(IMPLICIT_TEST_START, test.title)
            handle = self._start_test(test)
        return handle

    def _finish_test(self, test: Test, request: FinishItemRequest, message: str | None = None) -> RemoteCall:
        ctx = self.context
        handle = ctx.tracker.pop(test.cid)
        ctx.ledger.purge(test.cid)
        call = self.dispatcher.finish_item(handle, request)
        ctx.summary.record(test.title, request.status, message)
        if ctx.current_test is test:
            ctx.current_test = None
        return call

    # ─────────────────────────────────────────────────────────────────────
    # Logs
    # ─────────────────────────────────────────────────────────────────────

    def on_log(self, level: Any, message: str, attachment: Attachment | None = None) -> None:
        """
        Out-of-band log from the runner.

        Goes to the current test, else the innermost open suite, else the
        launch. Unknown levels are sent as INFO.
        """
        ctx = self.context
        if not self._accepting("log"):
            return

        target = ctx.log_target() or ctx.launch
        entry = LogEntry(message=str(message), level=LogLevel.coerce(level), time=payloads.timestamp())
        self.dispatcher.send_log(target, entry, attachment)

    # ─────────────────────────────────────────────────────────────────────
    # Guards
    # ─────────────────────────────────────────────────────────────────────

    def _accepting(self, event: str) -> bool:
        ctx = self.context
        if not ctx.started:
            ctx.diagnostics.bump(EVENTS_WITHOUT_LAUNCH, event)
            return False
        if ctx.finished:
            ctx.diagnostics.bump(EVENTS_AFTER_END, event)
            return False
        return True

    def _titled(self, title: str | None, event: str) -> bool:
        if title:
            return True
        self.context.diagnostics.bump(IGNORED_UNTITLED, event)
        return False
