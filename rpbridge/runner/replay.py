"""
Replay of recorded runner events.

A fake runner that reads a one-event-per-line JSON log and emits each
event on an EventEmitter, so that a recorded run can be reported
again (or reported for the first time, from a runner that only knows
how to write a log).

Log format, one JSON object per line:

    {"event": "start"}
    {"event": "suite", "id": "s1", "title": "checkout", "file": "checkout.spec.js"}
    {"event": "test", "id": "t1", "title": "pays", "body": "..."}
    {"event": "fail", "id": "t1", "error": {"message": "boom", "stack": "..."}}
    {"event": "rp:log", "level": "info", "message": "retrying payment"}
    {"event": "suite end", "id": "s1"}
    {"event": "end"}

Events that share an "id" refer to the same suite or test object, so
the correlation id stamped on it at start time is found again at end
time. Without an "id", records are matched by title: a suite end closes
the innermost open suite with that title, and a pass, pending or fail
finishes the most recently started open test with that title. Blank
lines and lines starting with "#" are skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from .events import EventEmitter, EventType, Suite, Test, TestError

logger = logging.getLogger(__name__)

SUITE_EVENTS = {EventType.SUITE_START, EventType.SUITE_END}
TEST_EVENTS = {EventType.TEST_START, EventType.TEST_PENDING, EventType.TEST_PASS, EventType.TEST_FAIL}


class ReplayError(Exception):
    """The event log cannot be replayed."""

    def __init__(self, message: str, line_no: int | None = None):
        self.line_no = line_no
        where = f"line {line_no}: " if line_no is not None else ""
        super().__init__(f"{where}{message}")


@dataclass
class EventRecord:
    """One parsed line of an event log."""
    event: EventType
    line_no: int
    key: str | None = None
    title: str = ""
    body: str | None = None
    file: str | None = None
    error: TestError | None = None
    level: str = "info"
    message: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Parsing
# ─────────────────────────────────────────────────────────────────────────────

def parse_records(lines: Iterable[str]) -> list[EventRecord]:
    """
    Parse every line of a log up front.

    A malformed log is rejected before a single event is emitted.

    Raises:
        ReplayError: on invalid JSON, unknown events or bad field types
    """
    records = []
    for line_no, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ReplayError(f"Invalid JSON: {e.msg}", line_no) from e
        records.append(_record(data, line_no))
    return records


def load_event_log(path: str | Path) -> list[EventRecord]:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return parse_records(f)
    except OSError as e:
        raise ReplayError(f"Cannot read event log {path}: {e.strerror or e}") from e


def _record(data: Any, line_no: int) -> EventRecord:
    if not isinstance(data, dict):
        raise ReplayError("Each line must be a JSON object", line_no)

    name = data.get("event")
    try:
        event = EventType(name)
    except ValueError:
        known = ", ".join(repr(e.value) for e in EventType)
        raise ReplayError(f"Unknown event {name!r} (expected one of {known})", line_no) from None

    for field_name in ("id", "title", "body", "file", "message"):
        value = data.get(field_name)
        if value is not None and not isinstance(value, (str, int)):
            raise ReplayError(f"Field {field_name!r} must be a string", line_no)

    return EventRecord(
        event=event,
        line_no=line_no,
        key=_optional_str(data.get("id")),
        title=str(data.get("title") or ""),
        body=_optional_str(data.get("body")),
        file=_optional_str(data.get("file")),
        error=_error(data.get("error"), line_no),
        level=str(data.get("level") or "info"),
        message=str(data.get("message") or ""),
    )


def _error(value: Any, line_no: int) -> TestError | None:
    if value is None:
        return None
    if isinstance(value, str):
        return TestError(message=value)
    if isinstance(value, dict):
        return TestError(message=str(value.get("message", "")), stack=str(value.get("stack") or ""))
    raise ReplayError("Field 'error' must be a string or an object with message/stack", line_no)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


# ─────────────────────────────────────────────────────────────────────────────
# Replay
# ─────────────────────────────────────────────────────────────────────────────

class EventReplayer:
    """
    Turns records back into runner objects and emits them.

    Suites and tests with an id are kept by id for the lifetime of the
    replayer, so later events reuse the object an earlier event created.
    Records without an id are matched by title against the suites and
    tests that are still open, innermost first.
    """

    def __init__(self, emitter: EventEmitter):
        self.emitter = emitter
        self._suites: dict[str, Suite] = {}
        self._tests: dict[str, Test] = {}
        self._open_suites: dict[str, list[Suite]] = {}
        self._open_tests: dict[str, list[Test]] = {}
        # Last title-matched test to finish; a later fail for it (a failing
        # after-each hook) reuses it instead of creating a new test.
        self._last_finished: Test | None = None

    def replay(self, records: Iterable[EventRecord]) -> int:
        """
        Emit every record in order.

        Returns:
            The number of events emitted
        """
        emitted = 0
        for record in records:
            self.emitter.emit(record.event, *self._arguments(record))
            emitted += 1
        logger.debug(f"Replayed {emitted} event(s)")
        return emitted

    def _arguments(self, record: EventRecord) -> tuple[Any, ...]:
        if record.event in SUITE_EVENTS:
            return (self._suite(record),)
        if record.event in TEST_EVENTS:
            return (self._test(record),)
        if record.event == EventType.LOG:
            return (record.level, record.message)
        return ()

    def _suite(self, record: EventRecord) -> Suite:
        self._last_finished = None
        if record.key is None:
            return self._suite_by_title(record)
        if record.key in self._tests:
            raise ReplayError(f"Id {record.key!r} already names a test", record.line_no)
        suite = self._suites.get(record.key)
        if suite is None:
            suite = Suite(title=record.title, file=record.file)
            self._suites[record.key] = suite
        return suite

    def _suite_by_title(self, record: EventRecord) -> Suite:
        open_suites = self._open_suites.setdefault(record.title, [])
        if record.event == EventType.SUITE_START:
            suite = Suite(title=record.title, file=record.file)
            open_suites.append(suite)
            return suite
        if open_suites:
            return open_suites.pop()
        return Suite(title=record.title, file=record.file)

    def _test(self, record: EventRecord) -> Test:
        if record.key is None:
            test = self._test_by_title(record)
        else:
            if record.key in self._suites:
                raise ReplayError(f"Id {record.key!r} already names a suite", record.line_no)
            test = self._tests.get(record.key)
            if test is None:
                test = Test(title=record.title, file=record.file)
                self._tests[record.key] = test
        if record.body is not None:
            test.body = record.body
        if record.error is not None:
            test.err = record.error
        return test

    def _test_by_title(self, record: EventRecord) -> Test:
        open_tests = self._open_tests.setdefault(record.title, [])
        if record.event == EventType.TEST_START:
            self._last_finished = None
            test = Test(title=record.title, file=record.file)
            open_tests.append(test)
            return test

        if open_tests:
            test = open_tests.pop()
        elif (
            record.event == EventType.TEST_FAIL
            and self._last_finished is not None
            and self._last_finished.title == record.title
        ):
            test = self._last_finished
        else:
            test = Test(title=record.title, file=record.file)
        self._last_finished = test
        return test


def replay_events(lines: Iterable[str], emitter: EventEmitter) -> int:
    """Parse a JSON-lines log and emit its events; returns the number emitted."""
    return EventReplayer(emitter).replay(parse_records(lines))
