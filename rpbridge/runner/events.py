"""
Runner-side event model.

A test runner announces its progress by emitting named events on an
EventEmitter. Suites and tests travel with the events as mutable
objects so that the reporter can stamp a correlation id on them at
start time and find it again at end time.
"""

from __future__ import annotations

import logging
import traceback
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from ..bridge.identifiers import CorrelationScope

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Lifecycle events emitted by a test runner."""
    RUN_START = "start"
    SUITE_START = "suite"
    SUITE_END = "suite end"
    TEST_START = "test"
    TEST_PENDING = "pending"
    TEST_PASS = "pass"
    TEST_FAIL = "fail"
    RUN_END = "end"
    LOG = "rp:log"


@dataclass
class TestError:
    """Failure details carried by a failed test."""
    __test__ = False

    message: str
    stack: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> TestError:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(message=f"{type(exc).__name__}: {exc}", stack=stack)


@dataclass(eq=False)
class Suite:
    """A group of tests, possibly nested inside another suite."""
    title: str
    file: str | None = None
    cid: CorrelationScope | None = None


@dataclass(eq=False)
class Test:
    """A single test as seen by the reporter."""
    __test__ = False

    title: str
    body: str = ""
    file: str | None = None
    err: TestError | None = None
    cid: CorrelationScope | None = None


Handler = Callable[..., Any]


class EventEmitter:
    """
    Minimal synchronous event emitter.

    Handlers run in registration order, in the emitting thread, and
    the emit call returns only after every handler has returned.

    Example:
        emitter = EventEmitter()
        emitter.on(EventType.SUITE_START, lambda suite: print(suite.title))
        emitter.emit(EventType.SUITE_START, Suite("checkout"))
    """

    def __init__(self):
        self._handlers: dict[EventType, list[Handler]] = defaultdict(list)

    def on(self, event: EventType | str, handler: Handler) -> None:
        """Register a handler for an event."""
        self._handlers[EventType(event)].append(handler)

    def off(self, event: EventType | str, handler: Handler) -> None:
        """Remove a previously registered handler; unknown handlers are ignored."""
        handlers = self._handlers.get(EventType(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def listeners(self, event: EventType | str) -> list[Handler]:
        return list(self._handlers.get(EventType(event), []))

    def emit(self, event: EventType | str, *args: Any) -> int:
        """
        Deliver an event to its handlers.

        Returns:
            The number of handlers that were called
        """
        event = EventType(event)
        handlers = self.listeners(event)
        logger.debug(f"Emitting {event.value!r} to {len(handlers)} handler(s)")
        for handler in handlers:
            handler(*args)
        return len(handlers)
