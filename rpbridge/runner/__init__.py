"""
Test runner side

The event model a runner speaks (suites, tests, lifecycle events on an
emitter) and a replayer that drives an emitter from a recorded log.

Usage:
    from rpbridge.runner import EventEmitter, load_event_log, EventReplayer

    emitter = EventEmitter()
    bridge.attach(emitter)
    EventReplayer(emitter).replay(load_event_log("run.jsonl"))
"""

from .events import EventEmitter, EventType, Suite, Test, TestError
from .replay import (
    EventRecord,
    EventReplayer,
    ReplayError,
    load_event_log,
    parse_records,
    replay_events,
)

__all__ = [
    # Events
    "EventEmitter",
    "EventType",
    "Suite",
    "Test",
    "TestError",
    # Replay
    "EventRecord",
    "EventReplayer",
    "ReplayError",
    "load_event_log",
    "parse_records",
    "replay_events",
]
