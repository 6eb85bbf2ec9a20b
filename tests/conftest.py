"""Shared fixtures for rpbridge tests."""

from concurrent.futures import Future

import pytest

from rpbridge.bridge import AsyncDispatcher, LifecycleBridge
from rpbridge.client import InMemoryClient
from rpbridge.config import dry_run_config
from rpbridge.runner import EventEmitter


def resolved(value: str = "remote-1") -> Future:
    future = Future()
    future.set_result(value)
    return future


@pytest.fixture
def client() -> InMemoryClient:
    return InMemoryClient()


@pytest.fixture
def dispatcher(client):
    dispatcher = AsyncDispatcher(client)
    yield dispatcher
    dispatcher.close(timeout=5)


@pytest.fixture
def config():
    return dry_run_config("unit launch")


@pytest.fixture
def bridge(dispatcher, config) -> LifecycleBridge:
    return LifecycleBridge(dispatcher, config)


@pytest.fixture
def emitter(bridge) -> EventEmitter:
    emitter = EventEmitter()
    bridge.attach(emitter)
    return emitter
