"""
Fire-and-forget dispatch of reporting calls.

The runner delivers events synchronously and must never wait on the
network. The dispatcher owns an asyncio event loop on a daemon thread;
each call is scheduled there and returns at once with a handle and a
concurrent future. Dependencies between calls are honoured on the
loop, not in the caller:

- a start waits for its launch and parent handles to resolve
- a finish waits for its own handle and every operation tracked on it
- a launch finish waits for everything submitted before it

If a dependency fails, the dependent call is not sent and fails with
DependencyError. Every failure is reported to the ErrorSink.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Coroutine

from ..client.models import ClientError
from ..reporting.models import ItemType
from .errors import DependencyError, ErrorSink, RemoteCallError
from .handles import HandleKind, ItemHandle

if TYPE_CHECKING:
    from ..client.base import BaseReportingClient
    from ..client.models import ClientResponse
    from ..reporting.models import (
        Attachment,
        FinishItemRequest,
        FinishLaunchRequest,
        LogEntry,
        StartItemRequest,
        StartLaunchRequest,
    )

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteCall:
    """What a dispatched call returns immediately: the handle it concerns and its future."""
    handle: ItemHandle
    future: Future


class LoopThread:
    """An asyncio event loop running forever on a daemon thread."""

    def __init__(self, name: str = "rpbridge-dispatch"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self, timeout: float = 5.0) -> None:
        """Cancel whatever is still scheduled, stop the loop and join the thread."""
        if not self.is_running:
            return
        try:
            self.submit(_cancel_pending()).result(timeout)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out cancelling pending reporting calls")
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
        if not self._thread.is_alive():
            self.loop.close()


async def _cancel_pending() -> None:
    current = asyncio.current_task()
    tasks = [t for t in asyncio.all_tasks() if t is not current]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


class AsyncDispatcher:
    """
    Future-returning facade over a reporting client.

    Example:
        with AsyncDispatcher(InMemoryClient()) as dispatcher:
            launch = dispatcher.start_launch(request).handle
            suite = dispatcher.start_item(suite_request, launch, None).handle
            dispatcher.finish_item(suite, payloads.finish_suite_request())
            dispatcher.finish_launch(launch, payloads.finish_launch_request())
    """

    def __init__(self, client: BaseReportingClient, sink: ErrorSink | None = None):
        self.client = client
        self.sink = sink or ErrorSink()
        self._loop_thread: LoopThread | None = None
        self._inflight: set[Future] = set()
        self._lock = threading.Lock()
        self._submitted = 0

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self._loop_thread is not None

    @property
    def submitted(self) -> int:
        """Number of calls submitted so far."""
        return self._submitted

    def open(self, timeout: float = 30.0) -> None:
        """Start the loop thread and connect the client. Idempotent."""
        if self._loop_thread is not None:
            return
        self._loop_thread = LoopThread()
        self._loop_thread.start()
        self._loop_thread.submit(self.client.connect()).result(timeout)
        logger.debug(f"Dispatcher opened with {self.client!r}")

    def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for every submitted call to settle.

        Returns:
            True if everything settled, False if the timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            pending = self._pending()
            if not pending:
                return True
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = concurrent.futures.wait(pending, timeout=remaining)
            if not_done and deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"{len(not_done)} reporting call(s) still pending after {timeout}s")
                return False

    def close(self, timeout: float = 60.0) -> bool:
        """
        Drain, disconnect the client and stop the loop.

        Returns:
            True if every call settled before the timeout
        """
        if self._loop_thread is None:
            return True
        drained = self.drain(timeout)
        try:
            self._loop_thread.submit(self.client.disconnect()).result(timeout)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out disconnecting the reporting client")
        self._loop_thread.stop()
        self._loop_thread = None
        return drained

    def __enter__(self) -> AsyncDispatcher:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────────────
    # Calls
    # ─────────────────────────────────────────────────────────────────────

    def start_launch(self, request: StartLaunchRequest) -> RemoteCall:
        future = self._submit(self._start_launch(request), "start_launch", request.name)
        return RemoteCall(ItemHandle(HandleKind.LAUNCH, request.name, future), future)

    def finish_launch(self, launch: ItemHandle, request: FinishLaunchRequest) -> RemoteCall:
        pending = self._pending()
        future = self._submit(
            self._finish_launch(launch, request, pending), "finish_launch", launch.temp_id
        )
        return RemoteCall(launch, future)

    def start_item(
        self,
        request: StartItemRequest,
        launch: ItemHandle,
        parent: ItemHandle | None = None,
    ) -> RemoteCall:
        """
        Start a suite or test under a parent, or under the launch when parent is None.

        The parent may still be unresolved; the call is held on the loop
        until it resolves.
        """
        owner = parent if parent is not None else launch
        kind = HandleKind.SUITE if request.item_type == ItemType.SUITE else HandleKind.TEST
        future = self._submit(
            self._start_item(request, launch, parent), "start_item", request.name
        )
        owner.track(future)
        return RemoteCall(ItemHandle(kind, request.name, future, parent=owner), future)

    def finish_item(self, item: ItemHandle, request: FinishItemRequest) -> RemoteCall:
        launch = _launch_of(item)
        pending = item.pending_operations()
        future = self._submit(
            self._finish_item(item, launch, request, pending), "finish_item", item.temp_id
        )
        if item.parent is not None:
            item.parent.track(future)
        return RemoteCall(item, future)

    def send_log(
        self,
        target: ItemHandle,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> RemoteCall:
        """Send a log entry to an item, or to the launch when target is the launch handle."""
        launch = _launch_of(target)
        future = self._submit(
            self._send_log(target, launch, entry, attachment), "send_log", target.temp_id
        )
        target.track(future)
        return RemoteCall(target, future)

    # ─────────────────────────────────────────────────────────────────────
    # Coroutines (run on the loop thread)
    # ─────────────────────────────────────────────────────────────────────

    async def _start_launch(self, request: StartLaunchRequest) -> str:
        response = await self.client.start_launch(request)
        return _unwrap_id("start_launch", response)

    async def _finish_launch(
        self,
        launch: ItemHandle,
        request: FinishLaunchRequest,
        pending: list[Future],
    ) -> None:
        launch_id = await _resolve(launch, "finish_launch")
        await _settle(pending)
        _unwrap("finish_launch", await self.client.finish_launch(launch_id, request))

    async def _start_item(
        self,
        request: StartItemRequest,
        launch: ItemHandle,
        parent: ItemHandle | None,
    ) -> str:
        launch_id = await _resolve(launch, "start_item")
        parent_id = await _resolve(parent, "start_item") if parent is not None else None
        response = await self.client.start_item(request, launch_id, parent_id)
        return _unwrap_id("start_item", response)

    async def _finish_item(
        self,
        item: ItemHandle,
        launch: ItemHandle,
        request: FinishItemRequest,
        pending: list[Future],
    ) -> None:
        item_id = await _resolve(item, "finish_item")
        launch_id = await _resolve(launch, "finish_item")
        await _settle(pending)
        _unwrap("finish_item", await self.client.finish_item(item_id, launch_id, request))

    async def _send_log(
        self,
        target: ItemHandle,
        launch: ItemHandle,
        entry: LogEntry,
        attachment: Attachment | None,
    ) -> None:
        launch_id = await _resolve(launch, "send_log")
        item_id = None if target is launch else await _resolve(target, "send_log")
        _unwrap("send_log", await self.client.send_log(launch_id, item_id, entry, attachment))

    # ─────────────────────────────────────────────────────────────────────
    # Plumbing
    # ─────────────────────────────────────────────────────────────────────

    def _submit(self, coro: Coroutine[Any, Any, Any], operation: str, target: str | None) -> Future:
        if self._loop_thread is None:
            self.open()
        future = self._loop_thread.submit(coro)
        with self._lock:
            self._inflight.add(future)
            self._submitted += 1
        future.add_done_callback(self._settled)
        future.add_done_callback(self.sink.watch(operation, target))
        return future

    def _settled(self, future: Future) -> None:
        with self._lock:
            self._inflight.discard(future)

    def _pending(self) -> list[Future]:
        with self._lock:
            return [f for f in self._inflight if not f.done()]


def _launch_of(handle: ItemHandle) -> ItemHandle:
    while handle.parent is not None:
        handle = handle.parent
    return handle


async def _resolve(handle: ItemHandle, operation: str) -> str:
    try:
        return await asyncio.wrap_future(handle.future)
    except Exception as e:
        raise DependencyError(operation, handle) from e


async def _settle(pending: list[Future]) -> None:
    """Wait for operations to finish, whatever their outcome."""
    if pending:
        await asyncio.gather(*(asyncio.wrap_future(f) for f in pending), return_exceptions=True)


def _unwrap(operation: str, response: ClientResponse) -> None:
    if not response.success:
        raise RemoteCallError(
            operation,
            response.error or ClientError.invalid_response("Call failed without error details"),
        )


def _unwrap_id(operation: str, response: ClientResponse) -> str:
    _unwrap(operation, response)
    item_id = response.item_id
    if item_id is None:
        raise RemoteCallError(
            operation,
            ClientError.invalid_response("Response carries no id", data=response.result),
        )
    return item_id
