"""
In-memory reporting client.

Records every call instead of sending it anywhere. Used for dry runs
and as the collaborator in tests; failures and latency can be injected
per operation.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from .base import BaseReportingClient
from .models import ClientError, ClientResponse

if TYPE_CHECKING:
    from ..reporting.models import (
        Attachment,
        FinishItemRequest,
        FinishLaunchRequest,
        LogEntry,
        StartItemRequest,
        StartLaunchRequest,
    )

logger = logging.getLogger(__name__)

START_LAUNCH = "start_launch"
FINISH_LAUNCH = "finish_launch"
START_ITEM = "start_item"
FINISH_ITEM = "finish_item"
SEND_LOG = "send_log"


@dataclass
class RecordedCall:
    """One call received by the in-memory client."""
    operation: str
    request: Any = None
    launch_id: str | None = None
    item_id: str | None = None  # target of finish/log, or new id for starts
    parent_id: str | None = None
    attachment: Attachment | None = None

    @property
    def name(self) -> str | None:
        return getattr(self.request, "name", None)


@dataclass
class InMemoryClient(BaseReportingClient):
    """
    Reporting client that keeps everything in a list.

    Attributes:
        calls: Every successful call in the order it reached the client
        fail_on: Operation names ("start_item", ...) that should fail
        fail_names: Item names whose start should fail
        delays: Per-operation sleep in seconds, applied before recording
        name_delays: Extra sleep for calls about a given launch/item name
    """
    calls: list[RecordedCall] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)
    fail_names: set[str] = field(default_factory=set)
    delays: dict[str, float] = field(default_factory=dict)
    name_delays: dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        self._ids = itertools.count(1)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def operations(self) -> list[str]:
        return [c.operation for c in self.calls]

    def calls_for(self, operation: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.operation == operation]

    def started(self, name: str) -> RecordedCall | None:
        """The start call of the launch or item with this name."""
        for call in self.calls:
            if call.operation in (START_LAUNCH, START_ITEM) and call.name == name:
                return call
        return None

    def finished(self, item_id: str) -> RecordedCall | None:
        for call in self.calls:
            if call.operation in (FINISH_ITEM, FINISH_LAUNCH) and call.item_id == item_id:
                return call
        return None

    # ─────────────────────────────────────────────────────────────────────
    # Client interface
    # ─────────────────────────────────────────────────────────────────────

    async def start_launch(self, request: StartLaunchRequest) -> ClientResponse:
        return await self._record(RecordedCall(START_LAUNCH, request), new_id=True)

    async def finish_launch(self, launch_id: str, request: FinishLaunchRequest) -> ClientResponse:
        return await self._record(
            RecordedCall(FINISH_LAUNCH, request, launch_id=launch_id, item_id=launch_id)
        )

    async def start_item(
        self,
        request: StartItemRequest,
        launch_id: str,
        parent_id: str | None,
    ) -> ClientResponse:
        return await self._record(
            RecordedCall(START_ITEM, request, launch_id=launch_id, parent_id=parent_id),
            new_id=True,
        )

    async def finish_item(
        self,
        item_id: str,
        launch_id: str,
        request: FinishItemRequest,
    ) -> ClientResponse:
        return await self._record(
            RecordedCall(FINISH_ITEM, request, launch_id=launch_id, item_id=item_id)
        )

    async def send_log(
        self,
        launch_id: str,
        item_id: str | None,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> ClientResponse:
        return await self._record(
            RecordedCall(SEND_LOG, entry, launch_id=launch_id, item_id=item_id, attachment=attachment)
        )

    async def _record(self, call: RecordedCall, new_id: bool = False) -> ClientResponse:
        delay = self.delays.get(call.operation, 0) + self.name_delays.get(call.name or "", 0)
        if delay:
            await asyncio.sleep(delay)

        if call.operation in self.fail_on or (new_id and call.name in self.fail_names):
            logger.debug(f"Injected failure for {call.operation} {call.name or ''}")
            return ClientResponse.from_error(
                ClientError.http_error(500, "Injected failure", data={"operation": call.operation}),
                status=500,
            )

        if new_id:
            call.item_id = f"{call.operation.split('_')[1]}-{next(self._ids)}"
        self.calls.append(call)
        return ClientResponse.ok({"id": call.item_id} if new_id else {}, status=200)
