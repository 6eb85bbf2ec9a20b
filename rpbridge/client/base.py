"""
Base client interface for the reporting service.

This module defines the abstract base class that all reporting
clients must follow. Methods take already-resolved remote ids; the
dispatcher is responsible for waiting on handles before calling them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..reporting.models import (
        Attachment,
        FinishItemRequest,
        FinishLaunchRequest,
        LogEntry,
        StartItemRequest,
        StartLaunchRequest,
    )
    from .models import ClientResponse


class BaseReportingClient(ABC):
    """
    Abstract base class for reporting clients.

    Clients handle the low-level communication with the reporting
    service and report failures through ClientResponse instead of
    raising.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Prepare the client for use (open sessions, pools, ...)."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release everything acquired by connect()."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Return True if the client is currently connected."""
        pass

    @abstractmethod
    async def start_launch(self, request: StartLaunchRequest) -> ClientResponse:
        """Start a launch; a successful response carries the launch id."""
        pass

    @abstractmethod
    async def finish_launch(self, launch_id: str, request: FinishLaunchRequest) -> ClientResponse:
        pass

    @abstractmethod
    async def start_item(
        self,
        request: StartItemRequest,
        launch_id: str,
        parent_id: str | None,
    ) -> ClientResponse:
        """
        Start a suite or test.

        Args:
            request: What to start
            launch_id: Remote id of the launch the item belongs to
            parent_id: Remote id of the parent item, or None for a root item

        Returns:
            ClientResponse whose item_id is the new item's remote id
        """
        pass

    @abstractmethod
    async def finish_item(
        self,
        item_id: str,
        launch_id: str,
        request: FinishItemRequest,
    ) -> ClientResponse:
        pass

    @abstractmethod
    async def send_log(
        self,
        launch_id: str,
        item_id: str | None,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> ClientResponse:
        """
        Send a log entry.

        A None item_id addresses the launch itself.
        """
        pass

    async def __aenter__(self) -> BaseReportingClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
