"""
HTTP client for a ReportPortal-style reporting service.

This module implements the reporting client over the service's REST
API using aiohttp:
- JSON bodies over POST/PUT
- multipart uploads for log entries that carry an attachment
- bearer-token authentication
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, TYPE_CHECKING

import aiohttp

from .base import BaseReportingClient
from .models import ClientError, ClientResponse

if TYPE_CHECKING:
    from ..config import ServerConfig
    from ..reporting.models import (
        Attachment,
        FinishItemRequest,
        FinishLaunchRequest,
        LogEntry,
        StartItemRequest,
        StartLaunchRequest,
    )

logger = logging.getLogger(__name__)

# Headers
AUTHORIZATION = "Authorization"
ACCEPT = "Accept"

# Content types
JSON_CONTENT_TYPE = "application/json"

# Multipart field names expected by the log endpoint
JSON_REQUEST_PART = "json_request_part"
FILE_PART = "file"


class ReportPortalClient(BaseReportingClient):
    """
    Reporting client for the ReportPortal REST API.

    Every method returns a ClientResponse; transport errors, timeouts
    and non-2xx statuses are converted to ClientError values.
    """

    def __init__(self, config: ServerConfig):
        """
        Initialize the client.

        Args:
            config: Endpoint, project, token and timeout of the service
        """
        self.config = config
        self.api_base = config.api_base
        self._session: aiohttp.ClientSession | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._session is not None

    def _build_headers(self) -> dict[str, str]:
        headers = {ACCEPT: JSON_CONTENT_TYPE}
        if self.config.token:
            headers[AUTHORIZATION] = f"Bearer {self.config.token}"
        return headers

    async def connect(self) -> None:
        """Create the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self._build_headers())
        self._connected = True

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
        self._connected = False

    # ─────────────────────────────────────────────────────────────────────
    # Launch
    # ─────────────────────────────────────────────────────────────────────

    async def start_launch(self, request: StartLaunchRequest) -> ClientResponse:
        return await self._request("POST", "/launch", json_body=request.to_dict())

    async def finish_launch(self, launch_id: str, request: FinishLaunchRequest) -> ClientResponse:
        return await self._request(
            "PUT", f"/launch/{launch_id}/finish", json_body=request.to_dict()
        )

    # ─────────────────────────────────────────────────────────────────────
    # Items
    # ─────────────────────────────────────────────────────────────────────

    async def start_item(
        self,
        request: StartItemRequest,
        launch_id: str,
        parent_id: str | None,
    ) -> ClientResponse:
        body = request.to_dict()
        body["launchUuid"] = launch_id
        path = f"/item/{parent_id}" if parent_id else "/item"
        return await self._request("POST", path, json_body=body)

    async def finish_item(
        self,
        item_id: str,
        launch_id: str,
        request: FinishItemRequest,
    ) -> ClientResponse:
        body = request.to_dict()
        body["launchUuid"] = launch_id
        return await self._request("PUT", f"/item/{item_id}", json_body=body)

    # ─────────────────────────────────────────────────────────────────────
    # Logs
    # ─────────────────────────────────────────────────────────────────────

    async def send_log(
        self,
        launch_id: str,
        item_id: str | None,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> ClientResponse:
        body = entry.to_dict()
        body["launchUuid"] = launch_id
        if item_id:
            body["itemUuid"] = item_id

        if attachment is None:
            return await self._request("POST", "/log", json_body=body)

        body["file"] = {"name": attachment.name}
        form = aiohttp.FormData()
        form.add_field(
            JSON_REQUEST_PART,
            json.dumps([body]),
            content_type=JSON_CONTENT_TYPE,
        )
        form.add_field(
            FILE_PART,
            attachment.content,
            filename=attachment.name,
            content_type=attachment.mime,
        )
        return await self._request("POST", "/log", form=form)

    # ─────────────────────────────────────────────────────────────────────
    # Plumbing
    # ─────────────────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
        form: aiohttp.FormData | None = None,
    ) -> ClientResponse:
        """
        Send one request and convert the outcome to a ClientResponse.

        Args:
            method: HTTP method
            path: Path below the project API base, e.g. "/launch"
            json_body: JSON payload
            form: Multipart payload (used instead of json_body)
        """
        if not self.is_connected:
            return ClientResponse.from_error(
                ClientError.connection_error("Client not connected. Call connect() first.")
            )

        url = f"{self.api_base}{path}"
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_ms / 1000)
        logger.debug(f"{method} {url}")

        try:
            async with self._session.request(
                method,
                url,
                json=json_body if form is None else None,
                data=form,
                timeout=timeout,
            ) as resp:
                text = await resp.text()

                if not 200 <= resp.status < 300:
                    return ClientResponse.from_error(
                        ClientError.http_error(
                            resp.status,
                            resp.reason,
                            data={"url": url, "body": text[:500]},
                        ),
                        status=resp.status,
                    )

                if not text:
                    return ClientResponse.ok(status=resp.status)

                try:
                    data = json.loads(text)
                except json.JSONDecodeError as e:
                    return ClientResponse.from_error(
                        ClientError.invalid_response(
                            f"Invalid JSON response: {e}",
                            data={"url": url, "body": text[:500]},
                        ),
                        status=resp.status,
                    )
                return ClientResponse.ok(data, status=resp.status)

        except asyncio.TimeoutError:
            return ClientResponse.from_error(
                ClientError.timeout_error(
                    f"Request timed out after {self.config.timeout_ms}ms",
                    data={"url": url, "method": method},
                )
            )
        except aiohttp.ClientConnectorError as e:
            return ClientResponse.from_error(
                ClientError.connection_error(
                    f"Connection failed: {e}",
                    data={"url": url},
                )
            )
        except aiohttp.ClientError as e:
            return ClientResponse.from_error(
                ClientError.connection_error(
                    f"HTTP error: {e}",
                    data={"url": url},
                )
            )

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        return f"ReportPortalClient(api_base={self.api_base!r}, status={status})"
