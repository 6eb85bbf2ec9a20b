"""ReportPortalClient against a local aiohttp server."""

import asyncio
import json

import pytest
from aiohttp import test_utils, web

from rpbridge.client import ClientErrorCode, ReportPortalClient
from rpbridge.config import ServerConfig
from rpbridge.reporting import (
    Attachment,
    FinishItemRequest,
    FinishLaunchRequest,
    ItemStatus,
    ItemType,
    LogEntry,
    LogLevel,
    StartItemRequest,
    StartLaunchRequest,
)


class FakeReportPortal:
    """Records requests and answers like the service would."""

    def __init__(self):
        self.requests: list[dict] = []
        self.status = 200
        self.raw_body: str | None = None
        self.delay = 0.0
        self.base_url = ""

    async def handle(self, request: web.Request) -> web.Response:
        record = {
            "method": request.method,
            "path": request.path,
            "authorization": request.headers.get("Authorization"),
        }
        if request.content_type.startswith("multipart/"):
            record["parts"] = await self._parts(request)
        else:
            record["json"] = await request.json()
        self.requests.append(record)

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_body is not None:
            return web.Response(status=self.status, text=self.raw_body)
        if self.status >= 400:
            return web.json_response({"message": "rejected"}, status=self.status)
        if request.method == "POST" and not request.path.endswith("/log"):
            return web.json_response({"id": f"uuid-{len(self.requests)}"}, status=201)
        return web.json_response({"message": "ok"})

    async def _parts(self, request: web.Request) -> dict:
        parts = {}
        reader = await request.multipart()
        while True:
            part = await reader.next()
            if part is None:
                return parts
            parts[part.name] = {"filename": part.filename, "content": await part.read()}


@pytest.fixture
async def rp():
    fake = FakeReportPortal()
    app = web.Application()
    app.router.add_route("*", "/api/v1/shop/{tail:.*}", fake.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    fake.base_url = str(server.make_url("/"))
    yield fake
    await server.close()


@pytest.fixture
async def client(rp):
    client = ReportPortalClient(ServerConfig(endpoint=rp.base_url, project="shop", token="tok"))
    async with client:
        yield client


async def test_start_launch(rp, client):
    response = await client.start_launch(StartLaunchRequest(name="Nightly", start_time=1))

    assert response.success
    assert response.item_id == "uuid-1"
    assert response.status == 201
    sent = rp.requests[0]
    assert sent["method"] == "POST"
    assert sent["path"] == "/api/v1/shop/launch"
    assert sent["authorization"] == "Bearer tok"
    assert sent["json"]["name"] == "Nightly"
    assert sent["json"]["startTime"] == 1


async def test_finish_launch(rp, client):
    response = await client.finish_launch("L1", FinishLaunchRequest(end_time=9))

    assert response.success
    assert rp.requests[0]["method"] == "PUT"
    assert rp.requests[0]["path"] == "/api/v1/shop/launch/L1/finish"
    assert rp.requests[0]["json"] == {"endTime": 9}


async def test_start_item_under_parent_and_root(rp, client):
    request = StartItemRequest(name="t1", item_type=ItemType.STEP, start_time=1)

    await client.start_item(request, "L1", "S1")
    await client.start_item(request, "L1", None)

    child, root = rp.requests
    assert child["path"] == "/api/v1/shop/item/S1"
    assert root["path"] == "/api/v1/shop/item"
    assert child["json"]["launchUuid"] == "L1"
    assert child["json"]["type"] == "STEP"


async def test_finish_item(rp, client):
    await client.finish_item("I1", "L1", FinishItemRequest(end_time=3, status=ItemStatus.FAILED))

    sent = rp.requests[0]
    assert sent["method"] == "PUT"
    assert sent["path"] == "/api/v1/shop/item/I1"
    assert sent["json"] == {"endTime": 3, "status": "FAILED", "launchUuid": "L1"}


async def test_send_log_as_json(rp, client):
    await client.send_log("L1", "I1", LogEntry("hello", LogLevel.ERROR, 5))
    await client.send_log("L1", None, LogEntry("launch", LogLevel.INFO, 6))

    item_log, launch_log = rp.requests
    assert item_log["path"] == "/api/v1/shop/log"
    assert item_log["json"] == {
        "message": "hello", "level": "ERROR", "time": 5, "launchUuid": "L1", "itemUuid": "I1",
    }
    assert "itemUuid" not in launch_log["json"]


async def test_send_log_with_attachment_is_multipart(rp, client):
    attachment = Attachment(name="shot.png", mime="image/png", content=b"\x89PNG")

    response = await client.send_log("L1", "I1", LogEntry("failed", LogLevel.ERROR, 5), attachment)

    assert response.success
    parts = rp.requests[0]["parts"]
    body = json.loads(parts["json_request_part"]["content"])
    assert body[0]["itemUuid"] == "I1"
    assert body[0]["file"] == {"name": "shot.png"}
    assert parts["file"]["filename"] == "shot.png"
    assert parts["file"]["content"] == b"\x89PNG"


async def test_http_error_status(rp, client):
    rp.status = 404

    response = await client.finish_launch("nope", FinishLaunchRequest(end_time=1))

    assert not response.success
    assert response.status == 404
    assert response.error.code == ClientErrorCode.HTTP_ERROR
    assert "HTTP 404" in response.error.message


async def test_invalid_json_response(rp, client):
    rp.raw_body = "<html>proxy error</html>"

    response = await client.start_launch(StartLaunchRequest(name="x", start_time=1))

    assert not response.success
    assert response.error.code == ClientErrorCode.INVALID_RESPONSE


async def test_timeout(rp):
    rp.delay = 1.0
    client = ReportPortalClient(ServerConfig(endpoint=rp.base_url, project="shop", timeout_ms=50))

    async with client:
        response = await client.start_launch(StartLaunchRequest(name="x", start_time=1))

    assert response.error.code == ClientErrorCode.TIMEOUT_ERROR


async def test_connection_refused():
    client = ReportPortalClient(ServerConfig(endpoint="http://127.0.0.1:1", project="shop"))

    async with client:
        response = await client.start_launch(StartLaunchRequest(name="x", start_time=1))

    assert not response.success
    assert response.error.code == ClientErrorCode.CONNECTION_ERROR


async def test_requires_connect():
    client = ReportPortalClient(ServerConfig(endpoint="http://127.0.0.1:1", project="shop"))

    response = await client.start_launch(StartLaunchRequest(name="x", start_time=1))

    assert response.error.code == ClientErrorCode.CONNECTION_ERROR
    assert not client.is_connected
