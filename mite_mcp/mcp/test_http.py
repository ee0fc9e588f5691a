"""Tests for HTTP Transport.

Exercises the session state machine through the request router with
in-memory requests, plus a socket-level round trip.
"""

import asyncio
import json
from typing import Optional
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

from mite_mcp.mcp.harness import rpc
from mite_mcp.mcp.server import ErrorCode
from mite_mcp.mcp.http import (
    CORS_HEADERS,
    SESSION_HEADER,
    HttpConnection,
    HttpRequest,
    HttpResponse,
    HttpTransport,
    StreamableSession,
    allowed_hosts,
    read_chunked_body,
)


INITIALIZE = rpc("initialize", {"protocolVersion": "2025-06-18", "capabilities": {}})

BAD_SESSION = {
    "jsonrpc": "2.0",
    "error": {"code": -32000, "message": "Bad Request: No valid session ID provided"},
    "id": None,
}


class FakeWriter:
    """Collects bytes written to a connection."""

    def __init__(self):
        self.data = bytearray()

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        pass


def request(
    method: str,
    body=None,
    session_id: Optional[str] = None,
    host: Optional[str] = "localhost:3000",
    path: Optional[str] = "/",
    raw: Optional[bytes] = None,
) -> HttpRequest:
    headers = {}
    if host is not None:
        headers["host"] = host
    if session_id is not None:
        headers[SESSION_HEADER.lower()] = session_id
    if raw is None:
        raw = json.dumps(body).encode() if body is not None else b""
    return HttpRequest(method=method, path=path, headers=headers, body=raw)


def body_of(response: HttpResponse):
    return json.loads(response.body.decode())


@pytest.fixture
def transport(core):
    return HttpTransport(core, port=3000, host="localhost", keepalive_interval=0.05)


async def initialize(transport) -> str:
    response = await transport._route_request(request("POST", INITIALIZE))
    assert response.status == 200
    return response.headers[SESSION_HEADER]


class TestRouting:

    @pytest.mark.asyncio
    async def test_options_preflight(self, transport):
        response = await transport._route_request(request("OPTIONS", path="/anything"))

        assert response.status == 200
        assert response.body == b""
        for key, value in CORS_HEADERS.items():
            assert response.headers[key] == value

    @pytest.mark.asyncio
    async def test_missing_url(self, transport):
        response = await transport._route_request(request("GET", path=None))

        assert response.status == 400
        assert response.body == b"Bad Request"

    @pytest.mark.asyncio
    async def test_unknown_path(self, transport):
        response = await transport._route_request(request("POST", INITIALIZE, path="/other"))

        assert response.status == 404
        assert response.body == b"Not Found"
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert transport.session_count == 0

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, transport):
        response = await transport._route_request(request("PUT", path="/mcp"))

        assert response.status == 405
        assert response.body == b"Method Not Allowed"

    @pytest.mark.asyncio
    async def test_mcp_alias(self, transport):
        response = await transport._route_request(request("POST", INITIALIZE, path="/mcp"))

        assert response.status == 200
        assert transport.has_session(response.headers[SESSION_HEADER])


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_initialize_creates_session(self, transport):
        response = await transport._route_request(request("POST", INITIALIZE))

        assert response.status == 200
        session_id = response.headers[SESSION_HEADER]
        assert transport.has_session(session_id)
        assert body_of(response)["result"]["serverInfo"]["name"] == "mite-mcp"
        assert response.headers["Access-Control-Allow-Headers"] == (
            "Content-Type, Authorization, Mcp-Session-Id"
        )

    @pytest.mark.asyncio
    async def test_follow_up_reuses_session(self, transport):
        session_id = await initialize(transport)

        response = await transport._route_request(request(
            "POST",
            rpc("tools/call", {"name": "add", "arguments": {"a": "4", "b": "5"}}, msg_id=2),
            session_id=session_id,
        ))

        assert response.status == 200
        assert response.headers[SESSION_HEADER] == session_id
        assert transport.session_count == 1
        result = body_of(response)
        assert result["id"] == 2
        assert json.loads(result["result"]["content"][0]["text"]) == {"sum": 9}

    @pytest.mark.asyncio
    async def test_each_initialize_gets_a_new_id(self, transport):
        first = await initialize(transport)
        second = await initialize(transport)

        assert first != second
        assert transport.session_count == 2

    @pytest.mark.asyncio
    async def test_second_initialize_on_session_rejected(self, transport):
        session_id = await initialize(transport)

        response = await transport._route_request(request("POST", INITIALIZE, session_id=session_id))

        assert response.status == 400
        assert body_of(response)["error"]["message"] == "Invalid Request: Server already initialized"

    @pytest.mark.asyncio
    async def test_delete_terminates(self, transport):
        session_id = await initialize(transport)

        response = await transport._route_request(request("DELETE", session_id=session_id))
        assert response.status == 200
        assert not transport.has_session(session_id)

        for method in ("GET", "DELETE"):
            response = await transport._route_request(request(method, session_id=session_id))
            assert response.status == 400
            assert response.body == b"Invalid or missing session ID"

        response = await transport._route_request(request("POST", rpc("ping"), session_id=session_id))
        assert response.status == 400
        assert body_of(response) == BAD_SESSION

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, transport):
        session_id = await initialize(transport)
        session = transport._sessions[session_id]

        await session.close()
        await session.close()

        assert session.closed
        assert transport.session_count == 0

    @pytest.mark.asyncio
    async def test_notification_only_post_accepted(self, transport):
        session_id = await initialize(transport)

        response = await transport._route_request(request(
            "POST", rpc("notifications/initialized", msg_id=None), session_id=session_id
        ))

        assert response.status == 202
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_batch(self, transport):
        session_id = await initialize(transport)

        response = await transport._route_request(request(
            "POST", [rpc("ping", msg_id=1), rpc("tools/list", msg_id=2)], session_id=session_id
        ))

        assert [r["id"] for r in body_of(response)] == [1, 2]

    @pytest.mark.asyncio
    async def test_initialize_in_batch(self, transport):
        response = await transport._route_request(request("POST", [INITIALIZE]))

        assert response.status == 200
        assert isinstance(body_of(response), list)
        assert transport.session_count == 1


class TestRejections:

    @pytest.mark.asyncio
    async def test_post_without_session_or_initialize(self, transport):
        response = await transport._route_request(request("POST", rpc("tools/list")))

        assert response.status == 400
        assert body_of(response) == BAD_SESSION
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_post_with_unknown_session(self, transport):
        response = await transport._route_request(request("POST", rpc("ping"), session_id="nope"))

        assert response.status == 400
        assert body_of(response) == BAD_SESSION

    @pytest.mark.asyncio
    async def test_initialize_with_stale_session_header(self, transport):
        response = await transport._route_request(request("POST", INITIALIZE, session_id="stale"))

        assert response.status == 400
        assert transport.session_count == 0

    @pytest.mark.asyncio
    async def test_invalid_json(self, transport):
        response = await transport._route_request(request("POST", raw=b"{oops"))

        assert response.status == 500
        assert body_of(response) == {
            "jsonrpc": "2.0",
            "error": {"code": -32603, "message": "Internal server error"},
            "id": None,
        }

    @pytest.mark.asyncio
    async def test_get_without_session(self, transport):
        await initialize(transport)

        response = await transport._route_request(request("GET"))

        assert response.status == 400
        assert response.body == b"Invalid or missing session ID"

    @pytest.mark.asyncio
    async def test_closed_session_still_in_table(self, transport, core):
        session = StreamableSession(core, transport.allowed_hosts, lambda s: None, lambda s: None)
        session.closed = True
        transport._sessions[session.session_id] = session

        for method in ("GET", "DELETE"):
            response = await transport._route_request(
                request(method, session_id=session.session_id), HttpConnection(FakeWriter())
            )
            assert response.status == 500
            assert response.body == b"Transport not found"


class TestHostValidation:

    @pytest.mark.parametrize("host", [
        "localhost",
        "127.0.0.1",
        "localhost:3000",
        "127.0.0.1:3000",
    ])
    @pytest.mark.asyncio
    async def test_allowed(self, transport, host):
        response = await transport._route_request(request("POST", INITIALIZE, host=host))

        assert response.status == 200

    @pytest.mark.parametrize("host", ["evil.com", "evil.com:3000", "localhost:4000", None])
    @pytest.mark.asyncio
    async def test_rejected_before_session_exists(self, transport, host):
        response = await transport._route_request(request("POST", INITIALIZE, host=host))

        assert response.status == 403
        assert body_of(response)["error"]["code"] == ErrorCode.SERVER_ERROR.value == -32000
        assert "Invalid Host header" in body_of(response)["error"]["message"]
        assert transport.session_count == 0

    @pytest.mark.asyncio
    async def test_rejected_on_existing_session(self, transport):
        session_id = await initialize(transport)

        response = await transport._route_request(
            request("DELETE", session_id=session_id, host="attacker.example")
        )

        assert response.status == 403
        assert transport.has_session(session_id)

    def test_allowed_hosts(self):
        assert allowed_hosts("0.0.0.0", 8080) == [
            "0.0.0.0",
            "localhost",
            "127.0.0.1",
            "0.0.0.0:8080",
            "localhost:8080",
            "127.0.0.1:8080",
        ]

    def test_allowed_hosts_deduplicated(self):
        assert allowed_hosts("localhost", 3000) == [
            "localhost",
            "127.0.0.1",
            "localhost:3000",
            "127.0.0.1:3000",
        ]


class TestConcurrentSessions:

    @pytest.mark.asyncio
    async def test_responses_stay_on_their_session(self, transport):
        first = await initialize(transport)
        second = await initialize(transport)

        calls = []
        for i in range(6):
            session_id = first if i % 2 == 0 else second
            calls.append(transport._route_request(request(
                "POST",
                rpc("tools/call", {"name": "add", "arguments": {"a": i, "b": 0}}, msg_id=i),
                session_id=session_id,
            )))

        results = await asyncio.gather(*calls)

        for i, response in enumerate(results):
            expected_session = first if i % 2 == 0 else second
            assert response.headers[SESSION_HEADER] == expected_session
            result = body_of(response)
            assert result["id"] == i
            assert json.loads(result["result"]["content"][0]["text"]) == {"sum": i}


class TestEventStream:

    @pytest.mark.asyncio
    async def test_stream_lifecycle(self, transport):
        session_id = await initialize(transport)
        writer = FakeWriter()
        conn = HttpConnection(writer)

        task = asyncio.create_task(
            transport._route_request(request("GET", session_id=session_id), conn)
        )
        for _ in range(100):
            if conn.headers_sent:
                break
            await asyncio.sleep(0.01)

        head = writer.data.decode()
        assert head.startswith("HTTP/1.1 200 OK\r\n")
        assert "Content-Type: text/event-stream" in head
        assert f"{SESSION_HEADER}: {session_id}" in head
        assert "Access-Control-Allow-Origin: *" in head

        second = await transport._route_request(
            request("GET", session_id=session_id), HttpConnection(FakeWriter())
        )
        assert second.status == 409

        await asyncio.sleep(0.12)
        assert b": keepalive\n\n" in writer.data

        response = await transport._route_request(request("DELETE", session_id=session_id))
        assert response.status == 200

        assert await asyncio.wait_for(task, timeout=1) is None
        assert transport.session_count == 0

    @pytest.mark.asyncio
    async def test_stop_closes_streams(self, transport):
        session_id = await initialize(transport)
        conn = HttpConnection(FakeWriter())

        task = asyncio.create_task(
            transport._route_request(request("GET", session_id=session_id), conn)
        )
        await asyncio.sleep(0.01)

        await transport.stop()

        assert await asyncio.wait_for(task, timeout=1) is None
        assert transport.session_count == 0


@pytest_asyncio.fixture
async def live_transport(core):
    transport = HttpTransport(core, port=0, host="127.0.0.1")
    await transport.start()
    yield transport
    await transport.stop()


class TestOverSockets:

    @pytest.mark.asyncio
    async def test_round_trip(self, live_transport):
        base_url = f"http://127.0.0.1:{live_transport.bound_port}"
        headers = {"Host": "localhost", "Accept": "application/json, text/event-stream"}

        async with httpx.AsyncClient(base_url=base_url, headers=headers) as client:
            response = await client.post("/", json=INITIALIZE)
            assert response.status_code == 200
            assert response.headers["access-control-allow-origin"] == "*"
            session_id = response.headers[SESSION_HEADER]

            response = await client.post(
                "/mcp", json=rpc("tools/list", msg_id=2), headers={SESSION_HEADER: session_id}
            )
            assert [t["name"] for t in response.json()["result"]["tools"]] == ["add", "fail"]

            response = await client.options("/")
            assert response.status_code == 200
            assert response.content == b""

            response = await client.delete("/", headers={SESSION_HEADER: session_id})
            assert response.status_code == 200

            response = await client.get("/", headers={SESSION_HEADER: session_id})
            assert response.status_code == 400
            assert response.text == "Invalid or missing session ID"

    @pytest.mark.asyncio
    async def test_unexpected_error_answers_500(self, live_transport):
        base_url = f"http://127.0.0.1:{live_transport.bound_port}"

        with patch.object(live_transport, "_dispatch", side_effect=RuntimeError("boom")):
            async with httpx.AsyncClient(base_url=base_url) as client:
                response = await client.post("/", json=INITIALIZE)

        assert response.status_code == 500
        assert response.json()["error"] == {"code": -32603, "message": "Internal server error"}
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_chunked_request_body(self, live_transport):
        base_url = f"http://127.0.0.1:{live_transport.bound_port}"
        payload = json.dumps(INITIALIZE).encode()

        async def chunks():
            for i in range(0, len(payload), 16):
                yield payload[i:i + 16]

        async with httpx.AsyncClient(base_url=base_url, headers={"Host": "localhost"}) as client:
            response = await client.post(
                "/", content=chunks(), headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 200
        assert response.json()["result"]["serverInfo"]["name"] == "mite-mcp"
        assert live_transport.has_session(response.headers[SESSION_HEADER])


class TestChunkedBody:

    @pytest.mark.asyncio
    async def test_decodes_chunks(self):
        reader = asyncio.StreamReader()
        reader.feed_data(b"5\r\nhello\r\n7;ext=1\r\n, world\r\n0\r\nX-Trailer: 1\r\n\r\nNEXT")
        reader.feed_eof()

        assert await read_chunked_body(reader) == b"hello, world"
        assert await reader.read() == b"NEXT"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        reader = asyncio.StreamReader()
        reader.feed_data(b"0\r\n\r\n")
        reader.feed_eof()

        assert await read_chunked_body(reader) == b""
