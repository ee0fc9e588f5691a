"""Streamable HTTP Transport for MCP Server.

Implements the Streamable HTTP transport for MCP with per-client sessions:
- POST / (or /mcp): JSON-RPC requests; an initialize request without a
  session header creates a session, the id is returned in Mcp-Session-Id
- GET: SSE stream for an existing session
- DELETE: terminate an existing session
- OPTIONS: CORS preflight

Every response carries permissive CORS headers. Sessions reject requests
whose Host header is not one of the configured host, localhost or
127.0.0.1 (with or without the port) to defeat DNS rebinding.
"""

import asyncio
import json
import logging
import sys
import uuid
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlsplit

from .server import ErrorCode, McpCore, error_response, is_initialize_request


logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
MCP_PATHS = ("/", "/mcp")
KEEPALIVE_INTERVAL = 30.0

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS, DELETE",
    "Access-Control-Allow-Headers": f"Content-Type, Authorization, {SESSION_HEADER}",
}


@dataclass
class HttpRequest:
    """HTTP request representation. Header names are lower-cased."""
    method: str
    path: Optional[str]
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def session_id(self) -> Optional[str]:
        return self.headers.get(SESSION_HEADER.lower())


@dataclass
class HttpResponse:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str]
    body: bytes

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "HttpResponse":
        """Create JSON response."""
        body = json.dumps(data, ensure_ascii=False).encode('utf-8')
        return cls(status=status, headers={"Content-Type": "application/json"}, body=body)

    @classmethod
    def text(cls, message: str, status: int) -> "HttpResponse":
        """Create plain-text response."""
        return cls(
            status=status,
            headers={"Content-Type": "text/plain"},
            body=message.encode('utf-8')
        )

    @classmethod
    def empty(cls, status: int = 200) -> "HttpResponse":
        return cls(status=status, headers={}, body=b"")

    @classmethod
    def rpc_error(cls, code: int, message: str, status: int) -> "HttpResponse":
        """Create a JSON-RPC error envelope response with a null id."""
        return cls.json(error_response(code, message), status)


class HttpConnection:
    """Write side of a single client connection."""

    def __init__(self, writer: asyncio.StreamWriter):
        self._writer = writer
        self.headers_sent = False

    async def send(self, response: HttpResponse) -> None:
        """Send a complete HTTP response."""
        headers = {
            **CORS_HEADERS,
            **response.headers,
            "Content-Length": str(len(response.body)),
            "Connection": "close",
        }
        await self._write_head(response.status, headers)
        self._writer.write(response.body)
        await self._writer.drain()

    async def start_stream(self, status: int, headers: Dict[str, str]) -> None:
        """Send response headers for a body of unknown length."""
        await self._write_head(status, {**CORS_HEADERS, **headers})

    async def write(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def _write_head(self, status: int, headers: Dict[str, str]) -> None:
        status_text = HTTPStatus(status).phrase
        lines = [f"HTTP/1.1 {status} {status_text}"]
        for key, value in headers.items():
            lines.append(f"{key}: {value}")
        lines.append("")

        self.headers_sent = True
        self._writer.write("\r\n".join(lines).encode('utf-8') + b"\r\n")
        await self._writer.drain()


class SseStream:
    """Server-Sent Events stream writer."""

    def __init__(self, write_fn: Callable[[bytes], Awaitable[None]]):
        self._write = write_fn
        self.closed = False

    async def send_comment(self, text: str) -> None:
        """Send an SSE comment (for keepalive)."""
        if self.closed:
            return
        await self._write(f": {text}\n\n".encode('utf-8'))

    def close(self) -> None:
        """Close the stream."""
        self.closed = True


def allowed_hosts(host: str, port: int) -> List[str]:
    """Host header values accepted by sessions bound to host:port."""
    hosts = [host, "localhost", "127.0.0.1", f"{host}:{port}", f"localhost:{port}", f"127.0.0.1:{port}"]
    return list(dict.fromkeys(hosts))


async def read_chunked_body(reader: asyncio.StreamReader) -> bytes:
    """Read a Transfer-Encoding: chunked body, discarding any trailers."""
    body = bytearray()
    while True:
        size_line = await reader.readline()
        size = int(size_line.split(b";", 1)[0].strip() or b"0", 16)
        if size == 0:
            while await reader.readline() not in (b"\r\n", b"\n", b""):
                pass
            return bytes(body)
        body.extend(await reader.readexactly(size))
        # CRLF after each chunk
        await reader.readline()


class StreamableSession:
    """One logical MCP session bound to the dispatcher.

    Created for an initialize request; registers itself through
    ``on_initialized`` once the handshake passes validation and removes
    itself through ``on_close``. Messages within a session are handled
    one at a time in arrival order.
    """

    def __init__(
        self,
        core: McpCore,
        allowed_hosts: List[str],
        on_initialized: Callable[["StreamableSession"], None],
        on_close: Callable[["StreamableSession"], None],
        keepalive_interval: float = KEEPALIVE_INTERVAL
    ):
        self.session_id = str(uuid.uuid4())
        self.core = core
        self.allowed_hosts = allowed_hosts
        self.initialized = False
        self.closed = False

        self._on_initialized = on_initialized
        self._on_close = on_close
        self._keepalive_interval = keepalive_interval
        self._lock = asyncio.Lock()
        self._closed_event = asyncio.Event()
        self._stream: Optional[SseStream] = None

    def _validate_host(self, request: HttpRequest) -> Optional[HttpResponse]:
        host = request.headers.get("host")
        if host in self.allowed_hosts:
            return None
        logger.warning(f"Rejected request with Host header {host!r} for session {self.session_id}")
        return HttpResponse.rpc_error(
            ErrorCode.SERVER_ERROR.value,
            f"Invalid Host header: {host}",
            403
        )

    async def handle_post(self, request: HttpRequest, body: Any) -> HttpResponse:
        """Handle JSON-RPC message(s) posted to this session."""
        rejection = self._validate_host(request)
        if rejection:
            return rejection

        messages = body if isinstance(body, list) else [body]

        if any(is_initialize_request(m) for m in messages):
            if self.initialized:
                return HttpResponse.rpc_error(
                    ErrorCode.INVALID_REQUEST.value,
                    "Invalid Request: Server already initialized",
                    400
                )
            if len(messages) > 1:
                return HttpResponse.rpc_error(
                    ErrorCode.INVALID_REQUEST.value,
                    "Invalid Request: Only one initialization request is allowed",
                    400
                )
            self.initialized = True
            self._on_initialized(self)
        elif not self.initialized:
            return HttpResponse.rpc_error(
                ErrorCode.SERVER_ERROR.value,
                "Bad Request: Server not initialized",
                400
            )

        responses = []
        async with self._lock:
            for message in messages:
                response = await self.core.handle(message)
                if response is not None:
                    responses.append(response)

        if not responses:
            http_response = HttpResponse.empty(202)
        else:
            http_response = HttpResponse.json(responses if isinstance(body, list) else responses[0])
        http_response.headers[SESSION_HEADER] = self.session_id
        return http_response

    async def handle_get(self, request: HttpRequest, conn: HttpConnection) -> Optional[HttpResponse]:
        """Hold an SSE stream open until the session or the connection closes."""
        rejection = self._validate_host(request)
        if rejection:
            return rejection

        if self._stream is not None:
            return HttpResponse.rpc_error(
                ErrorCode.SERVER_ERROR.value,
                "Conflict: Only one SSE stream is allowed per session",
                409
            )

        await conn.start_stream(200, {
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            SESSION_HEADER: self.session_id,
        })

        stream = SseStream(conn.write)
        self._stream = stream
        try:
            while not self.closed:
                try:
                    await asyncio.wait_for(self._closed_event.wait(), self._keepalive_interval)
                except asyncio.TimeoutError:
                    await stream.send_comment("keepalive")
        except ConnectionError:
            logger.debug(f"SSE client disconnected from session {self.session_id}")
        finally:
            stream.close()
            if self._stream is stream:
                self._stream = None

        return None  # Response already sent

    async def handle_delete(self, request: HttpRequest) -> HttpResponse:
        """Terminate this session."""
        rejection = self._validate_host(request)
        if rejection:
            return rejection

        await self.close()
        return HttpResponse.empty(200)

    async def close(self) -> None:
        """Close the session. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        self._closed_event.set()
        if self._stream is not None:
            self._stream.close()
        self._on_close(self)


class HttpTransport:
    """Streamable HTTP transport for MCP server.

    Owns the session table; every session is reachable only through it.
    """

    def __init__(
        self,
        core: McpCore,
        port: int = 3000,
        host: str = "localhost",
        keepalive_interval: float = KEEPALIVE_INTERVAL
    ):
        self.core = core
        self.port = port
        self.host = host
        self.allowed_hosts = allowed_hosts(host, port)

        self._keepalive_interval = keepalive_interval
        self._sessions: Dict[str, StreamableSession] = {}
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    async def handle_request(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter
    ) -> None:
        """Handle an HTTP request."""
        conn = HttpConnection(writer)
        try:
            # Read request line
            request_line = await reader.readline()
            if not request_line:
                return

            parts = request_line.decode('utf-8').strip().split(' ')
            method = parts[0]
            target = parts[1] if len(parts) > 1 else None

            # Read headers
            headers = {}
            while True:
                line = await reader.readline()
                if line in (b'\r\n', b'\n', b''):
                    break
                if b':' in line:
                    key, value = line.decode('utf-8').split(':', 1)
                    headers[key.strip().lower()] = value.strip()

            # Read body, chunked or by Content-Length
            body = b''
            content_length = headers.get('content-length')
            if 'chunked' in headers.get('transfer-encoding', '').lower():
                body = await read_chunked_body(reader)
            elif content_length:
                body = await reader.readexactly(int(content_length))

            path = (urlsplit(target).path or "/") if target else None

            request = HttpRequest(
                method=method,
                path=path,
                headers=headers,
                body=body
            )

            response = await self._route_request(request, conn)
            if response:
                await conn.send(response)

        except Exception:
            logger.exception("Error handling HTTP request")
            if not conn.headers_sent:
                try:
                    await conn.send(HttpResponse.rpc_error(
                        ErrorCode.INTERNAL_ERROR.value, "Internal server error", 500
                    ))
                except ConnectionError:
                    logger.debug("Client went away before the error response")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def _route_request(
        self,
        request: HttpRequest,
        conn: Optional[HttpConnection] = None
    ) -> Optional[HttpResponse]:
        """Route request to appropriate handler, adding CORS headers."""
        response = await self._dispatch(request, conn)
        if response is not None:
            response.headers.update(CORS_HEADERS)
        return response

    async def _dispatch(
        self,
        request: HttpRequest,
        conn: Optional[HttpConnection]
    ) -> Optional[HttpResponse]:
        if not request.path:
            return HttpResponse.text("Bad Request", 400)

        if request.method == "OPTIONS":
            return HttpResponse.empty(200)

        if request.path not in MCP_PATHS:
            return HttpResponse.text("Not Found", 404)

        if request.method == "POST":
            return await self._handle_post(request)
        elif request.method == "GET":
            return await self._handle_get(request, conn)
        elif request.method == "DELETE":
            return await self._handle_delete(request)
        return HttpResponse.text("Method Not Allowed", 405)

    async def _handle_post(self, request: HttpRequest) -> HttpResponse:
        session_id = request.session_id
        try:
            body = json.loads(request.body.decode('utf-8'))

            if session_id and session_id in self._sessions:
                session = self._lookup(session_id)
                if session is None:
                    raise RuntimeError("Transport not found")
            elif not session_id and self._is_initialization(body):
                session = self._new_session()
            else:
                return HttpResponse.rpc_error(
                    ErrorCode.SERVER_ERROR.value,
                    "Bad Request: No valid session ID provided",
                    400
                )

            return await session.handle_post(request, body)

        except Exception:
            logger.exception("Error handling MCP request")
            return HttpResponse.rpc_error(
                ErrorCode.INTERNAL_ERROR.value, "Internal server error", 500
            )

    async def _handle_get(
        self,
        request: HttpRequest,
        conn: Optional[HttpConnection]
    ) -> Optional[HttpResponse]:
        session_id = request.session_id
        if not session_id or session_id not in self._sessions:
            return HttpResponse.text("Invalid or missing session ID", 400)

        session = self._lookup(session_id)
        if session is None or conn is None:
            return HttpResponse.text("Transport not found", 500)

        return await session.handle_get(request, conn)

    async def _handle_delete(self, request: HttpRequest) -> HttpResponse:
        session_id = request.session_id
        if not session_id or session_id not in self._sessions:
            return HttpResponse.text("Invalid or missing session ID", 400)

        session = self._lookup(session_id)
        if session is None:
            return HttpResponse.text("Transport not found", 500)

        return await session.handle_delete(request)

    def _lookup(self, session_id: str) -> Optional[StreamableSession]:
        """Return the live session for an id, or None if it closed meanwhile."""
        session = self._sessions.get(session_id)
        if session is None or session.closed:
            return None
        return session

    @staticmethod
    def _is_initialization(body: Any) -> bool:
        if isinstance(body, list):
            return any(is_initialize_request(m) for m in body)
        return is_initialize_request(body)

    def _new_session(self) -> StreamableSession:
        return StreamableSession(
            self.core,
            self.allowed_hosts,
            on_initialized=self._register_session,
            on_close=self._remove_session,
            keepalive_interval=self._keepalive_interval,
        )

    def _register_session(self, session: StreamableSession) -> None:
        self._sessions[session.session_id] = session
        logger.info(f"Session initialized with ID: {session.session_id}")

    def _remove_session(self, session: StreamableSession) -> None:
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
            logger.info(f"Session closed: {session.session_id}")

    @property
    def bound_port(self) -> int:
        """Port actually bound by the listener (differs from ``port`` when 0)."""
        if not self._server or not self._server.sockets:
            return self.port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Bind the listener without blocking."""
        self._server = await asyncio.start_server(
            self.handle_request,
            self.host,
            self.port
        )
        logger.info(f"MCP HTTP server listening on http://{self.host}:{self.bound_port}")

    async def serve_forever(self) -> None:
        """Serve until cancelled, then close sessions and the listener.

        Sessions are closed before the listener so that open SSE streams
        end and the server can finish shutting down.
        """
        if self._server is None:
            await self.start()
        try:
            await asyncio.get_running_loop().create_future()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Close every session and stop the HTTP server."""
        for session in list(self._sessions.values()):
            await session.close()

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None


async def run_http_server(core: McpCore, port: int = 3000, host: str = "localhost") -> None:
    """Run MCP server with HTTP transport until cancelled.

    Args:
        core: Dispatcher shared by all sessions
        port: Port to listen on (default 3000)
        host: Host to bind to (default localhost)
    """
    transport = HttpTransport(core, port, host)
    await transport.start()

    print(f"mite MCP server running on HTTP at http://{host}:{port}", file=sys.stderr)
    print(f"Connect via Streamable HTTP at: http://{host}:{port}/", file=sys.stderr)
    sys.stderr.flush()

    try:
        await transport.serve_forever()
    except asyncio.CancelledError:
        logger.info("HTTP transport cancelled")
