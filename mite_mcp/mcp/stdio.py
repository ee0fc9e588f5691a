"""stdio Transport for MCP Server.

Implements the stdio transport for MCP, reading NDJSON from stdin
and writing responses to stdout. The process is the session: there is
exactly one client and messages are answered strictly in arrival order.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Optional, TextIO

from .server import ErrorCode, McpCore, error_response


logger = logging.getLogger(__name__)

# Upper bound for a single NDJSON message; longer lines are drained and rejected
MAX_MESSAGE_BYTES = 16 * 1024 * 1024
READ_LIMIT = 1024 * 1024


class MessageTooLargeError(Exception):
    """An input line exceeded the message size bound."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Message of {size} bytes exceeds limit of {limit} bytes")


class StdioTransport:
    """stdio transport for MCP server.

    Reads JSON-RPC messages from stdin (NDJSON format),
    processes them through McpCore, and writes responses to stdout.
    Malformed, undecodable or oversized lines are answered with an
    error response; only EOF ends the loop.
    """

    def __init__(
        self,
        core: McpCore,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        max_message_bytes: int = MAX_MESSAGE_BYTES
    ):
        self.core = core
        self.max_message_bytes = max_message_bytes
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout

    async def run(self, reader: Optional[asyncio.StreamReader] = None) -> None:
        """Run the stdio transport loop until EOF.

        Args:
            reader: Stream to read from; defaults to a pipe reader over stdin
        """
        logger.info("Starting stdio MCP transport")

        if reader is None:
            reader = await self._connect_stdin()

        try:
            while True:
                try:
                    line = await self._read_line(reader)
                except MessageTooLargeError as e:
                    logger.warning(str(e))
                    self._write_response(
                        error_response(ErrorCode.INVALID_REQUEST.value, f"Invalid Request: {e}")
                    )
                    continue

                if line is None:
                    # EOF
                    break

                await self._handle_line(line)

        except asyncio.CancelledError:
            logger.info("stdio transport cancelled")
            raise
        finally:
            logger.info("stdio transport stopped")

    async def _connect_stdin(self) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=READ_LIMIT)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, self._stdin)
        return reader

    async def _read_line(self, reader: asyncio.StreamReader) -> Optional[bytes]:
        """Read one newline-terminated line of any length.

        Returns None at EOF. A final line without a newline is returned as is.
        Lines longer than the reader's buffer limit are assembled piecewise;
        lines over ``max_message_bytes`` are drained and raise
        MessageTooLargeError.
        """
        chunks = []
        size = 0
        while True:
            try:
                chunk = await reader.readuntil(b"\n")
                done = True
            except asyncio.IncompleteReadError as e:
                if not e.partial and size == 0:
                    return None
                chunk = e.partial
                done = True
            except asyncio.LimitOverrunError as e:
                chunk = await reader.readexactly(e.consumed)
                done = False

            size += len(chunk)
            if size <= self.max_message_bytes:
                chunks.append(chunk)
            else:
                chunks.clear()

            if done:
                if size > self.max_message_bytes:
                    raise MessageTooLargeError(size, self.max_message_bytes)
                return b"".join(chunks)

    async def _handle_line(self, raw: bytes) -> None:
        """Handle a single line of input."""
        try:
            line = raw.decode('utf-8').strip()
        except UnicodeDecodeError as e:
            self._write_response(
                error_response(ErrorCode.PARSE_ERROR.value, f"Parse error: {e}")
            )
            return

        if not line:
            return

        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            self._write_response(
                error_response(ErrorCode.PARSE_ERROR.value, f"Parse error: {e}")
            )
            return

        if isinstance(message, list):
            responses = [r for r in [await self.core.handle(m) for m in message] if r]
            if responses:
                self._write_response(responses)
            return

        response = await self.core.handle(message)
        if response is not None:
            self._write_response(response)

    def _write_response(self, response: Any) -> None:
        """Write JSON-RPC response to stdout."""
        try:
            line = json.dumps(response, separators=(',', ':'), ensure_ascii=False)
            self._stdout.write(line + "\n")
            self._stdout.flush()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to write response: {e}")


async def run_stdio_server(core: McpCore) -> None:
    """Run MCP server with stdio transport until stdin closes."""
    transport = StdioTransport(core)

    print("mite MCP server running on stdio", file=sys.stderr)
    sys.stderr.flush()

    await transport.run()
