"""MCP (Model Context Protocol) server implementation for mite-mcp.

- McpCore: Transport-agnostic JSON-RPC handler over the ToolRegistry
- StdioTransport: NDJSON on stdin/stdout, one implicit session
- HttpTransport: Streamable HTTP with per-client sessions

Security (HTTP):
- Host header allow-list per session (DNS rebinding)
- Permissive CORS on every response
"""

from mite_mcp.mcp.registry import ToolRegistry, build_registry
from mite_mcp.mcp.server import McpCore, JsonRpcError, ErrorCode
from mite_mcp.mcp.stdio import StdioTransport, run_stdio_server
from mite_mcp.mcp.http import HttpTransport, StreamableSession, run_http_server

__all__ = [
    # Registry
    "ToolRegistry",
    "build_registry",
    # Server Core
    "McpCore",
    "JsonRpcError",
    "ErrorCode",
    # Transports
    "StdioTransport",
    "HttpTransport",
    "StreamableSession",
    # Run functions
    "run_stdio_server",
    "run_http_server",
]
