"""MCP Server Core Implementation.

Implements the transport-agnostic half of the MCP server: JSON-RPC envelope
handling and dispatch of the two tool requests (``tools/list`` and
``tools/call``) onto the ToolRegistry. Works with stdio and HTTP transports;
all session state lives in the transport.
"""

import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .. import __version__
from ..errors import InvalidInputError, ToolNotFoundError
from .registry import ToolRegistry


logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = (
    LATEST_PROTOCOL_VERSION,
    "2025-03-26",
    "2024-11-05",
    "2024-10-07",
)

# Tools accept loosely-typed arguments; validation happens per tool at call time
PERMISSIVE_INPUT_SCHEMA = {
    "type": "object",
    "properties": {},
    "additionalProperties": True,
}


class JsonRpcError(Exception):
    """JSON-RPC error with code and message."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class ErrorCode(Enum):
    """Standard JSON-RPC and MCP error codes."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Implementation-defined; the HTTP transport uses it for session and Host rejections
    SERVER_ERROR = -32000


def error_response(code: int, message: str, msg_id: Any = None) -> Dict[str, Any]:
    """Build a JSON-RPC error envelope."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "error": {"code": code, "message": message},
        "id": msg_id,
    }


def is_request(message: Any) -> bool:
    """True for messages that expect a response (have both method and id)."""
    return isinstance(message, dict) and "method" in message and "id" in message


def is_initialize_request(message: Any) -> bool:
    return is_request(message) and message.get("method") == "initialize"


class McpCore:
    """Core MCP server handling JSON-RPC protocol.

    Transport-agnostic: receives messages and returns responses.
    """

    SERVER_NAME = "mite-mcp"

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_list_tools,
            "tools/call": self._handle_call_tool,
        }

    def list_tools(self) -> List[Dict[str, Any]]:
        """Describe every registered tool, in registration order."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": dict(PERMISSIVE_INPUT_SCHEMA),
            }
            for tool in self.registry
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Validate arguments and run a tool.

        Raises:
            ToolNotFoundError: If no tool is registered under ``name``
            InvalidInputError: If ``arguments`` fail the tool's input model
            Exception: Anything the tool itself raises, unchanged
        """
        tool = self.registry.resolve(name)
        params = tool.validate(arguments or {})
        result = await tool.execute(params)
        return {
            "content": [
                {"type": "text", "text": json.dumps(result, indent=2, ensure_ascii=False)}
            ]
        }

    async def handle(self, message: Any) -> Optional[Dict[str, Any]]:
        """Handle a JSON-RPC message.

        Args:
            message: Parsed JSON-RPC message

        Returns:
            JSON-RPC response dict, or None for notifications and responses
        """
        msg_id = message.get("id") if isinstance(message, dict) else None
        try:
            if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
                raise JsonRpcError(
                    ErrorCode.INVALID_REQUEST.value,
                    "Invalid JSON-RPC version"
                )

            method = message.get("method")
            if not method:
                if "result" in message or "error" in message:
                    # Client responses to server requests; we never send any
                    return None
                raise JsonRpcError(
                    ErrorCode.INVALID_REQUEST.value,
                    "Missing method"
                )

            if "id" not in message:
                logger.debug(f"Notification received: {method}")
                return None

            handler = self._handlers.get(method)
            if not handler:
                raise JsonRpcError(
                    ErrorCode.METHOD_NOT_FOUND.value,
                    f"Method not found: {method}"
                )

            params = message.get("params") or {}
            if not isinstance(params, dict):
                raise JsonRpcError(ErrorCode.INVALID_PARAMS.value, "params must be an object")

            result = await handler(params)
            return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result}

        except JsonRpcError as e:
            return error_response(e.code, e.message, msg_id)
        except Exception as e:
            logger.exception("Internal error handling MCP message")
            return error_response(ErrorCode.INTERNAL_ERROR.value, str(e), msg_id)

    async def _handle_initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": self.SERVER_NAME,
                "version": __version__
            }
        }

    async def _handle_ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def _handle_list_tools(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"tools": self.list_tools()}

    async def _handle_call_tool(self, params: Dict[str, Any]) -> Dict[str, Any]:
        tool_name = params.get("name")
        if not tool_name or not isinstance(tool_name, str):
            raise JsonRpcError(
                ErrorCode.INVALID_PARAMS.value,
                "Missing tool name"
            )

        arguments = params.get("arguments") or {}

        try:
            return await self.call_tool(tool_name, arguments)
        except (ToolNotFoundError, InvalidInputError) as e:
            raise JsonRpcError(ErrorCode.INVALID_PARAMS.value, str(e))
        except Exception as e:
            logger.exception(f"Tool {tool_name} failed")
            raise JsonRpcError(ErrorCode.INTERNAL_ERROR.value, str(e))
