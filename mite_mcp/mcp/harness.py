"""In-memory tool set and message builders for exercising the MCP layer."""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..errors import MiteApiError
from ..tools.base import ToolDescriptor, tool_set
from ..validation import OptionalBoolean, RequiredNumber


class AddParams(BaseModel):
    a: RequiredNumber
    b: RequiredNumber
    verbose: OptionalBoolean = None


class EmptyParams(BaseModel):
    pass


async def add(params: AddParams) -> Dict[str, Any]:
    result: Dict[str, Any] = {"sum": params.a + params.b}
    if params.verbose:
        result["terms"] = [params.a, params.b]
    return result


async def fail(params: EmptyParams) -> None:
    raise MiteApiError("API Error (500): boom", status_code=500)


def sample_tools() -> Dict[str, ToolDescriptor]:
    return tool_set(
        ToolDescriptor(name="add", description="Add two numbers", input_model=AddParams, execute=add),
        ToolDescriptor(name="fail", description="Always fails", input_model=EmptyParams, execute=fail),
    )


def rpc(method: str, params: Optional[Dict[str, Any]] = None, msg_id: Any = 1) -> Dict[str, Any]:
    """Build a JSON-RPC request; ``msg_id=None`` builds a notification."""
    message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    if msg_id is not None:
        message["id"] = msg_id
    return message
