"""Tool descriptor shared by all resource tool sets."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Type

from pydantic import BaseModel, ValidationError

from ..errors import DuplicateToolError, InvalidInputError


ToolExecute = Callable[[Any], Awaitable[Any]]


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten pydantic errors into "field: message" strings."""
    messages = []
    for err in error.errors():
        ctx_error = err.get("ctx", {}).get("error")
        msg = str(ctx_error) if err["type"] == "value_error" and ctx_error else err["msg"]
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable MCP tool.

    ``input_model`` validates and coerces raw arguments; ``execute`` receives
    the validated model and returns a JSON-serializable value.
    """

    name: str
    description: str
    input_model: Type[BaseModel]
    execute: ToolExecute

    def validate(self, raw: Mapping[str, Any]) -> BaseModel:
        try:
            return self.input_model.model_validate(raw)
        except ValidationError as e:
            raise InvalidInputError(format_validation_errors(e)) from e


def tool_set(*tools: ToolDescriptor) -> Dict[str, ToolDescriptor]:
    """Key a sequence of descriptors by name, preserving order."""
    tools_by_name: Dict[str, ToolDescriptor] = {}
    for tool in tools:
        if tool.name in tools_by_name:
            raise DuplicateToolError(tool.name)
        tools_by_name[tool.name] = tool
    return tools_by_name


def payload(model: BaseModel, *exclude: str) -> Dict[str, Any]:
    """Dump a validated input model without absent fields."""
    return model.model_dump(exclude_none=True, exclude=set(exclude))
