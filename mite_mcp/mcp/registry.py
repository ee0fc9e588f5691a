"""Tool registry: ordered name -> ToolDescriptor lookup, built once at startup."""

import logging
from typing import Dict, Iterator, List, Mapping

from ..api_client import MiteApiClient
from ..errors import DuplicateToolError, ToolNotFoundError
from ..tools import TOOL_FACTORIES, ToolDescriptor


logger = logging.getLogger(__name__)


class ToolRegistry:
    """Merged view over the tool sets contributed by each resource module."""

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}
        self._frozen = False

    def register(self, *tool_sets: Mapping[str, ToolDescriptor]) -> "ToolRegistry":
        """Merge tool sets in order.

        Raises:
            DuplicateToolError: If a name is already registered
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")

        for tools in tool_sets:
            for tool in tools.values():
                if tool.name in self._tools:
                    raise DuplicateToolError(tool.name)
                self._tools[tool.name] = tool
        return self

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    def resolve(self, name: str) -> ToolDescriptor:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def names(self) -> List[str]:
        return list(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


def build_registry(client: MiteApiClient) -> ToolRegistry:
    """Assemble and freeze the registry from every resource tool set."""
    registry = ToolRegistry()
    registry.register(*(factory(client) for factory in TOOL_FACTORIES))
    logger.debug(f"Registered {len(registry)} tools")
    return registry.freeze()
