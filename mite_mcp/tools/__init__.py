"""Resource tool sets wrapping the mite REST API.

Each ``create_*_tools`` factory takes a MiteApiClient and returns an
ordered ``{name: ToolDescriptor}`` mapping.
"""

from mite_mcp.tools.base import ToolDescriptor, tool_set
from mite_mcp.tools.customers import create_customers_tools
from mite_mcp.tools.projects import create_projects_tools
from mite_mcp.tools.services import create_services_tools
from mite_mcp.tools.stopwatch import create_stopwatch_tools
from mite_mcp.tools.time_entries import create_time_entries_tools

TOOL_FACTORIES = (
    create_time_entries_tools,
    create_customers_tools,
    create_projects_tools,
    create_services_tools,
    create_stopwatch_tools,
)

__all__ = [
    "ToolDescriptor",
    "tool_set",
    "TOOL_FACTORIES",
    "create_time_entries_tools",
    "create_customers_tools",
    "create_projects_tools",
    "create_services_tools",
    "create_stopwatch_tools",
]
