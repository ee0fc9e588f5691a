"""mite-mcp: Model Context Protocol server for mite time tracking.

Exposes the mite REST API (time entries, customers, projects, services and
the stopwatch) as MCP tools over stdio or Streamable HTTP.
"""

__version__ = "0.1.2"
