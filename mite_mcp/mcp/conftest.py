"""Shared fixtures for MCP core and transport tests."""

import pytest

from mite_mcp.mcp.harness import sample_tools
from mite_mcp.mcp.registry import ToolRegistry
from mite_mcp.mcp.server import McpCore


@pytest.fixture
def registry():
    return ToolRegistry().register(sample_tools()).freeze()


@pytest.fixture
def core(registry):
    return McpCore(registry)
