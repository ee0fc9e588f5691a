"""Shared fixtures for tool set tests."""

from unittest.mock import AsyncMock

import pytest


@pytest.fixture
def client():
    """MiteApiClient stand-in with awaitable verbs."""
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=[])
    mock.post = AsyncMock(return_value={})
    mock.patch = AsyncMock(return_value={})
    mock.delete = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def run_tool():
    """Validate arguments and execute the named tool from a tool set."""

    async def run(tools, name, arguments):
        tool = tools[name]
        return await tool.execute(tool.validate(arguments))

    return run
