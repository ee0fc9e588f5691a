"""Custom error types for mite-mcp."""

from typing import Optional


class MiteMcpError(Exception):
    """Base error for all mite-mcp errors."""
    pass


class ConfigurationError(MiteMcpError):
    """Raised when the mite credentials in the environment are unusable."""
    pass


class MiteApiError(MiteMcpError):
    """Raised when the mite REST API answers with a non-2xx status or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ToolNotFoundError(MiteMcpError):
    """Raised when a tool name is not in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool {name} not found")


class InvalidInputError(MiteMcpError):
    """Raised when tool arguments fail validation against the input model."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Invalid input: {', '.join(errors)}")


class DuplicateToolError(MiteMcpError):
    """Raised at startup when two tool sets contribute the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' is registered more than once")
