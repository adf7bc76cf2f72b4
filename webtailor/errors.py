"""
Error types raised across the customization core.

Failures are contained at the action level (PlanExecutor, ReplayController)
and only surface to the host as ``{"success": False, "error": ...}`` at the
command boundary.
"""

from typing import Optional


class WebTailorError(Exception):
    """Base class for all webtailor errors."""


class UnknownToolError(WebTailorError):
    """Raised when a tool name is not present in the registry."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Unknown tool: {tool}")


class ToolExecutionError(WebTailorError):
    """Raised when a registered tool's executor fails. ``cause`` keeps the original error."""

    def __init__(self, tool: str, cause: BaseException):
        self.tool = tool
        self.cause = cause
        super().__init__(f"{tool} failed: {cause}")


class PlanParseError(WebTailorError):
    """Raised when a generation response cannot be parsed as JSON."""

    def __init__(self, raw: str):
        self.raw = raw
        preview = (raw or "")[:200]
        super().__init__(f"Invalid JSON response from AI. Original response preview: {preview}")


class PersistenceError(WebTailorError):
    """Raised when the key-value store cannot be read or written."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage {operation} failed: {cause}")


class GenerationServiceError(WebTailorError):
    """Raised for non-2xx, blocked or malformed responses from the generation service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
