"""Exception taxonomy shared by the docs-chat core and its front ends.

Every error carries a human-readable message that the CLI and HTTP front ends
surface verbatim, so operators can diagnose credential and input problems.
"""
from __future__ import annotations

from typing import Iterable, Optional

__all__ = [
    "DocsChatError",
    "ConfigurationError",
    "ToolNotFoundError",
    "AllTransportsFailedError",
    "EmptyQuestionError",
    "UnknownTargetError",
    "NoTargetsError",
    "describe_error",
]


def describe_error(exc: BaseException) -> str:
    """Return the most useful message for *exc*.

    The MCP transports run inside anyio task groups, so network failures tend
    to arrive wrapped in a single-member exception group whose own message
    says nothing about the cause.
    """

    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    return str(exc) or type(exc).__name__


class DocsChatError(Exception):
    """Base class for all docs-chat errors."""


class ConfigurationError(DocsChatError):
    """Raised when required configuration (e.g. the API key) is missing or invalid."""


class ToolNotFoundError(DocsChatError):
    """Raised when the configured tool is not advertised by the MCP server."""

    def __init__(self, tool_name: str, available: Iterable[str] = ()) -> None:
        self.tool_name = tool_name
        self.available = list(available)
        super().__init__(f'Tool "{tool_name}" is not exposed by the MCP server.')


class AllTransportsFailedError(DocsChatError):
    """Raised when every transport attempt failed to connect.

    The message is the last underlying error's message; the error itself is
    kept on :attr:`last_error` (and chained as ``__cause__``).
    """

    def __init__(self, last_error: Optional[BaseException] = None) -> None:
        self.last_error = last_error
        message = describe_error(last_error) if last_error is not None else "All transports failed to connect."
        super().__init__(message)


class EmptyQuestionError(DocsChatError, ValueError):
    """Raised when a blank question is submitted."""

    def __init__(self) -> None:
        super().__init__("Question cannot be empty.")


class UnknownTargetError(DocsChatError, KeyError):
    """Raised when a target name is not registered."""

    def __init__(self, name: Optional[str], available: Iterable[str] = ()) -> None:
        self.name = name
        self.available = list(available)
        message = f'Unknown target "{name}".'
        if self.available:
            message += f" Available: {', '.join(self.available)}."
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return self.args[0]


class NoTargetsError(ConfigurationError):
    """Raised when a target registry is built from an empty definition list."""

    def __init__(self) -> None:
        super().__init__("At least one target must be configured.")
