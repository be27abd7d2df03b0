"""
Error taxonomy for the scheduling agent.

Configuration and discovery errors are fatal at startup. Everything raised
while a tool runs is caught at the tool boundary and turned into text for the
reasoning engine.
"""

from typing import Any, Optional


class AgentError(Exception):
    """Base class for all agent errors."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class ConfigurationError(AgentError):
    """A required setting is missing or malformed."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message, {"missing": missing} if missing else None)
        self.missing = missing or []


class DiscoveryError(AgentError):
    """The tool server could not be reached or returned a malformed listing."""


class ValidationError(AgentError):
    """A tool argument is missing or does not parse."""


class ToolInvocationError(AgentError):
    """The tool backend rejected a call or the transport failed."""

    def __init__(self, message: str, tool_name: Optional[str] = None):
        super().__init__(message, {"tool": tool_name} if tool_name else None)
        self.tool_name = tool_name


class AuthenticationError(AgentError):
    """The calendar consent flow failed or the client-secret file is missing."""


class MaxRoundsExceededError(AgentError):
    """The reasoning engine kept requesting tools past the round limit."""

    def __init__(self, rounds: int):
        super().__init__(f"Stopped after {rounds} tool-call rounds without a final answer")
        self.rounds = rounds


class DuplicateNameError(AgentError):
    """A tool with this name is already registered."""


class NotFoundError(AgentError):
    """No tool is registered under this name."""
