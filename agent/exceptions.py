"""Agent error taxonomy."""

from typing import Dict, List, Optional

from providers.base import ProviderError


class AgentError(Exception):
    """Base class for agent errors."""


class ParseError(AgentError):
    """Malformed configuration. The turn or config update is aborted."""


class ToolExecutionError(AgentError):
    """A single tool failed. Recovered by the agent loop as inline text."""

    def __init__(self, message: str, tool_name: Optional[str] = None):
        super().__init__(message)
        self.tool_name = tool_name


class SecurityDenied(AgentError):
    """The security gate refused an action. Nothing from the step ran."""

    def __init__(self, reason: str, tool_name: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.tool_name = tool_name


class ApprovalRequired(AgentError):
    """Actions need approval before the turn can continue.

    Not a failure: the turn is suspended until every pending action is
    approved or denied, then resumed with AgentLoop.resume().
    """

    def __init__(self, pending: Dict[str, str]):
        self.pending = pending
        super().__init__("; ".join(pending.values()))

    @property
    def action_ids(self) -> List[str]:
        return list(self.pending.keys())


__all__ = [
    "AgentError",
    "ApprovalRequired",
    "ParseError",
    "ProviderError",
    "SecurityDenied",
    "ToolExecutionError",
]
