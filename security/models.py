"""Security configuration, actions and decisions."""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecurityConfig(BaseSettings):
    """Allow/deny/approval policy for agent actions.

    All settings can be overridden via environment variables with SECURITY_ prefix.
    Example: SECURITY_BLOCKED_TOOLS='["fetch_url"]'
    """

    pairing_enabled: bool = Field(
        default=True,
        description="Require approval for actions when tool approval is on",
    )
    sandbox_enabled: bool = Field(
        default=True,
        description="Enforce blocked domains and blocked tools",
    )
    allowed_domains: List[str] = Field(
        default_factory=lambda: [
            "wikipedia.org",
            "github.com",
            "stackoverflow.com",
            "docs.rs",
        ],
        description="Domains fetch actions may target (empty allows all)",
    )
    blocked_domains: List[str] = Field(
        default_factory=list,
        description="Domains fetch actions may never target",
    )
    allowed_tools: List[str] = Field(
        default_factory=lambda: [
            "web_search",
            "get_current_time",
            "calculate",
            "save_note",
            "read_notes",
        ],
        description="Tools the agent may call (empty allows all)",
    )
    blocked_tools: List[str] = Field(
        default_factory=list,
        description="Tools the agent may never call",
    )
    max_tool_calls: int = Field(
        default=5,
        ge=0,
        description="Maximum tool calls executed per user message",
    )
    require_tool_approval: bool = Field(
        default=False,
        description="Ask for approval before running actions",
    )
    workspace_scope: Optional[str] = Field(
        default=None,
        description="Restrict file access to this scope",
    )

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@dataclass(frozen=True)
class ToolCallAction:
    """Request to run a named tool."""

    name: str
    args: Any = field(default_factory=dict)

    kind = "tool_call"


@dataclass(frozen=True)
class FetchUrl:
    """Request to fetch a URL."""

    url: str

    kind = "fetch_url"


@dataclass(frozen=True)
class SaveData:
    """Request to persist data under a key."""

    key: str

    kind = "save_data"


SecurityAction = Union[ToolCallAction, FetchUrl, SaveData]


@dataclass(frozen=True)
class Allow:
    """The action may proceed."""


@dataclass(frozen=True)
class Deny:
    """The action is refused."""

    reason: str


@dataclass(frozen=True)
class RequireApproval:
    """The action must be approved before it may proceed."""

    message: str
    action_id: str


SecurityDecision = Union[Allow, Deny, RequireApproval]
