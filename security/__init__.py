"""Security policy: sandbox, allowlists and approval workflow."""

from .domains import extract_domain
from .gate import ApprovalState, SecurityGate, action_id, check_action, describe_action
from .models import (
    Allow,
    Deny,
    FetchUrl,
    RequireApproval,
    SaveData,
    SecurityAction,
    SecurityConfig,
    SecurityDecision,
    ToolCallAction,
)

__all__ = [
    "Allow",
    "ApprovalState",
    "Deny",
    "FetchUrl",
    "RequireApproval",
    "SaveData",
    "SecurityAction",
    "SecurityConfig",
    "SecurityDecision",
    "SecurityGate",
    "ToolCallAction",
    "action_id",
    "check_action",
    "describe_action",
    "extract_domain",
]
