"""Security gate deciding whether agent actions may proceed."""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .domains import extract_domain, matches_any
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

logger = logging.getLogger(__name__)


@dataclass
class ApprovalState:
    """Approval bookkeeping for one session. Entries never expire."""

    pending: Dict[str, SecurityAction] = field(default_factory=dict)
    approved: Set[str] = field(default_factory=set)
    denied: Set[str] = field(default_factory=set)


def action_id(action: SecurityAction) -> str:
    """Deterministic identity for an action.

    SHA-256 over a canonical JSON encoding of the action type and its
    fields, with argument keys sorted.
    """
    if isinstance(action, ToolCallAction):
        payload = {"type": action.kind, "name": action.name, "args": action.args}
    elif isinstance(action, FetchUrl):
        payload = {"type": action.kind, "url": action.url}
    elif isinstance(action, SaveData):
        payload = {"type": action.kind, "key": action.key}
    else:
        raise TypeError(f"Unsupported security action: {action!r}")

    canonical = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=repr,
    )
    return "action_" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def describe_action(action: SecurityAction) -> str:
    """Human-readable description used in approval prompts."""
    if isinstance(action, ToolCallAction):
        args = json.dumps(action.args, sort_keys=True, default=repr)
        return f"tool '{action.name}' with arguments {args}"
    if isinstance(action, FetchUrl):
        return f"fetch '{action.url}'"
    return f"save data under '{action.key}'"


def _check_sandbox(action: SecurityAction, config: SecurityConfig) -> Optional[str]:
    if isinstance(action, FetchUrl):
        domain = extract_domain(action.url)
        if domain is not None and matches_any(domain, config.blocked_domains):
            return f"Domain '{domain}' is blocked"
    elif isinstance(action, ToolCallAction):
        if action.name in config.blocked_tools:
            return f"Tool '{action.name}' is blocked"
    return None


def _check_allowlist(action: SecurityAction, config: SecurityConfig) -> Optional[str]:
    if isinstance(action, FetchUrl):
        domain = extract_domain(action.url)
        if (
            domain is not None
            and config.allowed_domains
            and not matches_any(domain, config.allowed_domains)
        ):
            return f"Domain '{domain}' is not in allowlist"
    elif isinstance(action, ToolCallAction):
        if config.allowed_tools and action.name not in config.allowed_tools:
            return f"Tool '{action.name}' is not in allowlist"
    return None


def check_action(
    action: SecurityAction,
    config: SecurityConfig,
    approval_state: ApprovalState,
) -> SecurityDecision:
    """Decide whether an action may proceed.

    Checks run in order and the first match wins: sandbox, allowlist,
    pairing, allow.

    Args:
        action: Action being requested
        config: Active security policy
        approval_state: Approved/denied/pending bookkeeping

    Returns:
        Allow, Deny or RequireApproval
    """
    if config.sandbox_enabled:
        reason = _check_sandbox(action, config)
        if reason:
            return Deny(reason=reason)

    reason = _check_allowlist(action, config)
    if reason:
        return Deny(reason=reason)

    if config.pairing_enabled and config.require_tool_approval:
        identity = action_id(action)
        if identity in approval_state.denied:
            return Deny(reason=f"Action was denied: {describe_action(action)}")
        if identity not in approval_state.approved:
            return RequireApproval(
                message=f"Approval required for: {describe_action(action)}",
                action_id=identity,
            )

    return Allow()


class SecurityGate:
    """Per-session security manager.

    Owns the policy and the approval state. One instance per session;
    nothing here is shared between sessions.
    """

    def __init__(self, config: Optional[SecurityConfig] = None):
        """Initialize the gate.

        Args:
            config: Security policy, defaults to SecurityConfig()
        """
        self.config = config or SecurityConfig()
        self.state = ApprovalState()

    def check(self, action: SecurityAction) -> SecurityDecision:
        """Check an action against the session policy and approvals."""
        decision = check_action(action, self.config, self.state)

        if isinstance(decision, Deny):
            logger.warning(f"Security denied action: {decision.reason}")
        elif isinstance(decision, RequireApproval):
            logger.info(f"Security requires approval: {decision.message}")

        return decision

    def request_approval(self, action: SecurityAction) -> str:
        """Register an action as pending approval.

        Returns:
            The action id to pass to approve() or deny()
        """
        identity = action_id(action)
        self.state.pending[identity] = action
        return identity

    def approve(self, identity: str) -> None:
        """Move a pending action into the approved set.

        Raises:
            KeyError: If no pending action has this id
        """
        if identity not in self.state.pending:
            raise KeyError(f"No pending action with ID: {identity}")
        self.state.pending.pop(identity)
        self.state.denied.discard(identity)
        self.state.approved.add(identity)
        logger.info(f"Approved action {identity}")

    def deny(self, identity: str) -> None:
        """Move a pending action into the denied set.

        Raises:
            KeyError: If no pending action has this id
        """
        if identity not in self.state.pending:
            raise KeyError(f"No pending action with ID: {identity}")
        self.state.pending.pop(identity)
        self.state.approved.discard(identity)
        self.state.denied.add(identity)
        logger.info(f"Denied action {identity}")

    def pending(self) -> Dict[str, SecurityAction]:
        """Actions waiting for a decision, keyed by id."""
        return dict(self.state.pending)

    def clear_approvals(self) -> None:
        """Forget all approvals, denials and pending actions."""
        self.state = ApprovalState()

    def is_tool_allowed(self, name: str) -> bool:
        if name in self.config.blocked_tools:
            return False
        if self.config.allowed_tools:
            return name in self.config.allowed_tools
        return True

    def is_url_allowed(self, url: str) -> bool:
        domain = extract_domain(url)
        if domain is not None:
            if matches_any(domain, self.config.blocked_domains):
                return False
            if self.config.allowed_domains:
                return matches_any(domain, self.config.allowed_domains)
        return True

    def update_config(self, config: SecurityConfig) -> None:
        self.config = config

    def set_pairing_enabled(self, enabled: bool) -> None:
        self.config.pairing_enabled = enabled

    def set_sandbox_enabled(self, enabled: bool) -> None:
        self.config.sandbox_enabled = enabled

    def allow_domain(self, domain: str) -> None:
        """Add a domain to the allowlist and remove it from the blocklist."""
        if domain not in self.config.allowed_domains:
            self.config.allowed_domains.append(domain)
        self.config.blocked_domains = [d for d in self.config.blocked_domains if d != domain]

    def block_domain(self, domain: str) -> None:
        """Add a domain to the blocklist and remove it from the allowlist."""
        if domain not in self.config.blocked_domains:
            self.config.blocked_domains.append(domain)
        self.config.allowed_domains = [d for d in self.config.allowed_domains if d != domain]

    def allow_tool(self, tool: str) -> None:
        """Add a tool to the allowlist and remove it from the blocklist."""
        if tool not in self.config.allowed_tools:
            self.config.allowed_tools.append(tool)
        self.config.blocked_tools = [t for t in self.config.blocked_tools if t != tool]

    def block_tool(self, tool: str) -> None:
        """Add a tool to the blocklist and remove it from the allowlist."""
        if tool not in self.config.blocked_tools:
            self.config.blocked_tools.append(tool)
        self.config.allowed_tools = [t for t in self.config.allowed_tools if t != tool]

    @property
    def allowed_tools(self) -> List[str]:
        return list(self.config.allowed_tools)

    @property
    def allowed_domains(self) -> List[str]:
        return list(self.config.allowed_domains)
