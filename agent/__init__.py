"""Agent package for tool-use loop orchestration, memory and context management."""

from .config import AgentConfig, MemoryConfig, load_agent_config, load_security_config
from .context import ContextWindowManager
from .conversation import Conversation
from .core import AgentLoop
from .exceptions import (
    AgentError,
    ApprovalRequired,
    ParseError,
    ProviderError,
    SecurityDenied,
    ToolExecutionError,
)
from .memory import MemoryStore
from .parser import ResponseParser
from .schemas import AgentResponse, Message, MessageRole, ToolCall
from .session import SessionContext, create_session

__all__ = [
    "AgentConfig",
    "AgentError",
    "AgentLoop",
    "AgentResponse",
    "ApprovalRequired",
    "ContextWindowManager",
    "Conversation",
    "MemoryConfig",
    "MemoryStore",
    "Message",
    "MessageRole",
    "ParseError",
    "ProviderError",
    "ResponseParser",
    "SecurityDenied",
    "SessionContext",
    "ToolCall",
    "ToolExecutionError",
    "create_session",
    "load_agent_config",
    "load_security_config",
]
