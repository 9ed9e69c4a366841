"""Pydantic schemas for agent interactions."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Any
from enum import Enum


class MessageRole(str, Enum):
    """Possible message roles in a conversation.

    Tool output is sent back to the model as a user message.
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """Represents a single message in the conversation."""

    role: MessageRole = Field(description="The role of the message sender")
    content: str = Field(description="The message content")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)


class ToolCall(BaseModel):
    """Represents a tool invocation request."""

    name: str = Field(description="Name of the tool to invoke")
    arguments: Any = Field(
        default_factory=dict, description="Arguments to pass to the tool"
    )


class ToolDefinition(BaseModel):
    """Tool description advertised to the model."""

    name: str = Field(description="Tool name")
    description: str = Field(description="What the tool does")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the tool arguments",
    )

    def to_openai_format(self) -> Dict[str, Any]:
        """Function-calling format used by OpenAI-compatible APIs."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class AgentResponse(BaseModel):
    """Verbose agent response: final text plus every executed tool call."""

    content: str = Field(description="Final response text")
    tool_calls: List[ToolCall] = Field(
        default_factory=list, description="Tool calls executed during the turn, in order"
    )


class MemoryEntry(BaseModel):
    """A retrievable long-term memory."""

    id: str = Field(description="Unique memory identifier")
    content: str = Field(description="Remembered text")
    embedding: Optional[List[float]] = Field(
        default=None, description="Embedding vector, if one could be computed"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Caller metadata")
    created_at: float = Field(description="Creation time (epoch seconds)")
    accessed_at: float = Field(description="Last recall time (epoch seconds)")
    access_count: int = Field(default=0, ge=0, description="Times returned by recall")


class MemorySearchResult(BaseModel):
    """A recalled memory and its hybrid score."""

    entry: MemoryEntry
    score: float


class ChatRequest(BaseModel):
    """Request schema for chat endpoint."""

    message: str = Field(
        description="User message to send to the agent",
        min_length=1,
        max_length=10000,
    )
    session_id: Optional[str] = Field(
        default=None, description="Session identifier for conversation scoping"
    )
    verbose: bool = Field(
        default=False, description="Include the executed tool calls in the response"
    )


class ChatResponse(BaseModel):
    """Complete response schema for chat."""

    response: str = Field(description="Complete agent response")
    tool_calls: List[ToolCall] = Field(
        default_factory=list, description="Tool calls made during the turn (verbose only)"
    )
    session_id: str = Field(description="Conversation session identifier")


class ApprovalPending(BaseModel):
    """Response when a turn is waiting on approvals."""

    status: str = Field(default="approval_required")
    session_id: str
    pending: Dict[str, str] = Field(description="Pending action ids and descriptions")


class MemorySaveRequest(BaseModel):
    """Request schema for saving a memory."""

    content: str = Field(min_length=1, description="Text to remember")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None


class HealthStatus(BaseModel):
    """Agent health status."""

    status: str = Field(description="Overall status (healthy, degraded, unhealthy)")
    provider: str = Field(description="Active provider name")
    tools_available: List[str] = Field(description="List of available tools")
    sessions: int = Field(description="Number of live sessions")
