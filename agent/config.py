"""Configuration for the agent loop and the memory store."""

import json
import logging
from typing import Any, Dict, Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from providers.config import ProviderConfig
from security.models import SecurityConfig

from .embeddings import DEFAULT_EMBEDDING_MODEL, EmbeddingProvider
from .exceptions import ParseError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. "
    "You are fast, private, and ready to help with any task."
)

# Flat provider keys accepted at the top level of an agent config document
_PROVIDER_KEYS = ("api_key", "base_url", "model", "request_timeout")


class MemoryConfig(BaseSettings):
    """Configuration for long-term memory.

    All settings can be overridden via environment variables with MEMORY_ prefix.
    Example: MEMORY_EMBEDDING_PROVIDER=local MEMORY_MAX_ENTRIES=500
    """

    backend: Literal["kv", "none"] = Field(
        default="kv",
        description="Persist memories in the key-value store, or keep them in process only",
    )
    auto_save: bool = Field(
        default=False,
        description="Save each completed exchange as a memory",
    )
    embedding_provider: EmbeddingProvider = Field(
        default=EmbeddingProvider.OPENAI,
        description="Embedding backend (openai, local, none)",
    )
    embedding_api_key: Optional[str] = Field(
        default=None,
        description="API key for the networked embedding backend",
    )
    embedding_model: str = Field(
        default=DEFAULT_EMBEDDING_MODEL,
        description="Embedding model name",
    )
    vector_weight: float = Field(
        default=0.7,
        ge=0.0,
        description="Weight of cosine similarity in the hybrid score",
    )
    keyword_weight: float = Field(
        default=0.3,
        ge=0.0,
        description="Weight of keyword overlap in the hybrid score",
    )
    max_entries: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of stored memories",
    )

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AgentConfig(BaseSettings):
    """Configuration for one agent.

    All settings can be overridden via environment variables with AGENT_ prefix.
    Example: AGENT_MAX_ITERATIONS=5 AGENT_PARALLEL_TOOLS=true
    """

    provider: ProviderConfig = Field(
        default_factory=ProviderConfig,
        description="Model provider settings",
    )
    memory: MemoryConfig = Field(
        default_factory=MemoryConfig,
        description="Long-term memory settings",
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="Instructions placed before the tool catalogue in the system message",
    )
    max_tokens: Optional[int] = Field(
        default=None,
        ge=1,
        description="Overrides the provider's max_tokens when set",
    )
    temperature: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Overrides the provider's temperature when set",
    )
    max_iterations: int = Field(
        default=10,
        ge=1,
        description="Maximum tool-calling rounds per user message",
    )
    tool_result_chunk_size: int = Field(
        default=800,
        ge=1,
        description="Tool results longer than this are split into numbered parts",
    )
    parallel_tools: bool = Field(
        default=False,
        description="Run the tool calls of one model step concurrently",
    )
    tool_timeout: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Seconds before a single tool call is abandoned",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def effective_max_tokens(self) -> int:
        return self.max_tokens if self.max_tokens is not None else self.provider.max_tokens

    @property
    def effective_temperature(self) -> float:
        return self.temperature if self.temperature is not None else self.provider.temperature


def _load_object(raw: str, what: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid {what} JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Invalid {what}: expected a JSON object")
    return data


def load_agent_config(raw: str) -> AgentConfig:
    """Parse an agent configuration document.

    ``provider`` may be a nested object or a provider name, in which case
    ``model``, ``api_key``, ``base_url`` and ``request_timeout`` are read
    from the top level.

    Args:
        raw: JSON text

    Returns:
        Validated configuration

    Raises:
        ParseError: If the JSON is malformed or fails validation
    """
    data = _load_object(raw, "agent config")

    provider = data.get("provider")
    if isinstance(provider, str):
        nested = {"provider": provider}
        for key in _PROVIDER_KEYS:
            if key in data:
                nested[key] = data.pop(key)
        data["provider"] = nested

    try:
        return AgentConfig(**data)
    except ValidationError as e:
        raise ParseError(f"Invalid agent config: {e}") from e


def load_security_config(raw: str) -> SecurityConfig:
    """Parse a security configuration document.

    Raises:
        ParseError: If the JSON is malformed or fails validation
    """
    data = _load_object(raw, "security config")
    try:
        return SecurityConfig(**data)
    except ValidationError as e:
        raise ParseError(f"Invalid security config: {e}") from e
