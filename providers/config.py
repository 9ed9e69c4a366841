"""Configuration for model provider clients."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderConfig(BaseSettings):
    """Configuration settings for the active model provider.

    All settings can be overridden via environment variables with LLM_ prefix.
    Example: LLM_PROVIDER=ollama LLM_MODEL=llama3.1
    """

    provider: str = Field(
        default="openai",
        description="Active provider name (openai, anthropic, ollama, ...)",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for the provider (kept in memory only)",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL override for custom endpoints",
    )
    model: str = Field(
        default="gpt-4o-mini",
        description="Model to use for chat completions",
    )
    max_tokens: int = Field(
        default=4096,
        ge=1,
        description="Maximum tokens to generate per request",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for generation",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="HTTP timeout in seconds for provider requests",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
