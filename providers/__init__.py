"""Model provider clients: OpenAI-compatible, Anthropic and Ollama."""

from .base import ChatOptions, ProviderClient, ProviderError
from .config import ProviderConfig
from .factory import AVAILABLE_PROVIDERS, create_provider

__all__ = [
    "AVAILABLE_PROVIDERS",
    "ChatOptions",
    "ProviderClient",
    "ProviderConfig",
    "ProviderError",
    "create_provider",
]
