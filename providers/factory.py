"""Factory for creating provider clients based on configuration."""

import logging
import os
from typing import Optional

import httpx

from .anthropic_provider import AnthropicProvider
from .base import ProviderClient
from .config import ProviderConfig
from .ollama_provider import OLLAMA_CLOUD_URL, OLLAMA_LOCAL_URL, OllamaProvider
from .openai_provider import OPENAI_BASE_URL, OpenAIProvider

logger = logging.getLogger(__name__)

AVAILABLE_PROVIDERS = [
    "openai",
    "anthropic",
    "ollama",
    "ollama_cloud",
    "groq",
    "together",
    "custom",
]

OPENAI_COMPATIBLE_URLS = {
    "openai": OPENAI_BASE_URL,
    "groq": "https://api.groq.com/openai/v1",
    "together": "https://api.together.xyz/v1",
    "custom": OPENAI_BASE_URL,
}

API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "groq": "GROQ_API_KEY",
    "together": "TOGETHER_API_KEY",
    "ollama_cloud": "OLLAMA_API_KEY",
}


def create_provider(
    cfg: ProviderConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> ProviderClient:
    """Create the provider client named in the configuration.

    Unknown names fall back to the OpenAI-compatible client.

    Args:
        cfg: Provider configuration
        client: Optional shared HTTP client

    Returns:
        Configured provider client
    """
    name = cfg.provider.lower()
    api_key = cfg.api_key
    if api_key is None and name in API_KEY_ENV_VARS:
        api_key = os.getenv(API_KEY_ENV_VARS[name])

    if name == "anthropic":
        provider = AnthropicProvider(api_key, timeout=cfg.request_timeout, client=client)

    elif name == "ollama":
        provider = OllamaProvider(
            base_url=cfg.base_url or OLLAMA_LOCAL_URL,
            api_key=api_key,
            timeout=cfg.request_timeout,
            client=client,
        )

    elif name == "ollama_cloud":
        provider = OllamaProvider(
            base_url=OLLAMA_CLOUD_URL,
            api_key=api_key,
            timeout=cfg.request_timeout,
            client=client,
        )

    else:
        if name not in OPENAI_COMPATIBLE_URLS:
            logger.warning(f"Unknown provider '{cfg.provider}', using OpenAI-compatible client")
        provider = OpenAIProvider(
            api_key,
            base_url=cfg.base_url or OPENAI_COMPATIBLE_URLS.get(name, OPENAI_BASE_URL),
            timeout=cfg.request_timeout,
            client=client,
            name=name if name in OPENAI_COMPATIBLE_URLS else "openai",
        )

    logger.info(f"Provider initialized: {provider.name} ({cfg.model})")
    return provider
