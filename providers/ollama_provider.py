"""Ollama engine implementation for local and hosted model serving."""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from .base import ChatMessageLike, ChatOptions, HTTPProvider, ProviderError, merge_tool_calls
from .openai_provider import to_openai_messages

logger = logging.getLogger(__name__)

OLLAMA_LOCAL_URL = "http://localhost:11434"
OLLAMA_CLOUD_URL = "https://ollama.com"


class OllamaProvider(HTTPProvider):
    """Ollama client.

    Uses the OpenAI-compatible endpoint first and falls back to the native
    /api/chat endpoint when a local server does not expose it.
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str = OLLAMA_LOCAL_URL,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, api_key=api_key, timeout=timeout, client=client)

    @property
    def is_cloud(self) -> bool:
        return "ollama.com" in self.base_url

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def chat(self, messages: Sequence[ChatMessageLike], options: ChatOptions) -> str:
        model = options.model.replace(":cloud", "")

        payload: Dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(messages),
            "stream": False,
        }
        if options.tools:
            payload["tools"] = options.tools

        response = await self._post_json(
            f"{self.base_url}/v1/chat/completions", payload, headers=self._headers()
        )

        if response.status_code == 404 and not self.is_cloud:
            logger.info("Ollama OpenAI-compatible endpoint not found, using native API")
            return await self._chat_native(messages, model)

        if response.status_code == 401:
            raise ProviderError(
                self.name,
                "Ollama API key required. Set LLM_API_KEY to your Ollama Cloud API key.",
                401,
            )

        if response.is_error:
            target = "the Ollama Cloud API key is set" if self.is_cloud else "Ollama is running (ollama serve)"
            raise ProviderError(
                self.name,
                f"{response.text}. Make sure {target}",
                response.status_code,
            )

        data = self._decode(response)
        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Parse error: unexpected response shape ({e})") from e

        return merge_tool_calls(message.get("content"), message.get("tool_calls"))

    async def _chat_native(self, messages: Sequence[ChatMessageLike], model: str) -> str:
        """Fallback to the native Ollama chat API."""
        payload = {
            "model": model,
            "messages": to_openai_messages(messages),
            "stream": False,
        }
        response = await self._post_json(f"{self.base_url}/api/chat", payload)

        if response.is_error:
            raise ProviderError(
                self.name,
                f"Ollama native error: {response.text}. Make sure Ollama is running (ollama serve)",
                response.status_code,
            )

        data = self._decode(response)
        message = data.get("message") or {}
        return merge_tool_calls(message.get("content"), message.get("tool_calls"))
