"""OpenAI-compatible chat completions client."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .base import ChatMessageLike, ChatOptions, HTTPProvider, ProviderError, merge_tool_calls, role_name

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


def to_openai_messages(messages: Sequence[ChatMessageLike]) -> List[Dict[str, str]]:
    """Convert conversation messages to the chat completions wire format."""
    return [{"role": role_name(m), "content": m.content} for m in messages]


class OpenAIProvider(HTTPProvider):
    """Client for OpenAI and OpenAI-compatible endpoints (Groq, Together, custom)."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = OPENAI_BASE_URL,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ):
        super().__init__(base_url, api_key=api_key, timeout=timeout, client=client)
        if name:
            self.name = name

    async def chat(self, messages: Sequence[ChatMessageLike], options: ChatOptions) -> str:
        """Send a chat completion request and return the reply text."""
        if not self.api_key:
            raise ProviderError(self.name, "API key not set")

        payload: Dict[str, Any] = {
            "model": options.model,
            "messages": to_openai_messages(messages),
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.tools:
            payload["tools"] = options.tools

        logger.debug(f"{self.name} chat request: model={options.model}, messages={len(messages)}")
        response = await self._post_json(
            f"{self.base_url}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        data = self._decode(response)

        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Parse error: unexpected response shape ({e})") from e

        return merge_tool_calls(message.get("content"), message.get("tool_calls"))
