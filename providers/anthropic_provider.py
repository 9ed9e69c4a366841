"""Anthropic messages API client."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .base import ChatMessageLike, ChatOptions, HTTPProvider, ProviderError, format_tool_block, role_name

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(HTTPProvider):
    """Client for the Anthropic messages API.

    System messages are joined and sent through the dedicated system
    field; the remaining turns keep their order.
    """

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = ANTHROPIC_BASE_URL,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, api_key=api_key, timeout=timeout, client=client)

    async def chat(self, messages: Sequence[ChatMessageLike], options: ChatOptions) -> str:
        if not self.api_key:
            raise ProviderError(self.name, "API key not set")

        system_prompt = "\n".join(m.content for m in messages if role_name(m) == "system")
        turns: List[Dict[str, str]] = [
            {"role": role_name(m), "content": m.content}
            for m in messages
            if role_name(m) != "system"
        ]

        payload: Dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "system": system_prompt,
            "messages": turns,
        }

        response = await self._post_json(
            f"{self.base_url}/messages",
            payload,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )
        data = self._decode(response)

        parts = []
        for block in data.get("content") or []:
            block_type = block.get("type")
            if block_type == "text":
                parts.append(block.get("text", ""))
            elif block_type == "tool_use":
                parts.append("\n" + format_tool_block(block.get("name", ""), block.get("input")))

        return "".join(parts)
