"""Shared types and HTTP plumbing for provider clients."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Backend network, HTTP or decoding failure. Never retried."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.provider} error ({self.status_code}): {self.message}"
        return f"{self.provider} error: {self.message}"


class ChatMessageLike(Protocol):
    """Anything with a role and textual content."""

    role: Any
    content: str


@dataclass
class ChatOptions:
    """Per-request generation options."""

    model: str
    max_tokens: int = 4096
    temperature: float = 0.7
    tools: List[Dict[str, Any]] = field(default_factory=list)


class ProviderClient(Protocol):
    """Protocol for model backends.

    Implementations return the assistant reply as text. Native structured
    tool calls are rewritten into fenced ```tool blocks so the agent loop
    only ever parses text.
    """

    name: str

    async def chat(self, messages: Sequence[ChatMessageLike], options: ChatOptions) -> str:
        ...


def role_name(message: ChatMessageLike) -> str:
    """Return the wire role string for a message."""
    role = message.role
    return getattr(role, "value", role)


def format_tool_block(name: str, arguments: Any) -> str:
    """Encode a tool call in the fenced textual form the parser expects."""
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError:
            arguments = {}
    if arguments is None:
        arguments = {}
    payload = json.dumps({"name": name, "arguments": arguments}, ensure_ascii=False)
    return f"```tool\n{payload}\n```"


def merge_tool_calls(content: Optional[str], tool_calls: Optional[List[Dict[str, Any]]]) -> str:
    """Append OpenAI-style native tool calls to the text content."""
    text = content or ""
    blocks = []
    for call in tool_calls or []:
        function = call.get("function") or {}
        name = function.get("name")
        if not name:
            continue
        blocks.append(format_tool_block(name, function.get("arguments")))

    if not blocks:
        return text
    if text.strip():
        return text + "\n\n" + "\n".join(blocks)
    return "\n".join(blocks)


class HTTPProvider:
    """Base class for JSON-over-HTTP providers."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the provider.

        Args:
            base_url: API root URL
            api_key: Optional API key
            timeout: Request timeout in seconds
            client: Optional shared HTTP client (tests inject a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """POST a JSON payload and return the raw response.

        Raises:
            ProviderError: On network failure
        """
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})

        try:
            if self._client is not None:
                return await self._client.post(
                    url, json=payload, headers=request_headers, timeout=self.timeout
                )
            async with httpx.AsyncClient() as client:
                return await client.post(
                    url, json=payload, headers=request_headers, timeout=self.timeout
                )
        except httpx.TimeoutException as e:
            logger.error(f"{self.name} request timed out: {e}")
            raise ProviderError(
                self.name, f"Request timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request failed: {e}")
            raise ProviderError(self.name, f"Could not reach {url}: {e}") from e

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a successful JSON response.

        Raises:
            ProviderError: On HTTP error status or malformed body
        """
        if response.is_error:
            raise ProviderError(self.name, f"API error: {response.text}", response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, f"Parse error: {e}") from e
