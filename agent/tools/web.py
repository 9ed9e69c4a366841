"""Web search and page fetching tools."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from bs4 import BeautifulSoup

from ..exceptions import ToolExecutionError

logger = logging.getLogger(__name__)

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"
MAX_PAGE_CHARS = 3000
MAX_RELATED_TOPICS = 8


def strip_html(html: str) -> str:
    """Drop tags, scripts and styles, and collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return " ".join(soup.get_text(" ", strip=True).split())


class _HTTPTool:
    """Shared request handling for HTTP-backed tools."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 20.0):
        self._client = client
        self.timeout = timeout

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.get(
                    url, params=params, timeout=self.timeout, follow_redirects=True
                )
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                return await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ToolExecutionError(f"Request to {url} failed: {e}", self.name) from e


class FetchUrlTool(_HTTPTool):
    """Tool for fetching a web page as plain text."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 20.0):
        super().__init__(client, timeout)
        self.name = "fetch_url"
        self.description = "Fetch the text content of a web page"
        self.parameters = {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to fetch"},
            },
            "required": ["url"],
        }

    async def run(self, url: str) -> str:
        """Fetch a page and strip its markup.

        Args:
            url: Page URL

        Returns:
            Page text, cut at MAX_PAGE_CHARS characters
        """
        response = await self._get(url)
        if response.status_code >= 400:
            raise ToolExecutionError(f"Fetch failed: HTTP {response.status_code}", self.name)

        text = strip_html(response.text)
        logger.info(f"Fetched {url} ({len(text)} characters)")

        if len(text) > MAX_PAGE_CHARS:
            return f"{text[:MAX_PAGE_CHARS]}...(truncated)"
        return text


class WebSearchTool(_HTTPTool):
    """Tool for searching the web through DuckDuckGo instant answers."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
        api_url: str = DUCKDUCKGO_API_URL,
    ):
        super().__init__(client, timeout)
        self.name = "web_search"
        self.description = "Search the web for information"
        self.parameters = {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"},
            },
            "required": ["query"],
        }
        self.api_url = api_url

    async def run(self, query: str) -> str:
        """Search and format the top results.

        Args:
            query: Search query

        Returns:
            Abstract and related topics, or a no-results message
        """
        response = await self._get(
            self.api_url,
            params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
        )
        if response.status_code >= 400:
            raise ToolExecutionError(f"Search failed: HTTP {response.status_code}", self.name)

        try:
            data = response.json()
        except ValueError as e:
            raise ToolExecutionError(f"Parse error: {e}", self.name) from e

        results: List[str] = []

        abstract = data.get("Abstract") or ""
        if abstract:
            results.append(
                f"**{data.get('AbstractSource', '')}**\n{abstract}\n{data.get('AbstractURL', '')}"
            )

        for topic in (data.get("RelatedTopics") or [])[:MAX_RELATED_TOPICS]:
            text = topic.get("Text")
            url = topic.get("FirstURL")
            if text and url:
                results.append(f"• {text}\n  {url}")

        if not results:
            return f"No results found for: {query}"

        return f"Search results for '{query}':\n\n" + "\n\n".join(results)
