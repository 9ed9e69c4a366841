"""Tool implementations for the agent."""

from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx

from storage.kv import KeyValueStore

from ..schemas import Message
from .conversation import GetConversationTool
from .custom import (
    CreateToolTool,
    CustomTool,
    CustomToolRegistry,
    DeleteToolTool,
    ListCustomToolsTool,
)
from .executor import ToolExecutor
from .notes import ReadNotesTool, SaveNoteTool
from .utility import CalculatorTool, CurrentTimeTool
from .web import FetchUrlTool, WebSearchTool


class BaseTool(Protocol):
    """Protocol for all agent tools."""

    name: str
    description: str
    parameters: Dict[str, Any]

    async def run(self, *args: Any, **kwargs: Any) -> str:
        """Execute the tool and return result as string."""
        ...


def get_available_tools(
    store: KeyValueStore,
    history: Callable[[], List[Message]],
    client: Optional[httpx.AsyncClient] = None,
    registry: Optional[CustomToolRegistry] = None,
) -> Dict[str, BaseTool]:
    """Build every built-in tool.

    Args:
        store: Key-value store for notes and custom tools
        history: Returns the current conversation messages
        client: Optional shared HTTP client for web tools
        registry: Custom tool registry; created over the store when omitted
    """
    registry = registry or CustomToolRegistry(store)
    tools = [
        WebSearchTool(client=client),
        CurrentTimeTool(),
        CalculatorTool(),
        FetchUrlTool(client=client),
        SaveNoteTool(store),
        ReadNotesTool(store),
        GetConversationTool(history),
        CreateToolTool(registry),
        ListCustomToolsTool(registry),
        DeleteToolTool(registry),
    ]
    return {tool.name: tool for tool in tools}


def create_executor(
    store: KeyValueStore,
    history: Callable[[], List[Message]],
    client: Optional[httpx.AsyncClient] = None,
) -> ToolExecutor:
    """ToolExecutor over the built-ins with the custom-tool fallback."""
    registry = CustomToolRegistry(store)
    return ToolExecutor(get_available_tools(store, history, client, registry), registry)


__all__ = [
    "BaseTool",
    "CalculatorTool",
    "CreateToolTool",
    "CurrentTimeTool",
    "CustomTool",
    "CustomToolRegistry",
    "DeleteToolTool",
    "FetchUrlTool",
    "GetConversationTool",
    "ListCustomToolsTool",
    "ReadNotesTool",
    "SaveNoteTool",
    "ToolExecutor",
    "WebSearchTool",
    "create_executor",
    "get_available_tools",
]
