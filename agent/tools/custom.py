"""User-defined tools persisted in the key-value store.

A custom tool is a named text template. Calling it substitutes the call
arguments into the template, e.g. a template of
``"Weather for $city: ask wttr.in/$city"`` called with ``{"city": "Oslo"}``.
"""

import json
import logging
import re
from datetime import datetime
from string import Template
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from storage.kv import KeyValueStore

from ..exceptions import ToolExecutionError

logger = logging.getLogger(__name__)

CUSTOM_TOOLS_KEY = "custom_tools"
_NAME_PATTERN = re.compile(r"^[a-z0-9_]+$")


class CustomTool(BaseModel):
    """Stored definition of a user-defined tool."""

    name: str
    description: str
    parameters_schema: Dict[str, Any] = Field(default_factory=dict)
    template: str
    created_at: str = Field(default_factory=lambda: datetime.now().astimezone().isoformat())

    def render(self, arguments: Dict[str, Any]) -> str:
        values = {
            key: value if isinstance(value, str) else json.dumps(value)
            for key, value in arguments.items()
        }
        return Template(self.template).safe_substitute(values)


class CustomToolRegistry:
    """Custom tool definitions stored as one JSON list."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def list_tools(self) -> List[CustomTool]:
        raw = await self.store.get(CUSTOM_TOOLS_KEY)
        if not raw:
            return []
        try:
            return [CustomTool.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Stored custom tools are unreadable: {e}")
            return []

    async def _write(self, tools: List[CustomTool]) -> None:
        await self.store.set(
            CUSTOM_TOOLS_KEY, json.dumps([tool.model_dump() for tool in tools])
        )

    async def get(self, name: str) -> Optional[CustomTool]:
        for tool in await self.list_tools():
            if tool.name == name:
                return tool
        return None

    async def add(self, tool: CustomTool) -> None:
        if not _NAME_PATTERN.match(tool.name):
            raise ToolExecutionError(
                "Tool name must be lowercase with underscores only", "create_tool"
            )

        tools = await self.list_tools()
        if any(existing.name == tool.name for existing in tools):
            raise ToolExecutionError(
                f"Tool '{tool.name}' already exists. Use delete_tool first if you want to replace it.",
                "create_tool",
            )

        tools.append(tool)
        await self._write(tools)
        logger.info(f"Created custom tool: {tool.name}")

    async def remove(self, name: str) -> bool:
        tools = await self.list_tools()
        remaining = [tool for tool in tools if tool.name != name]
        if len(remaining) == len(tools):
            return False

        await self._write(remaining)
        logger.info(f"Deleted custom tool: {name}")
        return True

    async def run(self, name: str, arguments: Dict[str, Any]) -> str:
        """Render a custom tool.

        Raises:
            ToolExecutionError: If no custom tool has that name
        """
        tool = await self.get(name)
        if tool is None:
            raise ToolExecutionError(f"Unknown tool: {name}", name)
        return tool.render(arguments)


class CreateToolTool:
    """Tool letting the model define new tools."""

    def __init__(self, registry: CustomToolRegistry):
        self.name = "create_tool"
        self.description = (
            "Create a reusable custom tool from a text template. "
            "Use $argument placeholders for the call arguments."
        )
        self.parameters = {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Lowercase tool name with underscores"},
                "description": {"type": "string", "description": "What the tool does"},
                "parameters_schema": {"type": "object", "description": "JSON schema of the arguments"},
                "template": {"type": "string", "description": "Output template with $placeholders"},
            },
            "required": ["name", "description", "template"],
        }
        self.registry = registry

    async def run(
        self,
        name: str,
        description: str,
        template: str,
        parameters_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        await self.registry.add(
            CustomTool(
                name=name,
                description=description,
                parameters_schema=parameters_schema or {},
                template=template,
            )
        )
        return (
            f"Tool '{name}' created successfully!\n\nDescription: {description}\n\n"
            "You can now use this tool by calling it with the appropriate parameters."
        )


class ListCustomToolsTool:
    """Tool listing user-defined tools."""

    def __init__(self, registry: CustomToolRegistry):
        self.name = "list_custom_tools"
        self.description = "List all custom tools"
        self.parameters = {"type": "object", "properties": {}}
        self.registry = registry

    async def run(self) -> str:
        tools = await self.registry.list_tools()
        if not tools:
            return "No custom tools created yet. Use create_tool to make one!"

        lines = [f"Custom Tools ({len(tools)}):", ""]
        for tool in tools:
            lines.append(f"- {tool.name} - {tool.description}")
            lines.append(f"  Parameters: {json.dumps(tool.parameters_schema)}")
            lines.append(f"  Created: {tool.created_at}")
        return "\n".join(lines)


class DeleteToolTool:
    """Tool removing a user-defined tool."""

    def __init__(self, registry: CustomToolRegistry):
        self.name = "delete_tool"
        self.description = "Delete a custom tool by name"
        self.parameters = {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Name of the custom tool"},
            },
            "required": ["name"],
        }
        self.registry = registry

    async def run(self, name: str) -> str:
        if not await self.registry.remove(name):
            raise ToolExecutionError(f"Tool '{name}' not found", self.name)
        return f"Tool '{name}' deleted successfully!"
