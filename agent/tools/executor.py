"""Dispatch of tool calls by name."""

import inspect
import logging
from typing import Any, Dict, List, Optional

from ..exceptions import ToolExecutionError
from ..schemas import ToolDefinition
from .custom import CustomToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Runs built-in tools, falling back to user-defined ones.

    Every failure surfaces as ToolExecutionError so the caller can turn
    it into text for the model.
    """

    def __init__(self, tools: Dict[str, Any], custom: Optional[CustomToolRegistry] = None):
        """Initialize the executor.

        Args:
            tools: Built-in tools keyed by name
            custom: Registry consulted for names that match no built-in
        """
        self.tools = tools
        self.custom = custom

    def definitions(self) -> List[ToolDefinition]:
        """Describe the built-in tools for the system prompt and provider."""
        definitions = []
        for name, tool in self.tools.items():
            definitions.append(
                ToolDefinition(
                    name=name,
                    description=getattr(tool, "description", ""),
                    parameters=getattr(tool, "parameters", None)
                    or {"type": "object", "properties": {}},
                )
            )
        return definitions

    async def execute(self, name: str, arguments: Any = None) -> str:
        """Execute a tool.

        Args:
            name: Tool name
            arguments: Argument object; None means no arguments

        Returns:
            Tool output as text

        Raises:
            ToolExecutionError: Unknown tool, bad arguments or a failure
                inside the tool
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolExecutionError(
                f"Arguments for '{name}' must be a JSON object, got {type(arguments).__name__}",
                name,
            )

        tool = self.tools.get(name)
        if tool is None:
            if self.custom is not None:
                return await self.custom.run(name, arguments)
            raise ToolExecutionError(f"Unknown tool: {name}", name)

        try:
            inspect.signature(tool.run).bind(**arguments)
        except TypeError as e:
            raise ToolExecutionError(f"Invalid arguments for '{name}': {e}", name) from e

        try:
            result = await tool.run(**arguments)
        except ToolExecutionError:
            raise
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            raise ToolExecutionError(str(e) or type(e).__name__, name) from e

        return result if isinstance(result, str) else str(result)
