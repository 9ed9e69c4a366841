"""System prompt construction."""

from typing import Sequence

from .schemas import ToolDefinition

TOOL_USAGE = (
    "To use a tool, respond with a JSON object in this format:\n"
    "```tool\n"
    '{"name": "tool_name", "arguments": {...}}\n'
    "```\n\n"
    'Or simply: {"name": "tool_name", "query": "...", ...}\n\n'
    "You may call several tools in one reply. After using a tool, you will "
    "receive its result and can continue helping the user."
)


def build_system_prompt(instructions: str, tools: Sequence[ToolDefinition]) -> str:
    """Combine instructions with the tool catalogue and calling convention.

    Args:
        instructions: Base assistant instructions
        tools: Tools the model may call

    Returns:
        Complete system prompt
    """
    if not tools:
        return instructions

    catalogue = "\n".join(f"- **{tool.name}**: {tool.description}" for tool in tools)
    return (
        f"{instructions}\n\n"
        f"You have access to the following tools:\n{catalogue}\n\n"
        f"{TOOL_USAGE}"
    )
