"""Tool exporting the current conversation."""

from typing import Callable, List

from ..schemas import Message, MessageRole

SYSTEM_PREVIEW_CHARS = 200
SUMMARY_PREVIEW_CHARS = 100


def format_markdown(messages: List[Message]) -> str:
    lines = ["# Conversation History", ""]
    for msg in messages:
        if msg.role == MessageRole.SYSTEM:
            lines.append(f"**System:** {msg.content[:SYSTEM_PREVIEW_CHARS]}")
        elif msg.role == MessageRole.USER:
            lines.append(f"**User:** {msg.content}")
        else:
            lines.append(f"**Assistant:** {msg.content}")
        lines.extend(["", "---", ""])
    return "\n".join(lines)


def format_text(messages: List[Message]) -> str:
    lines = ["CONVERSATION HISTORY", "====================", ""]
    for msg in messages:
        lines.append(f"[{msg.role.value.upper()}]: {msg.content}")
        lines.append("")
    return "\n".join(lines)


def format_summary(messages: List[Message]) -> str:
    user_count = sum(1 for msg in messages if msg.role == MessageRole.USER)
    assistant_count = sum(1 for msg in messages if msg.role == MessageRole.ASSISTANT)

    lines = [
        "**Conversation Summary**",
        "",
        f"- {user_count} user messages",
        f"- {assistant_count} assistant responses",
    ]
    first_user = next((msg for msg in messages if msg.role == MessageRole.USER), None)
    if first_user is not None:
        lines.append("")
        lines.append(f"**Started with:** {first_user.content[:SUMMARY_PREVIEW_CHARS]}...")
    return "\n".join(lines)


FORMATTERS = {
    "markdown": format_markdown,
    "text": format_text,
    "summary": format_summary,
}


class GetConversationTool:
    """Tool returning the conversation so far."""

    def __init__(self, history: Callable[[], List[Message]]):
        """Initialize the tool.

        Args:
            history: Returns the current conversation messages
        """
        self.name = "get_conversation"
        self.description = (
            "Get the current conversation history. Use this to summarize or "
            "export the chat instead of redoing the work."
        )
        self.parameters = {
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "enum": list(FORMATTERS),
                    "description": "Output format: 'markdown', 'text' or 'summary'",
                },
            },
        }
        self.history = history

    async def run(self, format: str = "markdown") -> str:
        messages = self.history()
        if not any(msg.role != MessageRole.SYSTEM for msg in messages):
            return "No conversation history found."

        formatter = FORMATTERS.get(format, format_markdown)
        return formatter(messages)
