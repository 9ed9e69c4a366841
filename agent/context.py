"""Conversation size bounds."""

import logging
from typing import List, Sequence

from .schemas import Message, MessageRole

logger = logging.getLogger(__name__)

MAX_MESSAGES = 20
MAX_CHARS = 100_000
TRIM_BUDGET = 80_000


def total_chars(messages: Sequence[Message]) -> int:
    return sum(len(msg.content) for msg in messages)


class ContextWindowManager:
    """Keeps the conversation sent to the model within size bounds.

    Trimming keeps every system message and as many of the newest other
    messages as fit in the character budget. Dropped messages are gone
    for good; only a log entry records the trim.
    """

    def __init__(
        self,
        max_messages: int = MAX_MESSAGES,
        max_chars: int = MAX_CHARS,
        budget: int = TRIM_BUDGET,
    ):
        """Initialize the window manager.

        Args:
            max_messages: Message count above which trimming triggers
            max_chars: Total content length above which trimming triggers
            budget: Character budget for retained non-system messages
        """
        self.max_messages = max_messages
        self.max_chars = max_chars
        self.budget = budget

    def needs_trim(self, messages: Sequence[Message]) -> bool:
        return len(messages) > self.max_messages or total_chars(messages) > self.max_chars

    def maybe_trim(self, messages: Sequence[Message]) -> List[Message]:
        """Return the conversation, trimmed if it exceeds the bounds.

        Args:
            messages: Conversation in chronological order

        Returns:
            A new list: all system messages followed by the retained
            messages in their original order
        """
        if not self.needs_trim(messages):
            return list(messages)

        system_messages = [msg for msg in messages if msg.role == MessageRole.SYSTEM]
        others = [msg for msg in messages if msg.role != MessageRole.SYSTEM]

        retained: List[Message] = []
        used = 0
        for msg in reversed(others):
            if used + len(msg.content) > self.budget:
                break
            used += len(msg.content)
            retained.append(msg)
        retained.reverse()

        trimmed = system_messages + retained
        logger.info(
            f"Trimmed conversation from {len(messages)} to {len(trimmed)} messages "
            f"({total_chars(trimmed)} chars)"
        )
        return trimmed
