"""Conversation history for one session."""

import json
import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from storage.kv import KeyValueStore

from .schemas import Message, MessageRole

logger = logging.getLogger(__name__)

HISTORY_KEY = "conversation_history"


class Conversation:
    """Ordered chat messages, always starting with the system prompt.

    Features:
    - At least one system message at all times
    - clear() keeps only the system prompt
    - Optional persistence through a key-value store
    """

    def __init__(
        self,
        system_prompt: str,
        store: Optional[KeyValueStore] = None,
        key: str = HISTORY_KEY,
    ):
        """Initialize the conversation.

        Args:
            system_prompt: Content of the leading system message
            store: Optional key-value store for persistence
            key: Store key holding the serialized history
        """
        self.system_prompt = system_prompt
        self.store = store
        self.key = key
        self.messages: List[Message] = [Message.system(system_prompt)]

    def add(self, message: Message) -> None:
        self.messages.append(message)

    def add_user(self, content: str) -> None:
        self.messages.append(Message.user(content))

    def add_assistant(self, content: str) -> None:
        self.messages.append(Message.assistant(content))

    def replace(self, messages: Sequence[Message]) -> None:
        """Swap in a new message list, e.g. after trimming.

        Raises:
            ValueError: If the new list has no system message
        """
        if not any(msg.role == MessageRole.SYSTEM for msg in messages):
            raise ValueError("Conversation must keep at least one system message")
        self.messages = list(messages)

    def set_system_prompt(self, system_prompt: str) -> None:
        """Replace the leading system message."""
        self.system_prompt = system_prompt
        if self.messages and self.messages[0].role == MessageRole.SYSTEM:
            self.messages[0] = Message.system(system_prompt)
        else:
            self.messages.insert(0, Message.system(system_prompt))

    def history(self) -> List[Message]:
        return list(self.messages)

    def clear(self) -> None:
        """Drop everything but the system prompt."""
        self.messages = [Message.system(self.system_prompt)]
        logger.info("Conversation cleared")

    def __len__(self) -> int:
        return len(self.messages)

    async def save(self) -> None:
        """Persist the history if a store is configured."""
        if self.store is None:
            return
        await self.store.set(
            self.key, json.dumps([msg.model_dump(mode="json") for msg in self.messages])
        )

    async def load(self) -> int:
        """Restore a persisted history.

        Returns:
            Number of messages loaded, 0 when nothing usable was stored
        """
        if self.store is None:
            return 0

        raw = await self.store.get(self.key)
        if not raw:
            return 0

        try:
            messages = [Message.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Stored conversation is unreadable, starting fresh: {e}")
            return 0

        if not any(msg.role == MessageRole.SYSTEM for msg in messages):
            messages.insert(0, Message.system(self.system_prompt))

        self.messages = messages
        logger.info(f"Loaded {len(messages)} messages from store")
        return len(messages)
