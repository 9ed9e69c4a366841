"""Per-session state owned by one agent loop."""

import logging
from dataclasses import dataclass
from typing import Optional

from security import SecurityConfig, SecurityGate
from storage.kv import InMemoryStore, KeyValueStore

from .config import AgentConfig
from .conversation import Conversation
from .embeddings import Embedder
from .memory import MemoryStore

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Mutable state of one conversation session.

    Nothing here is shared between sessions: each gets its own history,
    memories, approval state and store.
    """

    session_id: str
    conversation: Conversation
    memory: MemoryStore
    security: SecurityGate
    store: KeyValueStore

    async def load(self) -> None:
        """Restore persisted history and memories."""
        await self.conversation.load()
        await self.memory.load()


def create_session(
    session_id: str = "default",
    config: Optional[AgentConfig] = None,
    security_config: Optional[SecurityConfig] = None,
    store: Optional[KeyValueStore] = None,
    embedder: Optional[Embedder] = None,
) -> SessionContext:
    """Build an isolated session.

    Args:
        session_id: Session identifier
        config: Agent settings; defaults are read from the environment
        security_config: Security policy; defaults are read from the environment
        store: Key-value store for this session; in-memory when omitted
        embedder: Embedding backend override for the memory store
    """
    config = config or AgentConfig()
    store = store if store is not None else InMemoryStore()

    session = SessionContext(
        session_id=session_id,
        conversation=Conversation(config.system_prompt, store=store),
        memory=MemoryStore(config.memory, store=store, embedder=embedder),
        security=SecurityGate(security_config or SecurityConfig()),
        store=store,
    )
    logger.debug(f"Created session {session_id}")
    return session
