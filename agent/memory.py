"""Long-term memory with hybrid vector and keyword retrieval."""

import json
import logging
import os
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from storage.kv import KeyValueStore

from .config import MemoryConfig
from .embeddings import (
    Embedder,
    EmbeddingError,
    EmbeddingProvider,
    cosine_similarity,
    create_embedder,
)
from .schemas import MemoryEntry, MemorySearchResult

logger = logging.getLogger(__name__)

INDEX_KEY = "memory_index"
ACCESS_BOOST = 0.01

STOP_WORDS = frozenset(
    """
    the a an is are was were be been being have has had do does did will
    would could should may might must shall can need dare ought used to of
    in for on with at by from as into through during before after above
    below between and but or nor so yet both either neither not only own
    same than too very just
    """.split()
)


def entry_key(memory_id: str) -> str:
    return f"memory_{memory_id}"


def extract_keywords(text: str) -> Set[str]:
    """Lowercased alphanumeric tokens of at least three characters, minus stop words."""
    keywords = set()
    for token in text.lower().split():
        word = "".join(c for c in token if c.isalnum())
        if len(word) >= 3 and word not in STOP_WORDS:
            keywords.add(word)
    return keywords


def jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    """Set overlap. Two empty sets count as identical."""
    if not a and not b:
        return 1.0
    union = a | b
    return len(a & b) / len(union)


class MemoryStore:
    """Persists memories and ranks them against queries.

    Features:
    - Embeddings from OpenAI or a local hashed-term fallback
    - Hybrid score of cosine similarity and keyword overlap
    - Frequently recalled memories get a small boost
    - Bounded size, evicting the least recently accessed entry
    - Optional persistence through a key-value store
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        store: Optional[KeyValueStore] = None,
        embedder: Optional[Embedder] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the memory store.

        Args:
            config: Memory settings; defaults are read from the environment
            store: Key-value store for persistence
            embedder: Embedding backend; built from the config when omitted
            clock: Time source returning epoch seconds
        """
        self.config = config or MemoryConfig()
        self.store = store
        self.clock = clock
        self.entries: List[MemoryEntry] = []
        self._loaded = False

        self.embedder = embedder if embedder is not None else self._build_embedder()

    def _build_embedder(self) -> Optional[Embedder]:
        api_key = self.config.embedding_api_key or os.getenv("OPENAI_API_KEY")
        return create_embedder(
            self.config.embedding_provider,
            api_key=api_key,
            model=self.config.embedding_model,
        )

    @property
    def persistent(self) -> bool:
        return self.store is not None and self.config.backend == "kv"

    def reconfigure(self, config: MemoryConfig) -> None:
        """Apply new settings and rebuild the embedder.

        A lower max_entries takes effect at the next save.
        """
        self.config = config
        self.embedder = self._build_embedder()
        logger.info(
            f"Memory reconfigured: embeddings={self.config.embedding_provider}, "
            f"max_entries={self.config.max_entries}"
        )

    def set_api_key(self, api_key: str) -> None:
        """Switch to the networked embedder with a new API key."""
        self.config.embedding_api_key = api_key
        if self.config.embedding_provider == EmbeddingProvider.OPENAI:
            self.embedder = create_embedder(
                EmbeddingProvider.OPENAI, api_key=api_key, model=self.config.embedding_model
            )

    async def _embed(self, text: str) -> Optional[List[float]]:
        if self.embedder is None:
            return None
        try:
            return await self.embedder.embed(text)
        except EmbeddingError as e:
            logger.warning(f"Embedding failed, continuing without vector: {e}")
            return None

    async def load(self) -> int:
        """Load persisted memories, replacing the in-process entries.

        Returns:
            Number of entries loaded
        """
        self._loaded = True
        if not self.persistent:
            return len(self.entries)

        ids = await self._read_index()
        entries = []
        for memory_id in ids:
            raw = await self.store.get(entry_key(memory_id))
            if raw is None:
                continue
            try:
                entries.append(MemoryEntry.model_validate_json(raw))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable memory {memory_id}: {e}")

        self.entries = entries
        logger.info(f"Loaded {len(entries)} memories")
        return len(entries)

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def _read_index(self) -> List[str]:
        raw = await self.store.get(INDEX_KEY)
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Memory index is corrupt, starting empty")
            return []
        return [i for i in ids if isinstance(i, str)] if isinstance(ids, list) else []

    async def _write_index(self) -> None:
        await self.store.set(INDEX_KEY, json.dumps([e.id for e in self.entries]))

    async def _persist_entry(self, entry: MemoryEntry) -> None:
        if self.persistent:
            await self.store.set(entry_key(entry.id), entry.model_dump_json())

    async def save(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Store a new memory.

        At capacity, the entry with the oldest accessed_at is evicted first.

        Args:
            content: Text to remember
            metadata: Arbitrary caller metadata

        Returns:
            Id of the new memory
        """
        await self._ensure_loaded()

        embedding = await self._embed(content)
        now = self.clock()
        entry = MemoryEntry(
            id=f"mem_{uuid.uuid4().hex}",
            content=content,
            embedding=embedding,
            metadata=metadata or {},
            created_at=now,
            accessed_at=now,
            access_count=0,
        )

        while len(self.entries) >= self.config.max_entries:
            await self._evict_oldest()

        self.entries.append(entry)

        if self.persistent:
            await self._persist_entry(entry)
            await self._write_index()

        logger.debug(f"Saved memory {entry.id} ({len(content)} chars)")
        return entry.id

    async def _evict_oldest(self) -> None:
        oldest = min(self.entries, key=lambda e: e.accessed_at)
        self.entries.remove(oldest)
        if self.persistent:
            await self.store.remove(entry_key(oldest.id))
        logger.info(f"Evicted memory {oldest.id} (accessed_at={oldest.accessed_at})")

    async def recall(self, query: str, limit: int = 5) -> List[MemorySearchResult]:
        """Rank memories against a query.

        Recalled entries have accessed_at refreshed and access_count
        incremented.

        Args:
            query: Search text
            limit: Maximum number of results

        Returns:
            Results ordered by descending score, ties in storage order
        """
        await self._ensure_loaded()
        if not self.entries or limit <= 0:
            return []

        query_embedding = await self._embed(query)
        query_keywords = extract_keywords(query)

        results = []
        for entry in self.entries:
            score = self.config.vector_weight * cosine_similarity(query_embedding, entry.embedding)
            score += self.config.keyword_weight * jaccard_similarity(
                query_keywords, extract_keywords(entry.content)
            )
            score *= 1.0 + ACCESS_BOOST * entry.access_count
            results.append(MemorySearchResult(entry=entry, score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        top = results[:limit]

        now = self.clock()
        for result in top:
            result.entry.accessed_at = now
            result.entry.access_count += 1
            await self._persist_entry(result.entry)

        return top

    async def delete(self, memory_id: str) -> bool:
        """Delete a memory.

        Returns:
            True if the memory existed
        """
        await self._ensure_loaded()
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.id != memory_id]
        existed = len(self.entries) != before

        if self.persistent:
            await self.store.remove(entry_key(memory_id))
            await self._write_index()

        return existed

    async def clear(self) -> None:
        """Delete every memory."""
        if self.persistent:
            for memory_id in await self._read_index():
                await self.store.remove(entry_key(memory_id))
            await self.store.remove(INDEX_KEY)

        self.entries = []
        self._loaded = True
        logger.info("Memory cleared")

    def get_all(self) -> List[MemoryEntry]:
        return list(self.entries)
