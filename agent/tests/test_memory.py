"""Tests for long-term memory storage and hybrid recall."""

import json
import logging

import pytest

from agent.config import MemoryConfig
from agent.embeddings import EmbeddingError, LocalEmbedder
from agent.memory import (
    INDEX_KEY,
    MemoryStore,
    entry_key,
    extract_keywords,
    jaccard_similarity,
)
from agent.schemas import MemoryEntry
from storage import InMemoryStore


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FailingEmbedder:
    async def embed(self, text):
        raise EmbeddingError("service down")


class KeywordOnlyEmbedder:
    """Embedder returning a constant vector so only keywords separate entries."""

    async def embed(self, text):
        return [1.0, 0.0, 0.0]


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def memory_config():
    return MemoryConfig(embedding_provider="local", max_entries=1000)


@pytest.fixture
def memory(memory_config, clock, kv_store):
    return MemoryStore(config=memory_config, store=kv_store, embedder=LocalEmbedder(), clock=clock)


class TestKeywords:
    def test_extract_keywords_filters_short_and_stop_words(self):
        keywords = extract_keywords("The cat is on the mat, with Python3 and asyncio!")

        assert keywords == {"cat", "mat", "python3", "asyncio"}

    def test_jaccard(self):
        assert jaccard_similarity({"x", "y"}, {"x", "y"}) == 1.0
        assert jaccard_similarity({"x"}, {"y"}) == 0.0
        assert jaccard_similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert jaccard_similarity({"a"}, set()) == 0.0

    def test_jaccard_of_two_empty_sets_is_one(self):
        assert jaccard_similarity(set(), set()) == 1.0


class TestSaveAndEviction:
    @pytest.mark.asyncio
    async def test_save_returns_unique_ids(self, memory):
        first = await memory.save("user likes green tea")
        second = await memory.save("user likes green tea")

        assert first != second
        assert first.startswith("mem_")
        assert len(memory.get_all()) == 2

    @pytest.mark.asyncio
    async def test_save_sets_fields(self, memory, clock):
        clock.now = 42.0

        memory_id = await memory.save("deploy on fridays is banned", {"source": "chat"})

        entry = memory.get_all()[0]
        assert entry.id == memory_id
        assert entry.metadata == {"source": "chat"}
        assert entry.created_at == entry.accessed_at == 42.0
        assert entry.access_count == 0
        assert len(entry.embedding) == 384

    @pytest.mark.asyncio
    async def test_scenario_eviction_of_least_recently_accessed(self, clock):
        """Capacity two: saving a third entry evicts the stalest one."""
        memory = MemoryStore(
            config=MemoryConfig(embedding_provider="local", max_entries=2),
            embedder=LocalEmbedder(),
            clock=clock,
        )
        clock.now = 10.0
        e1 = await memory.save("first memory")
        clock.now = 20.0
        e2 = await memory.save("second memory")
        clock.now = 30.0
        e3 = await memory.save("third memory")

        assert {e.id for e in memory.get_all()} == {e2, e3}
        assert e1 not in {e.id for e in memory.get_all()}

    @pytest.mark.asyncio
    async def test_recall_refreshes_entry_against_eviction(self, clock):
        memory = MemoryStore(
            config=MemoryConfig(embedding_provider="local", max_entries=2),
            embedder=LocalEmbedder(),
            clock=clock,
        )
        clock.now = 10.0
        old = await memory.save("database password rotation")
        clock.now = 20.0
        newer = await memory.save("lunch order")
        clock.now = 25.0
        await memory.recall("database password rotation", limit=1)

        clock.now = 30.0
        await memory.save("weekly standup notes")

        ids = {e.id for e in memory.get_all()}
        assert old in ids
        assert newer not in ids

    @pytest.mark.asyncio
    async def test_eviction_removes_persisted_entry(self, clock, kv_store):
        memory = MemoryStore(
            config=MemoryConfig(embedding_provider="local", max_entries=1),
            store=kv_store,
            embedder=LocalEmbedder(),
            clock=clock,
        )
        first = await memory.save("alpha")
        clock.now += 1
        second = await memory.save("beta")

        assert await kv_store.get(entry_key(first)) is None
        assert await kv_store.get(entry_key(second)) is not None
        assert json.loads(await kv_store.get(INDEX_KEY)) == [second]

    @pytest.mark.asyncio
    async def test_embedding_failure_stores_without_vector(self, memory_config, caplog):
        memory = MemoryStore(config=memory_config, embedder=FailingEmbedder())

        with caplog.at_level(logging.WARNING, logger="agent.memory"):
            await memory.save("still remembered")

        assert memory.get_all()[0].embedding is None
        assert "Embedding failed" in caplog.text

    @pytest.mark.asyncio
    async def test_no_embedder_configured(self):
        memory = MemoryStore(config=MemoryConfig(embedding_provider="none"))

        await memory.save("plain text")

        assert memory.embedder is None
        assert memory.get_all()[0].embedding is None


class TestReconfigure:
    def test_rebuilds_embedder(self, memory):
        memory.reconfigure(MemoryConfig(embedding_provider="none"))

        assert memory.embedder is None
        assert memory.config.embedding_provider == "none"

    @pytest.mark.asyncio
    async def test_lower_capacity_applies_at_next_save(self, memory, clock):
        for i in range(3):
            clock.now += 1
            await memory.save(f"entry {i}")

        memory.reconfigure(MemoryConfig(embedding_provider="local", max_entries=2))
        clock.now += 1
        newest = await memory.save("entry 3")

        assert len(memory.get_all()) == 2
        assert memory.get_all()[-1].id == newest


class TestRecall:
    @pytest.mark.asyncio
    async def test_empty_store(self, memory):
        assert await memory.recall("anything") == []

    @pytest.mark.asyncio
    async def test_most_relevant_first(self, memory):
        await memory.save("The user prefers dark mode in the editor")
        await memory.save("Project deadline is next Tuesday")
        await memory.save("Favourite programming language is Rust")

        results = await memory.recall("which programming language does the user like", limit=3)

        assert results[0].entry.content == "Favourite programming language is Rust"
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_limit_respected(self, memory):
        for i in range(6):
            await memory.save(f"note number {i}")

        assert len(await memory.recall("note", limit=4)) == 4
        assert await memory.recall("note", limit=0) == []

    @pytest.mark.asyncio
    async def test_recall_updates_access_metadata(self, memory, clock, kv_store):
        memory_id = await memory.save("kubernetes cluster upgrade")
        clock.now = 500.0

        results = await memory.recall("kubernetes upgrade", limit=1)

        entry = results[0].entry
        assert entry.access_count == 1
        assert entry.accessed_at == 500.0
        persisted = MemoryEntry.model_validate_json(await kv_store.get(entry_key(memory_id)))
        assert persisted.access_count == 1

    @pytest.mark.asyncio
    async def test_hybrid_score_formula(self, clock):
        config = MemoryConfig(embedding_provider="local", vector_weight=0.7, keyword_weight=0.3)
        memory = MemoryStore(config=config, embedder=KeywordOnlyEmbedder(), clock=clock)
        await memory.save("alpha beta gamma")

        results = await memory.recall("alpha beta delta")

        # cosine 1.0, jaccard 2/4
        assert results[0].score == pytest.approx(0.7 * 1.0 + 0.3 * 0.5)

    @pytest.mark.asyncio
    async def test_access_count_boost(self, clock):
        memory = MemoryStore(config=MemoryConfig(), embedder=KeywordOnlyEmbedder(), clock=clock)
        await memory.save("alpha beta")
        first = (await memory.recall("alpha beta"))[0].score

        second = (await memory.recall("alpha beta"))[0].score

        assert second == pytest.approx(first * 1.01)

    @pytest.mark.asyncio
    async def test_ties_keep_storage_order(self, clock):
        memory = MemoryStore(config=MemoryConfig(), embedder=KeywordOnlyEmbedder(), clock=clock)
        first = await memory.save("same words here")
        second = await memory.save("same words here")

        results = await memory.recall("same words here", limit=2)

        assert [r.entry.id for r in results] == [first, second]


class TestPersistence:
    @pytest.mark.asyncio
    async def test_reload_from_store(self, memory_config, kv_store, clock):
        writer = MemoryStore(config=memory_config, store=kv_store, embedder=LocalEmbedder(), clock=clock)
        memory_id = await writer.save("remember the milk", {"tag": "shopping"})

        reader = MemoryStore(config=memory_config, store=kv_store, embedder=LocalEmbedder(), clock=clock)
        count = await reader.load()

        assert count == 1
        entry = reader.get_all()[0]
        assert entry.id == memory_id
        assert entry.metadata == {"tag": "shopping"}

    @pytest.mark.asyncio
    async def test_lazy_load_on_first_recall(self, memory_config, kv_store, clock):
        writer = MemoryStore(config=memory_config, store=kv_store, embedder=LocalEmbedder(), clock=clock)
        await writer.save("lazy loading works")

        reader = MemoryStore(config=memory_config, store=kv_store, embedder=LocalEmbedder(), clock=clock)
        results = await reader.recall("lazy loading")

        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_corrupt_index_starts_empty(self, memory_config, kv_store):
        await kv_store.set(INDEX_KEY, "not json")
        memory = MemoryStore(config=memory_config, store=kv_store, embedder=LocalEmbedder())

        assert await memory.load() == 0

    @pytest.mark.asyncio
    async def test_backend_none_does_not_persist(self, kv_store):
        memory = MemoryStore(
            config=MemoryConfig(backend="none", embedding_provider="local"),
            store=kv_store,
            embedder=LocalEmbedder(),
        )

        await memory.save("ephemeral")

        assert not memory.persistent
        assert await kv_store.keys() == []

    @pytest.mark.asyncio
    async def test_delete(self, memory, kv_store):
        keep = await memory.save("keep me")
        drop = await memory.save("drop me")

        assert await memory.delete(drop) is True
        assert await memory.delete("mem_missing") is False
        assert [e.id for e in memory.get_all()] == [keep]
        assert await kv_store.get(entry_key(drop)) is None
        assert json.loads(await kv_store.get(INDEX_KEY)) == [keep]

    @pytest.mark.asyncio
    async def test_clear(self, memory, kv_store):
        await memory.save("one")
        await memory.save("two")

        await memory.clear()

        assert memory.get_all() == []
        assert await kv_store.keys() == []
