"""Tests for embedding backends."""

import json
import math

import httpx
import pytest

from agent.embeddings import (
    LOCAL_DIMENSIONS,
    EmbeddingError,
    EmbeddingProvider,
    LocalEmbedder,
    OpenAIEmbedder,
    cosine_similarity,
    create_embedder,
    local_embedding,
)


class TestCosineSimilarity:
    def test_identical_vectors(self):
        v = [0.3, -1.2, 4.0]

        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize(
        "a, b",
        [
            (None, [1.0]),
            ([1.0], None),
            ([1.0, 2.0], [1.0]),
            ([], []),
            ([0.0, 0.0], [1.0, 1.0]),
        ],
    )
    def test_degenerate_inputs_score_zero(self, a, b):
        assert cosine_similarity(a, b) == 0.0


class TestLocalEmbedding:
    def test_dimensions_and_unit_norm(self):
        vector = local_embedding("the quick brown fox")

        assert len(vector) == LOCAL_DIMENSIONS
        assert math.sqrt(sum(x * x for x in vector)) == pytest.approx(1.0)

    def test_empty_text_is_zero_vector(self):
        assert local_embedding("   ") == [0.0] * LOCAL_DIMENSIONS

    def test_deterministic_and_case_insensitive(self):
        assert local_embedding("Hello World") == local_embedding("hello world")

    def test_similar_texts_closer_than_unrelated(self):
        base = local_embedding("python async web server")
        near = local_embedding("python async web framework")
        far = local_embedding("banana smoothie recipe")

        assert cosine_similarity(base, near) > cosine_similarity(base, far)

    def test_custom_dimensions(self):
        assert len(local_embedding("abc", dimensions=16)) == 16

    @pytest.mark.asyncio
    async def test_local_embedder(self):
        embedder = LocalEmbedder()

        assert await embedder.embed("hi there") == local_embedding("hi there")


class TestCreateEmbedder:
    def test_none_disables_embeddings(self):
        assert create_embedder(EmbeddingProvider.NONE) is None

    def test_local(self):
        assert isinstance(create_embedder(EmbeddingProvider.LOCAL, api_key="sk-x"), LocalEmbedder)

    def test_openai_with_key(self):
        embedder = create_embedder("openai", api_key="sk-test", model="text-embedding-3-large")

        assert isinstance(embedder, OpenAIEmbedder)
        assert embedder.model == "text-embedding-3-large"

    def test_openai_without_key_falls_back_to_local(self):
        assert isinstance(create_embedder(EmbeddingProvider.OPENAI, api_key=None), LocalEmbedder)


class TestOpenAIEmbedder:
    @pytest.mark.asyncio
    async def test_posts_model_and_input(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            embedder = OpenAIEmbedder("sk-test", client=client)
            vector = await embedder.embed("remember this")

        assert vector == [0.1, 0.2, 0.3]
        assert seen["url"] == "https://api.openai.com/v1/embeddings"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {"model": "text-embedding-3-small", "input": "remember this"}

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="bad key"))

        async with httpx.AsyncClient(transport=transport) as client:
            embedder = OpenAIEmbedder("sk-wrong", client=client)
            with pytest.raises(EmbeddingError, match="401"):
                await embedder.embed("text")

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))

        async with httpx.AsyncClient(transport=transport) as client:
            embedder = OpenAIEmbedder("sk-test", client=client)
            with pytest.raises(EmbeddingError, match="Malformed"):
                await embedder.embed("text")

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            embedder = OpenAIEmbedder("sk-test", client=client)
            with pytest.raises(EmbeddingError, match="request failed"):
                await embedder.embed("text")
