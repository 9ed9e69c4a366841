"""Embedding backends used by the memory store.

Two backends exist: the OpenAI embeddings endpoint, and a local hashed
term vector. The local vector is not semantic. It only guarantees that
near-identical token multisets land close together.
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol, Sequence

import httpx
import numpy as np

logger = logging.getLogger(__name__)

LOCAL_DIMENSIONS = 384
OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

_HASH_MODULUS = 2**64


class EmbeddingProvider(str, Enum):
    """Which backend computes embeddings."""

    OPENAI = "openai"
    LOCAL = "local"
    NONE = "none"


class EmbeddingError(Exception):
    """The embedding backend could not produce a vector."""


class Embedder(Protocol):
    """Anything that turns text into a vector."""

    async def embed(self, text: str) -> List[float]:
        ...


def _token_hash(token: str) -> int:
    value = 0
    for c in token:
        value = (value * 31 + ord(c)) % _HASH_MODULUS
    return value


def local_embedding(text: str, dimensions: int = LOCAL_DIMENSIONS) -> List[float]:
    """Hashed-term vector with position-decayed weights, L2-normalized.

    Args:
        text: Text to embed
        dimensions: Vector length

    Returns:
        Unit vector, or all zeros for text without tokens
    """
    vector = np.zeros(dimensions, dtype=np.float64)
    for position, token in enumerate(text.lower().split()):
        vector[_token_hash(token) % dimensions] += 1.0 / (1.0 + position)

    norm = np.linalg.norm(vector)
    if norm > 0:
        vector = vector / norm
    return vector.tolist()


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine of the angle between two vectors.

    Missing vectors, mismatched lengths and zero vectors score 0.0.
    """
    if a is None or b is None or len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


class LocalEmbedder:
    """Offline fallback embedder."""

    def __init__(self, dimensions: int = LOCAL_DIMENSIONS):
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        return local_embedding(text, self.dimensions)


class OpenAIEmbedder:
    """Embeddings from the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_EMBEDDING_MODEL,
        url: str = OPENAI_EMBEDDINGS_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the embedder.

        Args:
            api_key: OpenAI API key
            model: Embedding model name
            url: Embeddings endpoint
            timeout: Request timeout in seconds
            client: Optional shared HTTP client
        """
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self._client = client

    async def embed(self, text: str) -> List[float]:
        """Request an embedding vector.

        Raises:
            EmbeddingError: On network, HTTP or decoding failure
        """
        payload = {"model": self.model, "input": text}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.url, json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if response.status_code != 200:
            raise EmbeddingError(
                f"Embedding API error ({response.status_code}): {response.text}"
            )

        try:
            return [float(x) for x in response.json()["data"][0]["embedding"]]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e


def create_embedder(
    provider: EmbeddingProvider,
    api_key: Optional[str] = None,
    model: str = DEFAULT_EMBEDDING_MODEL,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[Embedder]:
    """Build the embedder for a provider choice.

    OpenAI without an API key falls back to the local embedder.

    Returns:
        An embedder, or None when embeddings are disabled
    """
    provider = EmbeddingProvider(provider)

    if provider == EmbeddingProvider.NONE:
        return None

    if provider == EmbeddingProvider.OPENAI:
        if api_key:
            return OpenAIEmbedder(api_key, model=model, client=client)
        logger.info("No embedding API key set, using local embeddings")

    return LocalEmbedder()
