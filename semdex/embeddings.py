"""Embedding generation with caching and multiple provider support."""

import logging
import os
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

import numpy as np
from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from .errors import ConfigurationError, EmbeddingError
from .models import EmbeddingMetadata, EmbeddingQuality
from .preprocessing import preprocess_text

log = logging.getLogger(__name__)


class EmbeddingCache:
    """LRU cache for embeddings to avoid redundant provider calls."""

    def __init__(self, maxsize: int = 1000):
        self._cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self._maxsize = maxsize
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(text: str, model: str) -> str:
        return f"{model}\x00{text}"

    def get(self, text: str, model: str) -> Optional[List[float]]:
        """Get cached embedding if exists."""
        key = self._key(text, model)
        with self._lock:
            embedding = self._cache.get(key)
            if embedding is None:
                self._misses += 1
                return None
            self._hits += 1
            self._cache.move_to_end(key)
            return embedding

    def set(self, text: str, model: str, embedding: List[float]) -> None:
        key = self._key(text, model)
        with self._lock:
            self._cache[key] = embedding
            self._cache.move_to_end(key)
            while len(self._cache) > self._maxsize:
                self._cache.popitem(last=False)

    def stats(self) -> Dict[str, float]:
        """Return cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0,
                "size": len(self._cache),
                "maxsize": self._maxsize,
            }

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0


@dataclass
class EmbeddingResult:
    """Per-text outcome of a batch embedding call."""
    vector: Optional[List[float]] = None
    error: Optional[str] = None
    metadata: EmbeddingMetadata = field(default_factory=EmbeddingMetadata)

    @property
    def success(self) -> bool:
        return self.vector is not None and self.error is None


class BaseEmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Subclasses implement ``_embed_batch``; this class validates output shape,
    converts provider exceptions into EmbeddingError and isolates per-item
    failures in ``embed_many``.
    """

    preprocessing_steps: List[str] = []

    def __init__(self, model: str, cache_size: int = 1000):
        self.model = model
        self.cache = EmbeddingCache(maxsize=cache_size) if cache_size > 0 else None

    @abstractmethod
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a batch of texts (provider-specific)."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return embedding dimension for this model."""

    def embed(self, text: str, use_cache: bool = False) -> List[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed
            use_cache: Consult and fill the provider's LRU cache

        Returns:
            Vector of exactly ``dimension`` floats

        Raises:
            EmbeddingError: if the provider fails or returns a malformed vector
        """
        if use_cache and self.cache is not None:
            cached = self.cache.get(text, self.model)
            if cached is not None:
                return cached

        try:
            vectors = self._embed_batch([text])
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"{self.model}: {e}") from e
        if len(vectors) != 1:
            raise EmbeddingError(f"{self.model}: expected 1 vector, got {len(vectors)}")

        vector = self._validate(vectors[0])
        if use_cache and self.cache is not None:
            self.cache.set(text, self.model, vector)
        return vector

    def embed_many(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        """
        Embed texts in order, isolating failures per item.

        A failed batch call falls back to one call per text so a single bad
        input cannot abort the rest.
        """
        texts = list(texts)
        if not texts:
            return []

        try:
            vectors = self._embed_batch(texts)
        except Exception as e:
            log.warning("Batch embedding with %s failed (%s); retrying per item", self.model, e)
            vectors = None
        if vectors is not None and len(vectors) != len(texts):
            log.warning("Batch embedding returned %d vectors for %d texts", len(vectors), len(texts))
            vectors = None

        if vectors is not None:
            return [self._to_result(v) for v in vectors]

        results = []
        for text in texts:
            try:
                results.append(self._to_result(self.embed(text)))
            except EmbeddingError as e:
                results.append(EmbeddingResult(error=str(e)))
        return results

    def describe(self, vector: Sequence[float]) -> EmbeddingMetadata:
        arr = np.asarray(vector, dtype=np.float64)
        return EmbeddingMetadata(
            preprocessing_steps=list(self.preprocessing_steps),
            quality=EmbeddingQuality(
                magnitude=float(np.linalg.norm(arr)),
                sparsity=float(np.mean(np.abs(arr) < 1e-6)) if arr.size else 0.0,
            ),
        )

    def _to_result(self, vector: Sequence[float]) -> EmbeddingResult:
        try:
            checked = self._validate(vector)
        except EmbeddingError as e:
            return EmbeddingResult(error=str(e))
        return EmbeddingResult(vector=checked, metadata=self.describe(checked))

    def _validate(self, vector: Sequence[float]) -> List[float]:
        arr = np.asarray(vector, dtype=np.float64)
        if arr.ndim != 1 or arr.shape[0] != self.dimension:
            raise EmbeddingError(
                f"{self.model}: expected {self.dimension} dimensions, got shape {arr.shape}"
            )
        if not np.all(np.isfinite(arr)):
            raise EmbeddingError(f"{self.model}: vector contains non-finite values")
        return arr.tolist()


@lru_cache(maxsize=50_000)
def _word_vector(word: str, dimension: int) -> np.ndarray:
    vec = np.random.default_rng(string_hash(word)).standard_normal(dimension)
    vec.setflags(write=False)
    return vec


def string_hash(text: str) -> int:
    """31-based rolling hash folded to a non-negative 32-bit value."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return abs(h)


class HashingEmbedding(BaseEmbeddingProvider):
    """
    Deterministic embedding built from seeded pseudo-random word vectors.

    Each word of the normalized text contributes a fixed random vector
    seeded by its hash; the sum is L2-normalized. Texts sharing words get
    a positive cosine similarity, which is enough for offline use and tests.
    Not a semantic model.

    Example:
        >>> embedder = HashingEmbedding(dimension=384)
        >>> vector = embedder.embed("Hello world")
    """

    preprocessing_steps = ["lowercase", "remove_punctuation", "normalize_whitespace"]

    def __init__(
        self,
        model: str = "all-MiniLM-L6-v2",
        dimension: int = 384,
        cache_size: int = 1000,
    ):
        super().__init__(model, cache_size)
        if dimension <= 0:
            raise ConfigurationError(f"dimension must be positive, got {dimension}")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self._hash_embed(text) for text in texts]

    def _hash_embed(self, text: str) -> List[float]:
        words = preprocess_text(text).split()
        if not words:
            raise EmbeddingError("Cannot embed text without words")

        vec = np.zeros(self._dimension, dtype=np.float64)
        for word in words:
            vec += _word_vector(word, self._dimension)

        norm = np.linalg.norm(vec)
        return (vec / norm if norm > 0 else vec).tolist()


class OpenAIEmbedding(BaseEmbeddingProvider):
    """OpenAI embedding provider with retries and caching."""

    # Known dimensions for OpenAI models
    MODEL_DIMENSIONS = {
        "text-embedding-3-large": 3072,
        "text-embedding-3-small": 1536,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        openai_api_key: Optional[str] = None,
        cache_size: int = 1000,
    ):
        super().__init__(model, cache_size)
        self.api_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ConfigurationError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass openai_api_key parameter."
            )
        self.client = OpenAI(api_key=self.api_key)

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model, 1536)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings via OpenAI API."""
        response = self.client.embeddings.create(
            model=self.model,
            input=texts,
        )

        # Sort by index to ensure correct order
        embeddings = sorted(response.data, key=lambda x: x.index)
        return [emb.embedding for emb in embeddings]


class HuggingFaceEmbedding(BaseEmbeddingProvider):
    """
    HuggingFace sentence-transformers embedding provider (local, free).

    Requires the ``huggingface`` extra (sentence-transformers). Set HF_TOKEN
    for private models.

    Example:
        >>> embedder = HuggingFaceEmbedding("all-MiniLM-L6-v2")
        >>> vector = embedder.embed("Hello world")
    """

    # Known dimensions for common models
    MODEL_DIMENSIONS = {
        "all-MiniLM-L6-v2": 384,
        "all-MiniLM-L12-v2": 384,
        "all-mpnet-base-v2": 768,
        "paraphrase-MiniLM-L6-v2": 384,
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
    }

    def __init__(
        self,
        model: str = "all-MiniLM-L6-v2",
        hf_token: Optional[str] = None,
        cache_size: int = 1000,
    ):
        super().__init__(model, cache_size)
        self.hf_token = hf_token or os.environ.get("HF_TOKEN")
        self._model = None
        self._dimension: Optional[int] = None

    def _load_model(self):
        """Lazy-load the model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise EmbeddingError(
                    "sentence-transformers not installed. "
                    "Run: pip install 'semdex[huggingface]'"
                ) from e
            self._model = SentenceTransformer(self.model, token=self.hf_token)
            self._dimension = self._model.get_sentence_embedding_dimension()
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is not None:
            return self._dimension
        if self.model in self.MODEL_DIMENSIONS:
            return self.MODEL_DIMENSIONS[self.model]
        self._load_model()
        return self._dimension or 384

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings using sentence-transformers."""
        model = self._load_model()
        embeddings = model.encode(texts, convert_to_numpy=True)
        return embeddings.tolist()


# ============ Provider Factory ============

def create_embedding_provider(
    provider: str = "hashing",
    model: Optional[str] = None,
    **kwargs
) -> BaseEmbeddingProvider:
    """
    Factory function to create embedding providers.

    Args:
        provider: Provider name ('hashing', 'openai', 'huggingface')
        model: Model name (uses provider default if not specified)
        **kwargs: Additional provider-specific arguments

    Returns:
        Configured embedding provider

    Example:
        >>> embedder = create_embedding_provider("hashing", dimension=384)
        >>> embedder = create_embedding_provider("openai", "text-embedding-3-small")
    """
    provider = provider.lower()

    if provider in ("hashing", "hash", "mock"):
        return HashingEmbedding(model or "all-MiniLM-L6-v2", **kwargs)

    elif provider in ("openai", "openai-embedding"):
        return OpenAIEmbedding(model or "text-embedding-3-small", **kwargs)

    elif provider in ("huggingface", "hf", "sentence-transformers"):
        return HuggingFaceEmbedding(model or "all-MiniLM-L6-v2", **kwargs)

    else:
        raise ConfigurationError(
            f"Unknown provider: {provider}. "
            f"Supported: 'hashing', 'openai', 'huggingface'"
        )
