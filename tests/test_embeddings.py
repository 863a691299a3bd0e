"""Tests for embedding providers and the embedding cache."""

import threading

import numpy as np
import pytest

from semdex.embeddings import (
    EmbeddingCache,
    HashingEmbedding,
    OpenAIEmbedding,
    create_embedding_provider,
    string_hash,
)
from semdex.errors import ConfigurationError, EmbeddingError
from semdex.similarity import cosine_similarity


def test_hashing_is_deterministic_and_normalized(embedder):
    a = embedder.embed("Hello, world!")
    b = HashingEmbedding(dimension=384).embed("hello world")
    assert len(a) == 384
    assert a == b
    assert np.linalg.norm(a) == pytest.approx(1.0)


def test_shared_words_score_higher(embedder):
    query = embedder.embed("artificial intelligence productivity")
    related = embedder.embed("Artificial intelligence is transforming productivity")
    unrelated = embedder.embed("Remote work requires communication")
    assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)


def test_empty_text_is_an_error(embedder):
    with pytest.raises(EmbeddingError):
        embedder.embed("  ... ")


def test_string_hash_is_stable():
    assert string_hash("") == 0
    assert string_hash("a") == 97
    assert string_hash("ab") == 97 * 31 + 98


def test_embed_many_isolates_failures(failing_engine):
    results = failing_engine.embedder.embed_many(["good text", "FAIL here", "more text"])
    assert [r.success for r in results] == [True, False, True]
    assert "provider unavailable" in results[1].error
    assert results[0].metadata.quality.magnitude == pytest.approx(1.0)
    assert results[0].metadata.preprocessing_steps


def test_embed_many_empty(embedder):
    assert embedder.embed_many([]) == []


def test_query_cache(embedder):
    embedder.embed("cached query", use_cache=True)
    embedder.embed("cached query", use_cache=True)
    stats = embedder.cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    embedder.cache.clear()
    assert embedder.cache.stats()["size"] == 0


def test_cache_evicts_least_recent():
    cache = EmbeddingCache(maxsize=2)
    cache.set("a", "m", [1.0])
    cache.set("b", "m", [2.0])
    cache.get("a", "m")
    cache.set("c", "m", [3.0])
    assert cache.get("b", "m") is None
    assert cache.get("a", "m") == [1.0]


def test_cache_is_thread_safe():
    cache = EmbeddingCache(maxsize=2)
    errors = []

    def worker(n):
        try:
            for i in range(2000):
                key = f"q{(i + n) % 5}"
                cache.set(key, "m", [float(i)])
                cache.get(key, "m")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    stats = cache.stats()
    assert stats["size"] <= 2
    assert stats["hits"] + stats["misses"] == 8 * 2000


def test_factory():
    provider = create_embedding_provider("hashing", dimension=16)
    assert isinstance(provider, HashingEmbedding)
    assert provider.dimension == 16
    with pytest.raises(ConfigurationError):
        create_embedding_provider("word2vec")


def test_openai_requires_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        OpenAIEmbedding()
