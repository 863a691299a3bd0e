"""Shared fixtures: in-memory store, hashing embedder and a ready engine."""

import threading
from typing import List, Set

import pytest

from semdex import HashingEmbedding, InMemoryKeyValueStore, Semdex, SemdexConfig
from semdex.errors import EmbeddingError, PersistenceError


class FailingEmbedding(HashingEmbedding):
    """Hashing embedder that fails for any text containing ``marker``."""

    def __init__(self, marker: str = "FAIL", **kwargs):
        super().__init__(**kwargs)
        self.marker = marker

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        if any(self.marker in t for t in texts):
            raise EmbeddingError("provider unavailable")
        return super()._embed_batch(texts)


class GatedEmbedding(HashingEmbedding):
    """Hashing embedder that blocks on texts containing ``marker`` until released."""

    def __init__(self, marker: str = "GATE", **kwargs):
        super().__init__(**kwargs)
        self.marker = marker
        self.entered = threading.Event()
        self.release = threading.Event()

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        if any(self.marker in t for t in texts):
            self.entered.set()
            self.release.wait(timeout=10)
        return super()._embed_batch(texts)


class FlakyStore(InMemoryKeyValueStore):
    """In-memory store whose writes fail for keys starting with a listed prefix."""

    def __init__(self):
        super().__init__()
        self.fail_set: Set[str] = set()
        self.fail_remove: Set[str] = set()

    def set(self, key, value, ttl=None):
        if any(key.startswith(p) for p in self.fail_set):
            raise PersistenceError(f"disk full writing {key}")
        super().set(key, value, ttl)

    def remove(self, key):
        if any(key.startswith(p) for p in self.fail_remove):
            raise PersistenceError(f"cannot remove {key}")
        return super().remove(key)


SAMPLE_DOCS = [
    {
        "id": "doc1",
        "content": {
            "title": "AI Productivity Tools",
            "body": "Artificial intelligence is transforming productivity for modern teams.",
        },
        "metadata": {"category": "research"},
    },
    {
        "id": "doc2",
        "content": {
            "title": "Remote Work",
            "body": "Remote work requires communication across distributed offices.",
        },
        "metadata": {"category": "meeting"},
    },
]


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def embedder():
    return HashingEmbedding(dimension=384)


@pytest.fixture
def config():
    return SemdexConfig(similarity_threshold=0.0)


@pytest.fixture
def engine(config, embedder, store):
    semdex = Semdex(config, embedder=embedder, store=store).init()
    yield semdex
    semdex.close()


@pytest.fixture
def failing_engine(config, store):
    semdex = Semdex(config, embedder=FailingEmbedding(dimension=384), store=store).init()
    yield semdex
    semdex.close()


@pytest.fixture
def gated_embedder():
    embedder = GatedEmbedding(dimension=384)
    yield embedder
    embedder.release.set()


@pytest.fixture
def sample_docs():
    return [dict(d) for d in SAMPLE_DOCS]


@pytest.fixture
def sample_engine(engine):
    results = engine.index_documents(SAMPLE_DOCS)
    assert all(r.success for r in results)
    return engine
