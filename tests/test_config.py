"""Tests for configuration."""

import pytest

from semdex import IndexingOptions, SemdexConfig
from semdex.errors import ConfigurationError


def test_defaults():
    config = SemdexConfig()
    assert config.similarity_threshold == 0.7
    assert config.chunk_size == 512
    assert config.chunk_overlap == 50
    assert config.context_boost == 1.2
    assert config.recency_boost == 1.1
    assert config.recency_window_days == 7
    assert config.db_path is None


@pytest.mark.parametrize("kwargs", [
    {"chunk_size": 10, "chunk_overlap": 10},
    {"chunk_size": 0},
    {"chunk_overlap": -1},
    {"similarity_threshold": 1.5},
    {"max_results": 0},
    {"history_limit": 0},
])
def test_invalid_config(kwargs):
    with pytest.raises(ConfigurationError):
        SemdexConfig(**kwargs)


def test_invalid_indexing_options():
    with pytest.raises(ConfigurationError):
        IndexingOptions(chunk_size=100, chunk_overlap=100)


def test_from_env(monkeypatch):
    monkeypatch.setenv("SEMDEX_CHUNK_SIZE", "64")
    monkeypatch.setenv("SEMDEX_SIMILARITY_THRESHOLD", "0.25")
    monkeypatch.setenv("SEMDEX_QUEUE_ENABLED", "false")
    monkeypatch.setenv("SEMDEX_EMBEDDING_PROVIDER", "openai")
    config = SemdexConfig.from_env(chunk_overlap=8)
    assert config.chunk_size == 64
    assert config.chunk_overlap == 8
    assert config.similarity_threshold == 0.25
    assert config.queue_enabled is False
    assert config.embedding_provider == "openai"


def test_from_env_bad_value(monkeypatch):
    monkeypatch.setenv("SEMDEX_MAX_RESULTS", "many")
    with pytest.raises(ConfigurationError):
        SemdexConfig.from_env()
