"""Configuration for the semdex indexing core."""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .errors import ConfigurationError


# Rerank and retrieval constants. Exposed as defaults on SemdexConfig.
DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"
CONTEXT_MATCH_BOOST = 1.2
RECENCY_BOOST = 1.1
RECENCY_WINDOW_DAYS = 7


@dataclass
class SemdexConfig:
    """Configuration for the semdex engine."""

    # Embedding settings
    embedding_provider: str = "hashing"  # 'hashing', 'openai', 'huggingface'
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dim: int = 384  # all-MiniLM-L6-v2 dimension
    embedding_cache_size: int = 1000

    # Chunking settings (whitespace-delimited words)
    chunk_size: int = 512
    chunk_overlap: int = 50

    # Search settings
    metric: str = "cosine"  # 'cosine', 'euclidean', 'dot_product', 'manhattan'
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_results: int = 20
    fetch_multiplier: int = 3  # chunk matches fetched per requested document

    # Contextual rerank
    context_boost: float = CONTEXT_MATCH_BOOST
    recency_boost: float = RECENCY_BOOST
    recency_window_days: int = RECENCY_WINDOW_DAYS
    infer_time_of_day: bool = False

    # History / stats
    history_limit: int = 100  # searches kept per user
    trend_days: int = 30

    # Background queue
    queue_enabled: bool = True

    # Storage; None or ':memory:' keeps everything in process
    db_path: Optional[str] = None

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0:
            raise ConfigurationError(f"chunk_overlap must be >= 0, got {self.chunk_overlap}")
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        if self.embedding_dim <= 0:
            raise ConfigurationError(f"embedding_dim must be positive, got {self.embedding_dim}")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ConfigurationError(
                f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}"
            )
        if self.max_results <= 0 or self.fetch_multiplier <= 0:
            raise ConfigurationError("max_results and fetch_multiplier must be positive")
        if self.history_limit <= 0:
            raise ConfigurationError(f"history_limit must be positive, got {self.history_limit}")

    @classmethod
    def from_env(cls, prefix: str = "SEMDEX_", **overrides: Any) -> "SemdexConfig":
        """
        Build a config from ``SEMDEX_*`` environment variables.

        Each field maps to ``<prefix><FIELD_NAME>`` (e.g. ``SEMDEX_CHUNK_SIZE``).
        Keyword overrides win over the environment.
        """
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, raw, f.default)
        values.update(overrides)
        return cls(**values)


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    try:
        if isinstance(default, bool):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e
    return raw
