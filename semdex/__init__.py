"""
semdex: Semantic Document Indexing and Retrieval

Turns text documents into searchable vector representations and answers
natural-language queries with ranked, contextually boosted results:
- Word-bounded chunking with overlap
- Pluggable embedding providers (deterministic hashing, OpenAI, HuggingFace)
- Exact in-memory vector index with cosine, Euclidean, dot-product and
  Manhattan metrics and copy-on-write snapshots
- Document lifecycle with versioning, cascading removal and a background queue
- Query enhancement from work context, time of day and synonyms
- Contextual reranking and content recommendations
- Indexing statistics and search analytics
- SQLite or in-memory key-value persistence
"""

__version__ = "1.0.0"

from .config import SemdexConfig
from .errors import (
    ConfigurationError,
    EmbeddingError,
    NotFoundError,
    PersistenceError,
    SemdexError,
    ValidationError,
)
from .models import (
    ContentRecommendation,
    DocumentChunk,
    DocumentContent,
    DocumentMetadata,
    IndexedDocument,
    IndexingOptions,
    IndexingResult,
    IndexingStats,
    SearchAnalytics,
    SearchContext,
    SearchHit,
    SearchOptions,
    SearchResult,
    TimeOfDay,
    VectorEmbedding,
    WorkContext,
)
from .chunking import chunk_text
from .embeddings import (
    BaseEmbeddingProvider,
    EmbeddingCache,
    EmbeddingResult,
    HashingEmbedding,
    HuggingFaceEmbedding,
    OpenAIEmbedding,
    create_embedding_provider,
)
from .similarity import SimilarityMetric
from .storage import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore
from .index import SimilarityMatch, VectorStore
from .indexer import DocumentIndexer
from .query import QueryProcessor
from .reranker import ContextualReranker
from .search import SearchRanker
from .recommendations import RecommendationEngine
from .stats import StatsTracker
from .semdex import Semdex, create_semdex

__all__ = [
    # Core
    "SemdexConfig",
    "Semdex",
    "create_semdex",
    # Errors
    "SemdexError",
    "ConfigurationError",
    "ValidationError",
    "EmbeddingError",
    "PersistenceError",
    "NotFoundError",
    # Models
    "DocumentContent",
    "DocumentMetadata",
    "DocumentChunk",
    "VectorEmbedding",
    "IndexedDocument",
    "IndexingOptions",
    "IndexingResult",
    "IndexingStats",
    "SearchContext",
    "SearchOptions",
    "SearchHit",
    "SearchResult",
    "SearchAnalytics",
    "ContentRecommendation",
    "WorkContext",
    "TimeOfDay",
    # Chunking & Embeddings
    "chunk_text",
    "BaseEmbeddingProvider",
    "EmbeddingCache",
    "EmbeddingResult",
    "HashingEmbedding",
    "OpenAIEmbedding",
    "HuggingFaceEmbedding",
    "create_embedding_provider",
    # Components
    "SimilarityMetric",
    "SimilarityMatch",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "VectorStore",
    "DocumentIndexer",
    "QueryProcessor",
    "ContextualReranker",
    "SearchRanker",
    "RecommendationEngine",
    "StatsTracker",
]
