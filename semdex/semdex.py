"""Main semdex engine: composes indexing, search and recommendations."""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .config import DEFAULT_EMBEDDING_MODEL, SemdexConfig
from .embeddings import BaseEmbeddingProvider, create_embedding_provider
from .index import VectorStore
from .indexer import DocumentIndexer
from .models import (
    ContentRecommendation,
    DocumentChunk,
    DocumentContent,
    IndexedDocument,
    IndexingOptions,
    IndexingResult,
    IndexingStats,
    SearchAnalytics,
    SearchContext,
    SearchOptions,
    SearchResult,
)
from .query import QueryProcessor
from .recommendations import RecommendationEngine
from .reranker import ContextualReranker
from .search import SearchRanker
from .stats import StatsTracker
from .storage import KeyValueStore, open_store

log = logging.getLogger(__name__)


class Semdex:
    """
    Semantic document index with contextual search and recommendations.

    Owns one key-value store, one vector store and the services built on
    them. Call ``init()`` before use (or use it as a context manager) and
    ``close()`` when done.

    Example:
        >>> with Semdex(SemdexConfig()) as engine:
        ...     engine.index_document("doc1", {"title": "AI Tools", "body": "..."})
        ...     result = engine.search("artificial intelligence")
    """

    def __init__(
        self,
        config: Optional[SemdexConfig] = None,
        *,
        embedder: Optional[BaseEmbeddingProvider] = None,
        store: Optional[KeyValueStore] = None,
    ):
        self.config = config or SemdexConfig()
        self._lock = threading.RLock()
        self._initialized = False

        self.embedder = embedder or self._create_embedder(self.config)
        self.store = store if store is not None else open_store(self.config.db_path)

        self.vector_store = VectorStore(self.embedder.dimension, self.store)
        self.stats = StatsTracker(
            self.store,
            history_limit=self.config.history_limit,
            trend_days=self.config.trend_days,
        )
        self.indexer = DocumentIndexer(
            self.embedder,
            self.vector_store,
            self.store,
            self.stats,
            default_options=IndexingOptions(
                chunk_size=self.config.chunk_size,
                chunk_overlap=self.config.chunk_overlap,
            ),
            queue_enabled=self.config.queue_enabled,
        )
        self.search_ranker = SearchRanker(
            self.embedder,
            self.vector_store,
            self.store,
            self.stats,
            QueryProcessor(infer_time_of_day=self.config.infer_time_of_day),
            ContextualReranker(
                context_boost=self.config.context_boost,
                recency_boost=self.config.recency_boost,
                recency_window_days=self.config.recency_window_days,
            ),
            metric=self.config.metric,
            threshold=self.config.similarity_threshold,
            max_results=self.config.max_results,
            fetch_multiplier=self.config.fetch_multiplier,
        )
        self.recommender = RecommendationEngine(self.search_ranker, self.stats, self.indexer)

    @staticmethod
    def _create_embedder(config: SemdexConfig) -> BaseEmbeddingProvider:
        kwargs: Dict[str, Any] = {"cache_size": config.embedding_cache_size}
        if config.embedding_provider.lower() in ("hashing", "hash", "mock"):
            kwargs["dimension"] = config.embedding_dim
        return create_embedding_provider(config.embedding_provider, config.embedding_model, **kwargs)

    # ============ Lifecycle ============

    def init(self) -> "Semdex":
        """Load persisted embeddings and stats."""
        with self._lock:
            if not self._initialized:
                self.vector_store.load()
                self.stats.load()
                self._initialized = True
                log.info(
                    "Semdex ready: %d embeddings, model %s (%d dims)",
                    len(self.vector_store), self.embedder.model, self.embedder.dimension,
                )
        return self

    def close(self) -> None:
        """Stop the queue worker and close the store."""
        with self._lock:
            self.indexer.shutdown()
            self.store.close()
            self._initialized = False

    def __enter__(self) -> "Semdex":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ============ Indexing ============

    def index_document(
        self,
        document_id: str,
        content: Union[DocumentContent, Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]] = None,
        options: Optional[IndexingOptions] = None,
    ) -> IndexingResult:
        """
        Index a single document.

        Args:
            document_id: Caller-chosen id; re-indexing an id bumps its version
            content: DocumentContent or mapping with ``title`` and ``body``
            metadata: Partial metadata (category, tags, author, ...)
            options: Chunking and preprocessing options

        Returns:
            IndexingResult
        """
        return self.indexer.index(document_id, content, metadata, options)

    def index_documents(
        self,
        documents: Iterable[Mapping[str, Any]],
        progress_callback: Optional[Callable[[int, int, IndexingResult], None]] = None,
        show_progress: bool = False,
    ) -> List[IndexingResult]:
        return self.indexer.index_many(documents, progress_callback, show_progress)

    def update_document(
        self,
        document_id: str,
        content: Union[DocumentContent, Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]] = None,
        options: Optional[IndexingOptions] = None,
    ) -> IndexingResult:
        return self.indexer.update(document_id, content, metadata, options)

    def remove_document(self, document_id: str) -> bool:
        return self.indexer.remove(document_id)

    def queue_document_for_indexing(
        self,
        document_id: str,
        content: Optional[Union[DocumentContent, Mapping[str, Any]]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        options: Optional[IndexingOptions] = None,
    ) -> bool:
        return self.indexer.enqueue(document_id, content, metadata, options)

    def wait_for_queue(self, timeout: Optional[float] = None) -> bool:
        return self.indexer.wait_for_queue(timeout)

    def rebuild_index(self) -> bool:
        return self.indexer.rebuild()

    def optimize_index(self) -> Optional[Dict[str, int]]:
        return self.indexer.optimize()

    def get_document(self, document_id: str) -> Optional[IndexedDocument]:
        return self.indexer.get_document(document_id)

    def get_chunks(self, document_id: str) -> List[DocumentChunk]:
        return self.indexer.get_chunks(document_id)

    # ============ Search ============

    def search(
        self,
        query: str,
        context: Optional[SearchContext] = None,
        options: Optional[SearchOptions] = None,
    ) -> SearchResult:
        """
        Search indexed documents.

        Args:
            query: Natural-language query
            context: User id, work context, time of day and recent queries
            options: threshold, max_results, rerank, include_explanation,
                metric, document_ids

        Returns:
            SearchResult; never raises for embedding or storage failures
        """
        return self.search_ranker.search(query, context, options)

    def get_content_recommendations(
        self,
        context: Optional[SearchContext] = None,
        max_results: int = 10,
    ) -> List[ContentRecommendation]:
        return self.recommender.recommend(context, max_results)

    def set_trending(self, recommendations: Iterable[ContentRecommendation]) -> None:
        self.recommender.set_trending(recommendations)

    # ============ Stats ============

    def get_indexing_stats(self) -> IndexingStats:
        return self.stats.indexing_stats()

    def get_search_analytics(self) -> SearchAnalytics:
        return self.stats.search_analytics()

    def clear_search_data(self) -> bool:
        """Drop search history and cached query embeddings."""
        self.stats.clear_search_history()
        if self.embedder.cache is not None:
            self.embedder.cache.clear()
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Engine summary for display."""
        stats = self.get_indexing_stats()
        return {
            "documents": stats.total_documents,
            "chunks": stats.total_chunks,
            "embeddings": len(self.vector_store),
            "index_size": self.vector_store.index_size,
            "average_processing_time_ms": round(stats.average_processing_time_ms, 2),
            "embedding_provider": self.config.embedding_provider,
            "embedding_model": self.embedder.model,
            "embedding_dim": self.embedder.dimension,
            "db_path": self.config.db_path,
        }


def create_semdex(
    db_path: Optional[str] = None,
    *,
    embedding_provider: Optional[str] = None,
    embedding_model: Optional[str] = None,
    **config_overrides: Any,
) -> Semdex:
    """
    Create and initialize a Semdex instance with sensible defaults.

    Settings come from ``SEMDEX_*`` environment variables; explicit
    arguments win over the environment.

    Example:
        >>> engine = create_semdex("semdex.db")
        >>> engine.index_document("doc1", {"title": "Notes", "body": "..."})
        >>> results = engine.search("notes")
    """
    overrides = dict(config_overrides)
    if db_path is not None:
        overrides["db_path"] = db_path
    if embedding_provider:
        overrides["embedding_provider"] = embedding_provider
    if embedding_model:
        overrides["embedding_model"] = embedding_model
    config = SemdexConfig.from_env(**overrides)

    if config.embedding_provider.lower() == "openai" and config.embedding_model == DEFAULT_EMBEDDING_MODEL:
        config.embedding_model = "text-embedding-3-small"
    return Semdex(config).init()
