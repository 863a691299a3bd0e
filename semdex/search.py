"""Semantic search: enhance, embed, match, hydrate and rerank."""

import logging
import time
from typing import Dict, List, Optional

from .embeddings import BaseEmbeddingProvider
from .errors import SemdexError, ValidationError
from .index import SimilarityMatch, VectorStore
from .indexer import chunks_key, document_key
from .models import (
    DocumentChunk,
    IndexedDocument,
    SearchContext,
    SearchExplanation,
    SearchHit,
    SearchOptions,
    SearchQuery,
    SearchResult,
)
from .query import QueryProcessor
from .reranker import ContextualReranker
from .similarity import SimilarityMetric
from .stats import StatsTracker
from .storage import KeyValueStore

log = logging.getLogger(__name__)


class SearchRanker:
    """Runs queries against the vector store and turns chunk matches into document hits."""

    def __init__(
        self,
        embedder: BaseEmbeddingProvider,
        vector_store: VectorStore,
        store: KeyValueStore,
        stats: StatsTracker,
        query_processor: Optional[QueryProcessor] = None,
        reranker: Optional[ContextualReranker] = None,
        *,
        metric: str = "cosine",
        threshold: float = 0.7,
        max_results: int = 20,
        fetch_multiplier: int = 3,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.store = store
        self.stats = stats
        self.query_processor = query_processor or QueryProcessor()
        self.reranker = reranker or ContextualReranker()
        self.metric = SimilarityMetric.parse(metric)
        self.threshold = threshold
        self.max_results = max_results
        self.fetch_multiplier = fetch_multiplier

    def search(
        self,
        query: str,
        context: Optional[SearchContext] = None,
        options: Optional[SearchOptions] = None,
        *,
        record: bool = True,
    ) -> SearchResult:
        """
        Search indexed documents.

        Args:
            query: Natural-language query
            context: Caller context used for enhancement and reranking
            options: Threshold, result count, rerank and explanation flags
            record: Add the search to the caller's history

        Returns:
            SearchResult; on failure ``hits`` is empty and ``error`` is set
        """
        start = time.perf_counter()
        options = options or SearchOptions()
        threshold = self.threshold if options.threshold is None else options.threshold
        max_results = self.max_results if options.max_results is None else options.max_results

        search_query = SearchQuery(
            text=query,
            similarity_threshold=threshold,
            max_results=max_results,
            rerank=options.rerank,
            explain=options.include_explanation,
        )
        executed = query

        try:
            if not 0.0 <= threshold <= 1.0:
                raise ValidationError(f"threshold must be within [0, 1], got {threshold}")
            if max_results <= 0:
                raise ValidationError(f"max_results must be positive, got {max_results}")
            metric = SimilarityMetric.parse(options.metric or self.metric)

            executed = self.query_processor.enhance(query, context)
            vector = self.embedder.embed(executed, use_cache=True)
            search_query.embedding = vector

            matches = self.vector_store.similarity_search(
                vector,
                metric=metric,
                threshold=threshold,
                max_results=max_results * self.fetch_multiplier,
                document_ids=options.document_ids,
            )
            hits = self._hydrate(matches, metric, options.include_explanation)
            if options.rerank:
                hits = self.reranker.rerank(hits, context)
            hits = hits[:max_results]

        except SemdexError as e:
            log.error("Search for %r failed: %s", query, e)
            return self._failed(search_query, executed, start, str(e))
        except Exception as e:
            log.exception("Search for %r failed unexpectedly", query)
            return self._failed(search_query, executed, start, str(e) or type(e).__name__)

        if record:
            self.stats.record_search(
                query,
                executed,
                [(h.document.id, h.similarity) for h in hits],
                user_id=context.user_id if context is not None else None,
            )

        return SearchResult(
            hits=hits,
            query=search_query,
            executed_query=executed,
            execution_time_ms=(time.perf_counter() - start) * 1000,
            model_used=self.embedder.model,
        )

    def _failed(self, query: SearchQuery, executed: str, start: float, error: str) -> SearchResult:
        return SearchResult(
            hits=[],
            query=query,
            executed_query=executed,
            execution_time_ms=(time.perf_counter() - start) * 1000,
            model_used=self.embedder.model,
            error=error,
        )

    def _hydrate(
        self,
        matches: List[SimilarityMatch],
        metric: SimilarityMetric,
        explain: bool,
    ) -> List[SearchHit]:
        """Group chunk matches by document (best chunk wins) and load each record."""
        grouped: Dict[str, List[SimilarityMatch]] = {}
        for match in matches:
            grouped.setdefault(match.document_id, []).append(match)

        hits = []
        for document_id, doc_matches in grouped.items():
            raw = self.store.get(document_key(document_id))
            if raw is None:
                log.warning("No record for matched document %s; skipping", document_id)
                continue
            document = IndexedDocument.from_dict(raw)
            best = doc_matches[0]

            hits.append(SearchHit(
                document=document,
                similarity=best.similarity,
                distance=best.distance,
                explanation=SearchExplanation(metric.value, best.similarity) if explain else None,
                chunks=self._matched_chunks(document_id, doc_matches),
            ))
        return hits

    def _matched_chunks(self, document_id: str, matches: List[SimilarityMatch]) -> List[DocumentChunk]:
        by_id = {c["id"]: c for c in self.store.get(chunks_key(document_id)) or []}
        return [DocumentChunk.from_dict(by_id[m.embedding_id]) for m in matches if m.embedding_id in by_id]
