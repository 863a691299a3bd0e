"""Content recommendations from recent queries, work context, trends and peers."""

import logging
from collections import defaultdict
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional

from .indexer import DocumentIndexer
from .models import ContentRecommendation, SearchContext, SearchHit, SearchOptions
from .query import context_keywords
from .search import SearchRanker
from .stats import ANONYMOUS_USER, StatsTracker

log = logging.getLogger(__name__)

RECENT_QUERY_LIMIT = 3
RECENT_QUERY_RESULTS = 3
CONTEXT_RESULTS = 5
RELEVANCE_TIE_MARGIN = 0.1


def recommendation_from_hit(hit: SearchHit, reason: str) -> ContentRecommendation:
    document = hit.document
    return ContentRecommendation(
        document_id=document.id,
        title=document.content.title,
        snippet=document.snippet(),
        relevance_score=hit.similarity,
        reason=reason,
        category=document.metadata.category,
        tags=list(document.metadata.tags),
    )


def dedupe(recommendations: Iterable[ContentRecommendation]) -> List[ContentRecommendation]:
    """Drop repeated document ids; the first occurrence wins."""
    seen = set()
    unique = []
    for rec in recommendations:
        if rec.document_id not in seen:
            seen.add(rec.document_id)
            unique.append(rec)
    return unique


def rank(recommendations: List[ContentRecommendation], context: SearchContext) -> List[ContentRecommendation]:
    """
    Relevance descending; when two scores are within 0.1 of each other,
    recommendations whose category matches the work context come first.
    """
    work_context = context.work_context.value if context.work_context else None

    def compare(a: ContentRecommendation, b: ContentRecommendation) -> int:
        if abs(a.relevance_score - b.relevance_score) > RELEVANCE_TIE_MARGIN:
            return -1 if a.relevance_score > b.relevance_score else 1
        a_match = 1 if work_context and a.category == work_context else 0
        b_match = 1 if work_context and b.category == work_context else 0
        return b_match - a_match

    return sorted(recommendations, key=cmp_to_key(compare))


class RecommendationEngine:
    """
    Aggregates four strategies in order: recent queries, work context,
    trending, collaborative. Internal searches are not recorded in history.
    """

    def __init__(self, search: SearchRanker, stats: StatsTracker, indexer: DocumentIndexer):
        self.search = search
        self.stats = stats
        self.indexer = indexer
        self._trending: List[ContentRecommendation] = []

    def set_trending(self, recommendations: Iterable[ContentRecommendation]) -> None:
        """Replace the externally supplied trending list."""
        self._trending = list(recommendations)

    def recommend(self, context: Optional[SearchContext] = None, max_results: int = 10) -> List[ContentRecommendation]:
        context = context or SearchContext()
        try:
            candidates: List[ContentRecommendation] = []
            candidates.extend(self.from_recent_queries(context))
            candidates.extend(self.from_work_context(context))
            candidates.extend(self._trending)
            candidates.extend(self.from_similar_users(context.user_id))
            return rank(dedupe(candidates), context)[:max_results]
        except Exception:
            log.exception("Failed to build recommendations")
            return []

    def _recent_queries(self, context: SearchContext) -> List[str]:
        if context.recent_queries:
            return list(context.recent_queries[:RECENT_QUERY_LIMIT])
        if not context.user_id:
            return []
        queries: List[str] = []
        for entry in reversed(self.stats.history_for(context.user_id)):
            if entry["query"] not in queries:
                queries.append(entry["query"])
            if len(queries) == RECENT_QUERY_LIMIT:
                break
        return queries

    def from_recent_queries(self, context: SearchContext) -> List[ContentRecommendation]:
        recommendations = []
        for query in self._recent_queries(context):
            result = self.search.search(
                query, None, SearchOptions(max_results=RECENT_QUERY_RESULTS), record=False
            )
            recommendations.extend(
                recommendation_from_hit(hit, f'Similar to your recent search: "{query}"')
                for hit in result.hits
            )
        return recommendations

    def from_work_context(self, context: SearchContext) -> List[ContentRecommendation]:
        if not context.work_context:
            return []
        result = self.search.search(
            context_keywords(context.work_context),
            context,
            SearchOptions(max_results=CONTEXT_RESULTS),
            record=False,
        )
        reason = f"Relevant to your current work context: {context.work_context.value}"
        return [recommendation_from_hit(hit, reason) for hit in result.hits]

    def from_similar_users(self, user_id: Optional[str]) -> List[ContentRecommendation]:
        """
        Documents found by users whose query history overlaps ``user_id``'s.

        Each candidate is scored by the mean similarity peers saw for it.
        Documents the user already found are skipped.
        """
        if not user_id:
            return []

        own = self.stats.history_for(user_id)
        own_queries = {e["query"].strip().lower() for e in own}
        seen = {h["document_id"] for e in own for h in e["hits"]}
        if not own_queries:
            return []

        scores: Dict[str, List[float]] = defaultdict(list)
        for peer in self.stats.users():
            if peer in (user_id, ANONYMOUS_USER):
                continue
            history = self.stats.history_for(peer)
            if not own_queries & {e["query"].strip().lower() for e in history}:
                continue
            for entry in history:
                for hit in entry["hits"]:
                    if hit["document_id"] not in seen:
                        scores[hit["document_id"]].append(hit["similarity"])

        recommendations = []
        for document_id, values in scores.items():
            document = self.indexer.get_document(document_id)
            if document is None:
                continue
            recommendations.append(ContentRecommendation(
                document_id=document_id,
                title=document.content.title,
                snippet=document.snippet(),
                relevance_score=sum(values) / len(values),
                reason="Users with similar searches also found this",
                category=document.metadata.category,
                tags=list(document.metadata.tags),
            ))
        recommendations.sort(key=lambda r: r.relevance_score, reverse=True)
        return recommendations
