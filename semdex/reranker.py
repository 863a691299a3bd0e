"""Contextual second-pass reranking of search hits."""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional

from .config import CONTEXT_MATCH_BOOST, RECENCY_BOOST, RECENCY_WINDOW_DAYS
from .models import SearchContext, SearchExplanation, SearchHit, utcnow

log = logging.getLogger(__name__)


class ContextualReranker:
    """
    Re-rank hits with multiplicative boosts.

    A hit whose document category equals the caller's work context gains
    ``context_boost``; a document modified within ``recency_window_days``
    gains ``recency_boost``. Boosts are independent and multiply.

    Example:
        >>> reranker = ContextualReranker()
        >>> hits = reranker.rerank(hits, SearchContext(work_context="coding"))
    """

    def __init__(
        self,
        context_boost: float = CONTEXT_MATCH_BOOST,
        recency_boost: float = RECENCY_BOOST,
        recency_window_days: int = RECENCY_WINDOW_DAYS,
    ):
        self.context_boost = context_boost
        self.recency_boost = recency_boost
        self.recency_window = timedelta(days=recency_window_days)

    def boosts_for(
        self,
        hit: SearchHit,
        context: Optional[SearchContext],
        now: datetime,
    ) -> dict:
        boosts = {}
        metadata = hit.document.metadata
        if context is not None and context.work_context and metadata.category == context.work_context.value:
            boosts["work_context"] = self.context_boost
        if now - metadata.modified_at < self.recency_window:
            boosts["recency"] = self.recency_boost
        return boosts

    def rerank(
        self,
        hits: List[SearchHit],
        context: Optional[SearchContext] = None,
        now: Optional[datetime] = None,
    ) -> List[SearchHit]:
        """
        Apply boosts and stable-sort by boosted similarity.

        Args:
            hits: Hits carrying raw similarities
            context: Caller context; None applies the recency boost only
            now: Reference time for recency (defaults to now)

        Returns:
            New list of new SearchHit objects; the input is not modified.
            Explanations, when present, record the boosts applied.
        """
        now = now or utcnow()
        reranked = []
        for hit in hits:
            boosts = self.boosts_for(hit, context, now)
            factor = 1.0
            for value in boosts.values():
                factor *= value

            explanation = hit.explanation
            if explanation is not None:
                explanation = SearchExplanation(
                    metric=explanation.metric,
                    raw_similarity=explanation.raw_similarity,
                    boosts=dict(boosts),
                )
            reranked.append(replace(hit, similarity=hit.similarity * factor, explanation=explanation))

        reranked.sort(key=lambda h: h.similarity, reverse=True)
        log.debug("Reranked %d hits", len(reranked))
        return reranked
