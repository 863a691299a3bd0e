"""Indexing statistics and per-user search history."""

import logging
import threading
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import PersistenceError
from .models import IndexingStats, SearchAnalytics, parse_timestamp, utcnow
from .storage import KeyValueStore

log = logging.getLogger(__name__)

STATS_KEY = "indexing_stats"
HISTORY_KEY = "search_history"
ANONYMOUS_USER = "anonymous"
TOP_QUERIES = 10


class StatsTracker:
    """
    Keeps indexing counters and search history, persisted to the key-value store.

    Persistence failures are logged and the in-memory state kept; stats are
    never allowed to fail an indexing or search call.
    """

    def __init__(self, store: KeyValueStore, history_limit: int = 100, trend_days: int = 30):
        self.store = store
        self.history_limit = history_limit
        self.trend_days = trend_days
        self._lock = threading.Lock()
        self._stats = IndexingStats()
        self._history: Dict[str, List[Dict[str, Any]]] = {}

    def load(self) -> None:
        stats = self.store.get(STATS_KEY)
        history = self.store.get(HISTORY_KEY)
        with self._lock:
            self._stats = IndexingStats.from_dict(stats) if stats else IndexingStats()
            self._history = {user: list(entries) for user, entries in (history or {}).items()}

    def _save(self, key: str, value: Any) -> None:
        try:
            self.store.set(key, value)
        except PersistenceError:
            log.exception("Failed to persist %s", key)

    # ============ Indexing stats ============

    def indexing_stats(self) -> IndexingStats:
        with self._lock:
            return IndexingStats.from_dict(self._stats.to_dict())

    def record_indexing(
        self,
        chunks: int,
        embeddings: int,
        processing_time_ms: float,
        new_document: bool = True,
    ) -> None:
        """Add one indexing run: cumulative counts and a running average time."""
        with self._lock:
            s = self._stats
            s.indexing_runs += 1
            s.average_processing_time_ms += (processing_time_ms - s.average_processing_time_ms) / s.indexing_runs
            s.total_chunks += chunks
            s.total_embeddings += embeddings
            if new_document:
                s.total_documents += 1
            s.last_updated = utcnow()
            snapshot = s.to_dict()
        self._save(STATS_KEY, snapshot)

    def record_removal(self) -> None:
        with self._lock:
            self._stats.total_documents = max(0, self._stats.total_documents - 1)
            self._stats.last_updated = utcnow()
            snapshot = self._stats.to_dict()
        self._save(STATS_KEY, snapshot)

    def set_index_size(self, size: int) -> None:
        with self._lock:
            self._stats.index_size = size
            snapshot = self._stats.to_dict()
        self._save(STATS_KEY, snapshot)

    def reset(self) -> None:
        with self._lock:
            self._stats = IndexingStats()
            snapshot = self._stats.to_dict()
        self._save(STATS_KEY, snapshot)

    # ============ Search history ============

    def record_search(
        self,
        query: str,
        executed_query: str,
        hits: Sequence[Tuple[str, float]],
        user_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """
        Append a search to the user's history, keeping the newest ``history_limit``.

        Args:
            query: Query text as typed
            executed_query: Query text after enhancement
            hits: (document_id, similarity) pairs in rank order
            user_id: Owner of the history; anonymous when omitted
            timestamp: When the search ran (defaults to now)
        """
        entry = {
            "query": query,
            "executed_query": executed_query,
            "hits": [{"document_id": d, "similarity": s} for d, s in hits],
            "timestamp": (timestamp or utcnow()).isoformat(),
        }
        with self._lock:
            entries = self._history.setdefault(user_id or ANONYMOUS_USER, [])
            entries.append(entry)
            del entries[:-self.history_limit]
            snapshot = {user: list(items) for user, items in self._history.items()}
        self._save(HISTORY_KEY, snapshot)

    def history_for(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        """The user's history, oldest first."""
        with self._lock:
            return list(self._history.get(user_id or ANONYMOUS_USER, []))

    def users(self) -> List[str]:
        with self._lock:
            return list(self._history)

    def search_analytics(self, now: Optional[datetime] = None) -> SearchAnalytics:
        with self._lock:
            entries = [e for items in self._history.values() for e in items]

        if not entries:
            return SearchAnalytics()

        query_freq = Counter(e["query"] for e in entries)
        cutoff = (now or utcnow()).date() - timedelta(days=self.trend_days - 1)
        trends: Dict[str, int] = {}
        for e in entries:
            day = parse_timestamp(e["timestamp"]).date()
            if day >= cutoff:
                trends[day.isoformat()] = trends.get(day.isoformat(), 0) + 1

        return SearchAnalytics(
            total_searches=len(entries),
            average_results_per_search=sum(len(e["hits"]) for e in entries) / len(entries),
            top_queries=[q for q, _ in query_freq.most_common(TOP_QUERIES)],
            search_trends=dict(sorted(trends.items())),
        )

    def clear_search_history(self) -> None:
        with self._lock:
            self._history = {}
        try:
            self.store.remove(HISTORY_KEY)
        except PersistenceError:
            log.exception("Failed to remove %s", HISTORY_KEY)
