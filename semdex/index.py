"""In-memory vector index with exact multi-metric search and copy-on-write snapshots."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set

import numpy as np

from .errors import PersistenceError, ValidationError
from .models import VectorEmbedding
from .similarity import SimilarityMetric, score_matrix, top_k
from .storage import KeyValueStore

log = logging.getLogger(__name__)

EMBEDDINGS_KEY = "vector_embeddings"


@dataclass(frozen=True)
class SimilarityMatch:
    document_id: str
    embedding_id: str
    similarity: float
    distance: float


class _Snapshot:
    """Immutable view of the index: embeddings in insertion order plus their matrix."""

    __slots__ = ("embeddings", "matrix", "document_ids")

    def __init__(self, embeddings: Sequence[VectorEmbedding], dimension: int):
        self.embeddings = tuple(embeddings)
        if self.embeddings:
            matrix = np.array([e.vector for e in self.embeddings], dtype=np.float64)
        else:
            matrix = np.empty((0, dimension), dtype=np.float64)
        matrix.setflags(write=False)
        self.matrix = matrix
        self.document_ids = tuple(e.document_id for e in self.embeddings)


class VectorStore:
    """
    Exact vector index over chunk embeddings.

    Readers work on an immutable snapshot and never take the lock. Writers
    serialize on a lock, build the next snapshot, flush it to the key-value
    store under ``vector_embeddings`` and only then swap it in, so a failed
    flush leaves the previous state visible.
    """

    def __init__(
        self,
        dimension: int,
        store: Optional[KeyValueStore] = None,
        key: str = EMBEDDINGS_KEY,
    ):
        self.dimension = dimension
        self.store = store
        self.key = key
        self._lock = threading.Lock()
        self._snapshot = _Snapshot((), dimension)

    # ---- persistence ----

    def load(self) -> int:
        """Replace the in-memory state with what the store holds. Returns the count."""
        if self.store is None:
            return len(self)
        raw = self.store.get(self.key) or []
        embeddings = [VectorEmbedding.from_dict(item) for item in raw]
        for embedding in embeddings:
            self._validate(embedding)
        with self._lock:
            self._snapshot = _Snapshot(embeddings, self.dimension)
        log.info("Loaded %d embeddings from %s", len(embeddings), self.key)
        return len(embeddings)

    def _commit(self, embeddings: List[VectorEmbedding]) -> None:
        """Flush then swap. Caller holds the lock."""
        snapshot = _Snapshot(embeddings, self.dimension)
        if self.store is not None:
            try:
                self.store.set(self.key, [e.to_dict() for e in snapshot.embeddings])
            except PersistenceError:
                raise
            except Exception as e:
                raise PersistenceError(f"Failed to flush embeddings: {e}") from e
        self._snapshot = snapshot

    def _validate(self, embedding: VectorEmbedding) -> None:
        if embedding.dimensions != self.dimension:
            raise ValidationError(
                f"Embedding {embedding.id!r} has {embedding.dimensions} dimensions, "
                f"expected {self.dimension}"
            )
        if not np.all(np.isfinite(embedding.vector)):
            raise ValidationError(f"Embedding {embedding.id!r} contains non-finite values")

    # ---- writes ----

    def insert(self, embedding: VectorEmbedding) -> None:
        """Add one embedding; an existing id is replaced in place."""
        self.insert_many([embedding])

    def insert_many(self, embeddings: Iterable[VectorEmbedding]) -> int:
        """
        Add embeddings atomically: all are validated before any is stored.

        Returns:
            Number of embeddings written
        """
        batch = list(embeddings)
        for embedding in batch:
            self._validate(embedding)
        if not batch:
            return 0

        incoming: Dict[str, VectorEmbedding] = {e.id: e for e in batch}
        with self._lock:
            merged = []
            for existing in self._snapshot.embeddings:
                if existing.id in incoming:
                    merged.append(incoming.pop(existing.id))
                else:
                    merged.append(existing)
            merged.extend(incoming.values())
            self._commit(merged)
        return len(batch)

    def replace_document(self, document_id: str, embeddings: Iterable[VectorEmbedding]) -> int:
        """
        Swap all of a document's embeddings for ``embeddings`` in one commit.

        Returns:
            Number of embeddings now stored for the document
        """
        batch = list(embeddings)
        for embedding in batch:
            self._validate(embedding)
            if embedding.document_id != document_id:
                raise ValidationError(
                    f"Embedding {embedding.id!r} belongs to {embedding.document_id!r}, "
                    f"not {document_id!r}"
                )

        with self._lock:
            kept = [e for e in self._snapshot.embeddings if e.document_id != document_id]
            self._commit(kept + batch)
        return len(batch)

    def remove_by_document(self, document_id: str) -> int:
        """Remove every embedding of a document. Returns the number removed."""
        with self._lock:
            current = self._snapshot.embeddings
            kept = [e for e in current if e.document_id != document_id]
            removed = len(current) - len(kept)
            if removed:
                self._commit(kept)
        return removed

    def remove_documents(self, document_ids: Iterable[str]) -> int:
        targets = set(document_ids)
        with self._lock:
            current = self._snapshot.embeddings
            kept = [e for e in current if e.document_id not in targets]
            removed = len(current) - len(kept)
            if removed:
                self._commit(kept)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._commit([])

    # ---- reads ----

    def get_by_document(self, document_id: str) -> List[VectorEmbedding]:
        return [e for e in self._snapshot.embeddings if e.document_id == document_id]

    def document_ids(self) -> Set[str]:
        return {e.document_id for e in self._snapshot.embeddings}

    def similarity_search(
        self,
        query_vector: Sequence[float],
        metric: SimilarityMetric = SimilarityMetric.COSINE,
        threshold: float = 0.0,
        max_results: int = 10,
        document_ids: Optional[Iterable[str]] = None,
    ) -> List[SimilarityMatch]:
        """
        Exact nearest-neighbour search over the current snapshot.

        Args:
            query_vector: Vector of exactly ``dimension`` floats
            metric: Similarity metric
            threshold: Minimum similarity kept
            max_results: Maximum matches returned
            document_ids: Restrict the search to these documents

        Returns:
            Matches sorted by similarity descending, ties in insertion order
        """
        metric = SimilarityMetric.parse(metric)
        query = np.asarray(query_vector, dtype=np.float64)
        if query.shape != (self.dimension,):
            raise ValidationError(
                f"Query vector has shape {query.shape}, expected ({self.dimension},)"
            )

        snapshot = self._snapshot
        rows = np.arange(len(snapshot.embeddings))
        if document_ids is not None:
            allowed = set(document_ids)
            rows = rows[np.array([d in allowed for d in snapshot.document_ids], dtype=bool)]
        if rows.size == 0:
            return []

        scores = score_matrix(query, snapshot.matrix[rows], metric)
        matches = []
        for i in top_k(scores, max_results, threshold):
            embedding = snapshot.embeddings[rows[i]]
            sim = float(scores[i])
            matches.append(SimilarityMatch(
                document_id=embedding.document_id,
                embedding_id=embedding.id,
                similarity=sim,
                distance=1.0 - sim,
            ))
        return matches

    @property
    def index_size(self) -> int:
        """Bytes held by the vector matrix."""
        return int(self._snapshot.matrix.nbytes)

    def stats(self) -> Dict[str, int]:
        snapshot = self._snapshot
        return {
            "total_embeddings": len(snapshot.embeddings),
            "total_documents": len({e.document_id for e in snapshot.embeddings}),
            "dimension": self.dimension,
            "index_size": int(snapshot.matrix.nbytes),
        }

    def __len__(self) -> int:
        return len(self._snapshot.embeddings)
