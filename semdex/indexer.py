"""Document indexing: preprocessing, chunking, embedding and persistence."""

import logging
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Union

from tqdm import tqdm

from .chunking import chunk_text
from .embeddings import BaseEmbeddingProvider
from .errors import ConfigurationError, NotFoundError, PersistenceError, SemdexError, ValidationError
from .index import VectorStore
from .models import (
    DocumentChunk,
    DocumentContent,
    DocumentMetadata,
    IndexedDocument,
    IndexingOptions,
    IndexingResult,
    VectorEmbedding,
    merge_metadata,
    utcnow,
)
from .preprocessing import preprocess_content
from .stats import StatsTracker
from .storage import KeyValueStore

log = logging.getLogger(__name__)

REGISTRY_KEY = "indexed_documents"
QUEUE_RESULTS_KEPT = 100


def document_key(document_id: str) -> str:
    return f"document_{document_id}"


def chunks_key(document_id: str) -> str:
    return f"chunks_{document_id}"


@dataclass
class IndexingJob:
    """A queued request; ``content=None`` re-indexes the stored content."""
    document_id: str
    content: Optional[DocumentContent] = None
    metadata: Optional[Mapping[str, Any]] = None
    options: Optional[IndexingOptions] = None


class DocumentIndexer:
    """
    Owns the document lifecycle: index, update, remove, queue, rebuild, optimize.

    Mutations serialize on a re-entrant lock. Within an indexing run the
    embeddings are committed to the VectorStore first, then the chunk list,
    then the document record, so a reader that finds ``document_{id}`` also
    finds its embeddings.
    """

    def __init__(
        self,
        embedder: BaseEmbeddingProvider,
        vector_store: VectorStore,
        store: KeyValueStore,
        stats: StatsTracker,
        default_options: Optional[IndexingOptions] = None,
        queue_enabled: bool = True,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.store = store
        self.stats = stats
        self.default_options = default_options or IndexingOptions()
        self.queue_enabled = queue_enabled

        self._lock = threading.RLock()
        self._jobs: "queue.Queue[Optional[IndexingJob]]" = queue.Queue()
        self._pending = 0
        self._pending_cond = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self.queue_results: Deque[IndexingResult] = deque(maxlen=QUEUE_RESULTS_KEPT)

    # ============ Reads ============

    def get_document(self, document_id: str) -> Optional[IndexedDocument]:
        raw = self.store.get(document_key(document_id))
        return IndexedDocument.from_dict(raw) if raw else None

    def get_chunks(self, document_id: str) -> List[DocumentChunk]:
        return [DocumentChunk.from_dict(c) for c in self.store.get(chunks_key(document_id)) or []]

    def document_ids(self) -> List[str]:
        """Ids of every document ever registered and not yet removed."""
        return list(self.store.get(REGISTRY_KEY) or [])

    def _register(self, document_id: str) -> None:
        ids = self.document_ids()
        if document_id not in ids:
            ids.append(document_id)
            self.store.set(REGISTRY_KEY, ids)

    def _unregister(self, document_id: str) -> None:
        ids = self.document_ids()
        if document_id in ids:
            ids.remove(document_id)
            self.store.set(REGISTRY_KEY, ids)

    # ============ Indexing ============

    def index(
        self,
        document_id: str,
        content: Union[DocumentContent, Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]] = None,
        options: Optional[IndexingOptions] = None,
        *,
        previous: Optional[IndexedDocument] = None,
    ) -> IndexingResult:
        """
        Index a single document with full content analysis.

        Args:
            document_id: Caller-chosen document id
            content: DocumentContent or a mapping accepted by DocumentContent.from_dict
            metadata: Partial metadata applied field by field
            options: Chunking and preprocessing options
            previous: Record replaced by this run (used by ``update``); its
                version and creation time carry over

        Returns:
            IndexingResult; failures are reported with ``success=False``
        """
        start = time.perf_counter()
        options = options or self.default_options

        try:
            if not isinstance(document_id, str) or not document_id.strip():
                raise ValidationError("Document id is required")
            content = self._coerce_content(content)
            content.validate()

            # Only the persistence steps run under the lock.
            prepped = preprocess_content(content, options)
            chunks = chunk_text(
                prepped.full_text,
                options.chunk_size,
                options.chunk_overlap,
                document_id=document_id,
            )
            embeddings, failed = self._embed_chunks(chunks, options)

            with self._lock:
                existing = self.get_document(document_id)
                prior = existing or previous
                version = prior.version + 1 if prior else 1

                now = utcnow()
                if prior is not None:
                    base = replace(prior.metadata, modified_at=now, quality=prepped.quality)
                else:
                    base = DocumentMetadata(
                        source_id=document_id,
                        created_at=now,
                        modified_at=now,
                        quality=prepped.quality,
                    )
                doc_metadata = merge_metadata(base, metadata)

                record = IndexedDocument(
                    id=document_id,
                    content=prepped.content,
                    metadata=doc_metadata,
                    indexed_at=prior.indexed_at if prior else now,
                    last_updated=now,
                    version=version,
                )
                self._register(document_id)
                try:
                    self._persist(record, chunks, embeddings)
                except PersistenceError:
                    if existing is None:
                        self._unregister(document_id)
                    raise

                elapsed = (time.perf_counter() - start) * 1000
                self.stats.record_indexing(
                    len(chunks), len(embeddings), elapsed, new_document=existing is None
                )
                self.stats.set_index_size(self.vector_store.index_size)

        except ConfigurationError:
            raise
        except SemdexError as e:
            log.error("Indexing %s failed: %s", document_id, e)
            return IndexingResult(
                success=False,
                document_id=document_id,
                processing_time_ms=(time.perf_counter() - start) * 1000,
                error=str(e),
            )
        except Exception as e:
            log.exception("Indexing %s failed unexpectedly", document_id)
            return IndexingResult(
                success=False,
                document_id=document_id,
                processing_time_ms=(time.perf_counter() - start) * 1000,
                error=str(e) or type(e).__name__,
            )

        if failed:
            log.warning(
                "Indexed %s with %d of %d chunks missing embeddings",
                document_id, len(failed), len(chunks),
            )
        else:
            log.info("Indexed %s (version %d, %d chunks)", document_id, version, len(chunks))

        return IndexingResult(
            success=True,
            document_id=document_id,
            chunks_created=len(chunks),
            embeddings_generated=len(embeddings),
            processing_time_ms=elapsed,
            version=version,
            failed_chunks=failed,
        )

    @staticmethod
    def _coerce_content(content: Union[DocumentContent, Mapping[str, Any]]) -> DocumentContent:
        if isinstance(content, DocumentContent):
            return content
        if isinstance(content, Mapping):
            try:
                return DocumentContent.from_dict(content)
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(f"Malformed document content: {e}") from e
        raise ValidationError(f"Unsupported document content: {type(content).__name__}")

    def _embed_chunks(self, chunks: List[DocumentChunk], options: IndexingOptions):
        """Embed every chunk; failed chunks are logged and returned by id."""
        embeddings: List[VectorEmbedding] = []
        failed: List[str] = []
        results = self.embedder.embed_many([c.content for c in chunks])

        for chunk, result in zip(chunks, results):
            if not result.success:
                log.warning("Embedding failed for chunk %s: %s", chunk.id, result.error)
                failed.append(chunk.id)
                continue
            embeddings.append(VectorEmbedding(
                id=chunk.id,
                document_id=chunk.document_id,
                vector=result.vector,
                model=self.embedder.model,
                metadata=replace(
                    result.metadata,
                    chunk_index=chunk.index,
                    chunk_size=options.chunk_size,
                    overlap=options.chunk_overlap,
                ),
            ))
        return embeddings, failed

    def _persist(
        self,
        record: IndexedDocument,
        chunks: List[DocumentChunk],
        embeddings: List[VectorEmbedding],
    ) -> None:
        """Embeddings, then chunks, then the document record. Rolls back on failure."""
        document_id = record.id
        previous_embeddings = self.vector_store.get_by_document(document_id)
        previous_chunks = self.store.get(chunks_key(document_id))

        self.vector_store.replace_document(document_id, embeddings)
        try:
            self.store.set(chunks_key(document_id), [c.to_dict() for c in chunks])
            self.store.set(document_key(document_id), record.to_dict())
        except PersistenceError:
            log.error("Failed to store document %s; restoring previous embeddings", document_id)
            try:
                self.vector_store.replace_document(document_id, previous_embeddings)
                if previous_chunks is None:
                    self.store.remove(chunks_key(document_id))
                else:
                    self.store.set(chunks_key(document_id), previous_chunks)
            except PersistenceError:
                log.exception("Rollback of %s failed; run optimize to clean up", document_id)
            raise

    def index_many(
        self,
        documents: Iterable[Mapping[str, Any]],
        progress_callback: Optional[Callable[[int, int, IndexingResult], None]] = None,
        show_progress: bool = False,
    ) -> List[IndexingResult]:
        """
        Index documents in order.

        Args:
            documents: Mappings with ``id`` and ``content`` and optional
                ``metadata`` and ``options``
            progress_callback: Called as (done, total, result) after each document
            show_progress: Show a tqdm progress bar

        Returns:
            One IndexingResult per item
        """
        docs = list(documents)
        total = len(docs)
        results = []
        with tqdm(total=total, desc="Indexing", unit="doc", disable=not show_progress) as pbar:
            for done, doc in enumerate(docs, 1):
                result = self.index(
                    doc.get("id", ""),
                    doc.get("content", {}),
                    doc.get("metadata"),
                    doc.get("options"),
                )
                results.append(result)
                pbar.update(1)
                if progress_callback:
                    progress_callback(done, total, result)
        return results

    def update(
        self,
        document_id: str,
        content: Union[DocumentContent, Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]] = None,
        options: Optional[IndexingOptions] = None,
    ) -> IndexingResult:
        """Remove the document and index it again; the version advances by one."""
        with self._lock:
            try:
                previous = self.get_document(document_id)
            except PersistenceError as e:
                log.error("Cannot load %s for update: %s", document_id, e)
                return IndexingResult(success=False, document_id=document_id, error=str(e))

            if previous is not None and not self.remove(document_id):
                return IndexingResult(
                    success=False,
                    document_id=document_id,
                    error=f"Failed to remove previous version of {document_id}",
                )
            return self.index(document_id, content, metadata, options, previous=previous)

    def remove(self, document_id: str) -> bool:
        """
        Remove a document with all of its chunks and embeddings.

        Returns:
            True if the document was removed; False when it is unknown or
            the removal could not be persisted (embeddings are restored)
        """
        with self._lock:
            try:
                if self.get_document(document_id) is None:
                    log.debug("Remove of unknown document %s", document_id)
                    return False
                removed_embeddings = self.vector_store.get_by_document(document_id)
                self.vector_store.remove_by_document(document_id)
            except PersistenceError:
                log.exception("Failed to remove embeddings of %s", document_id)
                return False

            try:
                self.store.remove(document_key(document_id))
            except PersistenceError:
                log.exception("Failed to remove document %s; restoring embeddings", document_id)
                try:
                    self.vector_store.replace_document(document_id, removed_embeddings)
                except PersistenceError:
                    log.exception("Could not restore embeddings of %s", document_id)
                return False

            try:
                self.store.remove(chunks_key(document_id))
                self._unregister(document_id)
            except PersistenceError:
                log.warning("Stale keys left for %s; run optimize to clean up", document_id)

            self.stats.record_removal()
            self.stats.set_index_size(self.vector_store.index_size)

        log.info("Removed %s (%d embeddings)", document_id, len(removed_embeddings))
        return True

    # ============ Background queue ============

    def enqueue(
        self,
        document_id: str,
        content: Optional[Union[DocumentContent, Mapping[str, Any]]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        options: Optional[IndexingOptions] = None,
    ) -> bool:
        """
        Queue a document for background indexing.

        With the queue disabled the document is indexed inline.

        Returns:
            True once queued (or, inline, when indexing succeeded)
        """
        job = IndexingJob(document_id, content, metadata, options)
        if not self.queue_enabled:
            return self._run_job(job).success

        self._ensure_worker()
        with self._pending_cond:
            self._pending += 1
        self._jobs.put(job)
        log.debug("Queued %s for indexing", document_id)
        return True

    @property
    def pending(self) -> int:
        """Jobs queued or in progress."""
        with self._pending_cond:
            return self._pending

    def wait_for_queue(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue drains. Returns False on timeout."""
        with self._pending_cond:
            return self._pending_cond.wait_for(lambda: self._pending == 0, timeout)

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._worker_loop, name="semdex-indexer", daemon=True
                )
                self._worker.start()

    def _worker_loop(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                break
            try:
                try:
                    result = self._run_job(job)
                except Exception as e:
                    log.exception("Queued indexing of %s failed", job.document_id)
                    result = IndexingResult(success=False, document_id=job.document_id, error=str(e))
                self.queue_results.append(result)
            finally:
                with self._pending_cond:
                    self._pending -= 1
                    self._pending_cond.notify_all()

    def _run_job(self, job: IndexingJob) -> IndexingResult:
        content = job.content
        if content is None:
            try:
                stored = self.get_document(job.document_id)
            except PersistenceError as e:
                return IndexingResult(success=False, document_id=job.document_id, error=str(e))
            if stored is None:
                error = NotFoundError(f"Document {job.document_id} is not indexed")
                log.warning("%s", error)
                return IndexingResult(success=False, document_id=job.document_id, error=str(error))
            content = stored.content
        return self.index(job.document_id, content, job.metadata, job.options)

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the worker after the jobs already queued."""
        worker = self._worker
        if worker is None or not worker.is_alive():
            return
        self._jobs.put(None)
        worker.join(timeout)
        self._worker = None

    # ============ Maintenance ============

    def rebuild(self) -> bool:
        """Drop every document, chunk and embedding and reset the stats."""
        with self._lock:
            try:
                ids = self.document_ids()
                self.vector_store.clear()
                for document_id in ids:
                    self.store.remove(document_key(document_id))
                    self.store.remove(chunks_key(document_id))
                self.store.remove(REGISTRY_KEY)
                self.stats.reset()
            except PersistenceError:
                log.exception("Failed to rebuild index")
                return False
        log.info("Rebuilt index; %d documents dropped", len(ids))
        return True

    def optimize(self) -> Optional[Dict[str, int]]:
        """
        Remove orphaned state and refresh the index size.

        Returns:
            Counts of orphan embeddings removed, stale registry entries
            dropped and expired keys purged; None if the store failed
        """
        with self._lock:
            try:
                ids = self.document_ids()
                live = [i for i in ids if self.store.get(document_key(i)) is not None]
                stale = [i for i in ids if i not in live]

                orphans = self.vector_store.document_ids() - set(live)
                orphan_embeddings = self.vector_store.remove_documents(orphans)
                for document_id in stale:
                    self.store.remove(chunks_key(document_id))
                if stale:
                    self.store.set(REGISTRY_KEY, live)

                expired = self.store.purge_expired()
            except PersistenceError:
                log.exception("Failed to optimize index")
                return None
            self.stats.set_index_size(self.vector_store.index_size)

        report = {
            "orphan_embeddings": orphan_embeddings,
            "stale_documents": len(stale),
            "expired_keys": expired,
        }
        log.info(
            "Optimized index: %d orphan embeddings, %d stale documents, %d expired keys",
            orphan_embeddings, len(stale), expired,
        )
        return report
