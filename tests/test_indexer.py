"""Tests for the document lifecycle."""

from semdex import Semdex
from semdex.indexer import REGISTRY_KEY, chunks_key, document_key
from semdex.models import DocumentContent, IndexingOptions, VectorEmbedding


def test_index_document(engine):
    result = engine.index_document(
        "notes",
        {"title": "Sprint Notes", "body": "The team agreed on the milestone. Release is Friday."},
        {"category": "planning", "tags": ["sprint"]},
    )
    assert result.success
    assert result.version == 1
    assert result.chunks_created == 1
    assert result.embeddings_generated == 1
    assert result.failed_chunks == []

    doc = engine.get_document("notes")
    assert doc.version == 1
    assert doc.metadata.category == "planning"
    assert doc.metadata.tags == ["sprint"]
    assert doc.metadata.source_id == "notes"
    assert doc.content.summary == "The team agreed on the milestone. Release is Friday."
    assert doc.content.keywords
    assert [c.id for c in engine.get_chunks("notes")] == ["notes_chunk_0"]
    assert len(engine.vector_store.get_by_document("notes")) == 1


def test_missing_title_fails_before_chunking(engine):
    result = engine.index_document("bad", {"title": "  ", "body": "body"})
    assert not result.success
    assert "title" in result.error
    assert engine.get_document("bad") is None
    assert len(engine.vector_store) == 0


def test_unknown_metadata_field_fails(engine):
    result = engine.index_document("doc", {"title": "T", "body": "b"}, {"colour": "red"})
    assert not result.success
    assert "colour" in result.error


def test_reindex_bumps_version_not_document_count(sample_engine):
    before = sample_engine.get_indexing_stats().total_documents
    result = sample_engine.index_document("doc1", {"title": "AI Tools", "body": "Updated body text."})
    assert result.version == 2
    assert sample_engine.get_document("doc1").version == 2
    assert sample_engine.get_indexing_stats().total_documents == before == 2


def test_update_bumps_version(sample_engine):
    created = sample_engine.get_document("doc2").metadata.created_at
    result = sample_engine.update_document("doc2", DocumentContent(title="Remote Work", body="New policy."))
    assert result.success
    assert result.version == 2
    doc = sample_engine.get_document("doc2")
    assert doc.version == 2
    assert doc.metadata.created_at == created
    assert sample_engine.get_indexing_stats().total_documents == 2


def test_remove_cascades(sample_engine, store):
    assert sample_engine.remove_document("doc1")
    assert sample_engine.vector_store.get_by_document("doc1") == []
    assert sample_engine.get_document("doc1") is None
    assert store.get(chunks_key("doc1")) is None
    assert "doc1" not in store.get(REGISTRY_KEY)
    assert sample_engine.get_indexing_stats().total_documents == 1
    assert not sample_engine.remove_document("doc1")


def test_remove_unknown_returns_false(engine):
    assert not engine.remove_document("nope")


def test_partial_embedding_failure(failing_engine):
    result = failing_engine.index_document(
        "doc",
        {"title": "Report", "body": "alpha beta gamma delta epsilon FAIL zeta eta theta iota kappa"},
        options=IndexingOptions(chunk_size=5, chunk_overlap=0),
    )
    assert result.success
    assert result.chunks_created == 3
    assert result.embeddings_generated == 2
    assert result.failed_chunks == ["doc_chunk_1"]
    assert len(failing_engine.vector_store.get_by_document("doc")) == 2


def test_document_write_failure_restores_embeddings(sample_engine, store):
    previous = [e.id for e in sample_engine.vector_store.get_by_document("doc1")]
    store.fail_set.add(document_key("doc1"))
    result = sample_engine.index_document(
        "doc1",
        {"title": "Changed", "body": "A much longer body that produces new chunk text entirely."},
    )
    assert not result.success
    assert "disk full" in result.error
    assert [e.id for e in sample_engine.vector_store.get_by_document("doc1")] == previous
    assert sample_engine.get_document("doc1").version == 1
    assert sample_engine.get_chunks("doc1")[0].content.startswith("AI Productivity Tools")


def test_new_document_write_failure_leaves_nothing(engine, store):
    store.fail_set.add(document_key("fresh"))
    result = engine.index_document("fresh", {"title": "Fresh", "body": "New content here."})
    assert not result.success
    assert engine.vector_store.get_by_document("fresh") == []
    assert store.get(chunks_key("fresh")) is None
    assert "fresh" not in engine.indexer.document_ids()


def test_remove_failure_restores_embeddings(sample_engine, store):
    store.fail_remove.add(document_key("doc2"))
    assert not sample_engine.remove_document("doc2")
    assert len(sample_engine.vector_store.get_by_document("doc2")) == 1
    assert sample_engine.get_document("doc2") is not None


def test_queue_indexes_in_background(engine):
    assert engine.queue_document_for_indexing("q1", {"title": "Queued One", "body": "first"})
    assert engine.queue_document_for_indexing("q2", {"title": "Queued Two", "body": "second"})
    assert engine.wait_for_queue(timeout=10)
    assert engine.indexer.pending == 0
    assert engine.get_document("q1") is not None
    assert engine.get_document("q2") is not None
    assert [r.document_id for r in engine.indexer.queue_results] == ["q1", "q2"]


def test_queue_reindexes_stored_content(sample_engine):
    assert sample_engine.queue_document_for_indexing("doc1")
    assert sample_engine.queue_document_for_indexing("missing")
    assert sample_engine.wait_for_queue(timeout=10)
    results = {r.document_id: r for r in sample_engine.indexer.queue_results}
    assert results["doc1"].success
    assert sample_engine.get_document("doc1").version == 2
    assert not results["missing"].success


def test_index_many(engine, sample_docs):
    sample_docs.append({"id": "broken", "content": {"body": "no title"}})
    results = engine.index_documents(sample_docs)
    assert [r.success for r in results] == [True, True, False]


def test_rebuild_resets(sample_engine):
    assert sample_engine.rebuild_index()
    stats = sample_engine.get_indexing_stats()
    assert stats.total_documents == 0
    assert stats.total_chunks == 0
    assert len(sample_engine.vector_store) == 0
    assert sample_engine.get_document("doc1") is None
    assert sample_engine.indexer.document_ids() == []


def test_optimize_removes_orphans(sample_engine, store):
    sample_engine.vector_store.insert(
        VectorEmbedding(id="ghost_chunk_0", document_id="ghost", vector=[0.1] * 384, model="test")
    )
    registry = store.get(REGISTRY_KEY) + ["vanished"]
    store.set(REGISTRY_KEY, registry)

    report = sample_engine.optimize_index()
    assert report == {"orphan_embeddings": 1, "stale_documents": 1, "expired_keys": 0}
    assert sample_engine.vector_store.document_ids() == {"doc1", "doc2"}
    assert store.get(REGISTRY_KEY) == ["doc1", "doc2"]
    assert sample_engine.get_indexing_stats().index_size == sample_engine.vector_store.index_size


def test_index_many_reports_progress(engine, sample_docs):
    calls = []
    engine.index_documents(sample_docs, progress_callback=lambda done, total, r: calls.append((done, total, r.document_id)))
    assert calls == [(1, 2, "doc1"), (2, 2, "doc2")]


def test_queued_embedding_does_not_block_foreground_index(config, store, gated_embedder):
    embedder = gated_embedder
    with Semdex(config, embedder=embedder, store=store) as engine:
        assert engine.queue_document_for_indexing("q1", {"title": "Queued", "body": "GATE body"})
        assert embedder.entered.wait(timeout=10)

        result = engine.index_document("fg", {"title": "Foreground", "body": "indexed right away"})
        assert result.success
        assert engine.get_document("fg") is not None
        assert engine.get_document("q1") is None
        assert engine.indexer.pending == 1

        embedder.release.set()
        assert engine.wait_for_queue(timeout=10)
        assert engine.get_document("q1") is not None
