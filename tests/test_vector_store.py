"""Tests for the in-memory vector store."""

import pytest

from semdex.errors import PersistenceError, ValidationError
from semdex.index import EMBEDDINGS_KEY, VectorStore
from semdex.models import VectorEmbedding
from semdex.similarity import SimilarityMetric


def emb(embedding_id, document_id, vector):
    return VectorEmbedding(id=embedding_id, document_id=document_id, vector=list(vector), model="test")


@pytest.fixture
def vstore(store):
    vs = VectorStore(3, store)
    vs.insert_many([
        emb("a_chunk_0", "a", [1.0, 0.0, 0.0]),
        emb("a_chunk_1", "a", [0.9, 0.1, 0.0]),
        emb("b_chunk_0", "b", [0.0, 1.0, 0.0]),
        emb("c_chunk_0", "c", [0.7, 0.7, 0.0]),
    ])
    return vs


def test_search_sorted_and_bounded(vstore):
    matches = vstore.similarity_search([1.0, 0.0, 0.0], max_results=2)
    assert len(matches) == 2
    assert matches[0].embedding_id == "a_chunk_0"
    assert matches[0].similarity == pytest.approx(1.0)
    assert matches[0].distance == pytest.approx(0.0)
    assert matches[0].similarity >= matches[1].similarity


def test_search_threshold(vstore):
    matches = vstore.similarity_search([1.0, 0.0, 0.0], threshold=0.5, max_results=10)
    assert matches
    assert all(m.similarity >= 0.5 for m in matches)
    assert "b" not in {m.document_id for m in matches}


def test_search_ties_in_insertion_order(store):
    vs = VectorStore(2, store)
    vs.insert_many([emb("x", "d1", [1, 0]), emb("y", "d2", [2, 0]), emb("z", "d3", [3, 0])])
    matches = vs.similarity_search([1, 0], max_results=3)
    assert [m.embedding_id for m in matches] == ["x", "y", "z"]


def test_search_filters_documents(vstore):
    matches = vstore.similarity_search([1.0, 0.0, 0.0], max_results=10, document_ids=["b", "c"])
    assert {m.document_id for m in matches} == {"b", "c"}


def test_search_other_metrics(vstore):
    matches = vstore.similarity_search([1.0, 0.0, 0.0], metric=SimilarityMetric.EUCLIDEAN, max_results=1)
    assert matches[0].embedding_id == "a_chunk_0"
    assert matches[0].similarity == pytest.approx(1.0)


def test_query_dimension_checked(vstore):
    with pytest.raises(ValidationError):
        vstore.similarity_search([1.0, 0.0])


def test_insert_rejects_wrong_dimension(vstore):
    with pytest.raises(ValidationError):
        vstore.insert(emb("bad", "z", [1.0, 0.0]))


def test_insert_many_is_atomic(vstore):
    before = len(vstore)
    with pytest.raises(ValidationError):
        vstore.insert_many([emb("ok", "z", [1.0, 1.0, 1.0]), emb("bad", "z", [1.0])])
    assert len(vstore) == before
    assert vstore.get_by_document("z") == []


def test_insert_existing_id_replaces(vstore):
    vstore.insert(emb("b_chunk_0", "b", [0.0, 0.0, 1.0]))
    assert len(vstore) == 4
    assert vstore.get_by_document("b")[0].vector == [0.0, 0.0, 1.0]


def test_replace_document(vstore):
    count = vstore.replace_document("a", [emb("a_chunk_0", "a", [0.0, 0.0, 1.0])])
    assert count == 1
    assert [e.id for e in vstore.get_by_document("a")] == ["a_chunk_0"]


def test_remove_by_document_leaves_no_orphans(vstore):
    assert vstore.remove_by_document("a") == 2
    assert vstore.get_by_document("a") == []
    assert all(m.document_id != "a" for m in vstore.similarity_search([1.0, 0.0, 0.0], max_results=10))
    assert vstore.remove_by_document("a") == 0


def test_flush_and_load(vstore, store):
    assert len(store.get(EMBEDDINGS_KEY)) == 4
    reloaded = VectorStore(3, store)
    assert reloaded.load() == 4
    assert reloaded.document_ids() == {"a", "b", "c"}


def test_failed_flush_keeps_previous_state(vstore, store):
    store.fail_set.add(EMBEDDINGS_KEY)
    with pytest.raises(PersistenceError):
        vstore.remove_by_document("a")
    assert len(vstore.get_by_document("a")) == 2
    assert len(vstore) == 4


def test_clear_and_stats(vstore):
    stats = vstore.stats()
    assert stats["total_embeddings"] == 4
    assert stats["total_documents"] == 3
    assert stats["index_size"] == 4 * 3 * 8
    vstore.clear()
    assert len(vstore) == 0
    assert vstore.index_size == 0
    assert vstore.similarity_search([1.0, 0.0, 0.0]) == []
