"""Tests for semantic search."""

import pytest

from semdex import IndexingOptions, Semdex, SemdexConfig
from semdex.models import SearchContext, SearchOptions

QUERY = "artificial intelligence productivity"


def test_relevant_document_ranks_first(sample_engine):
    result = sample_engine.search(QUERY)
    assert result.success
    assert result.hits[0].document.id == "doc1"
    scores = {h.document.id: h.similarity for h in result.hits}
    if "doc2" in scores:
        assert scores["doc1"] >= scores["doc2"]
    assert result.executed_query == QUERY
    assert result.model_used == "all-MiniLM-L6-v2"
    assert result.query.embedding is not None


def test_default_threshold_filters_unrelated(embedder, store, sample_docs):
    with Semdex(SemdexConfig(), embedder=embedder, store=store) as engine:
        engine.index_documents(sample_docs)
        result = engine.search(QUERY)
        assert result.query.similarity_threshold == 0.7
        assert "doc2" not in {h.document.id for h in result.hits}
        assert all(h.similarity >= 0.7 for h in result.hits)


def test_removed_document_not_returned(sample_engine):
    assert sample_engine.remove_document("doc1")
    result = sample_engine.search(QUERY)
    assert "doc1" not in {h.document.id for h in result.hits}


def test_max_results_and_threshold(engine):
    for i in range(6):
        engine.index_document(f"n{i}", {"title": f"Note {i}", "body": f"shared words about planning item{i}"})
    result = engine.search("shared words about planning", options=SearchOptions(max_results=2, threshold=0.2))
    assert len(result.hits) <= 2
    assert all(h.similarity >= 0.2 for h in result.hits)
    assert result.query.max_results == 2


def test_one_hit_per_document_with_chunks(engine):
    body = " ".join(["retrieval systems rank documents"] * 10)
    engine.index_document("long", {"title": "Retrieval", "body": body})
    engine.index_document(
        "chunked",
        {"title": "Retrieval", "body": body},
        options=IndexingOptions(chunk_size=8, chunk_overlap=2),
    )
    result = engine.search("retrieval systems rank documents", options=SearchOptions(threshold=0.3))
    ids = [h.document.id for h in result.hits]
    assert sorted(ids) == ["chunked", "long"]
    chunked = next(h for h in result.hits if h.document.id == "chunked")
    assert len(chunked.chunks) > 1
    assert chunked.similarity >= 0.3


def test_rerank_is_stable_between_calls(sample_engine):
    context = SearchContext(work_context="research")
    options = SearchOptions(rerank=True, threshold=0.0)
    first = sample_engine.search("productivity at work", context, options)
    second = sample_engine.search("productivity at work", context, options)
    assert [h.document.id for h in first.hits] == [h.document.id for h in second.hits]
    assert [h.similarity for h in first.hits] == [h.similarity for h in second.hits]


def test_explanation(sample_engine):
    result = sample_engine.search(
        QUERY,
        SearchContext(work_context="research"),
        SearchOptions(rerank=True, include_explanation=True),
    )
    top = result.hits[0]
    assert top.explanation.metric == "cosine"
    assert top.explanation.boosts == {"work_context": 1.2, "recency": 1.1}
    assert top.similarity == pytest.approx(top.explanation.raw_similarity * 1.2 * 1.1)


def test_embedding_failure_returns_empty_result(failing_engine):
    failing_engine.index_document("doc", {"title": "Doc", "body": "content"})
    result = failing_engine.search("FAIL this query")
    assert result.hits == []
    assert not result.success
    assert "provider unavailable" in result.error
    assert result.query.text == "FAIL this query"
    assert failing_engine.get_search_analytics().total_searches == 0


def test_invalid_threshold_is_reported(sample_engine):
    result = sample_engine.search(QUERY, options=SearchOptions(threshold=1.5))
    assert result.hits == []
    assert "threshold" in result.error


def test_searches_recorded(sample_engine):
    sample_engine.search(QUERY, SearchContext(user_id="alice"))
    sample_engine.search(QUERY)
    analytics = sample_engine.get_search_analytics()
    assert analytics.total_searches == 2
    assert analytics.top_queries == [QUERY]
    assert len(sample_engine.stats.history_for("alice")) == 1


def test_document_filter(sample_engine):
    result = sample_engine.search(QUERY, options=SearchOptions(document_ids=["doc2"]))
    assert {h.document.id for h in result.hits} <= {"doc2"}
