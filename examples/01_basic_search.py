#!/usr/bin/env python3
"""
Example 1: Basic Semantic Search with semdex

This example demonstrates:
- Creating a semdex instance backed by SQLite
- Indexing documents with metadata
- Searching with work context, reranking and explanations
- Content recommendations and analytics

Requirements:
    pip install semdex
    (the default hashing provider needs no API key)
"""

from semdex import ContentRecommendation, SearchContext, SearchOptions, create_semdex


def main():
    print("=" * 60)
    print("Example 1: Basic Semantic Search")
    print("=" * 60)

    # ============================================================
    # Step 1: Create semdex instance
    # ============================================================
    print("\n📦 Creating semdex instance...")

    engine = create_semdex("example_basic.db", similarity_threshold=0.2)

    # Option B: OpenAI embeddings (needs OPENAI_API_KEY)
    # engine = create_semdex(
    #     "example_openai.db",
    #     embedding_provider="openai",
    #     embedding_model="text-embedding-3-small",
    # )

    # ============================================================
    # Step 2: Index documents
    # ============================================================
    print("\n📄 Indexing documents...")

    documents = [
        {
            "id": "vector-db",
            "content": {
                "title": "Vector Databases",
                "body": "Vector databases store high-dimensional embeddings and answer "
                        "nearest neighbour queries for semantic search.",
            },
            "metadata": {"category": "research", "tags": ["vectors", "search"]},
        },
        {
            "id": "standup",
            "content": {
                "title": "Daily Standup Notes",
                "body": "The team discussed sprint priorities, blockers on the release "
                        "and the plan for the quarterly roadmap.",
            },
            "metadata": {"category": "meeting", "tags": ["sprint"]},
        },
        {
            "id": "style-guide",
            "content": {
                "title": "Python Style Guide",
                "body": "Write small functions, prefer explicit names and keep the code "
                        "covered by tests before refactoring.",
            },
            "metadata": {"category": "coding", "tags": ["python"]},
        },
    ]

    for result in engine.index_documents(documents):
        status = "✓" if result.success else f"✗ {result.error}"
        print(f"   {result.document_id}: {result.chunks_created} chunks, v{result.version} {status}")

    # ============================================================
    # Step 3: Search
    # ============================================================
    print("\n🔍 Searching...")

    context = SearchContext(user_id="demo", work_context="research")
    result = engine.search(
        "semantic search with embeddings",
        context,
        SearchOptions(max_results=3, rerank=True, include_explanation=True),
    )
    print(f"   Executed query: {result.executed_query}")
    for hit in result.hits:
        boosts = hit.explanation.boosts if hit.explanation else {}
        print(f"   [{hit.similarity:.3f}] {hit.document.content.title} {boosts}")

    # ============================================================
    # Step 4: Recommendations
    # ============================================================
    print("\n💡 Recommendations...")

    engine.set_trending([
        ContentRecommendation(
            document_id="standup",
            title="Daily Standup Notes",
            snippet="",
            relevance_score=0.5,
            reason="Trending this week",
            category="meeting",
        )
    ])
    for rec in engine.get_content_recommendations(context, max_results=5):
        print(f"   {rec.title}: {rec.reason} ({rec.relevance_score:.3f})")

    # ============================================================
    # Step 5: Stats
    # ============================================================
    print("\n📊 Stats:")
    for key, value in engine.get_stats().items():
        print(f"   {key}: {value}")

    analytics = engine.get_search_analytics()
    print(f"   searches: {analytics.total_searches}, top: {analytics.top_queries}")

    engine.close()
    print("\n✅ Done!")


if __name__ == "__main__":
    main()
