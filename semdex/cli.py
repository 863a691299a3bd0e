"""CLI for the semdex engine."""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__

DEFAULT_DB = "semdex.db"

SAMPLE_DOCUMENTS = [
    {
        "id": "ai-productivity",
        "content": {
            "title": "AI Productivity Tools",
            "body": (
                "Artificial intelligence is transforming productivity. Assistants draft "
                "email, summarize meeting notes and suggest code, so teams spend less "
                "time on routine work and more on decisions."
            ),
        },
        "metadata": {"category": "research", "tags": ["ai", "productivity"]},
    },
    {
        "id": "remote-work",
        "content": {
            "title": "Remote Work",
            "body": (
                "Remote work requires communication. Distributed teams rely on clear "
                "written updates, a shared agenda for every meeting and regular "
                "check-ins across time zones."
            ),
        },
        "metadata": {"category": "meeting", "tags": ["remote", "teamwork"]},
    },
    {
        "id": "code-review",
        "content": {
            "title": "Code Review Checklist",
            "body": (
                "Good code review keeps software healthy. Check tests, naming and error "
                "handling, and keep each review small enough to read in one sitting."
            ),
        },
        "metadata": {"category": "coding", "tags": ["code", "review"]},
    },
]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _engine(args: argparse.Namespace, db_default: str = DEFAULT_DB):
    from .semdex import create_semdex

    return create_semdex(
        args.db or db_default,
        embedding_provider=args.provider,
        embedding_model=args.model,
    )


def _print_hits(result) -> None:
    if result.error:
        print(f"Search failed: {result.error}")
        return
    if not result.hits:
        print("No results.")
        return
    for i, hit in enumerate(result.hits, 1):
        doc = hit.document
        print(f"{i}. [{hit.similarity:.3f}] {doc.content.title} ({doc.id}, v{doc.version})")
        print(f"   {doc.snippet(100)}")
        if hit.explanation is not None:
            print(f"   metric={hit.explanation.metric} raw={hit.explanation.raw_similarity:.3f} "
                  f"boosts={hit.explanation.boosts}")


def _context(args: argparse.Namespace):
    from .models import SearchContext

    return SearchContext(
        user_id=getattr(args, "user", None),
        work_context=getattr(args, "context", None),
        time_of_day=getattr(args, "time_of_day", None),
        recent_queries=list(getattr(args, "recent", None) or []),
    )


def demo(args: argparse.Namespace) -> None:
    """Run demo with sample documents."""
    from .models import SearchOptions, SearchContext

    print("=== semdex Demo ===\n")
    engine = _engine(args, db_default=":memory:")

    print("Indexing sample documents...")
    for result in engine.index_documents(SAMPLE_DOCUMENTS, show_progress=True):
        status = "ok" if result.success else f"failed: {result.error}"
        print(f"  {result.document_id}: {result.chunks_created} chunks, "
              f"{result.embeddings_generated} embeddings ({status})")

    print("\n=== Search ===")
    query = "artificial intelligence productivity"
    print(f"Query: {query!r}")
    _print_hits(engine.search(query, options=SearchOptions(threshold=0.1, max_results=3)))

    print("\n=== Contextual Search (coding, reranked) ===")
    context = SearchContext(user_id="demo", work_context="coding")
    _print_hits(engine.search(
        "review the code",
        context,
        SearchOptions(threshold=0.1, max_results=3, rerank=True, include_explanation=True),
    ))

    print("\n=== Stats ===")
    print(json.dumps(engine.get_stats(), indent=2))

    engine.close()
    print("\nDemo complete!")


def index(args: argparse.Namespace) -> None:
    """Index a document from arguments or a text file."""
    body = args.body or ""
    if args.file:
        body = Path(args.file).read_text(encoding="utf-8")
    metadata = {}
    if args.category:
        metadata["category"] = args.category
    if args.tags:
        metadata["tags"] = [t.strip() for t in args.tags.split(",") if t.strip()]

    engine = _engine(args)
    title = args.title or (Path(args.file).stem if args.file else args.id)
    result = engine.index_document(args.id, {"title": title, "body": body}, metadata)
    engine.close()

    if not result.success:
        print(f"Error: {result.error}")
        sys.exit(1)
    print(f"Indexed {result.document_id} v{result.version}: "
          f"{result.chunks_created} chunks, {result.embeddings_generated} embeddings "
          f"in {result.processing_time_ms:.1f} ms")
    if result.failed_chunks:
        print(f"  Chunks without embeddings: {', '.join(result.failed_chunks)}")


def search(args: argparse.Namespace) -> None:
    """Search indexed documents."""
    from .models import SearchOptions

    engine = _engine(args)
    result = engine.search(
        args.query,
        _context(args),
        SearchOptions(
            threshold=args.threshold,
            max_results=args.max_results,
            rerank=args.rerank,
            include_explanation=args.explain,
            metric=args.metric,
        ),
    )
    engine.close()

    print(f"Executed query: {result.executed_query}")
    print(f"{len(result.hits)} results in {result.execution_time_ms:.1f} ms ({result.model_used})\n")
    _print_hits(result)


def recommend(args: argparse.Namespace) -> None:
    """Show content recommendations."""
    engine = _engine(args)
    recommendations = engine.get_content_recommendations(_context(args), args.max_results)
    engine.close()

    if not recommendations:
        print("No recommendations.")
        return
    for i, rec in enumerate(recommendations, 1):
        print(f"{i}. [{rec.relevance_score:.3f}] {rec.title} ({rec.document_id})")
        print(f"   {rec.reason}")


def remove(args: argparse.Namespace) -> None:
    """Remove a document from the index."""
    engine = _engine(args)
    removed = engine.remove_document(args.id)
    engine.close()
    if not removed:
        print(f"Document not found or not removed: {args.id}")
        sys.exit(1)
    print(f"Removed {args.id}")


def stats(args: argparse.Namespace) -> None:
    """Show engine statistics."""
    engine = _engine(args)
    info = engine.get_stats()
    analytics = engine.get_search_analytics()
    engine.close()

    info["searches"] = analytics.total_searches
    info["top_queries"] = analytics.top_queries
    print(json.dumps(info, indent=2))


def rebuild(args: argparse.Namespace) -> None:
    """Clear the index and reset statistics."""
    engine = _engine(args)
    ok = engine.rebuild_index()
    engine.close()
    if not ok:
        print("Error: rebuild failed")
        sys.exit(1)
    print("Index cleared.")


def optimize(args: argparse.Namespace) -> None:
    """Remove orphaned embeddings and stale entries."""
    engine = _engine(args)
    report = engine.optimize_index()
    engine.close()
    if report is None:
        print("Error: optimize failed")
        sys.exit(1)
    print(json.dumps(report, indent=2))


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="semdex",
        description="semdex - Semantic Document Indexing and Retrieval",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  semdex demo                                  Run demo with sample documents
  semdex index notes --file notes.txt          Index a text file
  semdex search "project deadlines" --rerank   Search the index
  semdex stats                                 Show engine statistics

Environment variables:
  OPENAI_API_KEY    Required for --provider openai
  HF_TOKEN          Optional for HuggingFace models
  SEMDEX_*          Config overrides (e.g. SEMDEX_CHUNK_SIZE)
"""
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--db", type=str, help=f"Database path (default: {DEFAULT_DB})"
    )
    parser.add_argument(
        "--provider", type=str, default=None,
        help="Embedding provider: hashing, openai, huggingface (default: hashing)",
    )
    parser.add_argument(
        "--model", type=str, default=None, help="Embedding model (provider default if omitted)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    demo_parser = subparsers.add_parser("demo", help="Run demo with sample documents")
    demo_parser.set_defaults(func=demo)

    index_parser = subparsers.add_parser("index", help="Index a document")
    index_parser.add_argument("id", help="Document id")
    index_parser.add_argument("--title", type=str, help="Title (default: file name or id)")
    index_parser.add_argument("--body", type=str, help="Body text")
    index_parser.add_argument("--file", type=str, help="Read the body from a text file")
    index_parser.add_argument("--category", type=str, help="Metadata category")
    index_parser.add_argument("--tags", type=str, help="Comma-separated tags")
    index_parser.set_defaults(func=index)

    context_args = argparse.ArgumentParser(add_help=False)
    context_args.add_argument("--user", type=str, help="User id for history")
    context_args.add_argument(
        "--context", type=str,
        choices=["coding", "writing", "research", "planning", "meeting"],
        help="Work context",
    )
    context_args.add_argument(
        "--time-of-day", type=str, choices=["morning", "afternoon", "evening", "night"],
    )

    search_parser = subparsers.add_parser("search", parents=[context_args], help="Search documents")
    search_parser.add_argument("query", help="Query text")
    search_parser.add_argument("-k", "--max-results", type=int, default=None)
    search_parser.add_argument("--threshold", type=float, default=None)
    search_parser.add_argument(
        "--metric", type=str, choices=["cosine", "euclidean", "dot_product", "manhattan"],
    )
    search_parser.add_argument("--rerank", action="store_true", help="Apply contextual boosts")
    search_parser.add_argument("--explain", action="store_true", help="Show score breakdown")
    search_parser.set_defaults(func=search)

    recommend_parser = subparsers.add_parser(
        "recommend", parents=[context_args], help="Show content recommendations"
    )
    recommend_parser.add_argument(
        "--recent", action="append", help="Recent query (repeatable, most recent first)"
    )
    recommend_parser.add_argument("-k", "--max-results", type=int, default=10)
    recommend_parser.set_defaults(func=recommend)

    remove_parser = subparsers.add_parser("remove", help="Remove a document")
    remove_parser.add_argument("id", help="Document id")
    remove_parser.set_defaults(func=remove)

    stats_parser = subparsers.add_parser("stats", help="Show engine statistics")
    stats_parser.set_defaults(func=stats)

    rebuild_parser = subparsers.add_parser("rebuild", help="Clear the index and reset stats")
    rebuild_parser.set_defaults(func=rebuild)

    optimize_parser = subparsers.add_parser("optimize", help="Clean up orphaned index data")
    optimize_parser.set_defaults(func=optimize)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
