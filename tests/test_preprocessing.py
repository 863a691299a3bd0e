"""Tests for content preprocessing."""

from semdex.models import DocumentContent, EntityType, IndexingOptions
from semdex.preprocessing import (
    analyze_quality,
    calculate_readability,
    extract_entities,
    extract_keywords,
    extract_topics,
    generate_summary,
    preprocess_content,
)


def test_keywords_by_frequency_skip_short_words():
    text = "code code code review review the and for planning"
    assert extract_keywords(text, max_keywords=2) == ["code", "review"]
    assert "the" not in extract_keywords(text)
    assert "and" not in extract_keywords(text)


def test_entities():
    text = "Jane Smith paid $1,200.50 to Acme Corp on 12/05/2024."
    found = {(e.type, e.text) for e in extract_entities(text)}
    assert (EntityType.PERSON, "Jane Smith") in found
    assert (EntityType.ORGANIZATION, "Acme Corp") in found
    assert (EntityType.MONEY, "$1,200.50") in found
    assert (EntityType.DATE, "12/05/2024") in found
    money = next(e for e in extract_entities(text) if e.type is EntityType.MONEY)
    assert text[money.start_offset:money.end_offset] == "$1,200.50"


def test_topics():
    topics = {t.name: t for t in extract_topics("Software development needs planning and a team.")}
    assert set(topics) == {"Technology", "Project Management"}
    assert topics["Project Management"].keywords == ["team", "planning"]
    assert 0 < topics["Technology"].confidence <= 1


def test_summary_first_two_sentences():
    assert generate_summary("First one. Second one! Third one?") == "First one. Second one."


def test_summary_truncated():
    summary = generate_summary("word " * 100 + ". next")
    assert len(summary) == 203
    assert summary.endswith("...")


def test_readability_bounds():
    assert calculate_readability("") == 0.0
    score = calculate_readability("Short words here. Easy to read.")
    assert 0.0 <= score <= 1.0


def test_quality_issues_for_short_content():
    quality = analyze_quality(DocumentContent(title="Tiny", body="Too short."))
    descriptions = [i.description for i in quality.issues]
    assert "Document content is very short" in descriptions
    assert "No keywords specified" in descriptions
    assert quality.completeness == 0.7


def test_quality_complete_document():
    body = "A thorough body. " * 10
    quality = analyze_quality(DocumentContent(title="Full", body=body, keywords=["body"]))
    assert quality.issues == []
    assert quality.completeness == 1.0


def test_preprocess_fills_missing_fields():
    content = DocumentContent(
        title="Sprint Planning",
        body="The team reviewed every milestone. Deadlines moved by a week. Nobody objected.",
    )
    prepped = preprocess_content(content, IndexingOptions())
    assert prepped.full_text.startswith("Sprint Planning\n\n")
    assert prepped.content.keywords
    assert prepped.content.summary == "The team reviewed every milestone. Deadlines moved by a week."
    assert any(t.name == "Project Management" for t in prepped.content.topics)
    assert content.keywords == []


def test_preprocess_keeps_caller_values():
    content = DocumentContent(title="Notes", body="Plain body text.", summary="Given", keywords=["mine"])
    prepped = preprocess_content(content, IndexingOptions(extract_entities=False, extract_topics=False))
    assert prepped.content.summary == "Given"
    assert prepped.content.keywords == ["mine"]
    assert prepped.content.topics == []
