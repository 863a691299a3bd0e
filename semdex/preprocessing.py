"""
Content preprocessing applied before chunking.

Heuristic, dependency-free enrichment of a DocumentContent:

- keyword extraction by word frequency
- pattern-based named entities (person, organization, date, money)
- topic detection from a keyword-category table
- extractive summary (first two sentences)
- quality scoring (completeness, readability, issues)
"""

import re
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, List, Tuple

from .models import (
    DocumentContent,
    DocumentQuality,
    EntityType,
    IndexingOptions,
    IssueType,
    NamedEntity,
    QualityIssue,
    Severity,
    Topic,
)

SUMMARY_MAX_CHARS = 200
ENTITY_CONFIDENCE = 0.8
MIN_KEYWORD_LENGTH = 4  # words of 3 characters or fewer are dropped

ENTITY_PATTERNS: Tuple[Tuple[EntityType, re.Pattern], ...] = (
    (EntityType.PERSON, re.compile(r"\b[A-Z][a-z]+ [A-Z][a-z]+\b")),
    (EntityType.ORGANIZATION, re.compile(r"\b[A-Z][a-zA-Z]+ (?:Inc|Corp|LLC|Ltd)\b")),
    (EntityType.DATE, re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b")),
    (EntityType.MONEY, re.compile(r"\$\d+(?:,\d{3})*(?:\.\d{2})?\b")),
)

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "Technology": ["software", "code", "programming", "development", "ai", "machine learning"],
    "Business": ["strategy", "market", "revenue", "customer", "sales", "growth"],
    "Project Management": ["task", "deadline", "milestone", "team", "planning", "agile"],
    "Communication": ["meeting", "email", "discussion", "presentation", "report"],
}

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class PreprocessedContent:
    full_text: str
    content: DocumentContent
    quality: DocumentQuality


def preprocess_text(text: str) -> str:
    """Lowercase, strip punctuation and normalize whitespace."""
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def extract_keywords(text: str, max_keywords: int = 10) -> List[str]:
    """Top words by frequency, ignoring words of three characters or fewer."""
    words = [w for w in preprocess_text(text).split(" ") if len(w) >= MIN_KEYWORD_LENGTH]
    return [word for word, _ in Counter(words).most_common(max_keywords)]


def extract_entities(text: str) -> List[NamedEntity]:
    entities = []
    for entity_type, pattern in ENTITY_PATTERNS:
        for match in pattern.finditer(text):
            entities.append(NamedEntity(
                text=match.group(),
                type=entity_type,
                confidence=ENTITY_CONFIDENCE,
                start_offset=match.start(),
                end_offset=match.end(),
            ))
    return entities


def extract_topics(text: str) -> List[Topic]:
    """Match text against TOPIC_KEYWORDS; confidence is the share of matched keywords."""
    lower = text.lower()
    topics = []
    for name, keywords in TOPIC_KEYWORDS.items():
        matched = [k for k in keywords if re.search(rf"\b{re.escape(k)}\b", lower)]
        if matched:
            topics.append(Topic(
                name=name,
                confidence=len(matched) / len(keywords),
                keywords=matched,
                category="general",
            ))
    return topics


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def generate_summary(text: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    """First two sentences, truncated to ``max_chars`` with an ellipsis."""
    sentences = split_sentences(text)
    if not sentences:
        return ""
    summary = ". ".join(sentences[:2]) + "."
    if len(summary) > max_chars:
        return summary[:max_chars] + "..."
    return summary


def calculate_readability(text: str) -> float:
    """Sentence/word length heuristic in [0, 1]; higher reads easier."""
    if not text:
        return 0.0
    sentences = split_sentences(text)
    words = text.split()
    if not sentences or not words:
        return 0.0

    avg_words_per_sentence = len(words) / len(sentences)
    avg_chars_per_word = len(re.sub(r"\s", "", text)) / len(words)
    score = 1 - (avg_words_per_sentence - 15) / 30 - (avg_chars_per_word - 5) / 10
    return max(0.0, min(1.0, score))


def analyze_quality(content: DocumentContent) -> DocumentQuality:
    issues = []

    completeness = 0.5
    if content.title:
        completeness += 0.2
    if content.body and len(content.body) > 100:
        completeness += 0.2
    if content.keywords:
        completeness += 0.1

    if len(content.body) < 50:
        issues.append(QualityIssue(
            type=IssueType.INCOMPLETE,
            severity=Severity.MEDIUM,
            description="Document content is very short",
            suggestion="Consider adding more detailed content",
        ))
    if not content.keywords:
        issues.append(QualityIssue(
            type=IssueType.INCOMPLETE,
            severity=Severity.LOW,
            description="No keywords specified",
            suggestion="Add relevant keywords to improve searchability",
        ))

    return DocumentQuality(
        completeness=round(completeness, 4),
        readability=calculate_readability(content.body),
        issues=issues,
    )


def preprocess_content(content: DocumentContent, options: IndexingOptions) -> PreprocessedContent:
    """
    Enrich content ahead of chunking.

    Keywords are only extracted when the caller supplied none; entities and
    topics replace the caller's lists when their extraction is enabled; a
    summary is synthesized only when missing.
    """
    full_text = content.full_text

    keywords = list(content.keywords) or extract_keywords(full_text, options.max_keywords)
    entities = extract_entities(full_text) if options.extract_entities else list(content.entities)
    topics = extract_topics(full_text) if options.extract_topics else list(content.topics)

    summary = content.summary
    if not summary and options.generate_summary:
        summary = generate_summary(content.body or content.title)

    enriched = replace(
        content,
        keywords=keywords,
        entities=entities,
        topics=topics,
        summary=summary,
    )
    quality = analyze_quality(enriched) if options.quality_analysis else DocumentQuality()
    return PreprocessedContent(full_text=full_text, content=enriched, quality=quality)
