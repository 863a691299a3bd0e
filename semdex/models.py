"""Data models for the semdex indexing core."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import DEFAULT_SIMILARITY_THRESHOLD
from .errors import ConfigurationError, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Accept a datetime or ISO-8601 string; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e
    else:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _jsonable(value: Any) -> Any:
    """Recursively convert enums and datetimes into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


# ============ Enumerations ============

class EntityType(str, Enum):
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    DATE = "date"
    TIME = "time"
    MONEY = "money"
    PERCENTAGE = "percentage"
    PRODUCT = "product"
    EVENT = "event"
    SKILL = "skill"
    TECHNOLOGY = "technology"
    CONCEPT = "concept"


class IssueType(str, Enum):
    SPELLING = "spelling"
    GRAMMAR = "grammar"
    FORMATTING = "formatting"
    BROKEN_LINK = "broken_link"
    OUTDATED = "outdated"
    INCOMPLETE = "incomplete"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RelationshipType(str, Enum):
    SIMILAR = "similar"
    REFERENCES = "references"
    REFERENCED_BY = "referenced_by"
    SUPERSEDES = "supersedes"
    SUPERSEDED_BY = "superseded_by"
    PART_OF = "part_of"
    CONTAINS = "contains"
    RELATED = "related"
    DUPLICATE = "duplicate"


class WorkContext(str, Enum):
    """Caller-supplied activity category used to bias relevance."""
    CODING = "coding"
    WRITING = "writing"
    RESEARCH = "research"
    PLANNING = "planning"
    MEETING = "meeting"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


# ============ Document content ============

@dataclass
class NamedEntity:
    """An entity found in document text."""
    text: str
    type: EntityType
    confidence: float
    start_offset: int
    end_offset: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NamedEntity":
        return cls(
            text=data["text"],
            type=EntityType(data["type"]),
            confidence=float(data["confidence"]),
            start_offset=int(data["start_offset"]),
            end_offset=int(data["end_offset"]),
        )


@dataclass
class Topic:
    """A topic matched against the keyword-category table."""
    name: str
    confidence: float
    keywords: List[str] = field(default_factory=list)
    category: str = "general"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Topic":
        return cls(
            name=data["name"],
            confidence=float(data["confidence"]),
            keywords=list(data.get("keywords", [])),
            category=data.get("category", "general"),
        )


@dataclass
class QualityIssue:
    type: IssueType
    severity: Severity
    description: str
    suggestion: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QualityIssue":
        return cls(
            type=IssueType(data["type"]),
            severity=Severity(data["severity"]),
            description=data["description"],
            suggestion=data.get("suggestion"),
            location=data.get("location"),
        )


@dataclass
class DocumentQuality:
    """Quality descriptors, each in [0, 1]."""
    completeness: float = 0.8
    accuracy: float = 0.9
    relevance: float = 0.8
    freshness: float = 0.7
    readability: float = 0.8
    issues: List[QualityIssue] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentQuality":
        return cls(
            completeness=float(data.get("completeness", 0.8)),
            accuracy=float(data.get("accuracy", 0.9)),
            relevance=float(data.get("relevance", 0.8)),
            freshness=float(data.get("freshness", 0.7)),
            readability=float(data.get("readability", 0.8)),
            issues=[QualityIssue.from_dict(i) for i in data.get("issues", [])],
        )


@dataclass
class DocumentRelationship:
    target_id: str
    type: RelationshipType
    strength: float = 1.0
    bidirectional: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentRelationship":
        return cls(
            target_id=data["target_id"],
            type=RelationshipType(data["type"]),
            strength=float(data.get("strength", 1.0)),
            bidirectional=bool(data.get("bidirectional", False)),
        )


@dataclass
class DocumentContent:
    """Caller-supplied document content."""
    title: str
    body: str = ""
    summary: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    entities: List[NamedEntity] = field(default_factory=list)
    topics: List[Topic] = field(default_factory=list)
    language: str = "en"
    content_type: str = "text/plain"

    @property
    def full_text(self) -> str:
        """Title and body joined the way they are chunked."""
        return f"{self.title}\n\n{self.body}"

    def validate(self) -> None:
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValidationError("Document title is required")
        if not isinstance(self.body, str):
            raise ValidationError("Document body must be a string")

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentContent":
        return cls(
            title=data["title"],
            body=data.get("body", ""),
            summary=data.get("summary"),
            keywords=list(data.get("keywords", [])),
            entities=[NamedEntity.from_dict(e) for e in data.get("entities", [])],
            topics=[Topic.from_dict(t) for t in data.get("topics", [])],
            language=data.get("language", "en"),
            content_type=data.get("content_type", "text/plain"),
        )


@dataclass
class DocumentMetadata:
    source: str = "semdex"
    source_id: str = ""
    author: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)
    tags: List[str] = field(default_factory=list)
    category: str = "general"
    quality: DocumentQuality = field(default_factory=DocumentQuality)
    relationships: List[DocumentRelationship] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentMetadata":
        return merge_metadata(cls(), data)


METADATA_FIELDS = (
    "source", "source_id", "author", "created_at", "modified_at",
    "tags", "category", "quality", "relationships",
)


def merge_metadata(base: DocumentMetadata, overrides: Optional[Mapping[str, Any]]) -> DocumentMetadata:
    """
    Apply a partial metadata mapping on top of ``base``, field by field.

    Returns a new DocumentMetadata; ``base`` is left untouched.

    Raises:
        ValidationError: on unknown field names or malformed values
    """
    if not overrides:
        return DocumentMetadata(
            source=base.source,
            source_id=base.source_id,
            author=base.author,
            created_at=base.created_at,
            modified_at=base.modified_at,
            tags=list(base.tags),
            category=base.category,
            quality=base.quality,
            relationships=list(base.relationships),
        )

    unknown = set(overrides) - set(METADATA_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown metadata fields: {', '.join(sorted(unknown))}")

    quality = overrides.get("quality", base.quality)
    if isinstance(quality, Mapping):
        quality = DocumentQuality.from_dict(quality)

    relationships = [
        r if isinstance(r, DocumentRelationship) else DocumentRelationship.from_dict(r)
        for r in overrides.get("relationships", base.relationships)
    ]

    return DocumentMetadata(
        source=str(overrides.get("source", base.source)),
        source_id=str(overrides.get("source_id", base.source_id)),
        author=overrides.get("author", base.author),
        created_at=parse_timestamp(overrides.get("created_at", base.created_at)),
        modified_at=parse_timestamp(overrides.get("modified_at", base.modified_at)),
        tags=[str(t) for t in overrides.get("tags", base.tags)],
        category=str(overrides.get("category", base.category)),
        quality=quality,
        relationships=relationships,
    )


# ============ Chunks & embeddings ============

@dataclass(frozen=True)
class DocumentChunk:
    """A contiguous word-bounded slice of a document's text."""
    id: str
    index: int
    content: str
    start_offset: int
    end_offset: int
    document_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentChunk":
        return cls(
            id=data["id"],
            index=int(data["index"]),
            content=data["content"],
            start_offset=int(data["start_offset"]),
            end_offset=int(data["end_offset"]),
            document_id=data["document_id"],
        )


@dataclass
class EmbeddingQuality:
    magnitude: float
    sparsity: float
    coherence: float = 0.8
    distinctiveness: float = 0.7


@dataclass
class EmbeddingMetadata:
    chunk_index: int = 0
    chunk_size: int = 0
    overlap: int = 0
    preprocessing_steps: List[str] = field(default_factory=list)
    quality: Optional[EmbeddingQuality] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmbeddingMetadata":
        quality = data.get("quality")
        return cls(
            chunk_index=int(data.get("chunk_index", 0)),
            chunk_size=int(data.get("chunk_size", 0)),
            overlap=int(data.get("overlap", 0)),
            preprocessing_steps=list(data.get("preprocessing_steps", [])),
            quality=EmbeddingQuality(**quality) if quality else None,
        )


@dataclass
class VectorEmbedding:
    """A chunk vector; ``id`` equals the chunk id."""
    id: str
    document_id: str
    vector: List[float]
    model: str
    created_at: datetime = field(default_factory=utcnow)
    metadata: EmbeddingMetadata = field(default_factory=EmbeddingMetadata)

    @property
    def dimensions(self) -> int:
        return len(self.vector)

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VectorEmbedding":
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            vector=[float(v) for v in data["vector"]],
            model=data["model"],
            created_at=parse_timestamp(data["created_at"]),
            metadata=EmbeddingMetadata.from_dict(data.get("metadata", {})),
        )


@dataclass
class IndexedDocument:
    """The persisted record for an indexed document."""
    id: str
    content: DocumentContent
    metadata: DocumentMetadata
    indexed_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)
    version: int = 1

    def snippet(self, length: int = 200) -> str:
        return self.content.summary or self.content.body[:length]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content.to_dict(),
            "metadata": self.metadata.to_dict(),
            "indexed_at": self.indexed_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexedDocument":
        return cls(
            id=data["id"],
            content=DocumentContent.from_dict(data["content"]),
            metadata=DocumentMetadata.from_dict(data.get("metadata", {})),
            indexed_at=parse_timestamp(data["indexed_at"]),
            last_updated=parse_timestamp(data["last_updated"]),
            version=int(data.get("version", 1)),
        )


# ============ Search ============

@dataclass
class SearchContext:
    """Signals about the caller used to enrich and rerank queries."""
    user_id: Optional[str] = None
    current_document: Optional[str] = None
    recent_queries: List[str] = field(default_factory=list)  # most recent first
    work_context: Optional[WorkContext] = None
    time_of_day: Optional[TimeOfDay] = None

    def __post_init__(self):
        try:
            if self.work_context is not None:
                self.work_context = WorkContext(self.work_context)
            if self.time_of_day is not None:
                self.time_of_day = TimeOfDay(self.time_of_day)
        except ValueError as e:
            raise ValidationError(str(e)) from e


@dataclass
class SearchOptions:
    threshold: Optional[float] = None
    max_results: Optional[int] = None
    rerank: bool = False
    include_explanation: bool = False
    metric: Optional[str] = None
    document_ids: Optional[Sequence[str]] = None


@dataclass
class SearchQuery:
    text: str
    embedding: Optional[List[float]] = None
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_results: int = 20
    rerank: bool = False
    explain: bool = False


@dataclass
class SearchExplanation:
    metric: str
    raw_similarity: float
    boosts: Dict[str, float] = field(default_factory=dict)


@dataclass
class SearchHit:
    document: IndexedDocument
    similarity: float
    distance: float
    explanation: Optional[SearchExplanation] = None
    chunks: List[DocumentChunk] = field(default_factory=list)


@dataclass
class SearchResult:
    """Outcome of a search; ``hits`` is always a list."""
    hits: List[SearchHit]
    query: SearchQuery
    executed_query: str
    execution_time_ms: float
    model_used: str
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ContentRecommendation:
    document_id: str
    title: str
    snippet: str
    relevance_score: float
    reason: str
    category: str = "general"
    tags: List[str] = field(default_factory=list)


# ============ Indexing ============

@dataclass
class IndexingOptions:
    chunk_size: int = 512
    chunk_overlap: int = 50
    extract_entities: bool = True
    extract_topics: bool = True
    generate_summary: bool = True
    quality_analysis: bool = True
    max_keywords: int = 10

    def __post_init__(self):
        if self.chunk_size <= 0 or self.chunk_overlap < 0:
            raise ConfigurationError("chunk_size must be positive and chunk_overlap non-negative")
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )


@dataclass
class IndexingResult:
    success: bool
    document_id: str
    chunks_created: int = 0
    embeddings_generated: int = 0
    processing_time_ms: float = 0.0
    version: Optional[int] = None
    failed_chunks: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class IndexingStats:
    total_documents: int = 0
    total_chunks: int = 0
    total_embeddings: int = 0
    indexing_runs: int = 0
    average_processing_time_ms: float = 0.0
    index_size: int = 0  # bytes held by vectors
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexingStats":
        return cls(
            total_documents=int(data.get("total_documents", 0)),
            total_chunks=int(data.get("total_chunks", 0)),
            total_embeddings=int(data.get("total_embeddings", 0)),
            indexing_runs=int(data.get("indexing_runs", 0)),
            average_processing_time_ms=float(data.get("average_processing_time_ms", 0.0)),
            index_size=int(data.get("index_size", 0)),
            last_updated=parse_timestamp(data.get("last_updated", utcnow())),
        )


@dataclass
class SearchAnalytics:
    total_searches: int = 0
    average_results_per_search: float = 0.0
    top_queries: List[str] = field(default_factory=list)
    search_trends: Dict[str, int] = field(default_factory=dict)
