"""Word-bounded text chunking with overlap."""

import re
from typing import List

from .errors import ConfigurationError
from .models import DocumentChunk

_WORD = re.compile(r"\S+")


def chunk_id(document_id: str, index: int) -> str:
    """Deterministic chunk id, also used as the embedding id."""
    return f"{document_id}_chunk_{index}"


def chunk_text(
    text: str,
    chunk_size: int = 512,
    overlap: int = 50,
    *,
    document_id: str = "",
) -> List[DocumentChunk]:
    """
    Split text into overlapping windows of whitespace-delimited words.

    The window holds ``chunk_size`` words and advances by
    ``chunk_size - overlap`` words until it reaches the end of the text.
    Chunk content is the window's words joined by single spaces; offsets
    point at the first and last word of the window in ``text``.

    Args:
        text: Input text to chunk
        chunk_size: Words per chunk
        overlap: Words shared by consecutive chunks
        document_id: Owning document, used for chunk ids

    Returns:
        Ordered list of DocumentChunk objects (empty for blank text)

    Raises:
        ConfigurationError: if ``overlap >= chunk_size`` or either is out of range
    """
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ConfigurationError(
            f"overlap must satisfy 0 <= overlap < chunk_size, got {overlap} / {chunk_size}"
        )

    words = list(_WORD.finditer(text))
    chunks: List[DocumentChunk] = []
    step = chunk_size - overlap
    start = 0

    while start < len(words):
        end = min(start + chunk_size, len(words))
        window = words[start:end]
        index = len(chunks)
        chunks.append(DocumentChunk(
            id=chunk_id(document_id, index),
            index=index,
            content=" ".join(m.group() for m in window),
            start_offset=window[0].start(),
            end_offset=window[-1].end(),
            document_id=document_id,
        ))
        if end >= len(words):
            break
        start += step

    return chunks
