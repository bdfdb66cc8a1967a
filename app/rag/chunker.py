"""Text chunking with overlap for RAG pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
"""
import re
from dataclasses import dataclass
from typing import List

import structlog

from app import config
from app.errors import InvalidInputError

logger = structlog.get_logger()

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class DocumentChunk:
    """A fragment of a document, ready to be embedded."""

    content: str
    source: str
    chunk_index: int
    total_chunks: int


def validate_chunking(chunk_size: int, overlap: int) -> None:
    """Reject chunking parameters that could not make progress.

    Raises:
        InvalidInputError: If chunk_size <= 0 or overlap is outside [0, chunk_size)
    """
    if chunk_size <= 0:
        raise InvalidInputError(f"Chunk size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise InvalidInputError(
            f"Overlap ({overlap}) must be in [0, chunk size ({chunk_size}))"
        )


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def chunk_text(text: str, chunk_size: int, overlap: int) -> List[str]:
    """Split text into overlapping chunks of at most ``chunk_size`` characters.

    Each window is cut after the last period past its midpoint, else at the
    last space past its midpoint, else at the raw window boundary. The next
    window starts ``overlap`` characters before the cut.
    """
    validate_chunking(chunk_size, overlap)

    normalized = normalize_whitespace(text)
    length = len(normalized)
    midpoint = chunk_size / 2

    chunks = []
    start = 0

    while start < length:
        end = start + chunk_size

        if end < length:
            last_period = normalized.rfind(".", start, end)
            last_space = normalized.rfind(" ", start, end)

            if last_period > start + midpoint:
                end = last_period + 1
            elif last_space > start + midpoint:
                end = last_space

        chunk = normalized[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= length:
            break

        next_start = end - overlap
        # Guarantee forward progress when the cut lands close to the midpoint
        start = next_start if next_start > start else end

    return chunks


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)

        Raises:
            InvalidInputError: If the parameters cannot produce a finite chunking
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        validate_chunking(self.chunk_size, self.chunk_overlap)

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(self, text: str) -> List[str]:
        """Split text into overlapping chunks."""
        if not text:
            return []
        return chunk_text(text, self.chunk_size, self.chunk_overlap)

    def chunk_document(self, text: str, source: str) -> List[DocumentChunk]:
        """Split a document's text into DocumentChunk objects.

        Args:
            text: Raw document text
            source: Document identifier (file name)

        Returns:
            List of DocumentChunk objects in document order
        """
        contents = self.chunk_text(text)
        total = len(contents)

        chunks = [
            DocumentChunk(
                content=content,
                source=source,
                chunk_index=index,
                total_chunks=total,
            )
            for index, content in enumerate(contents)
        ]

        logger.info(
            "text_chunked",
            source=source,
            text_length=len(text),
            chunk_count=total,
            avg_chunk_size=sum(len(c) for c in contents) // total if total else 0,
        )

        return chunks

    def get_chunk_stats(self, chunks: List[DocumentChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of DocumentChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }
