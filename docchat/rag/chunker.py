"""Text chunking with overlap for RAG pipeline.

Implements character-based chunking over whitespace-normalized text to
avoid tokenizer dependencies.
"""
import re
from typing import List
from dataclasses import dataclass
import structlog

from docchat import config

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s+")


@dataclass
class TextChunk:
    """Represents a chunk of normalized text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


def normalize_text(text: str) -> str:
    """Collapse every whitespace run to a single space and trim the ends."""
    return _WHITESPACE.sub(" ", text or "").strip()


def _windows(length: int, chunk_size: int, chunk_overlap: int):
    """Yield (start, end) windows covering [0, length)."""
    if chunk_size < 1:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    # Clamp so every step advances by at least one character
    overlap = min(max(chunk_overlap, 0), chunk_size - 1)

    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        yield start, end
        if end == length:
            break
        start = end - overlap


def split_text(text: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    """Split text into overlapping fixed-size fragments.

    Args:
        text: Raw document text (normalized before splitting)
        chunk_size: Window length in characters
        chunk_overlap: Characters shared by consecutive windows, clamped to
            [0, chunk_size - 1]

    Returns:
        Fragments in document order; empty list for blank input
    """
    normalized = normalize_text(text)
    return [
        normalized[start:end]
        for start, end in _windows(len(normalized), chunk_size, chunk_overlap)
    ]


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
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = (
            config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        )

        if self.chunk_size < 1:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if not 0 <= self.chunk_overlap < self.chunk_size:
            logger.warning(
                "chunk_overlap_clamped",
                chunk_size=self.chunk_size,
                chunk_overlap=self.chunk_overlap,
            )
            self.chunk_overlap = min(max(self.chunk_overlap, 0), self.chunk_size - 1)

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Positions refer to the normalized text, not the raw input.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects
        """
        normalized = normalize_text(text)
        if not normalized:
            return []

        chunks = [
            TextChunk(
                content=normalized[start:end],
                char_start=start,
                char_end=end,
                chunk_index=chunk_index,
            )
            for chunk_index, (start, end) in enumerate(
                _windows(len(normalized), self.chunk_size, self.chunk_overlap)
            )
        ]

        logger.debug(
            "text_chunked",
            text_length=len(normalized),
            chunk_count=len(chunks),
        )

        return chunks

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

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
