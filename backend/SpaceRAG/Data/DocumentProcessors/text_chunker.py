"""
Text Chunker

Fixed-size sliding-window chunking for plain document text.

Each chunk is text[start:start + chunk_size]; the window advances by
chunk_size - overlap until a chunk reaches the end of the text, so
overlapping regions are duplicated between neighbours and never dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from SpaceRAG.Data.constants import RAG_CONSTANTS
from SpaceRAG.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous substring of a source document.

    Attributes:
        content: The chunk text
        index: Zero-based position of the chunk within its document
    """
    content: str
    index: int


def _check_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer (got {value!r})")
    return value


def resolve_overlap(chunk_size: int, overlap: int) -> int:
    """
    Validate chunk parameters and return the overlap actually used.

    chunk_size is a hard contract; overlap is a hint that is coerced to
    chunk_size // 4 when it would stop the window from advancing.

    Raises:
        InvalidArgumentError: If chunk_size <= 0 or overlap < 0
    """
    chunk_size = _check_int("chunk_size", chunk_size)
    overlap = _check_int("chunk_overlap", overlap)

    if chunk_size <= 0:
        raise InvalidArgumentError(f"chunk_size must be > 0 (got {chunk_size})")
    if overlap < 0:
        raise InvalidArgumentError(f"chunk_overlap must be >= 0 (got {overlap})")

    if overlap >= chunk_size:
        overlap = max(0, chunk_size // 4)
    return overlap


def chunk_text(text: str, chunk_size: int, overlap: int) -> List[Chunk]:
    """
    Split text into overlapping chunks.

    Args:
        text: Raw document text
        chunk_size: Maximum characters per chunk (> 0)
        overlap: Characters shared by consecutive chunks (>= 0)

    Returns:
        Chunks with sequential indices starting at 0. Empty text yields
        no chunks; text shorter than chunk_size yields exactly one.
    """
    overlap = resolve_overlap(chunk_size, overlap)
    step = chunk_size - overlap

    chunks: List[Chunk] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + chunk_size, length)
        chunks.append(Chunk(content=text[start:end], index=len(chunks)))
        if end == length:
            break
        start += step

    return chunks


class TextChunker:
    """
    Chunker holding default window parameters.

    Example:
        chunker = TextChunker(chunk_size=500, chunk_overlap=100)
        chunks = chunker.chunk(document_text)
        chunks = chunker.chunk(document_text, chunk_size=200, overlap=20)
    """

    def __init__(
        self,
        chunk_size: int = RAG_CONSTANTS["CHUNK_SIZE"]["DEFAULT"],
        chunk_overlap: int = RAG_CONSTANTS["CHUNK_OVERLAP"]["DEFAULT"],
    ):
        # Fail at construction rather than on first use
        resolve_overlap(chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> List[Chunk]:
        """Split text, using the chunker defaults for any omitted parameter."""
        return chunk_text(
            text,
            self.chunk_size if chunk_size is None else chunk_size,
            self.chunk_overlap if overlap is None else overlap,
        )
