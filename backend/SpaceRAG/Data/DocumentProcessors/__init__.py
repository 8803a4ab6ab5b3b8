"""
DocumentProcessors Module

Provides text chunking for the ingestion pipeline.
"""

from SpaceRAG.Data.DocumentProcessors.text_chunker import (
    Chunk,
    TextChunker,
    chunk_text,
    resolve_overlap,
)

__all__ = [
    "Chunk",
    "TextChunker",
    "chunk_text",
    "resolve_overlap",
]
