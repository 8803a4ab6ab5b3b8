"""
RAG Service Types

Request, result and metadata models exchanged with RAGService callers.
Stored chunk metadata uses camelCase keys (filename, fileType, size,
uploadedAt, chunkIndex, totalChunks, originalDocId); DocumentMetadata
converts between that form and Python attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from SpaceRAG.Data.constants import RAG_CONSTANTS
from SpaceRAG.exceptions import InvalidArgumentError


class IngestStage(str, Enum):
    """Stages an ingest job moves through."""
    QUEUED = "queued"
    RESOLVING_PROVIDER = "resolving-provider"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COLLECTION_ENSURING = "collection-ensuring"
    INSERTING = "inserting"
    DONE = "done"
    FAILED = "failed"


class QueryStage(str, Enum):
    """Stages a query moves through."""
    RESOLVING_PROVIDER = "resolving-provider"
    EMBEDDING_QUERY = "embedding-query"
    SEARCHING = "searching"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


# Keys owned by DocumentMetadata; everything else is caller extra data
_KNOWN_KEYS = {
    "filename": "filename",
    "fileType": "file_type",
    "size": "size",
    "uploadedAt": "uploaded_at",
    "chunkIndex": "chunk_index",
    "totalChunks": "total_chunks",
    "originalDocId": "original_doc_id",
}


@dataclass
class DocumentMetadata:
    """
    Metadata of an uploaded document, and of each chunk stored from it.

    chunk_index, total_chunks and original_doc_id are filled in during
    ingestion; callers leave them unset.

    Attributes:
        filename: Name of the uploaded file
        file_type: MIME type or extension
        size: Size of the original file in bytes
        uploaded_at: Upload time (datetime or ISO-8601 string)
        chunk_index: Position of the chunk within its document
        total_chunks: Number of chunks produced from the document
        original_doc_id: Id of the RAGDocument the chunk came from
        extra: Any additional caller metadata
    """
    filename: str
    file_type: str
    size: int
    uploaded_at: Union[datetime, str] = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None
    original_doc_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored camelCase form. Owned keys win over extras."""
        uploaded_at = self.uploaded_at
        if isinstance(uploaded_at, datetime):
            uploaded_at = uploaded_at.isoformat()

        data: Dict[str, Any] = dict(self.extra)
        for key, attr in _KNOWN_KEYS.items():
            value = uploaded_at if attr == "uploaded_at" else getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentMetadata":
        """Rebuild metadata from its stored form, tolerating missing fields."""
        known = {attr: data.get(key) for key, attr in _KNOWN_KEYS.items()}
        extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}
        return cls(
            filename=known["filename"] or "",
            file_type=known["file_type"] or "",
            size=int(known["size"] or 0),
            uploaded_at=known["uploaded_at"] or "",
            chunk_index=known["chunk_index"],
            total_chunks=known["total_chunks"],
            original_doc_id=known["original_doc_id"],
            extra=extra,
        )


@dataclass
class RAGDocument:
    """
    A document submitted for ingestion.

    Attributes:
        id: Caller-assigned document id; vector ids derive from it
        content: Extracted plain text
        metadata: Document metadata
    """
    id: str
    content: str
    metadata: DocumentMetadata


@dataclass
class IngestOptions:
    """Per-call chunking overrides; None uses the service defaults."""
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None


@dataclass
class QueryOptions:
    """
    Per-call retrieval options; None uses the service defaults.

    Attributes:
        top_k: Number of sources to return (1-20)
        score_threshold: Minimum normalized score (0-1)
    """
    top_k: Optional[int] = None
    score_threshold: Optional[float] = None

    def __post_init__(self):
        if self.top_k is not None:
            low, high = RAG_CONSTANTS["TOP_K"]["MIN"], RAG_CONSTANTS["TOP_K"]["MAX"]
            if isinstance(self.top_k, bool) or not isinstance(self.top_k, int) \
                    or not low <= self.top_k <= high:
                raise InvalidArgumentError(
                    f"top_k must be an integer within [{low}, {high}] (got {self.top_k!r})"
                )
        if self.score_threshold is not None:
            low = RAG_CONSTANTS["SCORE_THRESHOLD"]["MIN"]
            high = RAG_CONSTANTS["SCORE_THRESHOLD"]["MAX"]
            if not low <= self.score_threshold <= high:
                raise InvalidArgumentError(
                    f"score_threshold must be within [{low}, {high}] "
                    f"(got {self.score_threshold!r})"
                )


@dataclass
class RAGSource:
    """
    A retrieved chunk.

    Attributes:
        id: Vector id ("<documentId>_chunk_<index>")
        content: The chunk text
        score: Normalized similarity, higher is more similar
        distance: Metric-native magnitude
        metadata: Chunk metadata
    """
    id: str
    content: str
    score: float
    distance: float
    metadata: DocumentMetadata


@dataclass
class RAGIngestResult:
    """Outcome of a successful ingest."""
    document_ids: List[str]
    total_chunks: int
    collection_name: str


@dataclass
class RAGQueryResult:
    """Outcome of a query."""
    sources: List[RAGSource]
    query: str
    total_results: int


@dataclass
class DeleteOutcome:
    """
    Aggregate outcome of deleting one document from several spaces.

    Attributes:
        succeeded: Space ids where the delete completed
        failed: Space id -> error message for every failed space
    """
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed
