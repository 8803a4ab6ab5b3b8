"""
VectorDB Base Module

This module provides the core abstractions for vector store operations:
- VectorProviderType: Enum of vector store backends a space can declare
- VectorDocument: The unit stored in a collection (id, vector, content, metadata)
- CollectionSchema: Name and fixed dimension of a space collection
- SearchOptions / SearchResult: Search request knobs and normalized results
- CollectionStats: Row count and dimension of a collection
- DeleteFilter: Structured delete predicate translated by each provider
- BaseVectorProvider: Abstract base class every provider adapter implements
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    ClassVar,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
)

from SpaceRAG.Data.constants import RAG_CONSTANTS
from SpaceRAG.Data.VectorDB.configs import (
    IndexType,
    ProviderConfig,
    parse_provider_config,
)
from SpaceRAG.Data.VectorDB.metrics import (
    MetricType,
    normalize_l2,
    normalize_metric_score,
    requires_unit_vectors,
)
from SpaceRAG.exceptions import (
    InvalidArgumentError,
    InvalidConfigurationError,
    ProviderNotInitializedError,
    UnsupportedFilterError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "IndexType",
    "MetricType",
    "VectorProviderType",
    "VectorDocument",
    "CollectionSchema",
    "SearchOptions",
    "SearchResult",
    "CollectionStats",
    "DeleteFilter",
    "BaseVectorProvider",
]


class VectorProviderType(str, Enum):
    """Vector store backends a space may declare."""
    MILVUS = "MILVUS"
    QDRANT = "QDRANT"
    PINECONE = "PINECONE"
    WEAVIATE = "WEAVIATE"
    CHROMA = "CHROMA"


@dataclass
class VectorDocument:
    """
    A vector stored in a space collection.

    Attributes:
        id: "<documentId>_chunk_<index>", stable across re-ingests
        vector: Embedding of the chunk content
        content: The chunk text
        metadata: Document and chunk metadata (filename, chunkIndex, ...)
    """
    id: str
    vector: List[float]
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CollectionSchema:
    """
    Declaration of a space collection.

    Attributes:
        name: Collection name derived from the space id
        dimension: Vector dimension, fixed for the collection's lifetime
        description: Optional human-readable description
    """
    name: str
    dimension: int
    description: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.dimension, bool) or not isinstance(self.dimension, int) \
                or self.dimension <= 0:
            raise InvalidArgumentError(
                f"dimension must be a positive integer (got {self.dimension!r})"
            )


@dataclass
class SearchOptions:
    """
    Search request options.

    Attributes:
        top_k: Maximum number of results
        score_threshold: Minimum normalized score in [0, 1]
        ef: Optional search breadth override for graph indexes
        query_text: Raw query text, used by providers with full-text search
    """
    top_k: int = RAG_CONSTANTS["TOP_K"]["DEFAULT"]
    score_threshold: float = 0.0
    ef: Optional[int] = None
    query_text: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.top_k, bool) or not isinstance(self.top_k, int) or self.top_k < 1:
            raise InvalidArgumentError(f"top_k must be an integer >= 1 (got {self.top_k!r})")

        low = RAG_CONSTANTS["SCORE_THRESHOLD"]["MIN"]
        high = RAG_CONSTANTS["SCORE_THRESHOLD"]["MAX"]
        if not low <= self.score_threshold <= high:
            raise InvalidArgumentError(
                f"score_threshold must be within [{low}, {high}] "
                f"(got {self.score_threshold!r})"
            )

        if self.ef is not None and self.ef < 1:
            raise InvalidArgumentError(f"ef must be >= 1 (got {self.ef!r})")


@dataclass
class SearchResult:
    """
    Result from a vector similarity search.

    Attributes:
        id: Vector id of the matched chunk
        content: The chunk text
        score: Normalized similarity, higher is more similar
        distance: Metric-native magnitude kept for diagnostics
        metadata: Metadata stored with the chunk
    """
    id: str
    content: str
    score: float
    distance: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CollectionStats:
    """Row count and vector dimension of a collection."""
    count: int
    dimension: int


@dataclass(frozen=True)
class DeleteFilter:
    """
    Structured delete predicate.

    Exactly one of original_doc_id or vector_id must be set. filename
    narrows a document delete to the chunks of one uploaded file.

    Example:
        DeleteFilter.by_document("doc-1")
        DeleteFilter.by_vector_id("doc-1_chunk_0")
        DeleteFilter.by_file("doc-1", "report.pdf")
    """
    original_doc_id: Optional[str] = None
    vector_id: Optional[str] = None
    filename: Optional[str] = None

    def __post_init__(self):
        if (self.original_doc_id is None) == (self.vector_id is None):
            raise UnsupportedFilterError(
                "DeleteFilter needs exactly one of original_doc_id or vector_id"
            )
        if self.filename is not None and self.original_doc_id is None:
            raise UnsupportedFilterError("filename can only narrow a document filter")
        for name in ("original_doc_id", "vector_id", "filename"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, str) or not value):
                raise UnsupportedFilterError(f"{name} must be a non-empty string")

    @classmethod
    def by_document(cls, original_doc_id: str) -> "DeleteFilter":
        return cls(original_doc_id=original_doc_id)

    @classmethod
    def by_vector_id(cls, vector_id: str) -> "DeleteFilter":
        return cls(vector_id=vector_id)

    @classmethod
    def by_file(cls, original_doc_id: str, filename: str) -> "DeleteFilter":
        return cls(original_doc_id=original_doc_id, filename=filename)


class BaseVectorProvider(ABC):
    """
    Abstract base class for vector store adapters.

    All adapters must implement this interface so the RAG service can work
    against any registered backend. Every operation is async; adapters over
    blocking SDKs move the calls off the event loop.

    Lifecycle: construct, await initialize(config), use, await cleanup().
    cleanup() is safe to call more than once.
    """

    PROVIDER_TYPE: ClassVar[VectorProviderType]
    CONFIG_MODEL: ClassVar[Type[ProviderConfig]] = ProviderConfig
    # Merged under the space's stored configuration (stored values win)
    DEFAULT_CONFIG: ClassVar[Dict[str, Any]] = {}

    def __init__(self):
        self.config: Optional[ProviderConfig] = None
        self._initialized = False

    @classmethod
    def validate_config(cls, config: Mapping[str, Any]) -> List[str]:
        """
        Check a configuration mapping without connecting.

        Returns:
            Every violated field; empty when the configuration is valid
        """
        _, errors = parse_provider_config(cls.CONFIG_MODEL, config)
        return errors

    async def initialize(self, config: Mapping[str, Any]) -> None:
        """
        Validate the configuration and open the backend connection.

        Raises:
            InvalidConfigurationError: Listing every violated field
        """
        parsed, errors = parse_provider_config(self.CONFIG_MODEL, config)
        if errors:
            raise InvalidConfigurationError(
                f"Invalid {self.PROVIDER_TYPE.value} configuration", errors
            )

        await self._connect(parsed)
        self.config = parsed
        self._initialized = True
        logger.debug(f"{self.PROVIDER_TYPE.value} provider initialized")

    @abstractmethod
    async def _connect(self, config: ProviderConfig) -> None:
        """Open the backend client. Must be implemented by subclasses."""
        pass

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def metric_type(self) -> MetricType:
        if self.config is None:
            return MetricType.COSINE
        return self.config.metric_type

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ProviderNotInitializedError(
                f"{type(self).__name__} is not initialized; call initialize() first"
            )

    # ==================== Collection Operations ====================

    @abstractmethod
    async def has_collection(self, name: str) -> bool:
        """Return True if the collection exists."""
        pass

    @abstractmethod
    async def create_collection(self, schema: CollectionSchema) -> None:
        """
        Create a collection and make it queryable.

        Idempotent: an existing collection is left untouched.
        """
        pass

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Drop a collection. Idempotent: a missing collection is a no-op."""
        pass

    @abstractmethod
    async def list_collections(self) -> List[str]:
        """List all collection names visible to this connection."""
        pass

    @abstractmethod
    async def get_collection_stats(self, name: str) -> CollectionStats:
        """Return the row count and vector dimension of a collection."""
        pass

    # ==================== Vector Operations ====================

    @abstractmethod
    async def insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        """
        Write documents to a collection, overwriting existing ids.

        Empty input is a no-op.

        Raises:
            InsertError: If any part of the batch could not be written
        """
        pass

    @abstractmethod
    async def delete(self, collection_name: str, filter: DeleteFilter) -> int:
        """
        Delete every vector matching the filter.

        Returns:
            Number of vectors removed (zero matches is not an error)
        """
        pass

    @abstractmethod
    async def search(
        self,
        collection_name: str,
        vector: Sequence[float],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Search a collection by vector.

        Returns:
            Results with normalized score >= options.score_threshold,
            ordered by descending score, at most options.top_k of them
        """
        pass

    # ==================== Lifecycle ====================

    @abstractmethod
    async def cleanup(self) -> None:
        """Release connections. Safe to call multiple times."""
        pass

    # ==================== Helpers ====================

    def _prepare_vector(self, vector: Sequence[float]) -> List[float]:
        """Convert to floats, L2-normalizing for metrics that assume unit vectors."""
        values = [float(v) for v in vector]
        if requires_unit_vectors(self.metric_type):
            return normalize_l2(values)
        return values

    def _rank_results(
        self,
        hits: Iterable[Tuple[str, str, float, Dict[str, Any]]],
        options: SearchOptions,
        metric: Optional[MetricType] = None,
    ) -> List[SearchResult]:
        """
        Normalize raw hits and apply the threshold, ordering and limit.

        Args:
            hits: (id, content, raw backend score, metadata) tuples
            options: The search options of the request
            metric: How to read the raw scores (defaults to the provider metric)

        Returns:
            SearchResults sorted by descending normalized score
        """
        results = []
        for hit_id, content, raw_score, metadata in hits:
            normalized = normalize_metric_score(raw_score, metric or self.metric_type)
            if normalized.score < options.score_threshold:
                continue
            results.append(SearchResult(
                id=hit_id,
                content=content,
                score=normalized.score,
                distance=normalized.distance,
                metadata=metadata,
            ))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:options.top_k]

    @staticmethod
    def _search_breadth(options: SearchOptions) -> int:
        """Graph search breadth: explicit ef, else widened with top_k."""
        return options.ef or max(64, options.top_k * 4)
