"""
SpaceRAG - Space-scoped Retrieval Augmented Generation

This package provides the ingestion and query pipeline behind document
spaces:
- Sliding-window text chunking
- A provider-neutral vector store interface (Milvus / Zilliz, Qdrant)
- Cross-metric similarity score normalization
- Per-space provider caching and serialized ingestion
"""

from SpaceRAG.Data import (
    BaseEmbeddings,
    BaseVectorProvider,
    Chunk,
    DeleteFilter,
    DocumentMetadata,
    EmbeddingsFactory,
    InMemorySpaceConfigStore,
    MetricType,
    RAGDocument,
    RAGService,
    RAGServiceConfig,
    SearchOptions,
    SearchResult,
    SpaceConfig,
    TextChunker,
    VectorDocument,
    VectorProviderFactory,
    VectorProviderType,
    get_collection_name,
)
from SpaceRAG.logging_setup import configure_logging

__all__ = [
    "RAGService",
    "RAGServiceConfig",
    "RAGDocument",
    "DocumentMetadata",
    "SpaceConfig",
    "InMemorySpaceConfigStore",
    "get_collection_name",
    "TextChunker",
    "Chunk",
    "BaseVectorProvider",
    "VectorProviderType",
    "VectorProviderFactory",
    "VectorDocument",
    "SearchOptions",
    "SearchResult",
    "DeleteFilter",
    "MetricType",
    "BaseEmbeddings",
    "EmbeddingsFactory",
    "configure_logging",
]
