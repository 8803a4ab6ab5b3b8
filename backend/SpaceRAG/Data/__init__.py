"""
Data layer for SpaceRAG.

Contains:
- DocumentProcessors: Text chunking
- VectorDB: Vector store interface, score normalization and provider adapters
- Embeddings: Embedding model catalogue, abstractions and implementations
- services: The space-scoped RAG facade
"""

from SpaceRAG.Data.DocumentProcessors import Chunk, TextChunker

from SpaceRAG.Data.VectorDB import (
    BaseVectorProvider,
    DeleteFilter,
    MetricType,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VectorProviderFactory,
    VectorProviderType,
)

from SpaceRAG.Data.Embeddings import (
    BaseEmbeddings,
    EmbeddingConfig,
    EmbeddingProvider,
    EmbeddingsFactory,
)

from SpaceRAG.Data.services import (
    DocumentMetadata,
    InMemorySpaceConfigStore,
    RAGDocument,
    RAGService,
    RAGServiceConfig,
    SpaceConfig,
    get_collection_name,
)

__all__ = [
    # Chunking
    "Chunk",
    "TextChunker",
    # VectorDB
    "BaseVectorProvider",
    "VectorProviderType",
    "VectorProviderFactory",
    "VectorDocument",
    "SearchOptions",
    "SearchResult",
    "DeleteFilter",
    "MetricType",
    # Embeddings
    "BaseEmbeddings",
    "EmbeddingConfig",
    "EmbeddingProvider",
    "EmbeddingsFactory",
    # Services
    "RAGService",
    "RAGServiceConfig",
    "RAGDocument",
    "DocumentMetadata",
    "SpaceConfig",
    "InMemorySpaceConfigStore",
    "get_collection_name",
]
