"""
Services Package

Contains the space-scoped RAG facade and its supporting pieces.
"""

from SpaceRAG.Data.services.rag_service import (
    RAGService,
    RAGServiceConfig,
    get_collection_name,
    vector_id,
)
from SpaceRAG.Data.services.serial_executor import SerialJobExecutor
from SpaceRAG.Data.services.space_config import (
    InMemorySpaceConfigStore,
    SpaceConfig,
    SpaceConfigStore,
)
from SpaceRAG.Data.services.space_provider_cache import SpaceProviderCache
from SpaceRAG.Data.services.types import (
    DeleteOutcome,
    DocumentMetadata,
    IngestOptions,
    IngestStage,
    QueryOptions,
    QueryStage,
    RAGDocument,
    RAGIngestResult,
    RAGQueryResult,
    RAGSource,
)

__all__ = [
    "RAGService",
    "RAGServiceConfig",
    "get_collection_name",
    "vector_id",
    "SerialJobExecutor",
    "SpaceProviderCache",
    "SpaceConfig",
    "SpaceConfigStore",
    "InMemorySpaceConfigStore",
    "RAGDocument",
    "DocumentMetadata",
    "IngestOptions",
    "IngestStage",
    "QueryOptions",
    "QueryStage",
    "RAGSource",
    "RAGIngestResult",
    "RAGQueryResult",
    "DeleteOutcome",
]
