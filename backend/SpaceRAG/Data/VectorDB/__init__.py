"""
VectorDB Module

Provides the provider-neutral vector store interface, score normalization,
configuration models and the provider registry/factory.
"""

from SpaceRAG.Data.VectorDB.base import (
    BaseVectorProvider,
    CollectionSchema,
    CollectionStats,
    DeleteFilter,
    IndexType,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VectorProviderType,
)
from SpaceRAG.Data.VectorDB.configs import MilvusConfig, QdrantConfig
from SpaceRAG.Data.VectorDB.factory import ValidationResult, VectorProviderFactory
from SpaceRAG.Data.VectorDB.metrics import (
    MetricType,
    NormalizedScore,
    is_l2_normalized,
    normalize_l2,
    normalize_metric_score,
)
from SpaceRAG.Data.VectorDB.registry import (
    get_provider_class,
    is_provider_available,
    list_available_providers,
    register_provider,
)

__all__ = [
    # Base classes and models
    "BaseVectorProvider",
    "VectorProviderType",
    "IndexType",
    "VectorDocument",
    "CollectionSchema",
    "CollectionStats",
    "SearchOptions",
    "SearchResult",
    "DeleteFilter",
    # Configs
    "MilvusConfig",
    "QdrantConfig",
    # Metrics
    "MetricType",
    "NormalizedScore",
    "normalize_metric_score",
    "normalize_l2",
    "is_l2_normalized",
    # Factory
    "VectorProviderFactory",
    "ValidationResult",
    # Registry functions
    "get_provider_class",
    "register_provider",
    "list_available_providers",
    "is_provider_available",
]
