"""
Embeddings Module

Provides the embedding model catalogue, abstractions and implementations.
"""

from SpaceRAG.Data.Embeddings.base import (
    BaseEmbeddings,
    EmbeddingConfig,
    EmbeddingInputType,
    EmbeddingProvider,
)
from SpaceRAG.Data.Embeddings.factory import EmbeddingsFactory
from SpaceRAG.Data.Embeddings.models import (
    EMBEDDING_MODEL_REGISTRY,
    EmbeddingModelDefinition,
    ensure_dimension,
    get_embedding_model,
    get_models_by_provider,
    validate_dimension,
)
from SpaceRAG.Data.Embeddings.registry import (
    get_provider_class,
    is_provider_available,
    list_available_providers,
    register_provider,
)

__all__ = [
    # Base classes and models
    "BaseEmbeddings",
    "EmbeddingConfig",
    "EmbeddingProvider",
    "EmbeddingInputType",
    # Catalogue
    "EmbeddingModelDefinition",
    "EMBEDDING_MODEL_REGISTRY",
    "get_embedding_model",
    "validate_dimension",
    "ensure_dimension",
    "get_models_by_provider",
    # Factory
    "EmbeddingsFactory",
    # Registry functions
    "get_provider_class",
    "register_provider",
    "list_available_providers",
    "is_provider_available",
]
