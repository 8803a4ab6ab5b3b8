"""
Embeddings Factory

Factory class for creating embedding model instances.
"""

import os
from typing import List, Optional, Type

from SpaceRAG.Data.Embeddings.base import (
    BaseEmbeddings,
    EmbeddingConfig,
    EmbeddingProvider,
)
from SpaceRAG.Data.Embeddings.models import ensure_dimension, get_embedding_model
from SpaceRAG.Data.Embeddings.registry import (
    get_provider_class,
    is_provider_available,
    list_available_providers,
    register_provider,
)
from SpaceRAG.exceptions import UnsupportedEmbeddingDimensionError


class EmbeddingsFactory:
    """
    Factory for creating embedding model instances.

    Example:
        # Create for a space's catalogue model
        embeddings = EmbeddingsFactory.create_for_model("cohere/embed-v4.0", 1024)

        # Create from config
        config = EmbeddingConfig(EmbeddingProvider.COHERE, "embed-english-v3.0")
        embeddings = EmbeddingsFactory.create(config)
    """

    @staticmethod
    def create(config: EmbeddingConfig) -> BaseEmbeddings:
        """
        Create an embedding model instance from configuration.

        Raises:
            ProviderNotImplementedError: If the provider is not available
        """
        provider_class = get_provider_class(config.provider)
        return provider_class(config)

    @staticmethod
    def create_for_model(
        model_id: str,
        dimension: Optional[int] = None,
        api_key: Optional[str] = None,
        **extra_config
    ) -> BaseEmbeddings:
        """
        Create an embedding model from its "<provider>/<model>" catalogue id.

        Args:
            model_id: Catalogue id, e.g. "cohere/embed-v4.0"
            dimension: Output dimension (model default if not provided)
            api_key: API key (reads <PROVIDER>_API_KEY if not provided)
            **extra_config: Additional provider-specific configuration

        Raises:
            UnsupportedEmbeddingDimensionError: Unknown model or unsupported dimension
            ProviderNotImplementedError: No implementation for the model's provider
        """
        model = get_embedding_model(model_id)
        if model is None:
            raise UnsupportedEmbeddingDimensionError(model_id, dimension or 0, [])

        dim = dimension if dimension is not None else model.default_dim
        ensure_dimension(model_id, dim)

        key = api_key or os.environ.get(f"{model.provider.value.upper()}_API_KEY")
        config = EmbeddingConfig(
            provider=model.provider,
            model_name=model.model_name,
            api_key=key,
            dimension=dim,
            extra_config=dict(extra_config),
        )
        return EmbeddingsFactory.create(config)

    @staticmethod
    def register_provider(
        provider: EmbeddingProvider,
        implementation: Type[BaseEmbeddings],
        override: bool = False
    ) -> None:
        """Register a custom provider implementation."""
        register_provider(provider, implementation, override)

    @staticmethod
    def list_providers() -> List[EmbeddingProvider]:
        """List all available providers."""
        return list_available_providers()

    @staticmethod
    def is_available(provider: EmbeddingProvider) -> bool:
        """Check if a provider is registered."""
        return is_provider_available(provider)
