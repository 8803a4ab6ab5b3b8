"""
Embeddings Registry

Maps embedding providers to their implementations.
"""

from typing import Dict, List, Type

from SpaceRAG.Data.Embeddings.base import BaseEmbeddings, EmbeddingProvider
from SpaceRAG.exceptions import ProviderNotImplementedError


# Provider implementation registry
_PROVIDER_REGISTRY: Dict[EmbeddingProvider, Type[BaseEmbeddings]] = {}
_DEFAULTS_LOADED = False


def _load_default_providers() -> None:
    """Load default provider implementations."""
    global _DEFAULTS_LOADED

    if _DEFAULTS_LOADED:
        return

    # Import providers lazily to avoid circular imports
    from SpaceRAG.Data.Embeddings.providers.cohere_embeddings import CohereEmbeddings

    _PROVIDER_REGISTRY.setdefault(EmbeddingProvider.COHERE, CohereEmbeddings)
    _DEFAULTS_LOADED = True


def get_provider_class(provider: EmbeddingProvider) -> Type[BaseEmbeddings]:
    """
    Get the implementation class for a provider.

    Raises:
        ProviderNotImplementedError: If the provider is not registered
    """
    _load_default_providers()

    if provider not in _PROVIDER_REGISTRY:
        raise ProviderNotImplementedError(
            provider.value, [p.value for p in _PROVIDER_REGISTRY]
        )

    return _PROVIDER_REGISTRY[provider]


def register_provider(
    provider: EmbeddingProvider,
    implementation: Type[BaseEmbeddings],
    override: bool = False
) -> None:
    """
    Register a provider implementation.

    Raises:
        ValueError: If provider already registered and override is False
    """
    _load_default_providers()

    if provider in _PROVIDER_REGISTRY and not override:
        raise ValueError(
            f"Provider '{provider.value}' is already registered. "
            "Use override=True to replace."
        )

    _PROVIDER_REGISTRY[provider] = implementation


def unregister_provider(provider: EmbeddingProvider) -> None:
    """Remove a registration (no-op if absent)."""
    _load_default_providers()
    _PROVIDER_REGISTRY.pop(provider, None)


def list_available_providers() -> List[EmbeddingProvider]:
    """List all registered providers."""
    _load_default_providers()
    return list(_PROVIDER_REGISTRY.keys())


def is_provider_available(provider: EmbeddingProvider) -> bool:
    """Check if a provider is registered."""
    _load_default_providers()
    return provider in _PROVIDER_REGISTRY
