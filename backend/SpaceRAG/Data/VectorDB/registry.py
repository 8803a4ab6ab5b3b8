"""
VectorDB Registry

Maps provider types to their implementations. Adding a backend means
registering a class here, not editing a dispatch switch.
"""

from typing import Dict, List, Type, Union

from SpaceRAG.Data.VectorDB.base import BaseVectorProvider, VectorProviderType
from SpaceRAG.exceptions import ProviderNotImplementedError


# Provider implementation registry
# Populated by register_provider() or lazily on first access
_PROVIDER_REGISTRY: Dict[VectorProviderType, Type[BaseVectorProvider]] = {}
_DEFAULTS_LOADED = False


def _load_default_providers() -> None:
    """Load default provider implementations."""
    global _DEFAULTS_LOADED

    if _DEFAULTS_LOADED:
        return

    # Import providers lazily to avoid circular imports
    from SpaceRAG.Data.VectorDB.providers.milvus_db import MilvusVectorProvider
    from SpaceRAG.Data.VectorDB.providers.qdrant_db import QdrantVectorProvider

    _PROVIDER_REGISTRY.setdefault(VectorProviderType.MILVUS, MilvusVectorProvider)
    _PROVIDER_REGISTRY.setdefault(VectorProviderType.QDRANT, QdrantVectorProvider)
    _DEFAULTS_LOADED = True


def _registered_names() -> List[str]:
    return [p.value for p in _PROVIDER_REGISTRY]


def resolve_provider_type(
    provider: Union[VectorProviderType, str],
) -> VectorProviderType:
    """
    Coerce a stored provider value into the enum.

    Raises:
        ProviderNotImplementedError: If the value names no known provider type
    """
    if isinstance(provider, VectorProviderType):
        return provider
    try:
        return VectorProviderType(str(provider).upper())
    except ValueError:
        _load_default_providers()
        raise ProviderNotImplementedError(str(provider), _registered_names()) from None


def get_provider_class(
    provider: Union[VectorProviderType, str],
) -> Type[BaseVectorProvider]:
    """
    Get the implementation class for a provider.

    Args:
        provider: The vector provider type

    Returns:
        The implementation class for the provider

    Raises:
        ProviderNotImplementedError: If the provider is not registered
    """
    _load_default_providers()
    provider = resolve_provider_type(provider)

    if provider not in _PROVIDER_REGISTRY:
        raise ProviderNotImplementedError(provider.value, _registered_names())

    return _PROVIDER_REGISTRY[provider]


def register_provider(
    provider: VectorProviderType,
    implementation: Type[BaseVectorProvider],
    override: bool = False
) -> None:
    """
    Register a provider implementation.

    Args:
        provider: The provider to register
        implementation: The implementation class
        override: Whether to override existing registration

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


def unregister_provider(provider: VectorProviderType) -> None:
    """Remove a registration (no-op if absent)."""
    _load_default_providers()
    _PROVIDER_REGISTRY.pop(provider, None)


def list_available_providers() -> List[VectorProviderType]:
    """
    List all available (registered) providers.

    Returns:
        List of registered VectorProviderType enums
    """
    _load_default_providers()
    return list(_PROVIDER_REGISTRY.keys())


def is_provider_available(provider: Union[VectorProviderType, str]) -> bool:
    """
    Check if a provider is available.

    Args:
        provider: The provider to check

    Returns:
        True if the provider is registered
    """
    _load_default_providers()
    try:
        provider = resolve_provider_type(provider)
    except ProviderNotImplementedError:
        return False
    return provider in _PROVIDER_REGISTRY
