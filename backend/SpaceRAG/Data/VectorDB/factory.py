"""
VectorDB Factory

Factory class for creating vector provider instances from a space's
stored provider type and configuration.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from SpaceRAG.Data.VectorDB.base import BaseVectorProvider, VectorProviderType
from SpaceRAG.Data.VectorDB.registry import (
    get_provider_class,
    is_provider_available,
    list_available_providers,
    register_provider,
)
from SpaceRAG.exceptions import InvalidConfigurationError, ProviderNotImplementedError

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of VectorProviderFactory.validate()."""
    valid: bool
    errors: List[str] = field(default_factory=list)


class VectorProviderFactory:
    """
    Factory for creating vector provider instances.

    Provider defaults are merged under the stored configuration, so stored
    values always win. A provider never starts without stored configuration.

    Example:
        result = VectorProviderFactory.validate("MILVUS", {"url": "...", "token": "..."})
        if result.valid:
            provider = await VectorProviderFactory.create("MILVUS", config)
    """

    @staticmethod
    def merge_config(
        provider_type: Union[VectorProviderType, str],
        user_config: Optional[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Merge provider defaults with the stored configuration.

        Raises:
            ProviderNotImplementedError: If the provider is not registered
            InvalidConfigurationError: If no configuration was stored
        """
        provider_class = get_provider_class(provider_type)
        if not user_config:
            raise InvalidConfigurationError(
                f"Missing configuration for provider '{provider_class.PROVIDER_TYPE.value}'",
                ["config: a stored provider configuration is required"],
            )
        return {**provider_class.DEFAULT_CONFIG, **dict(user_config)}

    @staticmethod
    def validate(
        provider_type: Union[VectorProviderType, str],
        config: Optional[Mapping[str, Any]],
    ) -> ValidationResult:
        """
        Check a configuration without constructing or connecting anything.

        Never raises for a bad configuration; the result lists every
        violated field.
        """
        try:
            merged = VectorProviderFactory.merge_config(provider_type, config)
        except ProviderNotImplementedError as e:
            return ValidationResult(valid=False, errors=[str(e)])
        except InvalidConfigurationError as e:
            return ValidationResult(valid=False, errors=e.errors)

        errors = get_provider_class(provider_type).validate_config(merged)
        return ValidationResult(valid=not errors, errors=errors)

    @staticmethod
    async def create(
        provider_type: Union[VectorProviderType, str],
        user_config: Optional[Mapping[str, Any]],
    ) -> BaseVectorProvider:
        """
        Construct and initialize a provider.

        Args:
            provider_type: The space's declared provider
            user_config: The space's stored provider configuration

        Returns:
            An initialized BaseVectorProvider

        Raises:
            ProviderNotImplementedError: If the provider is not registered
            InvalidConfigurationError: If the configuration is missing or invalid
        """
        provider_class = get_provider_class(provider_type)
        merged = VectorProviderFactory.merge_config(provider_type, user_config)

        provider = provider_class()
        await provider.initialize(merged)
        logger.info(f"Created {provider_class.PROVIDER_TYPE.value} provider")
        return provider

    @staticmethod
    def register_provider(
        provider: VectorProviderType,
        implementation: Type[BaseVectorProvider],
        override: bool = False
    ) -> None:
        """Register a custom provider implementation."""
        register_provider(provider, implementation, override)

    @staticmethod
    def list_providers() -> List[VectorProviderType]:
        """List all available providers."""
        return list_available_providers()

    @staticmethod
    def is_available(provider: Union[VectorProviderType, str]) -> bool:
        """Check if a provider is registered."""
        return is_provider_available(provider)
