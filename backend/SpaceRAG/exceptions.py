"""
SpaceRAG Exceptions

Error taxonomy shared by the chunker, the vector providers and the RAG facade:
- Validation errors (InvalidArgumentError, InvalidConfigurationError, ...)
  are raised locally and never retried.
- Provider errors coming from a vector backend propagate unchanged, except
  insert failures which are reported as one aggregate InsertError.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class SpaceRAGError(Exception):
    """Base class for all SpaceRAG errors."""


class InvalidArgumentError(SpaceRAGError, ValueError):
    """Raised when a caller passes an argument outside its valid range."""


class InvalidConfigurationError(SpaceRAGError, ValueError):
    """
    Raised when a provider or tenant configuration is invalid.

    Attributes:
        errors: Every violated field, not just the first one found.
    """
    def __init__(self, message: str, errors: Optional[Iterable[str]] = None):
        self.errors: List[str] = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class UnsupportedEmbeddingDimensionError(InvalidConfigurationError):
    """Raised when a space's embedding dimension is not offered by its model."""
    def __init__(self, model_id: str, dimension: int, supported: Iterable[int]):
        self.model_id = model_id
        self.dimension = dimension
        self.supported = list(supported)
        super().__init__(
            f"Unsupported embedding dimension for model '{model_id}'",
            [f"embeddingDim {dimension} is not one of {self.supported}"],
        )


class EmbeddingDimensionMismatchError(SpaceRAGError):
    """Raised when vectors do not have the dimension a space is configured for."""
    def __init__(self, expected: int, actual: int, context: str = "embedding"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{context} dimension mismatch: expected {expected}, got {actual}"
        )


class ProviderNotImplementedError(SpaceRAGError, NotImplementedError):
    """
    Raised when a vector provider type has no registered implementation.

    Attributes:
        provider: The requested provider type value.
        available: Registered provider type values.
    """
    def __init__(self, provider: str, available: Iterable[str]):
        self.provider = provider
        self.available = list(available)
        super().__init__(
            f"Provider '{provider}' is not registered. "
            f"Available providers: {self.available}"
        )


class ProviderNotInitializedError(SpaceRAGError, RuntimeError):
    """Raised when a provider is used before initialize() or after cleanup()."""


class UnsupportedFilterError(SpaceRAGError, ValueError):
    """Raised when a delete filter cannot be translated by a provider."""


class InsertError(SpaceRAGError):
    """
    Raised when a batch insert into a collection fails.

    Attributes:
        collection_name: Target collection.
        attempted: Number of documents in the insert call.
        written: Number of documents confirmed written before the failure.
    """
    def __init__(
        self,
        collection_name: str,
        attempted: int,
        written: int,
        cause: Optional[BaseException] = None,
    ):
        self.collection_name = collection_name
        self.attempted = attempted
        self.written = written
        self.cause = cause
        message = (
            f"Insert into '{collection_name}' failed: "
            f"{written}/{attempted} documents written"
        )
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message)


class SpaceNotFoundError(SpaceRAGError, LookupError):
    """Raised when no configuration exists for a space id."""
    def __init__(self, space_id: str):
        self.space_id = space_id
        super().__init__(f"Space '{space_id}' not found")


class DeadlineExceededError(SpaceRAGError, TimeoutError):
    """Raised when a caller-supplied deadline expires during an operation."""
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Deadline exceeded during {stage}")
