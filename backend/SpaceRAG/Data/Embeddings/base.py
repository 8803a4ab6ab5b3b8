"""
Embeddings Base Module

Abstractions between the RAG pipeline and embedding vendors:
- EmbeddingProvider: Enum of embedding model vendors in the catalogue
- EmbeddingInputType: Query / document hint for vendors that use one
- EmbeddingConfig: Settings of one embedder instance
- BaseEmbeddings: What the RAG pipeline needs from an embedder
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EmbeddingProvider(str, Enum):
    """Embedding model vendors; values match the "<provider>/" model id prefix."""
    OPENAI = "openai"
    COHERE = "cohere"
    GOOGLE = "google"
    VOYAGE = "voyage"
    MISTRAL = "mistral"


class EmbeddingInputType(str, Enum):
    """Asymmetric retrieval hint: stored chunks vs. incoming questions."""
    SEARCH_DOCUMENT = "search_document"  # chunks written at ingest
    SEARCH_QUERY = "search_query"        # query text at retrieval


@dataclass
class EmbeddingConfig:
    """
    Settings for one embedder instance, built from a space's model id and dimension.

    Attributes:
        provider: The embedding provider to use
        model_name: Vendor model name, without the "<provider>/" prefix
        api_key: API key for the provider (falls back to the environment)
        dimension: Requested output dimension
        batch_size: Maximum batch size for embedding requests
        timeout: Request timeout in seconds
        truncate: How to handle texts exceeding max length ("START", "END", "NONE")
        extra_config: Additional provider-specific configuration
    """
    provider: EmbeddingProvider
    model_name: str
    api_key: Optional[str] = None
    dimension: Optional[int] = None
    batch_size: int = 96
    timeout: int = 60
    truncate: str = "END"
    extra_config: Dict[str, Any] = field(default_factory=dict)


class BaseEmbeddings(ABC):
    """
    Abstract base class for embedding model implementations.

    The RAG service only relies on two facts: embed_documents returns one
    vector per input text, in order, and every vector has `dimension`
    components.
    """

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self._initialize_client()

    @abstractmethod
    def _initialize_client(self) -> None:
        """Create the vendor SDK client(s); raise if credentials are missing."""
        pass

    @property
    @abstractmethod
    def provider(self) -> EmbeddingProvider:
        """Vendor serving this embedder."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of every vector returned; must equal the space's embedding_dim."""
        pass

    @abstractmethod
    def embed_query(
        self,
        text: str,
        input_type: Optional[EmbeddingInputType] = None
    ) -> List[float]:
        """Embed a retrieval query (SEARCH_QUERY unless overridden)."""
        pass

    @abstractmethod
    async def async_embed_query(
        self,
        text: str,
        input_type: Optional[EmbeddingInputType] = None
    ) -> List[float]:
        """
        Embed a retrieval query without blocking the event loop.

        Used by RAGService.query.
        """
        pass

    @abstractmethod
    def embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        """
        Embed chunk texts (SEARCH_DOCUMENT unless overridden).

        Args:
            texts: Chunk contents in ingest order
            input_type: Override of the retrieval hint
            batch_size: Upper bound on texts per vendor request

        Returns:
            One vector per text, in the same order
        """
        pass

    @abstractmethod
    async def async_embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        """Event-loop friendly embed_documents; used by the ingest pipeline."""
        pass
