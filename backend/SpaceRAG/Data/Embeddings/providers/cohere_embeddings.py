"""
Cohere Embeddings

Embeds space chunks and queries with Cohere's v2 embed endpoint. embed-v4.0
honours the space's configured dimension through output_dimension; the
v3 models have a fixed size.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from cohere import AsyncClientV2, ClientV2

from SpaceRAG.Data.Embeddings.base import (
    BaseEmbeddings,
    EmbeddingInputType,
    EmbeddingProvider,
)

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 96


class CohereEmbeddings(BaseEmbeddings):
    """
    Cohere-backed embedder for spaces using a "cohere/..." model id.

    Supports:
    - embed-v4.0: 256 / 512 / 1024 / 1536 dimensions (output_dimension)
    - embed-english-v3.0: 1024 dimensions, English text
    - embed-multilingual-v3.0: 1024 dimensions, 100+ languages

    Documents are embedded with input_type "search_document" and queries
    with "search_query".

    Example:
        embeddings = EmbeddingsFactory.create_for_model("cohere/embed-v4.0", 1024)
        vectors = await embeddings.async_embed_documents(["chunk one", "chunk two"])
    """

    ENV_VAR_NAME: str = "COHERE_API_KEY"

    _client: ClientV2
    _async_client: AsyncClientV2
    _dimension: int

    # Models accepting an output_dimension argument
    _CONFIGURABLE_MODELS = {"embed-v4.0"}

    # Native output sizes when no dimension is requested
    _DIMENSION_MAP = {
        "embed-v4.0": 1536,
        "embed-english-v3.0": 1024,
        "embed-multilingual-v3.0": 1024,
    }

    def _initialize_client(self) -> None:
        """Build the sync and async v2 clients from the configured or environment key."""
        api_key = self.config.api_key or os.environ.get(self.ENV_VAR_NAME)

        if not api_key:
            raise ValueError(
                f"Cohere API key is required. Provide it via config or "
                f"set the {self.ENV_VAR_NAME} environment variable."
            )

        self._client = ClientV2(api_key=api_key, timeout=self.config.timeout)
        self._async_client = AsyncClientV2(api_key=api_key, timeout=self.config.timeout)

        self._dimension = (
            self.config.dimension or
            self._DIMENSION_MAP.get(self.config.model_name, 1024)
        )

    @property
    def provider(self) -> EmbeddingProvider:
        return EmbeddingProvider.COHERE

    @property
    def dimension(self) -> int:
        return self._dimension

    def _request_kwargs(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType],
        default: EmbeddingInputType,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "texts": texts,
            "model": self.config.model_name,
            "input_type": (input_type or default).value,
            "embedding_types": ["float"],
            "truncate": self.config.truncate,
        }
        if self.config.model_name in self._CONFIGURABLE_MODELS:
            kwargs["output_dimension"] = self._dimension
        return kwargs

    def _batch_size(self, batch_size: Optional[int]) -> int:
        return min(batch_size or self.config.batch_size, MAX_BATCH_SIZE)

    def embed_query(
        self,
        text: str,
        input_type: Optional[EmbeddingInputType] = None
    ) -> List[float]:
        response = self._client.embed(
            **self._request_kwargs([text], input_type, EmbeddingInputType.SEARCH_QUERY)
        )
        # V2 API returns embeddings in response.embeddings.float_
        return response.embeddings.float_[0]

    async def async_embed_query(
        self,
        text: str,
        input_type: Optional[EmbeddingInputType] = None
    ) -> List[float]:
        response = await self._async_client.embed(
            **self._request_kwargs([text], input_type, EmbeddingInputType.SEARCH_QUERY)
        )
        return response.embeddings.float_[0]

    def embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        """
        Embed multiple documents in batches of at most 96 texts.

        Returns:
            One vector per input text, in input order
        """
        if not texts:
            return []

        batch = self._batch_size(batch_size)
        all_embeddings: List[List[float]] = []
        for i in range(0, len(texts), batch):
            response = self._client.embed(**self._request_kwargs(
                texts[i:i + batch], input_type, EmbeddingInputType.SEARCH_DOCUMENT
            ))
            all_embeddings.extend(response.embeddings.float_)
        return all_embeddings

    async def async_embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        """Embed chunk texts in request-sized batches without blocking the loop."""
        if not texts:
            return []

        batch = self._batch_size(batch_size)
        all_embeddings: List[List[float]] = []
        for i in range(0, len(texts), batch):
            response = await self._async_client.embed(**self._request_kwargs(
                texts[i:i + batch], input_type, EmbeddingInputType.SEARCH_DOCUMENT
            ))
            all_embeddings.extend(response.embeddings.float_)

        logger.debug(f"Embedded {len(texts)} texts with {self.config.model_name}")
        return all_embeddings
