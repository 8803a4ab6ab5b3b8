"""
Test doubles shared by the test modules.

HashingEmbeddings is a deterministic bag-of-words embedder: every word is
hashed into one of `dimension` buckets and the counts are L2-normalized.
Texts sharing many words get a high cosine similarity, texts sharing none
get (almost) zero. No network access is needed.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import time
from typing import List, Optional, Tuple

from SpaceRAG.Data.Embeddings import (
    BaseEmbeddings,
    EmbeddingConfig,
    EmbeddingInputType,
    EmbeddingProvider,
)
from SpaceRAG.Data.VectorDB.metrics import normalize_l2

_WORD = re.compile(r"\w+")


class HashingEmbeddings(BaseEmbeddings):
    """Deterministic offline embedder."""

    def __init__(self, dimension: int = 512, delay: float = 0.0):
        self._delay = delay
        super().__init__(EmbeddingConfig(
            provider=EmbeddingProvider.COHERE,
            model_name="hashing",
            dimension=dimension,
        ))

    def _initialize_client(self) -> None:
        self._dimension = self.config.dimension

    @property
    def provider(self) -> EmbeddingProvider:
        return EmbeddingProvider.COHERE

    @property
    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self._dimension
        for word in _WORD.findall(text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).hexdigest()
            vector[int(digest, 16) % self._dimension] += 1.0
        return normalize_l2(vector)

    def embed_query(
        self,
        text: str,
        input_type: Optional[EmbeddingInputType] = None
    ) -> List[float]:
        return self._vector(text)

    async def async_embed_query(
        self,
        text: str,
        input_type: Optional[EmbeddingInputType] = None
    ) -> List[float]:
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._vector(text)

    def embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        return [self._vector(t) for t in texts]

    async def async_embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        if self._delay:
            await asyncio.sleep(self._delay)
        return [self._vector(t) for t in texts]


class RecordingEmbeddings(HashingEmbeddings):
    """HashingEmbeddings that records (first text, start, end) of every document batch."""

    def __init__(self, dimension: int = 512, delay: float = 0.05):
        super().__init__(dimension=dimension, delay=delay)
        self.calls: List[Tuple[str, float, float]] = []

    async def async_embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        start = time.monotonic()
        vectors = await super().async_embed_documents(texts, input_type, batch_size)
        self.calls.append((texts[0], start, time.monotonic()))
        return vectors


class WrongCountEmbeddings(HashingEmbeddings):
    """Returns one vector fewer than requested."""

    async def async_embed_documents(
        self,
        texts: List[str],
        input_type: Optional[EmbeddingInputType] = None,
        batch_size: Optional[int] = None
    ) -> List[List[float]]:
        vectors = await super().async_embed_documents(texts, input_type, batch_size)
        return vectors[:-1]
