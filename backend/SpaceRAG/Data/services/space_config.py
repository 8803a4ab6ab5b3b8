"""
Space Configuration

A space owns one collection and one vector store configuration. The RAG
service only reads space records; persisting them belongs to the caller.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from SpaceRAG.Data.VectorDB.base import VectorProviderType
from SpaceRAG.Data.VectorDB.registry import resolve_provider_type
from SpaceRAG.exceptions import SpaceNotFoundError


@dataclass
class SpaceConfig:
    """
    Vector store and embedding configuration of one space.

    Attributes:
        id: Space id; the collection name derives from it
        vector_provider: Declared vector store backend
        vector_config: Stored provider configuration (camelCase keys)
        embedding_model_id: "<provider>/<model>" catalogue id
        embedding_dim: Dimension of the space's vectors
        supported_dimensions: Dimensions offered by the embedding model, when
            the record carries them; otherwise the catalogue is consulted
    """
    id: str
    vector_provider: VectorProviderType
    vector_config: Dict[str, Any] = field(default_factory=dict)
    embedding_model_id: str = "cohere/embed-v4.0"
    embedding_dim: int = 1536
    supported_dimensions: Optional[List[int]] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SpaceConfig":
        """
        Build from a stored space record.

        Example:
            SpaceConfig.from_record({
                "id": "space-1",
                "vectorProvider": "MILVUS",
                "vectorConfig": {"url": "...", "token": "..."},
                "embeddingModel": {"id": "cohere/embed-v4.0", "dimensions": [256, 512, 1024, 1536]},
                "embeddingDim": 1024,
            })
        """
        model = record.get("embeddingModel") or {}
        dimensions = model.get("dimensions")
        return cls(
            id=record["id"],
            vector_provider=resolve_provider_type(record["vectorProvider"]),
            vector_config=dict(record.get("vectorConfig") or {}),
            embedding_model_id=model.get("id") or record.get("embeddingModelId"),
            embedding_dim=record["embeddingDim"],
            supported_dimensions=list(dimensions) if dimensions is not None else None,
        )


class SpaceConfigStore(ABC):
    """Read access to space records."""

    @abstractmethod
    async def get(self, space_id: str) -> SpaceConfig:
        """
        Return the configuration of a space.

        Raises:
            SpaceNotFoundError: If no such space exists
        """
        pass


class InMemorySpaceConfigStore(SpaceConfigStore):
    """Dictionary-backed store for tests and embedded use."""

    def __init__(self, spaces: Optional[Iterable[SpaceConfig]] = None):
        self._lock = threading.Lock()
        self._spaces: Dict[str, SpaceConfig] = {s.id: s for s in spaces or []}

    def put(self, space: SpaceConfig) -> None:
        with self._lock:
            self._spaces[space.id] = space

    def remove(self, space_id: str) -> None:
        with self._lock:
            self._spaces.pop(space_id, None)

    async def get(self, space_id: str) -> SpaceConfig:
        with self._lock:
            space = self._spaces.get(space_id)
        if space is None:
            raise SpaceNotFoundError(space_id)
        return space
