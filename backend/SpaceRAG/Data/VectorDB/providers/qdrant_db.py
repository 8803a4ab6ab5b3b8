"""
Qdrant Vector Provider Implementation

Implements BaseVectorProvider on top of qdrant-client's AsyncQdrantClient.

Qdrant point ids must be unsigned integers or UUIDs, so each vector id
("<documentId>_chunk_<index>") is mapped to a deterministic uuid5 and
kept in the payload as "vector_id". Re-ingesting a document therefore
overwrites the same points.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    HnswConfigDiff,
    MatchValue,
    PointStruct,
    SearchParams,
    UpdateStatus,
    VectorParams,
)

from SpaceRAG.Data.VectorDB.base import (
    BaseVectorProvider,
    CollectionSchema,
    CollectionStats,
    DeleteFilter,
    MetricType,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VectorProviderType,
)
from SpaceRAG.Data.VectorDB.configs import QdrantConfig
from SpaceRAG.exceptions import InsertError

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 100
VECTOR_ID_KEY = "vector_id"
CONTENT_KEY = "content"

_POINT_NAMESPACE = uuid.NAMESPACE_URL

_DISTANCES = {
    MetricType.COSINE: Distance.COSINE,
    MetricType.IP: Distance.DOT,
    MetricType.L2: Distance.EUCLID,
}


def point_id(vector_id: str) -> str:
    """Deterministic Qdrant point id for a vector id."""
    return str(uuid.uuid5(_POINT_NAMESPACE, vector_id))


def build_qdrant_filter(filter: DeleteFilter) -> Filter:
    """Translate a DeleteFilter into Qdrant payload conditions."""
    if filter.vector_id is not None:
        conditions = [FieldCondition(key=VECTOR_ID_KEY, match=MatchValue(value=filter.vector_id))]
    else:
        conditions = [
            FieldCondition(key="originalDocId", match=MatchValue(value=filter.original_doc_id))
        ]
        if filter.filename is not None:
            conditions.append(
                FieldCondition(key="filename", match=MatchValue(value=filter.filename))
            )
    return Filter(must=conditions)


class QdrantVectorProvider(BaseVectorProvider):
    """
    Qdrant implementation of the vector provider interface.

    Supports three connection modes:
    1. In-memory: For testing and development ({"location": ":memory:"})
    2. Local file: Persistent local storage ({"path": "./qdrant_data"})
    3. Cloud/Server: Remote Qdrant instance ({"url": ..., "apiKey": ...})

    Example:
        provider = QdrantVectorProvider()
        await provider.initialize({"location": ":memory:", "metricType": "COSINE"})
    """

    PROVIDER_TYPE = VectorProviderType.QDRANT
    CONFIG_MODEL = QdrantConfig
    DEFAULT_CONFIG = {
        "metricType": MetricType.COSINE.value,
        "preferGrpc": False,
    }

    config: Optional[QdrantConfig]

    def __init__(self):
        super().__init__()
        self._client: Optional[AsyncQdrantClient] = None

    async def _connect(self, config: QdrantConfig) -> None:
        if config.location:
            self._client = AsyncQdrantClient(location=config.location)
        elif config.path:
            self._client = AsyncQdrantClient(path=config.path)
        else:
            self._client = AsyncQdrantClient(
                url=config.url,
                api_key=config.api_key,
                timeout=config.timeout,
                prefer_grpc=config.prefer_grpc,
            )
        logger.info(f"Qdrant client ready ({config.url or config.path or config.location})")

    @property
    def client(self) -> AsyncQdrantClient:
        self._require_initialized()
        return self._client

    # ==================== Collection Operations ====================

    async def has_collection(self, name: str) -> bool:
        return await self.client.collection_exists(collection_name=name)

    async def create_collection(self, schema: CollectionSchema) -> None:
        if await self.has_collection(schema.name):
            logger.info(f"Collection '{schema.name}' already exists, skipping creation")
            return

        hnsw_config = None
        if self.config.hnsw_m is not None or self.config.ef_construction is not None:
            hnsw_config = HnswConfigDiff(
                m=self.config.hnsw_m,
                ef_construct=self.config.ef_construction,
            )

        await self.client.create_collection(
            collection_name=schema.name,
            vectors_config=VectorParams(
                size=schema.dimension,
                distance=_DISTANCES[self.metric_type],
            ),
            hnsw_config=hnsw_config,
        )
        logger.info(
            f"Created collection '{schema.name}' "
            f"(dim={schema.dimension}, metric={self.metric_type.value})"
        )

    async def delete_collection(self, name: str) -> None:
        if not await self.has_collection(name):
            logger.info(f"Collection '{name}' does not exist, nothing to drop")
            return
        await self.client.delete_collection(collection_name=name)
        logger.info(f"Dropped collection '{name}'")

    async def list_collections(self) -> List[str]:
        collections = await self.client.get_collections()
        return [c.name for c in collections.collections]

    async def get_collection_stats(self, name: str) -> CollectionStats:
        client = self.client
        info = await client.get_collection(collection_name=name)

        vectors_config = info.config.params.vectors
        if isinstance(vectors_config, VectorParams):
            dimension = vectors_config.size
        else:
            # Named vectors - get the first one
            dimension = next(iter(vectors_config.values())).size

        count = await client.count(collection_name=name, exact=True)
        return CollectionStats(count=count.count, dimension=dimension)

    # ==================== Vector Operations ====================

    async def insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        if not documents:
            return

        client = self.client
        written = 0
        for i in range(0, len(documents), INSERT_BATCH_SIZE):
            batch = documents[i:i + INSERT_BATCH_SIZE]
            points = [
                PointStruct(
                    id=point_id(doc.id),
                    vector=self._prepare_vector(doc.vector),
                    payload={
                        **doc.metadata,
                        VECTOR_ID_KEY: doc.id,
                        CONTENT_KEY: doc.content,
                    },
                )
                for doc in batch
            ]

            try:
                result = await client.upsert(
                    collection_name=collection_name,
                    points=points,
                    wait=True,
                )
            except Exception as e:
                raise InsertError(collection_name, len(documents), written, cause=e) from e

            if result.status != UpdateStatus.COMPLETED:
                raise InsertError(collection_name, len(documents), written)
            written += len(points)

        logger.debug(f"Wrote {written} vectors to '{collection_name}'")

    async def delete(self, collection_name: str, filter: DeleteFilter) -> int:
        client = self.client
        qdrant_filter = build_qdrant_filter(filter)

        matched = await client.count(
            collection_name=collection_name,
            count_filter=qdrant_filter,
            exact=True,
        )
        if matched.count == 0:
            logger.info(f"No vectors matched delete in '{collection_name}'")
            return 0

        await client.delete(
            collection_name=collection_name,
            points_selector=qdrant_models.FilterSelector(filter=qdrant_filter),
            wait=True,
        )
        logger.info(f"Deleted {matched.count} vectors from '{collection_name}'")
        return matched.count

    async def search(
        self,
        collection_name: str,
        vector: Sequence[float],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        options = options or SearchOptions()
        if options.ef is None and self.config.ef is not None:
            breadth = self.config.ef
        else:
            breadth = self._search_breadth(options)

        response = await self.client.query_points(
            collection_name=collection_name,
            query=self._prepare_vector(vector),
            limit=options.top_k,
            search_params=SearchParams(hnsw_ef=breadth),
            with_payload=True,
            with_vectors=False,
        )

        hits = []
        for point in response.points:
            payload: Dict[str, Any] = dict(point.payload or {})
            vector_id = payload.pop(VECTOR_ID_KEY, str(point.id))
            content = payload.pop(CONTENT_KEY, "")
            raw = point.score
            if self.metric_type == MetricType.L2:
                # Euclidean scores are distances; only the magnitude is meaningful
                raw = abs(raw)
            hits.append((vector_id, content, raw, payload))
        return self._rank_results(hits, options)

    # ==================== Lifecycle ====================

    async def cleanup(self) -> None:
        client, self._client = self._client, None
        self._initialized = False
        if client is None:
            return
        await client.close()
        logger.debug("Qdrant client closed")
