"""
Milvus Vector Provider Implementation

Implements BaseVectorProvider for Milvus and Zilliz Cloud on top of
pymilvus' MilvusClient. The client is blocking, so every call runs in the
default executor to keep the event loop free.

Collection schema (fixed for every space):
- id: VARCHAR(255) primary key, "<documentId>_chunk_<index>"
- vector: FLOAT_VECTOR(dimension)
- content: VARCHAR(65535)
- metadata: JSON

With enableFullTextSearch, content is analyzed and a BM25 function fills
an extra sparse_vector field. Searches that carry the query text then run
a hybrid search: the dense and BM25 rankings are fused by a weighted
ranker whose scores are already in [0, 1].
"""

from __future__ import annotations

import asyncio
import functools
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pymilvus import (
    AnnSearchRequest,
    DataType,
    Function,
    FunctionType,
    MilvusClient,
    WeightedRanker,
)

from SpaceRAG.Data.VectorDB.base import (
    BaseVectorProvider,
    CollectionSchema,
    CollectionStats,
    DeleteFilter,
    IndexType,
    MetricType,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VectorProviderType,
)
from SpaceRAG.Data.VectorDB.configs import MilvusConfig
from SpaceRAG.exceptions import InsertError

logger = logging.getLogger(__name__)

ID_MAX_LENGTH = 255
CONTENT_MAX_LENGTH = 65535
INSERT_BATCH_SIZE = 100

# Build-time defaults per index family; stored config values win
DEFAULT_INDEX_PARAMS: Dict[IndexType, Dict[str, int]] = {
    IndexType.FLAT: {},
    IndexType.HNSW: {"M": 16, "efConstruction": 200},
    IndexType.IVF_FLAT: {"nlist": 128},
    IndexType.IVF_SQ8: {"nlist": 128},
    IndexType.IVF_PQ: {"nlist": 128, "m": 8, "nbits": 8},
}
DEFAULT_NPROBE = 8

SPARSE_FIELD = "sparse_vector"
BM25_FUNCTION_NAME = "bm25_function"
# Share of the smallest sparse weights dropped when building / searching
BM25_DROP_RATIO_BUILD = 0.3
BM25_DROP_RATIO_SEARCH = 0.2

_ESCAPE_PATTERN = re.compile(r'[\\"]')


def escape_literal(value: str) -> str:
    """Escape a value for use inside a double-quoted filter literal."""
    return _ESCAPE_PATTERN.sub(lambda m: "\\" + m.group(0), value)


def build_filter_expression(filter: DeleteFilter) -> str:
    """
    Translate a DeleteFilter into a Milvus boolean expression.

    Every interpolated value is escaped, so a value can never close the
    string literal and inject extra clauses.
    """
    if filter.vector_id is not None:
        return f'id == "{escape_literal(filter.vector_id)}"'

    expr = f'metadata["originalDocId"] == "{escape_literal(filter.original_doc_id)}"'
    if filter.filename is not None:
        expr += f' && metadata["filename"] == "{escape_literal(filter.filename)}"'
    return expr


def build_index_params(config: MilvusConfig) -> Dict[str, int]:
    """Derive the full index build parameter set from the configured index type."""
    params = dict(DEFAULT_INDEX_PARAMS[config.index_type])
    overrides = {
        "M": config.hnsw_m,
        "efConstruction": config.ef_construction,
        "nlist": config.nlist,
        "m": config.pq_m,
        "nbits": config.nbits,
    }
    for key in params:
        if overrides.get(key) is not None:
            params[key] = overrides[key]
    return params


def build_search_params(config: MilvusConfig, options: SearchOptions) -> Dict[str, int]:
    """Runtime search parameters; graph breadth widens with top_k."""
    if config.index_type == IndexType.HNSW:
        ef = options.ef or config.ef or max(64, options.top_k * 4)
        # Milvus requires ef >= limit
        return {"ef": max(ef, options.top_k)}
    if config.index_type in (IndexType.IVF_FLAT, IndexType.IVF_SQ8, IndexType.IVF_PQ):
        return {"nprobe": config.nprobe or DEFAULT_NPROBE}
    return {}


def build_bm25_index_params(config: MilvusConfig) -> Dict[str, float]:
    """Build parameters of the sparse BM25 index."""
    return {
        "drop_ratio_build": BM25_DROP_RATIO_BUILD,
        "bm25_k1": config.bm25_k1,
        "bm25_b": config.bm25_b,
    }


class MilvusVectorProvider(BaseVectorProvider):
    """
    Milvus / Zilliz implementation of the vector provider interface.

    Example:
        provider = MilvusVectorProvider()
        await provider.initialize({
            "url": "https://in03-xxx.api.gcp-us-west1.zillizcloud.com",
            "token": "db_admin:password",
            "indexType": "HNSW",
            "metricType": "IP",
        })
        await provider.create_collection(CollectionSchema("space_abc", 1024))
    """

    PROVIDER_TYPE = VectorProviderType.MILVUS
    CONFIG_MODEL = MilvusConfig
    DEFAULT_CONFIG = {
        "database": "default",
        "indexType": IndexType.HNSW.value,
        "metricType": "IP",
        "M": 16,
        "efConstruction": 200,
    }

    config: Optional[MilvusConfig]

    def __init__(self):
        super().__init__()
        self._client: Optional[MilvusClient] = None

    async def _connect(self, config: MilvusConfig) -> None:
        kwargs: Dict[str, Any] = {
            "uri": config.url,
            "token": config.token,
            "db_name": config.database,
        }
        if config.timeout is not None:
            kwargs["timeout"] = config.timeout
        self._client = await self._run(MilvusClient, **kwargs)
        logger.info(f"Connected to Milvus at {config.url} (database={config.database})")

    async def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    @property
    def client(self) -> MilvusClient:
        self._require_initialized()
        return self._client

    # ==================== Collection Operations ====================

    async def has_collection(self, name: str) -> bool:
        return await self._run(self.client.has_collection, collection_name=name)

    async def create_collection(self, schema: CollectionSchema) -> None:
        client = self.client
        if await self.has_collection(schema.name):
            logger.info(f"Collection '{schema.name}' already exists, skipping creation")
            return

        milvus_schema = MilvusClient.create_schema(
            auto_id=False,
            enable_dynamic_field=False,
            description=schema.description or "",
        )
        milvus_schema.add_field(
            field_name="id", datatype=DataType.VARCHAR,
            is_primary=True, max_length=ID_MAX_LENGTH,
        )
        milvus_schema.add_field(
            field_name="vector", datatype=DataType.FLOAT_VECTOR, dim=schema.dimension,
        )
        full_text = self.config.enable_full_text_search
        content_options = {"enable_analyzer": True} if full_text else {}
        milvus_schema.add_field(
            field_name="content", datatype=DataType.VARCHAR, max_length=CONTENT_MAX_LENGTH,
            **content_options,
        )
        milvus_schema.add_field(field_name="metadata", datatype=DataType.JSON)
        if full_text:
            # Filled by Milvus from content; never written by insert()
            milvus_schema.add_field(field_name=SPARSE_FIELD, datatype=DataType.SPARSE_FLOAT_VECTOR)
            milvus_schema.add_function(Function(
                name=BM25_FUNCTION_NAME,
                function_type=FunctionType.BM25,
                input_field_names=["content"],
                output_field_names=[SPARSE_FIELD],
            ))

        index_params = client.prepare_index_params()
        index_params.add_index(
            field_name="vector",
            index_type=self.config.index_type.value,
            metric_type=self.metric_type.value,
            params=build_index_params(self.config),
        )
        if full_text:
            index_params.add_index(
                field_name=SPARSE_FIELD,
                index_type="SPARSE_INVERTED_INDEX",
                metric_type="BM25",
                params=build_bm25_index_params(self.config),
            )

        await self._run(
            client.create_collection,
            collection_name=schema.name,
            schema=milvus_schema,
            index_params=index_params,
        )
        await self._run(client.load_collection, collection_name=schema.name)
        logger.info(
            f"Created collection '{schema.name}' "
            f"(dim={schema.dimension}, index={self.config.index_type.value}, "
            f"metric={self.metric_type.value}, bm25={full_text})"
        )

    async def delete_collection(self, name: str) -> None:
        if not await self.has_collection(name):
            logger.info(f"Collection '{name}' does not exist, nothing to drop")
            return
        await self._run(self.client.drop_collection, collection_name=name)
        logger.info(f"Dropped collection '{name}'")

    async def list_collections(self) -> List[str]:
        return list(await self._run(self.client.list_collections))

    async def get_collection_stats(self, name: str) -> CollectionStats:
        client = self.client
        stats = await self._run(client.get_collection_stats, collection_name=name)
        description = await self._run(client.describe_collection, collection_name=name)

        dimension = 0
        for field_info in description.get("fields", []):
            if field_info.get("type") == DataType.FLOAT_VECTOR:
                dimension = int(field_info.get("params", {}).get("dim", 0))
                break

        return CollectionStats(count=int(stats.get("row_count", 0)), dimension=dimension)

    # ==================== Vector Operations ====================

    async def insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        if not documents:
            return

        client = self.client
        written = 0
        for i in range(0, len(documents), INSERT_BATCH_SIZE):
            batch = documents[i:i + INSERT_BATCH_SIZE]
            rows = [
                {
                    "id": doc.id,
                    "vector": self._prepare_vector(doc.vector),
                    "content": doc.content,
                    "metadata": doc.metadata,
                }
                for doc in batch
            ]

            try:
                # Upsert so a re-ingested document overwrites its chunks by id
                result = await self._run(client.upsert, collection_name=collection_name, data=rows)
            except Exception as e:
                raise InsertError(collection_name, len(documents), written, cause=e) from e

            count = _result_count(result, "upsert_count", len(rows))
            written += count
            if count != len(rows):
                raise InsertError(collection_name, len(documents), written)

        logger.debug(f"Wrote {written} vectors to '{collection_name}'")

    async def delete(self, collection_name: str, filter: DeleteFilter) -> int:
        expr = build_filter_expression(filter)
        result = await self._run(self.client.delete, collection_name=collection_name, filter=expr)
        deleted = _result_count(result, "delete_count", 0)
        logger.info(f"Deleted {deleted} vectors from '{collection_name}'")
        return deleted

    async def search(
        self,
        collection_name: str,
        vector: Sequence[float],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        options = options or SearchOptions()
        search_params = {
            "metric_type": self.metric_type.value,
            "params": build_search_params(self.config, options),
        }
        if self.config.enable_full_text_search and options.query_text:
            return await self._hybrid_search(collection_name, vector, options, search_params)

        response = await self._run(
            self.client.search,
            collection_name=collection_name,
            data=[self._prepare_vector(vector)],
            anns_field="vector",
            limit=options.top_k,
            output_fields=["content", "metadata"],
            search_params=search_params,
        )
        return self._rank_results(_read_hits(response), options)

    async def _hybrid_search(
        self,
        collection_name: str,
        vector: Sequence[float],
        options: SearchOptions,
        search_params: Dict[str, Any],
    ) -> List[SearchResult]:
        """Dense + BM25 search fused by a WeightedRanker."""
        dense = AnnSearchRequest(
            data=[self._prepare_vector(vector)],
            anns_field="vector",
            param=search_params,
            limit=options.top_k,
        )
        sparse = AnnSearchRequest(
            data=[options.query_text],
            anns_field=SPARSE_FIELD,
            param={"metric_type": "BM25", "params": {"drop_ratio_search": BM25_DROP_RATIO_SEARCH}},
            limit=options.top_k,
        )
        weight = self.config.full_text_weight
        response = await self._run(
            self.client.hybrid_search,
            collection_name=collection_name,
            reqs=[dense, sparse],
            ranker=WeightedRanker(1.0 - weight, weight),
            limit=options.top_k,
            output_fields=["content", "metadata"],
        )
        # Fused scores are similarities in [0, 1] whatever the dense metric
        return self._rank_results(_read_hits(response), options, metric=MetricType.IP)

    # ==================== Lifecycle ====================

    async def cleanup(self) -> None:
        client, self._client = self._client, None
        self._initialized = False
        if client is None:
            return
        await self._run(client.close)
        logger.debug("Milvus client closed")


def _read_hits(response: Any) -> List[Tuple[str, str, float, Dict[str, Any]]]:
    """(id, content, raw score, metadata) of the first query's hits."""
    hits = []
    for hit in (response[0] if response else []):
        entity = hit.get("entity") or {}
        hits.append((
            str(hit["id"]),
            entity.get("content", ""),
            hit["distance"],
            dict(entity.get("metadata") or {}),
        ))
    return hits


def _result_count(result: Any, key: str, default: int) -> int:
    """Read a mutation count from a pymilvus result (dict or id list)."""
    if isinstance(result, dict):
        return int(result.get(key, default))
    if isinstance(result, (list, tuple)):
        return len(result)
    return default
