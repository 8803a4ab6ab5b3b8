"""
RAG Service

Facade over chunking, embedding and the vector providers of each space:
- ingest: chunk -> embed -> ensure collection -> insert, one job at a time
- query: embed -> search -> normalized, threshold-filtered sources
- delete_document / delete_file / clear_collection / list_collections

Every space maps to exactly one collection, named by get_collection_name().
Callers never pass collection names to these operations.

Example:
    store = InMemorySpaceConfigStore([space])
    service = RAGService(store)
    await service.ingest(space.id, [document])
    result = await service.query(space.id, "what is the refund policy?")
    await service.cleanup()
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from dotenv import load_dotenv

from SpaceRAG.Data.constants import COLLECTION_PREFIX, RAG_CONSTANTS
from SpaceRAG.Data.DocumentProcessors import Chunk, TextChunker
from SpaceRAG.Data.Embeddings import BaseEmbeddings, EmbeddingsFactory
from SpaceRAG.Data.VectorDB import (
    BaseVectorProvider,
    CollectionSchema,
    CollectionStats,
    DeleteFilter,
    SearchOptions,
    VectorDocument,
    VectorProviderFactory,
)
from SpaceRAG.Data.services.serial_executor import SerialJobExecutor
from SpaceRAG.Data.services.space_config import SpaceConfig, SpaceConfigStore
from SpaceRAG.Data.services.space_provider_cache import SpaceProviderCache
from SpaceRAG.Data.services.types import (
    DeleteOutcome,
    DocumentMetadata,
    IngestOptions,
    IngestStage,
    QueryOptions,
    QueryStage,
    RAGDocument,
    RAGIngestResult,
    RAGQueryResult,
    RAGSource,
)
from SpaceRAG.exceptions import (
    DeadlineExceededError,
    EmbeddingDimensionMismatchError,
    InvalidArgumentError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

EmbeddingsBuilder = Callable[[str, int], BaseEmbeddings]

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def get_collection_name(space_id: str) -> str:
    """
    Deterministic collection name of a space.

    Every character outside [A-Za-z0-9_] becomes "_", so "a-b" and "a_b"
    share a collection.

    Example:
        >>> get_collection_name("my-space-123")
        'space_my_space_123'
    """
    return COLLECTION_PREFIX + _UNSAFE_NAME_CHARS.sub("_", space_id)


def vector_id(document_id: str, chunk_index: int) -> str:
    """Stable id of a chunk's vector."""
    return f"{document_id}_chunk_{chunk_index}"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.environ.get(name)
    return float(value) if value else default


@dataclass
class RAGServiceConfig:
    """
    Configuration for RAGService.

    Attributes:
        chunk_size: Default characters per chunk
        chunk_overlap: Default characters shared by consecutive chunks
        top_k: Default number of sources per query
        score_threshold: Default minimum normalized score per query
        provider_cache_max_entries: Bound on cached providers (None = unbounded)
        provider_cache_ttl_seconds: Idle lifetime of cached providers (None = forever)
    """
    chunk_size: int = RAG_CONSTANTS["CHUNK_SIZE"]["DEFAULT"]
    chunk_overlap: int = RAG_CONSTANTS["CHUNK_OVERLAP"]["DEFAULT"]
    top_k: int = RAG_CONSTANTS["TOP_K"]["DEFAULT"]
    score_threshold: float = RAG_CONSTANTS["SCORE_THRESHOLD"]["DEFAULT"]
    provider_cache_max_entries: Optional[int] = None
    provider_cache_ttl_seconds: Optional[float] = None

    @classmethod
    def from_env(cls) -> "RAGServiceConfig":
        """Create configuration from environment variables (and a .env file)."""
        load_dotenv()
        return cls(
            chunk_size=_env_int("RAG_CHUNK_SIZE", cls.chunk_size),
            chunk_overlap=_env_int("RAG_CHUNK_OVERLAP", cls.chunk_overlap),
            top_k=_env_int("RAG_TOP_K", cls.top_k),
            score_threshold=_env_float("RAG_SCORE_THRESHOLD", cls.score_threshold),
            provider_cache_max_entries=_env_int("RAG_PROVIDER_CACHE_MAX_ENTRIES", None),
            provider_cache_ttl_seconds=_env_float("RAG_PROVIDER_CACHE_TTL_SECONDS", None),
        )


class _Deadline:
    """Remaining time budget of one call, shared by all its suspension points."""

    def __init__(self, timeout: Optional[float]):
        if timeout is not None and timeout <= 0:
            raise InvalidArgumentError(f"timeout must be > 0 (got {timeout})")
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    async def wait(self, awaitable: Awaitable[T]) -> T:
        """Await within the remaining budget; raises asyncio.TimeoutError."""
        if self._expires_at is None:
            return await awaitable
        remaining = self._expires_at - time.monotonic()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(awaitable, remaining)

    async def run(self, stage: str, awaitable: Awaitable[T]) -> T:
        """Await within the remaining budget, naming the stage on expiry."""
        try:
            return await self.wait(awaitable)
        except DeadlineExceededError:
            raise
        except asyncio.TimeoutError:
            raise DeadlineExceededError(stage) from None


class _IngestJob:
    """One queued ingest call; tracks its current stage for logging and deadlines."""

    def __init__(
        self,
        service: "RAGService",
        space_id: str,
        documents: Sequence[RAGDocument],
        options: IngestOptions,
        deadline: _Deadline,
    ):
        self.service = service
        self.space_id = space_id
        self.documents = documents
        self.options = options
        self.deadline = deadline
        self.stage = IngestStage.QUEUED
        self.failed_at: Optional[IngestStage] = None

    def _enter(self, stage: IngestStage) -> None:
        self.stage = stage
        logger.debug(f"Ingest for space '{self.space_id}': {stage.value}")

    async def _step(self, awaitable: Awaitable[T]) -> T:
        return await self.deadline.run(self.stage.value, awaitable)

    async def run(self) -> RAGIngestResult:
        try:
            return await self._run()
        except Exception as e:
            self.failed_at = self.stage
            self._enter(IngestStage.FAILED)
            logger.error(
                f"Ingest for space '{self.space_id}' failed during {self.failed_at.value}: {e}"
            )
            raise

    async def _run(self) -> RAGIngestResult:
        self._enter(IngestStage.RESOLVING_PROVIDER)
        async with self.service._lease(self.space_id, self.deadline, self.stage.value) as (
            space,
            provider,
        ):
            return await self._write(space, provider)

    async def _write(self, space: SpaceConfig, provider: BaseVectorProvider) -> RAGIngestResult:
        service = self.service
        collection_name = get_collection_name(self.space_id)

        self._enter(IngestStage.CHUNKING)
        pending = service._build_chunks(self.documents, self.options)
        document_ids = [doc.id for doc in self.documents]
        if not pending:
            self._enter(IngestStage.DONE)
            logger.info(f"Nothing to ingest for space '{self.space_id}' (no content)")
            return RAGIngestResult(document_ids, 0, collection_name)

        self._enter(IngestStage.EMBEDDING)
        embedder = service._get_embedder(space)
        vectors = await self._step(
            embedder.async_embed_documents([content for _, content, _ in pending])
        )
        service._check_vectors(vectors, len(pending), space.embedding_dim)

        # Collection is only created once embedding succeeded
        self._enter(IngestStage.COLLECTION_ENSURING)
        await self._step(service._ensure_collection(provider, collection_name, space))

        self._enter(IngestStage.INSERTING)
        records = [
            VectorDocument(id=vid, vector=list(vector), content=content, metadata=metadata)
            for (vid, content, metadata), vector in zip(pending, vectors)
        ]
        await self._step(provider.insert(collection_name, records))

        self._enter(IngestStage.DONE)
        logger.info(
            f"Ingested {len(self.documents)} documents ({len(records)} chunks) "
            f"into '{collection_name}'"
        )
        return RAGIngestResult(document_ids, len(records), collection_name)


class RAGService:
    """
    Space-scoped RAG facade.

    Each instance owns its provider cache, its ingest executor and its
    embedder cache; there is no module-level instance. Ingests on one
    instance run strictly one after another in submission order. Queries
    are not serialized and may or may not see an in-flight ingest.

    Every public coroutine accepts `timeout` (seconds). The budget covers
    every suspension point of the call and expiry raises
    DeadlineExceededError naming the stage.
    """

    def __init__(
        self,
        space_store: SpaceConfigStore,
        config: Optional[RAGServiceConfig] = None,
        embeddings_factory: Optional[EmbeddingsBuilder] = None,
        provider_factory: Any = None,
        provider_cache: Optional[SpaceProviderCache] = None,
    ):
        """
        Initialize the RAG service.

        Args:
            space_store: Source of space configurations
            config: Service configuration (read from the environment if not provided)
            embeddings_factory: Builds an embedder from (model_id, dimension)
            provider_factory: Object with an async create(provider_type, config)
            provider_cache: Pre-configured provider cache (optional)
        """
        self.config = config or RAGServiceConfig.from_env()
        self._space_store = space_store
        self._embeddings_factory = embeddings_factory or EmbeddingsFactory.create_for_model
        self._provider_factory = provider_factory or VectorProviderFactory
        self._provider_cache = provider_cache or SpaceProviderCache(
            max_entries=self.config.provider_cache_max_entries,
            ttl_seconds=self.config.provider_cache_ttl_seconds,
        )
        self._chunker = TextChunker(self.config.chunk_size, self.config.chunk_overlap)
        self._executor = SerialJobExecutor(name="ingest")
        self._embedders: Dict[Tuple[str, int], BaseEmbeddings] = {}
        self._embedders_lock = threading.Lock()

    @property
    def provider_cache(self) -> SpaceProviderCache:
        return self._provider_cache

    # ==================== Internals ====================

    @asynccontextmanager
    async def _lease(
        self,
        space_id: str,
        deadline: _Deadline,
        stage: str = "resolving-provider",
    ) -> AsyncIterator[Tuple[SpaceConfig, BaseVectorProvider]]:
        """Resolve the space and hold its provider until the block exits."""
        space = await deadline.run(stage, self._space_store.get(space_id))
        provider = await deadline.run(
            stage, self._provider_cache.acquire(space, self._provider_factory)
        )
        try:
            yield space, provider
        finally:
            await self._provider_cache.release(provider)

    def _get_embedder(self, space: SpaceConfig) -> BaseEmbeddings:
        key = (space.embedding_model_id, space.embedding_dim)
        with self._embedders_lock:
            embedder = self._embedders.get(key)
            if embedder is None:
                embedder = self._embeddings_factory(*key)
                self._embedders[key] = embedder
            return embedder

    def _build_chunks(
        self,
        documents: Sequence[RAGDocument],
        options: IngestOptions,
    ) -> List[Tuple[str, str, Dict[str, Any]]]:
        """Chunk every document into (vector id, content, metadata) triples."""
        pending: List[Tuple[str, str, Dict[str, Any]]] = []
        for doc in documents:
            if not isinstance(doc.id, str) or not doc.id:
                raise InvalidArgumentError(f"document id must be a non-empty string (got {doc.id!r})")

            chunks = self._chunker.chunk(doc.content, options.chunk_size, options.chunk_overlap)
            base = doc.metadata.to_dict()
            for chunk in chunks:
                metadata = {
                    **base,
                    "chunkIndex": chunk.index,
                    "totalChunks": len(chunks),
                    "originalDocId": doc.id,
                }
                pending.append((vector_id(doc.id, chunk.index), chunk.content, metadata))
        return pending

    @staticmethod
    def _check_vectors(vectors: Sequence[Sequence[float]], expected_count: int, dimension: int) -> None:
        if len(vectors) != expected_count:
            raise EmbeddingDimensionMismatchError(
                expected_count, len(vectors), context="embedding count"
            )
        for vector in vectors:
            if len(vector) != dimension:
                raise EmbeddingDimensionMismatchError(dimension, len(vector))

    @staticmethod
    async def _ensure_collection(
        provider: BaseVectorProvider,
        collection_name: str,
        space: SpaceConfig,
    ) -> None:
        if await provider.has_collection(collection_name):
            stats = await provider.get_collection_stats(collection_name)
            if stats.dimension and stats.dimension != space.embedding_dim:
                raise EmbeddingDimensionMismatchError(
                    stats.dimension,
                    space.embedding_dim,
                    context=f"collection '{collection_name}'",
                )
            return

        await provider.create_collection(CollectionSchema(
            name=collection_name,
            dimension=space.embedding_dim,
            description=f"Documents of space {space.id}",
        ))

    # ==================== Ingest ====================

    async def ingest(
        self,
        space_id: str,
        documents: Sequence[RAGDocument],
        options: Optional[IngestOptions] = None,
        timeout: Optional[float] = None,
    ) -> RAGIngestResult:
        """
        Chunk, embed and store documents in the space's collection.

        Calls on one service run one at a time, in submission order.
        Re-ingesting a document id overwrites its chunks.

        Args:
            space_id: Target space
            documents: Documents to ingest
            options: Chunking overrides
            timeout: Seconds for the whole call, queue wait included

        Returns:
            RAGIngestResult with the document ids and chunk count

        Raises:
            InvalidArgumentError: Bad chunk parameters or document ids
            UnsupportedEmbeddingDimensionError: Space dimension not offered by its model
            EmbeddingDimensionMismatchError: Embedder or existing collection disagrees
            InsertError: The batch could not be written
            DeadlineExceededError: The timeout expired
        """
        options = options or IngestOptions()
        deadline = _Deadline(timeout)
        job = _IngestJob(self, space_id, list(documents), options, deadline)
        logger.debug(f"Ingest for space '{space_id}': {IngestStage.QUEUED.value}")

        try:
            return await deadline.wait(self._executor.submit(job.run))
        except DeadlineExceededError:
            raise
        except asyncio.TimeoutError:
            raise DeadlineExceededError((job.failed_at or job.stage).value) from None

    # ==================== Query ====================

    async def query(
        self,
        space_id: str,
        query_text: str,
        options: Optional[QueryOptions] = None,
        timeout: Optional[float] = None,
    ) -> RAGQueryResult:
        """
        Retrieve the chunks most similar to a query.

        Args:
            space_id: Space to search
            query_text: Natural-language query
            options: top_k / score_threshold overrides
            timeout: Seconds for the whole call

        Returns:
            RAGQueryResult whose sources all have score >= the threshold,
            best first. A space without a collection yields no sources.
        """
        if not isinstance(query_text, str) or not query_text.strip():
            raise InvalidArgumentError("query_text must be a non-empty string")

        options = options or QueryOptions()
        search_options = SearchOptions(
            top_k=options.top_k if options.top_k is not None else self.config.top_k,
            score_threshold=(
                options.score_threshold if options.score_threshold is not None
                else self.config.score_threshold
            ),
            query_text=query_text,
        )
        deadline = _Deadline(timeout)
        collection_name = get_collection_name(space_id)
        stage = QueryStage.RESOLVING_PROVIDER

        try:
            async with self._lease(space_id, deadline, stage.value) as (space, provider):
                if not await deadline.run(stage.value, provider.has_collection(collection_name)):
                    logger.info(f"No collection for space '{space_id}', returning no sources")
                    return RAGQueryResult(sources=[], query=query_text, total_results=0)

                stage = QueryStage.EMBEDDING_QUERY
                logger.debug(f"Query for space '{space_id}': {stage.value}")
                vector = await deadline.run(
                    stage.value, self._get_embedder(space).async_embed_query(query_text)
                )
                self._check_vectors([vector], 1, space.embedding_dim)

                stage = QueryStage.SEARCHING
                logger.debug(f"Query for space '{space_id}': {stage.value}")
                results = await deadline.run(
                    stage.value, provider.search(collection_name, vector, search_options)
                )

            stage = QueryStage.NORMALIZING
            sources = [
                RAGSource(
                    id=r.id,
                    content=r.content,
                    score=r.score,
                    distance=r.distance,
                    metadata=DocumentMetadata.from_dict(r.metadata),
                )
                for r in results
                # Providers registered by callers may skip the threshold
                if r.score >= search_options.score_threshold
            ]
            sources.sort(key=lambda s: s.score, reverse=True)
            sources = sources[:search_options.top_k]
        except Exception as e:
            logger.error(f"Query for space '{space_id}' failed during {stage.value}: {e}")
            raise

        logger.debug(f"Query for space '{space_id}': {QueryStage.DONE.value} ({len(sources)} sources)")
        return RAGQueryResult(sources=sources, query=query_text, total_results=len(sources))

    # ==================== Delete ====================

    async def _delete(
        self,
        space_id: str,
        filter: DeleteFilter,
        timeout: Optional[float],
    ) -> int:
        deadline = _Deadline(timeout)
        collection_name = get_collection_name(space_id)
        async with self._lease(space_id, deadline) as (_, provider):
            if not await deadline.run("deleting", provider.has_collection(collection_name)):
                logger.info(f"No collection for space '{space_id}', nothing to delete")
                return 0
            return await deadline.run("deleting", provider.delete(collection_name, filter))

    async def delete_document(
        self,
        space_id: str,
        document_id: str,
        timeout: Optional[float] = None,
    ) -> int:
        """
        Delete every chunk of a document from the space's collection.

        Returns:
            Number of vectors removed; zero matches is not an error
        """
        return await self._delete(space_id, DeleteFilter.by_document(document_id), timeout)

    async def delete_file(
        self,
        space_id: str,
        document_id: str,
        filename: str,
        timeout: Optional[float] = None,
    ) -> int:
        """Delete the chunks of one file of a document."""
        return await self._delete(space_id, DeleteFilter.by_file(document_id, filename), timeout)

    async def delete_document_from_spaces(
        self,
        space_ids: Iterable[str],
        document_id: str,
        timeout: Optional[float] = None,
    ) -> DeleteOutcome:
        """
        Delete a document from several spaces, continuing past failures.

        Returns:
            DeleteOutcome listing the spaces that succeeded and the error
            of every space that failed
        """
        outcome = DeleteOutcome()
        for space_id in space_ids:
            try:
                await self.delete_document(space_id, document_id, timeout=timeout)
            except Exception as e:
                logger.warning(
                    f"Deleting document '{document_id}' from space '{space_id}' failed: {e}"
                )
                outcome.failed[space_id] = str(e)
            else:
                outcome.succeeded.append(space_id)
        return outcome

    # ==================== Collection Management ====================

    async def clear_collection(self, space_id: str, timeout: Optional[float] = None) -> None:
        """Drop the space's collection and evict its cached provider."""
        deadline = _Deadline(timeout)
        collection_name = get_collection_name(space_id)
        try:
            async with self._lease(space_id, deadline) as (_, provider):
                await deadline.run(
                    "dropping-collection", provider.delete_collection(collection_name)
                )
        finally:
            await self._provider_cache.evict(space_id)
        logger.info(f"Cleared collection '{collection_name}' of space '{space_id}'")

    async def list_collections(self, space_id: str, timeout: Optional[float] = None) -> List[str]:
        """List the collections visible through the space's provider."""
        deadline = _Deadline(timeout)
        async with self._lease(space_id, deadline) as (_, provider):
            return await deadline.run("listing-collections", provider.list_collections())

    async def get_collection_stats(
        self,
        space_id: str,
        timeout: Optional[float] = None,
    ) -> CollectionStats:
        """
        Row count and dimension of the space's collection.

        A space without a collection reports zero rows at its configured dimension.
        """
        deadline = _Deadline(timeout)
        collection_name = get_collection_name(space_id)
        async with self._lease(space_id, deadline) as (space, provider):
            if not await deadline.run("reading-stats", provider.has_collection(collection_name)):
                return CollectionStats(count=0, dimension=space.embedding_dim)
            return await deadline.run(
                "reading-stats", provider.get_collection_stats(collection_name)
            )

    # ==================== Utilities ====================

    def chunk_text(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> List[Chunk]:
        """Split text with the service's chunking defaults."""
        return self._chunker.chunk(text, chunk_size, overlap)

    async def cleanup(self) -> None:
        """Stop the ingest executor and clean up every cached provider."""
        await self._executor.close()
        await self._provider_cache.cleanup_all()
        with self._embedders_lock:
            self._embedders.clear()
        logger.info("RAG service cleaned up")
