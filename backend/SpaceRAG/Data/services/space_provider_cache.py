"""
Space Provider Cache

Keeps one initialized vector provider per space so queries and ingests
reuse the backend connection. The space's embedding dimension is
re-validated on every lookup, since the record can change while the
connection stays cached.

Eviction is optional: max_entries bounds the cache (least recently used
entry goes first) and ttl_seconds expires idle entries. Evicted providers
are cleaned up. A provider that is still leased (see lease()) is only
cleaned up once its last lease is released.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from SpaceRAG.Data.Embeddings.models import ensure_dimension
from SpaceRAG.Data.VectorDB.base import BaseVectorProvider
from SpaceRAG.Data.VectorDB.factory import VectorProviderFactory
from SpaceRAG.Data.services.space_config import SpaceConfig

logger = logging.getLogger(__name__)

_Detached = List[Tuple[str, BaseVectorProvider]]


@dataclass
class _CacheEntry:
    provider: BaseVectorProvider
    last_used: float


class SpaceProviderCache:
    """
    Per-space cache of initialized providers.

    Map access happens under a threading lock; creation for a given space
    happens under a per-space asyncio lock, so concurrent first calls for
    the same space build exactly one provider.

    get_or_create() hands out the provider without holding it: a later
    eviction may clean it up while the caller still uses it. Callers that
    keep the provider across awaits use lease() (or acquire()/release()),
    which defers the cleanup of an evicted provider until it is released.

    Example:
        cache = SpaceProviderCache(max_entries=100, ttl_seconds=3600)
        async with cache.lease(space) as provider:
            await provider.search(...)
        await cache.cleanup_all()
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1 (got {max_entries})")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0 (got {ttl_seconds})")

        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._creation_locks: Dict[str, asyncio.Lock] = {}
        # Active lease count per provider
        self._leases: Dict[BaseVectorProvider, int] = {}
        # Evicted providers waiting for their last lease, with their space id
        self._retired: Dict[BaseVectorProvider, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, space_id: object) -> bool:
        with self._lock:
            return space_id in self._entries

    def leases(self, provider: BaseVectorProvider) -> int:
        """Number of active leases on a provider."""
        with self._lock:
            return self._leases.get(provider, 0)

    # ==================== Lookup ====================

    async def get_or_create(
        self,
        space: SpaceConfig,
        factory=VectorProviderFactory,
    ) -> BaseVectorProvider:
        """
        Return the space's provider, creating and initializing it on a miss.

        Args:
            space: Current space configuration
            factory: Object with an async create(provider_type, config)

        Raises:
            UnsupportedEmbeddingDimensionError: The space's dimension is not
                offered by its embedding model (checked before any provider call)
        """
        return await self._get_or_create(space, factory, leased=False)

    async def acquire(
        self,
        space: SpaceConfig,
        factory=VectorProviderFactory,
    ) -> BaseVectorProvider:
        """
        Like get_or_create(), but the provider stays open until release().

        Every acquire() must be paired with exactly one release().
        """
        return await self._get_or_create(space, factory, leased=True)

    async def release(self, provider: BaseVectorProvider) -> None:
        """Drop one lease; cleans up the provider if it was evicted meanwhile."""
        with self._lock:
            count = self._leases.get(provider, 0) - 1
            if count > 0:
                self._leases[provider] = count
                return
            self._leases.pop(provider, None)
            space_id = self._retired.pop(provider, None)
        if space_id is not None:
            await self._cleanup_providers([(space_id, provider)])

    @asynccontextmanager
    async def lease(
        self,
        space: SpaceConfig,
        factory=VectorProviderFactory,
    ) -> AsyncIterator[BaseVectorProvider]:
        """Hold the space's provider for the duration of the block."""
        provider = await self.acquire(space, factory)
        try:
            yield provider
        finally:
            await self.release(provider)

    def get(self, space_id: str) -> Optional[BaseVectorProvider]:
        """Return the cached provider without creating one."""
        with self._lock:
            entry = self._entries.get(space_id)
            return entry.provider if entry else None

    async def _get_or_create(
        self,
        space: SpaceConfig,
        factory,
        leased: bool,
    ) -> BaseVectorProvider:
        ensure_dimension(space.embedding_model_id, space.embedding_dim, space.supported_dimensions)

        provider, detached = self._lookup(space.id, leased)
        if provider is None:
            async with self._creation_lock(space.id):
                provider, more = self._lookup(space.id, leased)
                detached += more
                if provider is None:
                    try:
                        provider = await factory.create(space.vector_provider, space.vector_config)
                    except BaseException:
                        await self._cleanup_providers(detached)
                        raise
                    detached += self._store(space.id, provider, leased)
                    logger.info(
                        f"Cached {space.vector_provider.value} provider for space '{space.id}'"
                    )

        try:
            await self._cleanup_providers(detached)
        except asyncio.CancelledError:
            if leased:
                await self.release(provider)
            raise
        return provider

    def _creation_lock(self, space_id: str) -> asyncio.Lock:
        with self._lock:
            lock = self._creation_locks.get(space_id)
            if lock is None:
                lock = self._creation_locks[space_id] = asyncio.Lock()
            return lock

    def _lookup(
        self, space_id: str, leased: bool
    ) -> Tuple[Optional[BaseVectorProvider], _Detached]:
        now = self._clock()
        with self._lock:
            detached = self._pop_expired(now)
            entry = self._entries.get(space_id)
            if entry is None:
                return None, detached
            entry.last_used = now
            self._entries.move_to_end(space_id)
            if leased:
                self._leases[entry.provider] = self._leases.get(entry.provider, 0) + 1
            return entry.provider, detached

    def _store(
        self, space_id: str, provider: BaseVectorProvider, leased: bool
    ) -> _Detached:
        now = self._clock()
        evicted: _Detached = []
        with self._lock:
            self._entries[space_id] = _CacheEntry(provider=provider, last_used=now)
            self._entries.move_to_end(space_id)
            if leased:
                self._leases[provider] = self._leases.get(provider, 0) + 1
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    old_id, old_entry = self._entries.popitem(last=False)
                    evicted.append((old_id, old_entry.provider))
            return self._retire_leased(evicted)

    def _pop_expired(self, now: float) -> _Detached:
        # Caller holds self._lock
        if self.ttl_seconds is None:
            return []
        stale = [
            space_id for space_id, entry in self._entries.items()
            if now - entry.last_used > self.ttl_seconds
        ]
        expired = [(space_id, self._entries.pop(space_id).provider) for space_id in stale]
        return self._retire_leased(expired)

    def _retire_leased(self, detached: _Detached) -> _Detached:
        # Caller holds self._lock. Returns the providers that can be cleaned up now.
        ready: _Detached = []
        for space_id, provider in detached:
            if self._leases.get(provider):
                self._retired[provider] = space_id
                logger.debug(f"Provider for space '{space_id}' is in use, cleanup deferred")
            else:
                ready.append((space_id, provider))
        return ready

    # ==================== Eviction ====================

    async def evict(self, space_id: str) -> bool:
        """
        Drop a space's provider and clean it up.

        Returns:
            True if a provider was cached for the space
        """
        with self._lock:
            entry = self._entries.pop(space_id, None)
            self._creation_locks.pop(space_id, None)
            if entry is None:
                return False
            ready = self._retire_leased([(space_id, entry.provider)])
        await self._cleanup_providers(ready)
        return True

    async def cleanup_all(self) -> None:
        """Clean up every cached provider and empty the cache."""
        with self._lock:
            entries = [(space_id, e.provider) for space_id, e in self._entries.items()]
            self._entries.clear()
            self._creation_locks.clear()
            ready = self._retire_leased(entries)
        await self._cleanup_providers(ready)
        logger.info(
            f"Provider cache cleared ({len(ready)} closed, {len(entries) - len(ready)} in use)"
        )

    async def _cleanup_providers(self, entries: _Detached) -> None:
        for space_id, provider in entries:
            try:
                await provider.cleanup()
                logger.debug(f"Cleaned up provider for space '{space_id}'")
            except Exception as e:
                # One failing provider must not keep the others open
                logger.warning(f"Cleanup failed for space '{space_id}': {e}")
