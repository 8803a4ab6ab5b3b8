"""
End-to-end tests for RAGService.

Uses Qdrant in-memory mode as the vector store and a deterministic
hashing embedder, so no server and no API key are required.

Run:
    pytest backend/tests/test_rag_service_e2e.py

Covers:
    1. Collection naming
    2. Ingest -> query on the 1400-character reference document
    3. Re-ingesting a document overwrites its chunks
    4. Score threshold and query validation
    5. Concurrent ingests run one at a time, in order
    6. Empty content and missing collections
    7. delete_document / delete_file
    8. delete_document_from_spaces continues past failing spaces
    9. clear_collection evicts the cached provider
   10. Dimension checks (catalogue, embedder, existing collection)
   11. Deadlines
   12. Configuration from the environment and cleanup
   13. Evicting a provider that an ingest is using
"""

from __future__ import annotations

import asyncio
import os

import pytest

from fakes import HashingEmbeddings, RecordingEmbeddings, WrongCountEmbeddings
from SpaceRAG.Data.VectorDB import VectorProviderType
from SpaceRAG.Data.services import (
    DocumentMetadata,
    IngestOptions,
    InMemorySpaceConfigStore,
    QueryOptions,
    RAGDocument,
    RAGService,
    RAGServiceConfig,
    SpaceConfig,
    get_collection_name,
    vector_id,
)
from SpaceRAG.exceptions import (
    DeadlineExceededError,
    EmbeddingDimensionMismatchError,
    InvalidArgumentError,
    SpaceNotFoundError,
    UnsupportedEmbeddingDimensionError,
)


# ── Helpers ──────────────────────────────────────────────────────

DIM = 512
SPACE_ID = "space-e2e"
REFERENCE_TEXT = "".join(f"tok{i:04d} " for i in range(175))   # 1400 characters
CHUNK_OPTIONS = IngestOptions(chunk_size=500, chunk_overlap=100)


def _make_space(space_id: str = SPACE_ID, dim: int = DIM) -> SpaceConfig:
    return SpaceConfig(
        id=space_id,
        vector_provider=VectorProviderType.QDRANT,
        vector_config={"location": ":memory:"},
        embedding_model_id="cohere/embed-v4.0",
        embedding_dim=dim,
    )


def _make_service(*spaces, embedder=None) -> RAGService:
    """Service over an in-memory store; one HashingEmbeddings per dimension unless given."""
    store = InMemorySpaceConfigStore(spaces or [_make_space()])
    if embedder is not None:
        factory = lambda model_id, dim: embedder
    else:
        factory = lambda model_id, dim: HashingEmbeddings(dim)
    return RAGService(store, config=RAGServiceConfig(), embeddings_factory=factory)


def _make_doc(doc_id: str, content: str, filename: str = "notes.txt") -> RAGDocument:
    return RAGDocument(
        id=doc_id,
        content=content,
        metadata=DocumentMetadata(
            filename=filename,
            file_type="text/plain",
            size=len(content),
            extra={"author": "qa"},
        ),
    )


def _phrase(start: int, stop: int) -> str:
    return " ".join(f"tok{i:04d}" for i in range(start, stop))


# ── Tests ────────────────────────────────────────────────────────

def test_collection_naming():
    """Test 1: one deterministic collection per space id."""
    print("Test 1: Collection naming")
    assert get_collection_name("my-space-123") == "space_my_space_123"
    assert get_collection_name("abc") == get_collection_name("abc")
    assert get_collection_name("a.b c") == "space_a_b_c"
    # Known collision: ids differing only in replaced characters share a collection
    assert get_collection_name("a-b") == get_collection_name("a_b")
    assert vector_id("doc-1", 3) == "doc-1_chunk_3"
    print("  ✅ PASSED\n")


def test_ingest_and_query_reference_document():
    """Test 2: 4 chunks stored; a phrase from chunk 2 retrieves chunk 2."""
    print("Test 2: Ingest + query")

    async def scenario():
        service = _make_service()
        try:
            result = await service.ingest(
                SPACE_ID, [_make_doc("doc-1", REFERENCE_TEXT)], CHUNK_OPTIONS
            )
            assert result.document_ids == ["doc-1"]
            assert result.total_chunks == 4
            assert result.collection_name == "space_space_e2e"

            stats = await service.get_collection_stats(SPACE_ID)
            assert (stats.count, stats.dimension) == (4, DIM)
            assert result.collection_name in await service.list_collections(SPACE_ID)

            # tok0119..tok0142 only occur in chunk 2 (characters 800-1300)
            answer = await service.query(
                SPACE_ID, _phrase(119, 143), QueryOptions(top_k=1, score_threshold=0.1)
            )
        finally:
            await service.cleanup()

        assert answer.total_results == 1
        source = answer.sources[0]
        assert source.id == "doc-1_chunk_2"
        assert source.content == REFERENCE_TEXT[800:1300]
        assert source.metadata.chunk_index == 2
        assert source.metadata.total_chunks == 4
        assert source.metadata.original_doc_id == "doc-1"
        assert source.metadata.filename == "notes.txt"
        assert source.metadata.extra == {"author": "qa"}
        assert 0.1 <= source.score <= 1.0
        print(f"  chunk_2 score: {source.score:.3f}")

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_reingest_overwrites():
    """Test 3: ingesting the same document twice keeps one copy of each chunk."""
    print("Test 3: Idempotent re-ingest")

    async def scenario():
        service = _make_service()
        try:
            doc = _make_doc("doc-1", REFERENCE_TEXT)
            await service.ingest(SPACE_ID, [doc], CHUNK_OPTIONS)
            await service.ingest(SPACE_ID, [doc], CHUNK_OPTIONS)
            assert (await service.get_collection_stats(SPACE_ID)).count == 4

            # Fewer chunks the second time: only the overlapping ids are overwritten
            await service.ingest(SPACE_ID, [doc], IngestOptions(chunk_size=1400, chunk_overlap=0))
            assert (await service.get_collection_stats(SPACE_ID)).count == 4
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_threshold_and_validation():
    """Test 4: every source clears the threshold; bad options are rejected."""
    print("Test 4: Threshold + validation")

    async def scenario():
        service = _make_service()
        try:
            await service.ingest(SPACE_ID, [_make_doc("doc-1", REFERENCE_TEXT)], CHUNK_OPTIONS)

            loose = await service.query(
                SPACE_ID, _phrase(95, 110), QueryOptions(top_k=20, score_threshold=0.0)
            )
            scores = [s.score for s in loose.sources]
            assert scores == sorted(scores, reverse=True)
            assert len(loose.sources) == 4

            strict = await service.query(
                SPACE_ID, _phrase(95, 110), QueryOptions(top_k=20, score_threshold=0.3)
            )
            assert all(s.score >= 0.3 for s in strict.sources)
            assert len(strict.sources) < len(loose.sources)

            with pytest.raises(InvalidArgumentError):
                await service.query(SPACE_ID, "   ")
            with pytest.raises(SpaceNotFoundError):
                await service.query("no-such-space", "hello")
        finally:
            await service.cleanup()

    asyncio.run(scenario())

    with pytest.raises(InvalidArgumentError):
        QueryOptions(top_k=0)
    with pytest.raises(InvalidArgumentError):
        QueryOptions(top_k=21)
    with pytest.raises(InvalidArgumentError):
        QueryOptions(score_threshold=1.5)
    print("  ✅ PASSED\n")


def test_concurrent_ingests_are_serialized():
    """Test 5: the second ingest starts embedding only after the first finished."""
    print("Test 5: Serialized ingest")
    embedder = RecordingEmbeddings(DIM, delay=0.05)

    async def scenario():
        service = _make_service(embedder=embedder)
        try:
            first, second = await asyncio.gather(
                service.ingest(SPACE_ID, [_make_doc("doc-a", "alpha " * 50)]),
                service.ingest(SPACE_ID, [_make_doc("doc-b", "beta " * 50)]),
            )
        finally:
            await service.cleanup()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.document_ids == ["doc-a"] and second.document_ids == ["doc-b"]

    assert len(embedder.calls) == 2
    (first_text, _, first_end), (second_text, second_start, _) = embedder.calls
    assert first_text.startswith("alpha")
    assert second_text.startswith("beta")
    assert first_end <= second_start
    print("  ✅ PASSED\n")


def test_empty_content_and_missing_collection():
    """Test 6: nothing to chunk creates no collection; querying it yields nothing."""
    print("Test 6: Empty content")

    async def scenario():
        service = _make_service()
        try:
            answer = await service.query(SPACE_ID, "anything")
            assert answer.sources == [] and answer.total_results == 0

            result = await service.ingest(SPACE_ID, [_make_doc("doc-empty", "")])
            assert result.total_chunks == 0
            assert get_collection_name(SPACE_ID) not in await service.list_collections(SPACE_ID)

            stats = await service.get_collection_stats(SPACE_ID)
            assert (stats.count, stats.dimension) == (0, DIM)

            with pytest.raises(InvalidArgumentError):
                await service.ingest(SPACE_ID, [_make_doc("", "text")])
            with pytest.raises(InvalidArgumentError):
                await service.ingest(
                    SPACE_ID, [_make_doc("doc-1", "text")], IngestOptions(chunk_size=0)
                )
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_delete_document_and_file():
    """Test 7: deletes remove exactly the matching chunks; no match is not an error."""
    print("Test 7: Delete")

    async def scenario():
        service = _make_service()
        try:
            await service.ingest(SPACE_ID, [
                _make_doc("doc-1", REFERENCE_TEXT, filename="a.txt"),
                _make_doc("doc-2", "short second document", filename="b.txt"),
            ], CHUNK_OPTIONS)
            assert (await service.get_collection_stats(SPACE_ID)).count == 5

            assert await service.delete_file(SPACE_ID, "doc-1", "other.txt") == 0
            assert await service.delete_file(SPACE_ID, "doc-2", "b.txt") == 1
            assert await service.delete_document(SPACE_ID, "doc-1") == 4
            assert await service.delete_document(SPACE_ID, "doc-1") == 0
            assert (await service.get_collection_stats(SPACE_ID)).count == 0
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_delete_from_spaces_continues_past_failures():
    """Test 8: a failing space is reported, the others still succeed."""
    print("Test 8: Multi-space delete")

    async def scenario():
        service = _make_service(_make_space("space-a"), _make_space("space-b"))
        try:
            for space_id in ("space-a", "space-b"):
                await service.ingest(space_id, [_make_doc("shared", "shared content here")])

            outcome = await service.delete_document_from_spaces(
                ["space-a", "missing-space", "space-b"], "shared"
            )
            assert outcome.succeeded == ["space-a", "space-b"]
            assert list(outcome.failed) == ["missing-space"]
            assert not outcome.ok

            for space_id in ("space-a", "space-b"):
                assert (await service.get_collection_stats(space_id)).count == 0
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_clear_collection():
    """Test 9: the collection is dropped and the cached provider evicted."""
    print("Test 9: Clear collection")

    async def scenario():
        service = _make_service()
        try:
            await service.ingest(SPACE_ID, [_make_doc("doc-1", REFERENCE_TEXT)], CHUNK_OPTIONS)
            assert SPACE_ID in service.provider_cache

            await service.clear_collection(SPACE_ID)
            assert SPACE_ID not in service.provider_cache

            answer = await service.query(SPACE_ID, _phrase(0, 10))
            assert answer.sources == []
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_dimension_checks():
    """Test 10: unsupported, mismatched and conflicting dimensions fail before writing."""
    print("Test 10: Dimension checks")

    async def unsupported():
        service = _make_service(_make_space(dim=333))
        try:
            with pytest.raises(UnsupportedEmbeddingDimensionError):
                await service.ingest(SPACE_ID, [_make_doc("doc-1", "text")])
            assert len(service.provider_cache) == 0
        finally:
            await service.cleanup()

    async def wrong_embedder():
        for embedder in (HashingEmbeddings(256), WrongCountEmbeddings(DIM)):
            service = _make_service(embedder=embedder)
            try:
                with pytest.raises(EmbeddingDimensionMismatchError):
                    await service.ingest(SPACE_ID, [_make_doc("doc-1", REFERENCE_TEXT)], CHUNK_OPTIONS)
                # Collection is only created after embedding succeeded
                names = await service.list_collections(SPACE_ID)
                assert get_collection_name(SPACE_ID) not in names
            finally:
                await service.cleanup()

    async def conflicting_collection():
        store = InMemorySpaceConfigStore([_make_space()])
        service = RAGService(
            store,
            config=RAGServiceConfig(),
            embeddings_factory=lambda model_id, dim: HashingEmbeddings(dim),
        )
        try:
            await service.ingest(SPACE_ID, [_make_doc("doc-1", "first version")])
            store.put(_make_space(dim=1024))
            with pytest.raises(EmbeddingDimensionMismatchError):
                await service.ingest(SPACE_ID, [_make_doc("doc-2", "second version")])
            assert (await service.get_collection_stats(SPACE_ID)).count == 1
        finally:
            await service.cleanup()

    asyncio.run(unsupported())
    asyncio.run(wrong_embedder())
    asyncio.run(conflicting_collection())
    print("  ✅ PASSED\n")


def test_deadlines():
    """Test 11: an expired budget names the stage and leaves no collection."""
    print("Test 11: Deadlines")

    async def scenario():
        service = _make_service(embedder=HashingEmbeddings(DIM, delay=0.5))
        try:
            with pytest.raises(DeadlineExceededError) as exc:
                await service.ingest(
                    SPACE_ID, [_make_doc("doc-1", REFERENCE_TEXT)], CHUNK_OPTIONS, timeout=0.1
                )
            assert exc.value.stage == "embedding"
            assert isinstance(exc.value, TimeoutError)

            stats = await service.get_collection_stats(SPACE_ID)
            assert stats.count == 0

            with pytest.raises(InvalidArgumentError):
                await service.query(SPACE_ID, "hello", timeout=0)
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_config_from_env_and_cleanup():
    """Test 12: RAG_* variables configure the service; cleanup closes it."""
    print("Test 12: Config + cleanup")
    names = {
        "RAG_CHUNK_SIZE": "800",
        "RAG_CHUNK_OVERLAP": "80",
        "RAG_TOP_K": "7",
        "RAG_SCORE_THRESHOLD": "0.25",
        "RAG_PROVIDER_CACHE_MAX_ENTRIES": "10",
    }
    saved = {name: os.environ.get(name) for name in names}
    os.environ.update(names)
    try:
        config = RAGServiceConfig.from_env()
    finally:
        for name, value in saved.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value

    assert (config.chunk_size, config.chunk_overlap) == (800, 80)
    assert config.top_k == 7
    assert config.score_threshold == 0.25
    assert config.provider_cache_max_entries == 10
    assert config.provider_cache_ttl_seconds is None

    async def scenario():
        store = InMemorySpaceConfigStore([_make_space()])
        service = RAGService(
            store, config=config, embeddings_factory=lambda model_id, dim: HashingEmbeddings(dim)
        )
        assert service.provider_cache.max_entries == 10
        assert len(service.chunk_text(REFERENCE_TEXT)) == 2
        assert len(service.chunk_text(REFERENCE_TEXT, 500, 100)) == 4

        await service.ingest(SPACE_ID, [_make_doc("doc-1", "some text")])
        await service.cleanup()
        assert len(service.provider_cache) == 0
        with pytest.raises(RuntimeError):
            await service.ingest(SPACE_ID, [_make_doc("doc-1", "some text")])

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_eviction_during_ingest():
    """Test 13: a query that evicts another space's provider does not break its ingest."""
    print("Test 13: Eviction during an in-flight ingest")
    other_space = _make_space("space-other")

    async def scenario():
        store = InMemorySpaceConfigStore([_make_space(), other_space])
        service = RAGService(
            store,
            config=RAGServiceConfig(provider_cache_max_entries=1),
            embeddings_factory=lambda model_id, dim: HashingEmbeddings(dim, delay=0.3),
        )
        try:
            ingest = asyncio.create_task(service.ingest(
                SPACE_ID, [_make_doc("doc-1", REFERENCE_TEXT)], CHUNK_OPTIONS
            ))
            await asyncio.sleep(0.1)
            provider = service.provider_cache.get(SPACE_ID)
            assert provider is not None and service.provider_cache.leases(provider) == 1

            # No collection in the other space, so this returns without embedding
            answer = await service.query(other_space.id, _phrase(0, 10))
            assert answer.sources == []
            assert SPACE_ID not in service.provider_cache
            assert provider.is_initialized

            result = await ingest
            assert result.total_chunks == 4
            assert service.provider_cache.leases(provider) == 0
            assert not provider.is_initialized
        finally:
            await service.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


# ── Main ─────────────────────────────────────────────────────────

def main():
    print("\n" + "=" * 60)
    print("  RAGService E2E Tests (Qdrant in-memory)")
    print("=" * 60 + "\n")

    test_collection_naming()
    test_ingest_and_query_reference_document()
    test_reingest_overwrites()
    test_threshold_and_validation()
    test_concurrent_ingests_are_serialized()
    test_empty_content_and_missing_collection()
    test_delete_document_and_file()
    test_delete_from_spaces_continues_past_failures()
    test_clear_collection()
    test_dimension_checks()
    test_deadlines()
    test_config_from_env_and_cleanup()
    test_eviction_during_ingest()

    print("=" * 60)
    print("  ✅ All 13 RAGService tests passed!")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
