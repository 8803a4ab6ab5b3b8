"""
End-to-end tests for the Qdrant provider using in-memory mode.

No server or API key is needed: qdrant-client runs the collection
locally with {"location": ":memory:"}.

Run:
    pytest backend/tests/test_qdrant_provider_e2e.py

Covers:
    1. Collection lifecycle (create / exists / list / stats / drop), idempotent
    2. Insert + search ordering and threshold
    3. Re-insert overwrites by id
    4. Delete by document / file / vector id
    5. IP on unit vectors scores the same as COSINE
    6. L2 scores map through 1 / (1 + d)
    7. Lifecycle errors
"""

from __future__ import annotations

import asyncio

import pytest

from SpaceRAG.Data.VectorDB import (
    CollectionSchema,
    DeleteFilter,
    SearchOptions,
    VectorDocument,
)
from SpaceRAG.Data.VectorDB.providers.qdrant_db import QdrantVectorProvider, point_id
from SpaceRAG.exceptions import InvalidArgumentError, ProviderNotInitializedError


# ── Helpers ──────────────────────────────────────────────────────

DIM = 4
COLLECTION = "space_test"


async def _make_provider(metric: str = "COSINE") -> QdrantVectorProvider:
    provider = QdrantVectorProvider()
    await provider.initialize({"location": ":memory:", "metricType": metric})
    await provider.create_collection(CollectionSchema(COLLECTION, DIM))
    return provider


def _doc(vector_id: str, vector, doc_id: str = "doc-1", filename: str = "a.txt") -> VectorDocument:
    return VectorDocument(
        id=vector_id,
        vector=vector,
        content=f"content of {vector_id}",
        metadata={"originalDocId": doc_id, "filename": filename},
    )


SAMPLE_DOCS = [
    _doc("doc-1_chunk_0", [1.0, 0.0, 0.0, 0.0]),
    _doc("doc-1_chunk_1", [0.8, 0.6, 0.0, 0.0]),
    _doc("doc-2_chunk_0", [0.0, 1.0, 0.0, 0.0], doc_id="doc-2", filename="b.txt"),
    _doc("doc-2_chunk_1", [0.0, 0.0, 1.0, 0.0], doc_id="doc-2", filename="c.txt"),
]

QUERY = [1.0, 0.0, 0.0, 0.0]


# ── Tests ────────────────────────────────────────────────────────

def test_collection_lifecycle():
    """Test 1: create/exists/list/stats/drop, each idempotent."""
    print("Test 1: Collection lifecycle")

    async def scenario():
        provider = QdrantVectorProvider()
        await provider.initialize({"location": ":memory:"})
        try:
            assert not await provider.has_collection(COLLECTION)
            await provider.create_collection(CollectionSchema(COLLECTION, DIM, "test"))
            await provider.create_collection(CollectionSchema(COLLECTION, DIM))
            assert await provider.has_collection(COLLECTION)
            assert COLLECTION in await provider.list_collections()

            stats = await provider.get_collection_stats(COLLECTION)
            assert (stats.count, stats.dimension) == (0, DIM)

            await provider.delete_collection(COLLECTION)
            await provider.delete_collection(COLLECTION)
            assert not await provider.has_collection(COLLECTION)
        finally:
            await provider.cleanup()

    asyncio.run(scenario())

    with pytest.raises(InvalidArgumentError):
        CollectionSchema(COLLECTION, 0)
    print("  ✅ PASSED\n")


def test_insert_and_search():
    """Test 2: results are ordered, thresholded and capped at top_k."""
    print("Test 2: Insert + search")

    async def scenario():
        provider = await _make_provider()
        try:
            await provider.insert(COLLECTION, SAMPLE_DOCS)
            assert (await provider.get_collection_stats(COLLECTION)).count == 4

            results = await provider.search(
                COLLECTION, QUERY, SearchOptions(top_k=10, score_threshold=0.5)
            )
            assert [r.id for r in results] == ["doc-1_chunk_0", "doc-1_chunk_1"]
            assert results[0].score == pytest.approx(1.0, abs=1e-5)
            assert results[1].score == pytest.approx(0.8, abs=1e-5)
            assert results[0].content == "content of doc-1_chunk_0"
            # Internal payload keys are not part of the metadata
            assert results[0].metadata == {"originalDocId": "doc-1", "filename": "a.txt"}

            top1 = await provider.search(COLLECTION, QUERY, SearchOptions(top_k=1))
            assert [r.id for r in top1] == ["doc-1_chunk_0"]

            everything = await provider.search(
                COLLECTION, QUERY, SearchOptions(top_k=10, score_threshold=0.0)
            )
            scores = [r.score for r in everything]
            assert scores == sorted(scores, reverse=True)
            assert all(0.0 <= s <= 1.0 for s in scores)
        finally:
            await provider.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_reinsert_overwrites():
    """Test 3: inserting the same ids again keeps the row count."""
    print("Test 3: Re-insert overwrites")

    async def scenario():
        provider = await _make_provider()
        try:
            await provider.insert(COLLECTION, SAMPLE_DOCS)
            updated = _doc("doc-1_chunk_0", [0.0, 0.0, 0.0, 1.0])
            await provider.insert(COLLECTION, [updated])
            assert (await provider.get_collection_stats(COLLECTION)).count == 4

            results = await provider.search(
                COLLECTION, [0.0, 0.0, 0.0, 1.0], SearchOptions(top_k=1)
            )
            assert results[0].id == "doc-1_chunk_0"
        finally:
            await provider.cleanup()

    asyncio.run(scenario())
    assert point_id("doc-1_chunk_0") == point_id("doc-1_chunk_0")
    assert point_id("doc-1_chunk_0") != point_id("doc-1_chunk_1")
    print("  ✅ PASSED\n")


def test_delete_filters():
    """Test 4: delete by file, vector id and document; counts are exact."""
    print("Test 4: Delete filters")

    async def scenario():
        provider = await _make_provider()
        try:
            await provider.insert(COLLECTION, SAMPLE_DOCS)

            assert await provider.delete(COLLECTION, DeleteFilter.by_file("doc-2", "c.txt")) == 1
            assert await provider.delete(COLLECTION, DeleteFilter.by_vector_id("doc-1_chunk_1")) == 1
            assert await provider.delete(COLLECTION, DeleteFilter.by_document("doc-1")) == 1
            # No match is not an error
            assert await provider.delete(COLLECTION, DeleteFilter.by_document("doc-1")) == 0

            remaining = await provider.search(
                COLLECTION, QUERY, SearchOptions(top_k=10, score_threshold=0.0)
            )
            assert [r.id for r in remaining] == ["doc-2_chunk_0"]
        finally:
            await provider.cleanup()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_ip_matches_cosine():
    """Test 5: IP collections produce the same scores as COSINE ones."""
    print("Test 5: IP / COSINE symmetry")

    unnormalized = [
        _doc("doc-1_chunk_0", [2.0, 1.0, 0.0, 0.5]),
        _doc("doc-1_chunk_1", [0.3, 3.0, 1.0, 0.0]),
        _doc("doc-1_chunk_2", [1.0, 1.0, 1.0, 1.0]),
    ]
    query = [1.5, 0.5, 0.2, 0.0]

    async def scores(metric):
        provider = await _make_provider(metric)
        try:
            await provider.insert(COLLECTION, unnormalized)
            results = await provider.search(
                COLLECTION, query, SearchOptions(top_k=3, score_threshold=0.0)
            )
            return {r.id: r.score for r in results}
        finally:
            await provider.cleanup()

    cosine = asyncio.run(scores("COSINE"))
    inner = asyncio.run(scores("IP"))
    assert cosine.keys() == inner.keys()
    for vector_id, score in cosine.items():
        assert inner[vector_id] == pytest.approx(score, abs=1e-5)
    print("  ✅ PASSED\n")


def test_l2_scores():
    """Test 6: Euclidean distances become 1 / (1 + d) scores."""
    print("Test 6: L2 scores")

    async def scenario():
        provider = await _make_provider("L2")
        try:
            await provider.insert(COLLECTION, SAMPLE_DOCS)
            results = await provider.search(
                COLLECTION, QUERY, SearchOptions(top_k=4, score_threshold=0.0)
            )
        finally:
            await provider.cleanup()

        assert results[0].id == "doc-1_chunk_0"
        assert results[0].score == pytest.approx(1.0, abs=1e-5)
        assert results[0].distance == pytest.approx(0.0, abs=1e-5)
        assert results[1].id == "doc-1_chunk_1"
        assert results[1].score == pytest.approx(1.0 / (1.0 + 0.4 ** 0.5), abs=1e-4)

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


def test_lifecycle_errors():
    """Test 7: use before initialize fails; cleanup is idempotent."""
    print("Test 7: Lifecycle errors")

    async def scenario():
        provider = QdrantVectorProvider()
        with pytest.raises(ProviderNotInitializedError):
            await provider.has_collection(COLLECTION)

        await provider.initialize({"location": ":memory:"})
        await provider.insert(COLLECTION, [])
        await provider.cleanup()
        await provider.cleanup()

        with pytest.raises(ProviderNotInitializedError):
            await provider.list_collections()

    asyncio.run(scenario())
    print("  ✅ PASSED\n")


# ── Main ─────────────────────────────────────────────────────────

def main():
    print("\n" + "=" * 60)
    print("  Qdrant Provider E2E Tests (in-memory)")
    print("=" * 60 + "\n")

    test_collection_lifecycle()
    test_insert_and_search()
    test_reinsert_overwrites()
    test_delete_filters()
    test_ip_matches_cosine()
    test_l2_scores()
    test_lifecycle_errors()

    print("=" * 60)
    print("  ✅ All 7 Qdrant tests passed!")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
