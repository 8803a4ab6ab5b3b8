"""
Tests for score normalization and L2 helpers.

Run:
    pytest backend/tests/test_metrics.py

Covers:
    1. COSINE / IP mapping and clamping
    2. Distance metrics map through 1 / (1 + d)
    3. IP on unit vectors scores the same as COSINE
    4. L2 normalization helpers
    5. Unknown metrics are rejected
"""

from __future__ import annotations

import math
import random

import pytest

from SpaceRAG.Data.VectorDB.metrics import (
    MetricType,
    NormalizedScore,
    get_l2_norm,
    is_l2_normalized,
    normalize_l2,
    normalize_metric_score,
    requires_unit_vectors,
)


# ── Helpers ──────────────────────────────────────────────────────

def _dot(a, b) -> float:
    return sum(x * y for x, y in zip(a, b))


def _random_vector(rng: random.Random, dim: int = 16):
    return [rng.uniform(-1.0, 1.0) for _ in range(dim)]


# ── Tests ────────────────────────────────────────────────────────

def test_similarity_metrics():
    """Test 1: COSINE and IP clamp the score and report 1 - raw as distance."""
    print("Test 1: Similarity metrics")
    assert normalize_metric_score(0.8, MetricType.COSINE) == NormalizedScore(0.8, pytest.approx(0.2))
    assert normalize_metric_score(0.8, "IP").score == 0.8

    above = normalize_metric_score(1.2, MetricType.IP)
    assert above.score == 1.0
    assert above.distance == pytest.approx(-0.2)

    below = normalize_metric_score(-0.5, MetricType.COSINE)
    assert below.score == 0.0
    assert below.distance == pytest.approx(1.5)

    assert requires_unit_vectors("COSINE") and requires_unit_vectors(MetricType.IP)
    assert not requires_unit_vectors(MetricType.L2)
    print("  ✅ PASSED\n")


def test_distance_metrics():
    """Test 2: L2 / HAMMING / JACCARD map distance d to 1 / (1 + d)."""
    print("Test 2: Distance metrics")
    assert normalize_metric_score(0.0, MetricType.L2) == NormalizedScore(1.0, 0.0)
    assert normalize_metric_score(3.0, MetricType.L2).score == pytest.approx(0.25)
    assert normalize_metric_score(1.0, MetricType.HAMMING).score == pytest.approx(0.5)
    assert normalize_metric_score(0.5, MetricType.JACCARD).score == pytest.approx(1 / 1.5)

    # Negative distances are floating-point noise
    assert normalize_metric_score(-1e-9, MetricType.L2) == NormalizedScore(1.0, 0.0)

    # Larger distance, lower score
    scores = [normalize_metric_score(d, MetricType.L2).score for d in (0.0, 0.5, 1.0, 4.0)]
    assert scores == sorted(scores, reverse=True)
    print("  ✅ PASSED\n")


def test_ip_cosine_symmetry():
    """Test 3: IP on L2-normalized vectors yields the COSINE score."""
    print("Test 3: IP / COSINE symmetry")
    rng = random.Random(42)
    for _ in range(50):
        a, b = _random_vector(rng), _random_vector(rng)
        cosine = _dot(a, b) / (get_l2_norm(a) * get_l2_norm(b))
        inner = _dot(normalize_l2(a), normalize_l2(b))

        cos_score = normalize_metric_score(cosine, MetricType.COSINE)
        ip_score = normalize_metric_score(inner, MetricType.IP)
        assert math.isclose(cos_score.score, ip_score.score, abs_tol=1e-9)
        assert math.isclose(cos_score.distance, ip_score.distance, abs_tol=1e-9)
    print("  ✅ PASSED\n")


def test_l2_helpers():
    """Test 4: normalize_l2 / is_l2_normalized."""
    print("Test 4: L2 helpers")
    assert get_l2_norm([3.0, 4.0]) == 5.0
    assert normalize_l2([3.0, 4.0]) == [0.6, 0.8]
    assert is_l2_normalized(normalize_l2([1.0, 2.0, 3.0]))
    assert not is_l2_normalized([1.0, 1.0])

    # The zero vector has no direction and is returned as-is
    assert normalize_l2([0.0, 0.0]) == [0.0, 0.0]
    print("  ✅ PASSED\n")


def test_unknown_metric():
    """Test 5: unknown metric names raise ValueError."""
    print("Test 5: Unknown metric")
    with pytest.raises(ValueError):
        normalize_metric_score(0.5, "MANHATTAN")
    print("  ✅ PASSED\n")


# ── Main ─────────────────────────────────────────────────────────

def main():
    print("\n" + "=" * 60)
    print("  Metric Normalization Tests")
    print("=" * 60 + "\n")

    test_similarity_metrics()
    test_distance_metrics()
    test_ip_cosine_symmetry()
    test_l2_helpers()
    test_unknown_metric()

    print("=" * 60)
    print("  ✅ All 5 metric tests passed!")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
