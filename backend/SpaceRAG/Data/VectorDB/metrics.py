"""
Vector Metrics Utilities

Maps backend-native similarity / distance values onto one convention:
score is higher-is-better and comparable to a threshold in [0, 1],
distance keeps a metric-native magnitude for diagnostics.

Also provides L2 normalization. After L2 normalization the inner product
of two vectors equals their cosine similarity, so IP and COSINE scores
are interchangeable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Union


class MetricType(str, Enum):
    """Distance / similarity metrics understood by the normalizer."""
    COSINE = "COSINE"     # similarity in [-1, 1], higher is better
    IP = "IP"             # inner product, higher is better
    L2 = "L2"             # Euclidean distance, lower is better
    HAMMING = "HAMMING"   # bit distance, lower is better
    JACCARD = "JACCARD"   # set distance in [0, 1], lower is better


SIMILARITY_METRICS = frozenset({MetricType.COSINE, MetricType.IP})


@dataclass(frozen=True)
class NormalizedScore:
    """
    Canonical score pair.

    Attributes:
        score: Higher-is-better similarity, comparable across metrics
        distance: Metric-native magnitude, lower-is-better
    """
    score: float
    distance: float


def normalize_metric_score(
    raw_score: float,
    metric_type: Union[MetricType, str] = MetricType.COSINE,
) -> NormalizedScore:
    """
    Normalize a raw backend score.

    COSINE and IP share one mapping so that, on unit vectors, both yield
    the same score: the similarity clamped to [0, 1], with distance
    1 - similarity. Distance metrics map through 1 / (1 + distance).

    Args:
        raw_score: Value returned by the vector backend
        metric_type: Metric the backend used for the search

    Returns:
        NormalizedScore(score, distance)
    """
    metric = MetricType(metric_type)
    raw = float(raw_score)

    if metric in SIMILARITY_METRICS:
        # Opposed vectors (negative similarity) all score 0; distance keeps the raw value
        return NormalizedScore(score=min(max(raw, 0.0), 1.0), distance=1.0 - raw)

    # L2 / HAMMING / JACCARD: raw value is already a distance
    distance = max(raw, 0.0)
    return NormalizedScore(score=1.0 / (1.0 + distance), distance=distance)


def requires_unit_vectors(metric_type: Union[MetricType, str]) -> bool:
    """Whether vectors must be L2-normalized for scores to be interpretable."""
    return MetricType(metric_type) in SIMILARITY_METRICS


def get_l2_norm(vector: Sequence[float]) -> float:
    """Return the Euclidean length of a vector."""
    return math.sqrt(sum(v * v for v in vector))


def normalize_l2(vector: Sequence[float]) -> List[float]:
    """
    Scale a vector to unit length.

    The zero vector is returned unchanged.
    """
    norm = get_l2_norm(vector)
    if norm == 0:
        return list(vector)
    return [v / norm for v in vector]


def is_l2_normalized(vector: Sequence[float], tolerance: float = 1e-6) -> bool:
    """Check if a vector has unit length within floating-point tolerance."""
    return abs(get_l2_norm(vector) - 1.0) < tolerance
