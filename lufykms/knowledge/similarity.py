"""
Vector Similarity Math

Pure functions over embedding vectors.

Design decisions:
- Plain lists of floats; corpora are small enough for a linear scan
- Dimension checks raise DimensionMismatchError instead of truncating
- A zero vector has no direction: cosine against it is 0.0, never NaN
"""

import math
from collections.abc import Sequence

from lufykms.core.exceptions import DimensionMismatchError, EmptyInputError, VectorMathError


def _check_dimensions(a: Sequence[float], b: Sequence[float]) -> None:
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Vectors must have the same length ({len(a)} != {len(b)})",
            expected=len(a),
            actual=len(b),
        )


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    _check_dimensions(a, b)
    return sum(x * y for x, y in zip(a, b))


def magnitude(vector: Sequence[float]) -> float:
    return math.sqrt(sum(x * x for x in vector))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors.

    Returns a value in [-1, 1]. If either vector has zero norm the
    result is 0.0 so that ranking never sees NaN.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    dot = dot_product(a, b)
    norm_a = magnitude(a)
    norm_b = magnitude(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    _check_dimensions(a, b)
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def manhattan_distance(a: Sequence[float], b: Sequence[float]) -> float:
    _check_dimensions(a, b)
    return sum(abs(x - y) for x, y in zip(a, b))


def normalize(vector: Sequence[float]) -> list[float]:
    """Scale to unit length. A zero vector is returned unchanged."""
    norm = magnitude(vector)
    if norm == 0:
        return list(vector)
    return [x / norm for x in vector]


def average_embeddings(embeddings: Sequence[Sequence[float]]) -> list[float]:
    """
    Element-wise mean of equally sized vectors.

    Raises:
        EmptyInputError: If no vectors are given
        DimensionMismatchError: If the vectors are ragged
    """
    if not embeddings:
        raise EmptyInputError("Cannot average empty embeddings array")

    if len(embeddings) == 1:
        return list(embeddings[0])

    dimension = len(embeddings[0])
    total = [0.0] * dimension

    for embedding in embeddings:
        if len(embedding) != dimension:
            raise DimensionMismatchError(
                "All embeddings must have the same dimension",
                expected=dimension,
                actual=len(embedding),
            )
        for i, value in enumerate(embedding):
            total[i] += value

    count = len(embeddings)
    return [value / count for value in total]


def weighted_average_embeddings(
    embeddings: Sequence[Sequence[float]],
    weights: Sequence[float],
) -> list[float]:
    """
    Element-wise weighted mean, normalized by the total weight.

    Raises:
        DimensionMismatchError: If vector and weight counts differ, or vectors are ragged
        EmptyInputError: If no vectors are given
        VectorMathError: If the weights sum to zero
    """
    if len(embeddings) != len(weights):
        raise DimensionMismatchError(
            "Embeddings and weights arrays must have the same length",
            expected=len(embeddings),
            actual=len(weights),
        )

    if not embeddings:
        raise EmptyInputError("Cannot average empty embeddings array")

    total_weight = sum(weights)
    if total_weight == 0:
        raise VectorMathError("Total weight cannot be zero")

    dimension = len(embeddings[0])
    weighted = [0.0] * dimension

    for embedding, weight in zip(embeddings, weights):
        if len(embedding) != dimension:
            raise DimensionMismatchError(
                "All embeddings must have the same dimension",
                expected=dimension,
                actual=len(embedding),
            )
        for i, value in enumerate(embedding):
            weighted[i] += value * weight

    return [value / total_weight for value in weighted]


class CosineRanker:
    """Default ranker: cosine similarity."""

    def score(self, query_vector: list[float], document_vector: list[float]) -> float:
        return cosine_similarity(query_vector, document_vector)
