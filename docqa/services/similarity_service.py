"""Similarity scoring between queries and chunks.

Two forms, both returning a value in [0, 1]:

- vector: cosine similarity of two embeddings (negative cosines clamp to 0)
- lexical: normalized Levenshtein similarity, used when no embeddings exist
"""

from __future__ import annotations

import math
from typing import Sequence, Union

Vector = Sequence[float]
Representation = Union[str, Vector]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity; 0.0 for mismatched lengths or zero-norm vectors."""
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a)
    norm_b = sum(y * y for y in b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    # sqrt of the product keeps cos(x, x) exactly 1.0
    score = dot / math.sqrt(norm_a * norm_b)
    return max(0.0, min(score, 1.0))


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def lexical_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein_distance(a, b)) / longest


def similarity(a: Representation, b: Representation) -> float:
    if isinstance(a, str) and isinstance(b, str):
        return lexical_similarity(a, b)
    if isinstance(a, str) or isinstance(b, str):
        raise TypeError("cannot compare text with a vector")
    return cosine_similarity(a, b)
