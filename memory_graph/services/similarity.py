"""
Pairwise similarity signals between two memories.

Every function here is pure and returns a value in [0, 1]. Missing data never
raises: an absent embedding or an empty tag set scores 0, a missing timestamp
scores the temporal floor.
"""

import math
from typing import Optional, Sequence

from ..models.core import Memory, ScoreBreakdown
from ..utils.timestamp_utils import days_between

SEMANTIC_WEIGHT = 0.5
TAG_WEIGHT = 0.3
TEMPORAL_WEIGHT = 0.2

# (max age in days, strength), checked in order
TEMPORAL_STEPS = ((1, 0.8), (7, 0.6), (30, 0.4), (90, 0.2))
TEMPORAL_FLOOR = 0.1


def cosine_similarity(vec_a: Optional[Sequence[float]], vec_b: Optional[Sequence[float]]) -> float:
    """Cosine similarity clamped to [0, 1]."""
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot += a * b
        norm_a += a * a
        norm_b += b * b

    if norm_a == 0 or norm_b == 0:
        return 0.0

    # opposite directions count as unrelated
    return min(1.0, max(0.0, dot / (math.sqrt(norm_a) * math.sqrt(norm_b))))


def semantic_similarity(a: Memory, b: Memory) -> float:
    return cosine_similarity(a.embedding, b.embedding)


def tag_similarity(a: Memory, b: Memory) -> float:
    """Jaccard index of the two tag sets."""
    tags_a = {tag.lower() for tag in a.tags}
    tags_b = {tag.lower() for tag in b.tags}
    if not tags_a or not tags_b:
        return 0.0
    return len(tags_a & tags_b) / len(tags_a | tags_b)


def temporal_proximity(a: Memory, b: Memory) -> float:
    """Step decay on the distance between creation times."""
    if a.created_at is None or b.created_at is None:
        return TEMPORAL_FLOOR

    diff_days = days_between(a.created_at, b.created_at)
    for max_days, strength in TEMPORAL_STEPS:
        if diff_days <= max_days:
            return strength
    return TEMPORAL_FLOOR


def combined_score(breakdown: ScoreBreakdown) -> float:
    return (breakdown.semantic * SEMANTIC_WEIGHT + breakdown.tag * TAG_WEIGHT + breakdown.temporal * TEMPORAL_WEIGHT)


def score_pair(a: Memory, b: Memory) -> ScoreBreakdown:
    return ScoreBreakdown(semantic=semantic_similarity(a, b), tag=tag_similarity(a, b), temporal=temporal_proximity(a, b))
