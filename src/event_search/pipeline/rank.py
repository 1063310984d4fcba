"""Relevance signals, weighted score combination and embedding re-ranking."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

import structlog

from event_search.exceptions import DimensionMismatchError
from event_search.models import (
    RankCandidate,
    RankedCandidate,
    RankingWeights,
    ScoreComponents,
)

logger = structlog.get_logger(__name__)

DEFAULT_WEIGHTS = RankingWeights(
    fts_rank=0.4,
    trigram_similarity=0.25,
    recency_boost=0.2,
    embedding_similarity=0.15,
)

WEIGHTS_NO_EMBEDDINGS = RankingWeights(
    fts_rank=0.5,
    trigram_similarity=0.3,
    recency_boost=0.2,
    embedding_similarity=0.0,
)


def select_weights(embeddings_enabled: bool) -> RankingWeights:
    """Return the weight profile for a search with or without embeddings."""
    return DEFAULT_WEIGHTS if embeddings_enabled else WEIGHTS_NO_EMBEDDINGS


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until(event_date: date | datetime, reference_date: date | datetime) -> int:
    """Whole days from *reference_date* to *event_date*, both truncated to midnight."""
    return (_as_day(event_date) - _as_day(reference_date)).days


def recency_boost_for_days(days_diff: int) -> float:
    """Piecewise recency curve over whole days until the event.

    - past: exponential decay from 0.3 towards 0
    - today: 1.0
    - 1..14 days: linear 1.0 -> 0.5
    - 15..30 days: linear 0.5 -> 0.3
    - beyond: linear towards a 0.1 floor
    """
    if days_diff < 0:
        return max(0.0, math.exp(days_diff / 7) * 0.3)
    if days_diff == 0:
        return 1.0
    if days_diff <= 14:
        return 1.0 - (days_diff / 14) * 0.5
    if days_diff <= 30:
        return 0.5 - ((days_diff - 14) / 16) * 0.2
    return max(0.1, 0.3 - ((days_diff - 30) / 60) * 0.2)


def calculate_recency_boost(
    event_date: date | datetime,
    reference_date: date | datetime | None = None,
) -> float:
    """Return the recency boost in [0, 1] for an event on *event_date*.

    Args:
        event_date:     Event start date or datetime.
        reference_date: "Now"; defaults to today.

    Returns:
        Boost value; see :func:`recency_boost_for_days` for the curve.
    """
    if reference_date is None:
        reference_date = date.today()
    return recency_boost_for_days(days_until(event_date, reference_date))


def normalize_score(value: float, min_value: float, max_value: float) -> float:
    """Linearly rescale *value* into [0, 1], clamped.

    Returns 0.5 for a degenerate range.
    """
    if max_value == min_value:
        return 0.5
    return max(0.0, min(1.0, (value - min_value) / (max_value - min_value)))


def calculate_combined_score(
    components: ScoreComponents,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> float:
    """Weighted sum of *components*; a missing embedding similarity counts as 0."""
    return (
        weights.fts_rank * components.fts_rank
        + weights.trigram_similarity * components.trigram_similarity
        + weights.recency_boost * components.recency_boost
        + weights.embedding_similarity * (components.embedding_similarity or 0.0)
    )


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*.

    Raises:
        DimensionMismatchError: If the vectors differ in length.

    Returns:
        Similarity in [-1, 1]; exactly 0.0 if either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    magnitude = math.sqrt(norm_a) * math.sqrt(norm_b)
    if magnitude == 0:
        return 0.0
    # Rounding can push |cos| a hair past 1.
    return max(-1.0, min(1.0, dot / magnitude))


def rank_candidates(
    candidates: Iterable[RankCandidate],
    weights: RankingWeights,
    query_embedding: Optional[Sequence[float]] = None,
) -> list[RankedCandidate]:
    """Score and sort *candidates*.

    With a *query_embedding*, each candidate's embedding similarity is
    computed (0 when the candidate has no embedding); without one the
    component is left unset.

    Results are sorted by descending score, ties broken by ascending id.
    """
    ranked: list[RankedCandidate] = []
    for candidate in candidates:
        similarity: Optional[float] = None
        if query_embedding is not None:
            similarity = (
                cosine_similarity(query_embedding, candidate.embedding)
                if candidate.embedding
                else 0.0
            )
        components = ScoreComponents(
            fts_rank=candidate.fts_rank,
            trigram_similarity=candidate.trigram_similarity,
            recency_boost=candidate.recency_boost,
            embedding_similarity=similarity,
        )
        ranked.append(
            RankedCandidate(
                id=candidate.id,
                score=calculate_combined_score(components, weights),
                components=components,
            )
        )

    ranked.sort(key=lambda r: (-r.score, r.id))
    return ranked


def re_rank_with_embeddings(
    candidates: Iterable[RankCandidate],
    query_embedding: Sequence[float],
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> list[RankedCandidate]:
    """Re-rank a lexical candidate set by adding query/candidate cosine similarity.

    Args:
        candidates:      Candidates carrying lexical + recency signals.
        query_embedding: Embedding of the search text.
        weights:         Weight profile (defaults to :data:`DEFAULT_WEIGHTS`).

    Returns:
        All candidates, sorted by descending combined score.

    Raises:
        DimensionMismatchError: If a candidate embedding has a different
            dimension than *query_embedding*.
    """
    ranked = rank_candidates(candidates, weights, query_embedding=query_embedding)
    logger.debug("rank.reranked", count=len(ranked))
    return ranked
