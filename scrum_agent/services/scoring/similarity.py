"""Vector similarity and recency weighting used to rank context chunks."""

import math
from datetime import datetime, timezone
from typing import Optional, Sequence

import numpy as np

DEFAULT_DECAY_LAMBDA = 0.1
DEFAULT_SOURCE_CONFIDENCE = 0.6
_SECONDS_PER_DAY = 60 * 60 * 24


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Zero-length vectors score 0.0 rather than dividing by zero.

    Raises:
        ValueError: If the vectors differ in dimension.
    """
    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Embedding dimensions differ: {a.shape} vs {b.shape}")

    norm_product = np.linalg.norm(a) * np.linalg.norm(b)
    return float(np.dot(a, b) / norm_product) if norm_product > 0 else 0.0


def days_since(event_time: datetime, now: Optional[datetime] = None) -> float:
    """Elapsed days between ``event_time`` and ``now``; naive datetimes are UTC."""
    now = now or datetime.now(timezone.utc)
    if event_time.tzinfo is None:
        event_time = event_time.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - event_time).total_seconds() / _SECONDS_PER_DAY


def recency_decay(
    event_time: Optional[datetime],
    now: Optional[datetime] = None,
    decay_lambda: float = DEFAULT_DECAY_LAMBDA,
) -> float:
    """``exp(-lambda * days)``; 1.0 when no event time was recorded."""
    if event_time is None:
        return 1.0
    return math.exp(-decay_lambda * days_since(event_time, now))


def half_life_decay(
    event_time: datetime, now: Optional[datetime] = None, half_life_days: float = 14.0
) -> float:
    """
    Recency weight expressed as a half-life.

    With a 14 day half-life: 14d -> 0.5, 30d -> 0.23, 60d -> 0.05, 90d -> 0.01.
    Events in the future weigh 1.0.
    """
    elapsed = days_since(event_time, now)
    if elapsed <= 0:
        return 1.0
    return math.exp(-(math.log(2) / half_life_days) * elapsed)


def combined_score(
    query_embedding: Sequence[float],
    chunk_embedding: Sequence[float],
    event_time: Optional[datetime],
    source_confidence: Optional[float] = None,
    now: Optional[datetime] = None,
    decay_lambda: float = DEFAULT_DECAY_LAMBDA,
) -> float:
    """Raw cosine x recency decay x source-confidence weight."""
    weight = DEFAULT_SOURCE_CONFIDENCE if source_confidence is None else source_confidence
    raw = cosine_similarity(query_embedding, chunk_embedding)
    return raw * recency_decay(event_time, now, decay_lambda) * weight
