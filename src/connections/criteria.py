"""Criterion evaluators: one normalised relatedness signal per function.

Each evaluator takes two :class:`~connections.items.Item` instances and
returns a float.  They are pure, symmetric in their arguments and never
raise for well-formed items.  All results lie in ``[0, 1]`` except
:func:`vector_similarity`, which is a raw cosine in ``[-1, 1]``.

========================  ====================================================
Criterion                 Signal
========================  ====================================================
``vector_similarity``     cosine of the two embeddings
``temporal_similarity``   linear decay over a fixed 30-day window
``sentiment_alignment``   categorical lookup over sentiment labels
``priority_alignment``    ordinal distance between priority levels
``shared_participants``   overlap of from/to/cc/author (case-insensitive)
``shared_tags``           overlap of tags (case-sensitive)
========================  ====================================================
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime

from connections.errors import DimensionMismatchError
from connections.items import PRIORITY_LEVELS, Item

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEMPORAL_SCORING_WINDOW_DAYS = 30
"""Days over which temporal similarity decays from 1.0 to 0.0.

Fixed, and independent from the caller's ``temporal_window_days`` filter."""

_PRIORITY_STEP_PENALTY = 0.34
"""Score lost per ordinal step between two priority levels."""

_UNKNOWN_ALIGNMENT = 0.5
"""Alignment reported when either side of a categorical signal is unknown."""

_NEUTRAL_ALIGNMENT = 0.7
"""Sentiment alignment between neutral and a non-negative label."""

_SECONDS_PER_DAY = 86_400.0

_PRIORITY_INDEX: dict[str, int] = {level: i for i, level in enumerate(PRIORITY_LEVELS)}


# ---------------------------------------------------------------------------
# Vector math
# ---------------------------------------------------------------------------


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity ``dot(a, b) / (|a| * |b|)``.

    Returns ``0.0`` when either vector has zero norm.

    Raises
    ------
    DimensionMismatchError
        If the vectors differ in length.
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

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Rounding can push |cos| a hair past 1.0 for parallel vectors.
    return max(-1.0, min(1.0, similarity))


def days_between(a: datetime, b: datetime) -> float:
    """Absolute distance between two timestamps in fractional days."""
    return abs((a - b).total_seconds()) / _SECONDS_PER_DAY


# ---------------------------------------------------------------------------
# Set helpers
# ---------------------------------------------------------------------------


def extract_participants(item: Item) -> set[str]:
    """Union of ``from_``, ``to``, ``cc`` and ``author``, lower-cased."""
    raw: list[str] = []
    if item.from_:
        raw.append(item.from_)
    raw.extend(item.to)
    raw.extend(item.cc)
    if item.author:
        raw.append(item.author)
    return {p.lower() for p in raw if p}


def common_tags(source: Item, target: Item) -> list[str]:
    """Tags present on both items, in the source's order, without repeats."""
    target_tags = set(target.tags)
    seen: set[str] = set()
    shared: list[str] = []
    for tag in source.tags:
        if tag in target_tags and tag not in seen:
            seen.add(tag)
            shared.append(tag)
    return shared


def _overlap_ratio(a: Iterable[str], b: Iterable[str]) -> float:
    """``|A & B| / min(|A|, |B|)``, or ``0.0`` when either set is empty."""
    set_a = set(a)
    set_b = set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / min(len(set_a), len(set_b))


# ---------------------------------------------------------------------------
# Criterion evaluators
# ---------------------------------------------------------------------------


def vector_similarity(a: Item, b: Item) -> float:
    """Cosine similarity between the two items' embeddings.

    Raises
    ------
    ValueError
        If either item has no embedding.
    DimensionMismatchError
        If the embeddings differ in length.
    """
    if not a.embedding or not b.embedding:
        raise ValueError("Both items need an embedding to compare vectors")
    return cosine_similarity(a.embedding, b.embedding)


def temporal_similarity(a: Item, b: Item) -> float:
    """``max(0, 1 - days / 30)``: same moment is 1.0, a month apart is 0.0."""
    days = days_between(a.created_at, b.created_at)
    return max(0.0, 1.0 - days / TEMPORAL_SCORING_WINDOW_DAYS)


def sentiment_alignment(a: Item, b: Item) -> float:
    """Categorical agreement between the two sentiment labels."""
    sa, sb = a.sentiment, b.sentiment
    if not sa or not sb:
        return _UNKNOWN_ALIGNMENT
    if sa == sb:
        return 1.0
    if (sa == "neutral" and sb != "negative") or (sb == "neutral" and sa != "negative"):
        return _NEUTRAL_ALIGNMENT
    if {sa, sb} == {"positive", "negative"}:
        return 0.0
    return _UNKNOWN_ALIGNMENT


def priority_alignment(a: Item, b: Item) -> float:
    """Agreement between priority levels, losing 0.34 per ordinal step."""
    index_a = _PRIORITY_INDEX.get(a.priority or "")
    index_b = _PRIORITY_INDEX.get(b.priority or "")
    if index_a is None or index_b is None:
        return _UNKNOWN_ALIGNMENT
    return max(0.0, 1.0 - abs(index_a - index_b) * _PRIORITY_STEP_PENALTY)


def shared_participants(a: Item, b: Item) -> float:
    """Overlap ratio of the two participant sets."""
    return _overlap_ratio(extract_participants(a), extract_participants(b))


def shared_tags(a: Item, b: Item) -> float:
    """Overlap ratio of the two tag sets (no case folding)."""
    return _overlap_ratio(a.tags, b.tags)
