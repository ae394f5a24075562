"""Relationship scoring: combine six criteria into one weighted connection.

The :class:`RelationshipScorer` turns a (source, target) pair plus a
pre-computed vector similarity into a :class:`ConnectionResult`:

1. **Criteria** -- the five remaining signals are evaluated via
   :mod:`connections.criteria`.
2. **Overall score** -- a plain weighted sum.  No normalisation and no
   clamping; exotic weights may legitimately push the score outside
   ``[0, 1]``.
3. **Relationship** -- a bidirectional ``related`` edge whose ``strength``
   is the overall score and whose ``confidence`` is the raw vector
   similarity (how sure we are that both items share a topic, not how
   strong the whole relationship is).
4. **Reason** -- a deterministic, human-readable explanation.

Usage::

    from connections.scoring import RelationshipScorer

    scorer = RelationshipScorer()
    result = scorer.score_connection(source, target, vector_similarity=0.91)
    print(result.overall_score, result.reason)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from connections import criteria as crit
from connections.config import ScoringWeights, get_config
from connections.items import Item

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RELATIONSHIP_TYPE = "related"
"""Edge type emitted for every detected connection."""

CREATED_BY = "ai"
"""Creator tag stamped on generated relationships."""

FALLBACK_REASON = "Connection detected via multi-criteria analysis"
"""Reason used when no explanation rule fires."""

_STRONG_SEMANTIC = 0.8
_MODERATE_SEMANTIC = 0.6
_SAME_TIME = 0.8
_TEMPORAL_PROXIMITY = 0.5
_SIMILAR_PARTICIPANTS = 0.5
_SHARED_TAGS = 0.5
_SAME_PRIORITY = 0.8
_MAX_TAGS_IN_REASON = 3


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScoringCriteria:
    """The six per-criterion signals for one pair of items."""

    vector_similarity: float
    temporal_similarity: float
    sentiment_alignment: float
    priority_alignment: float
    shared_participants: float
    shared_tags: float

    def weighted_terms(self, weights: ScoringWeights) -> dict[str, float]:
        """Per-criterion contribution ``weight * value`` to the overall score."""
        return {
            f.name: getattr(weights, f.name) * getattr(self, f.name)
            for f in fields(self)
        }

    def to_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class Relationship:
    """A typed edge from the source item to ``target_id``.

    Kept separate from :class:`ConnectionResult` so it can be stored as-is
    by a persistence layer.  ``criteria`` and ``weights`` are carried for
    auditability.
    """

    target_id: str
    strength: float
    confidence: float
    reason: str
    criteria: ScoringCriteria
    weights: ScoringWeights
    type: str = RELATIONSHIP_TYPE
    bidirectional: bool = True
    created_by: str = CREATED_BY
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "target_id": self.target_id,
            "bidirectional": self.bidirectional,
            "metadata": {
                "created_by": self.created_by,
                "created_at": self.created_at.isoformat(),
                "strength": self.strength,
                "confidence": self.confidence,
                "reason": self.reason,
                "criteria": self.criteria.to_dict(),
                "weights": self.weights.to_dict(),
            },
        }


@dataclass(frozen=True, slots=True)
class ConnectionResult:
    """A scored connection between ``source_item`` and ``target_item``."""

    source_item: Item
    target_item: Item
    overall_score: float
    criteria: ScoringCriteria
    reason: str
    relationship: Relationship

    def to_dict(self) -> dict[str, Any]:
        """Serialise with item ids instead of full item payloads."""
        return {
            "source_id": self.source_item.id,
            "target_id": self.target_item.id,
            "target_type": self.target_item.type,
            "target_title": self.target_item.title,
            "overall_score": round(self.overall_score, 6),
            "criteria": {k: round(v, 4) for k, v in self.criteria.to_dict().items()},
            "reason": self.reason,
            "relationship": self.relationship.to_dict(),
        }


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------


def _percent(value: float) -> int:
    """Round a ratio to the nearest whole percent (halves round up)."""
    return int(math.floor(value * 100 + 0.5))


class RelationshipScorer:
    """Stateless multi-criteria scorer.

    Parameters
    ----------
    default_weights:
        Weights used when :meth:`score_connection` is called without any.
        Defaults to ``get_config().weights``.
    """

    def __init__(self, default_weights: ScoringWeights | None = None) -> None:
        self._default_weights = (
            default_weights if default_weights is not None else get_config().weights
        )

    @property
    def default_weights(self) -> ScoringWeights:
        return self._default_weights

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute_criteria(
        self,
        source: Item,
        target: Item,
        vector_similarity: float,
    ) -> ScoringCriteria:
        """Evaluate every criterion except the supplied vector similarity."""
        return ScoringCriteria(
            vector_similarity=vector_similarity,
            temporal_similarity=crit.temporal_similarity(source, target),
            sentiment_alignment=crit.sentiment_alignment(source, target),
            priority_alignment=crit.priority_alignment(source, target),
            shared_participants=crit.shared_participants(source, target),
            shared_tags=crit.shared_tags(source, target),
        )

    def score_connection(
        self,
        source: Item,
        target: Item,
        vector_similarity: float,
        weights: ScoringWeights | None = None,
    ) -> ConnectionResult:
        """Score the connection from *source* to *target*.

        Parameters
        ----------
        source, target:
            The two items being compared.
        vector_similarity:
            Cosine similarity already obtained by the caller, either from
            the vector store or from :func:`~connections.criteria.cosine_similarity`.
        weights:
            Full weight set; defaults to the scorer's default weights.

        Returns
        -------
        ConnectionResult
            Score, per-criterion breakdown, reason and relationship edge.
        """
        if weights is None:
            weights = self._default_weights

        criteria = self.compute_criteria(source, target, vector_similarity)
        overall_score = sum(criteria.weighted_terms(weights).values())
        reason = self.generate_reason(criteria, source, target)

        relationship = Relationship(
            target_id=target.id,
            strength=overall_score,
            confidence=vector_similarity,
            reason=reason,
            criteria=criteria,
            weights=weights,
        )

        return ConnectionResult(
            source_item=source,
            target_item=target,
            overall_score=overall_score,
            criteria=criteria,
            reason=reason,
            relationship=relationship,
        )

    @staticmethod
    def generate_reason(criteria: ScoringCriteria, source: Item, target: Item) -> str:
        """Build the explanation string from the criteria.

        Clauses are appended in a fixed order and joined with commas; the
        first letter of the result is capitalised.
        """
        reasons: list[str] = []

        if criteria.vector_similarity >= _STRONG_SEMANTIC:
            reasons.append(
                f"strong semantic similarity ({_percent(criteria.vector_similarity)}%)"
            )
        elif criteria.vector_similarity >= _MODERATE_SEMANTIC:
            reasons.append(
                f"moderate semantic similarity ({_percent(criteria.vector_similarity)}%)"
            )

        if criteria.temporal_similarity >= _SAME_TIME:
            reasons.append("created at the same time")
        elif criteria.temporal_similarity >= _TEMPORAL_PROXIMITY:
            reasons.append("temporal proximity")

        if criteria.shared_participants >= _SIMILAR_PARTICIPANTS:
            reasons.append("similar participants")

        if criteria.shared_tags >= _SHARED_TAGS:
            shared = crit.common_tags(source, target)
            if shared:
                reasons.append(f"shared tags: {', '.join(shared[:_MAX_TAGS_IN_REASON])}")

        if criteria.sentiment_alignment == 1.0 and source.sentiment:
            reasons.append(f"same sentiment ({source.sentiment})")

        if criteria.priority_alignment >= _SAME_PRIORITY and source.priority:
            reasons.append(f"same priority ({source.priority})")

        if not reasons:
            return FALLBACK_REASON

        text = ", ".join(reasons)
        return text[0].upper() + text[1:]
