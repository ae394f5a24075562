"""Aggregate statistics over a batch of detection results.

Usage::

    from connections.stats import summarize

    results = await detector.detect_connections_batch(items)
    print(summarize(results).to_dict())
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field, fields
from typing import Any

from connections.detector import ItemConnectionsResult
from connections.scoring import ConnectionResult, ScoringCriteria

CRITERIA_NAMES: tuple[str, ...] = tuple(f.name for f in fields(ScoringCriteria))
"""Criterion names in scoring order."""


@dataclass
class ConnectionStats:
    """Summary of one or more :class:`ItemConnectionsResult` objects.

    Attributes
    ----------
    items_analyzed:
        Number of source items processed.
    connections_detected:
        Number of connections returned across all items.
    average_score:
        Mean ``overall_score`` of those connections (0.0 when none).
    dominant_criteria_distribution:
        How many connections each criterion dominated; see
        :func:`dominant_criterion`.  Criteria that never dominate are left
        out.
    total_execution_time:
        Sum of per-item execution times in milliseconds.
    """

    items_analyzed: int = 0
    connections_detected: int = 0
    average_score: float = 0.0
    dominant_criteria_distribution: dict[str, int] = field(default_factory=dict)
    total_execution_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "items_analyzed": self.items_analyzed,
            "connections_detected": self.connections_detected,
            "average_score": round(self.average_score, 6),
            "dominant_criteria_distribution": dict(self.dominant_criteria_distribution),
            "total_execution_time": round(self.total_execution_time, 3),
        }


def dominant_criterion(connection: ConnectionResult) -> str:
    """Name of the criterion with the largest weighted contribution.

    Weights come from the connection's own relationship record.  Ties go to
    the criterion listed first in :data:`CRITERIA_NAMES`.
    """
    terms = connection.criteria.weighted_terms(connection.relationship.weights)
    return max(CRITERIA_NAMES, key=lambda name: terms[name])


def summarize(results: Iterable[ItemConnectionsResult]) -> ConnectionStats:
    """Build :class:`ConnectionStats` from detection results."""
    items = 0
    total_time = 0.0
    scores: list[float] = []
    dominant: Counter[str] = Counter()

    for result in results:
        items += 1
        total_time += result.execution_time
        for conn in result.connections:
            scores.append(conn.overall_score)
            dominant[dominant_criterion(conn)] += 1

    return ConnectionStats(
        items_analyzed=items,
        connections_detected=len(scores),
        average_score=sum(scores) / len(scores) if scores else 0.0,
        dominant_criteria_distribution={
            name: dominant[name] for name in CRITERIA_NAMES if dominant[name]
        },
        total_execution_time=total_time,
    )
