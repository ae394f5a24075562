"""Central configuration for the connection engine.

All tunables live here with sensible defaults.  Values can be overridden
through environment variables prefixed with ``CONNECTIONS_`` (nested keys
use double underscores, e.g. ``CONNECTIONS_DETECTION__MIN_SCORE=0.7``).

Usage::

    from connections.config import get_config

    cfg = get_config()
    print(cfg.detection.min_score)
    print(cfg.weights.vector_similarity)
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, TypeVar, get_type_hints

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Nested configuration sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Relative weights for the six connection criteria.

    The defaults sum to exactly 1.0 but normalisation is not enforced:
    callers supplying exotic weights can produce overall scores outside
    ``[0, 1]``.
    """

    vector_similarity: float = 0.40
    temporal_similarity: float = 0.15
    sentiment_alignment: float = 0.10
    priority_alignment: float = 0.10
    shared_participants: float = 0.15
    shared_tags: float = 0.10

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(
                    f"Weight {f.name!r} must be non-negative, got {getattr(self, f.name)}"
                )

    def merged(self, overrides: Mapping[str, float] | ScoringWeights | None) -> ScoringWeights:
        """Return a copy with *overrides* applied on top of these weights.

        Unknown keys raise :class:`ValueError` so typos never silently fall
        back to a default.
        """
        if overrides is None:
            return self
        if isinstance(overrides, ScoringWeights):
            return overrides
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(
                f"Unknown scoring weight(s): {', '.join(sorted(unknown))}. "
                f"Must be one of {sorted(known)}"
            )
        return replace(self, **{k: float(v) for k, v in overrides.items()})

    def total(self) -> float:
        """Sum of all six weights."""
        return sum(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class DetectionConfig:
    """Parameters that govern candidate retrieval and filtering."""

    min_score: float = 0.6
    max_connections: int = 10
    temporal_window_days: int = 30
    """Candidates further apart than this are dropped before scoring.
    Independent from the fixed 30-day window inside the temporal criterion."""

    search_min_similarity: float = 0.5
    """Similarity floor passed to the vector store.  Looser than
    ``min_score`` since vector similarity is one of six components."""

    over_fetch_factor: int = 3
    """Candidates requested per wanted connection, to absorb filter losses."""

    batch_concurrency: int = 1
    """Detections in flight at once during batch runs.  1 keeps the
    external store at a single outstanding query per batch."""


@dataclass(frozen=True, slots=True)
class VectorStoreConfig:
    """Connection settings for the Qdrant REST adapter."""

    qdrant_url: str = "http://localhost:6333"
    collection: str = "items"
    api_key: str | None = None
    timeout_seconds: float = 10.0


# ---------------------------------------------------------------------------
# Top-level configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConnectionsConfig:
    """Root configuration object for the connection engine."""

    weights: ScoringWeights = field(default_factory=ScoringWeights)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)


# ---------------------------------------------------------------------------
# Environment-variable loader
# ---------------------------------------------------------------------------

_ENV_PREFIX = "CONNECTIONS_"
_NESTED_SEP = "__"


def _resolve_type_hints(dc_type: type) -> dict[str, Any]:
    """Resolve stringified annotations back to real types.

    ``from __future__ import annotations`` turns all annotations into
    strings.  :func:`typing.get_type_hints` evaluates them in the correct
    module namespace so we get the actual :class:`type` objects.
    """
    module = sys.modules.get(dc_type.__module__, None)
    globalns = getattr(module, "__dict__", {}) if module else {}
    return get_type_hints(dc_type, globalns=globalns)


def _coerce(value: str, target_type: Any) -> Any:
    """Cast an env-var string to the target field type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes")
    if target_type in (int, float, str):
        return target_type(value)
    # Optional[str] and friends: keep the raw string.
    return value


def _load_dataclass(dc_type: type[T], prefix: str) -> T:
    """Recursively build a dataclass from env-var overrides + defaults."""
    hints = _resolve_type_hints(dc_type)
    kwargs: dict[str, object] = {}

    for f in fields(dc_type):  # type: ignore[arg-type]
        field_type = hints[f.name]
        nested_prefix = f"{prefix}{f.name}{_NESTED_SEP}".upper()

        if hasattr(field_type, "__dataclass_fields__"):
            kwargs[f.name] = _load_dataclass(field_type, nested_prefix)
        else:
            env_key = f"{prefix}{f.name}".upper()
            raw = os.environ.get(env_key)
            if raw is not None:
                kwargs[f.name] = _coerce(raw, field_type)

    return dc_type(**kwargs)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_cached_config: ConnectionsConfig | None = None


def get_config(*, reload: bool = False) -> ConnectionsConfig:
    """Return the current :class:`ConnectionsConfig`.

    On the first call the config is built by merging defaults with any
    ``CONNECTIONS_*`` environment variables.  The result is cached for the
    lifetime of the process unless *reload* is ``True``.

    Parameters
    ----------
    reload:
        Force re-reading environment variables and rebuilding the config.
    """
    global _cached_config  # noqa: PLW0603
    if _cached_config is None or reload:
        _cached_config = _load_dataclass(ConnectionsConfig, _ENV_PREFIX)
    return _cached_config
