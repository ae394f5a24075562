"""Connection detection: find the items meaningfully related to a given item.

Each call runs the same pipeline and keeps no state between calls:

1. **Validate** -- an item without an embedding has nothing to search
   with; the result is empty (not an error, many items are simply not
   enriched yet).
2. **Retrieve** -- query the vector store for ``max_connections * 3``
   candidates above a loose similarity floor, to absorb the losses of
   the later filters.
3. **Filter** -- drop the item itself, candidates outside ``item_types``,
   and candidates created further than ``temporal_window_days`` away.
4. **Score** -- combine six criteria via
   :class:`~connections.scoring.RelationshipScorer`.
5. **Threshold, rank, truncate** -- keep ``overall_score >= min_score``,
   sort descending (stable: ties keep retrieval order), cut to
   ``max_connections``.

Failures raised by the vector store propagate unchanged.  There are no
retries and no partial results.

Usage::

    from connections.detector import ConnectionDetector, DetectionOptions
    from connections.vector_store import InMemoryVectorStore

    store = InMemoryVectorStore()
    store.add_many(items)
    detector = ConnectionDetector(store)

    result = await detector.detect_connections(items[0], DetectionOptions(min_score=0.5))
    for conn in result.connections:
        print(conn.target_item.id, round(conn.overall_score, 3), conn.reason)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import anyio

from connections.config import DetectionConfig, ScoringWeights, get_config
from connections.criteria import cosine_similarity, days_between
from connections.errors import DimensionMismatchError
from connections.items import Item
from connections.scoring import ConnectionResult, RelationshipScorer
from connections.vector_store import SearchHit, VectorSearch

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Options and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectionOptions:
    """Per-call options.  ``None`` means "use the configured default".

    Attributes
    ----------
    min_score:
        Minimum overall score for a connection to be kept.
    max_connections:
        Maximum number of connections returned.
    weights:
        Partial mapping (or full :class:`ScoringWeights`) overriding the
        default weights; unspecified weights keep their defaults.
    temporal_window_days:
        Candidates created further apart than this are never scored.
        ``0`` or a negative value disables the filter.
    item_types:
        Allow-list of candidate item types.  Empty or ``None`` allows all.
    """

    min_score: float | None = None
    max_connections: int | None = None
    weights: Mapping[str, float] | ScoringWeights | None = None
    temporal_window_days: float | None = None
    item_types: Sequence[str] | None = None

    def __post_init__(self) -> None:
        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError(f"max_connections must be >= 1, got {self.max_connections}")


@dataclass(frozen=True, slots=True)
class _ResolvedOptions:
    min_score: float
    max_connections: int
    weights: ScoringWeights
    temporal_window_days: float
    item_types: frozenset[str]


@dataclass
class ItemConnectionsResult:
    """Outcome of :meth:`ConnectionDetector.detect_connections` for one item.

    Attributes
    ----------
    item:
        The source item.
    connections:
        Kept connections, ordered by descending ``overall_score``.
    total_found:
        Connections that passed ``min_score`` before truncation.  Greater
        than ``len(connections)`` when more results exist.
    execution_time:
        Wall-clock duration of the detection in milliseconds.
    """

    item: Item
    connections: list[ConnectionResult] = field(default_factory=list)
    total_found: int = 0
    execution_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item.id,
            "connections": [c.to_dict() for c in self.connections],
            "total_found": self.total_found,
            "execution_time": round(self.execution_time, 3),
        }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def _first_leaf(group: ExceptionGroup) -> Exception:
    """First non-group exception inside a (possibly nested) exception group."""
    exc: Exception = group
    while isinstance(exc, ExceptionGroup):
        exc = exc.exceptions[0]
    return exc


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class ConnectionDetector:
    """Orchestrates vector retrieval, filtering and multi-criteria scoring.

    Instances hold only immutable collaborators, so one detector can be
    shared freely between concurrent tasks.

    Parameters
    ----------
    search:
        Vector search backend implementing
        :class:`~connections.vector_store.VectorSearch`.
    scorer:
        Relationship scorer; a default one is built when omitted.
    config:
        Detection defaults; ``get_config().detection`` when omitted.
    weights:
        Default scoring weights; ``get_config().weights`` when omitted.
    """

    def __init__(
        self,
        search: VectorSearch,
        scorer: RelationshipScorer | None = None,
        config: DetectionConfig | None = None,
        weights: ScoringWeights | None = None,
    ) -> None:
        cfg = get_config()
        self._search = search
        self._cfg = config if config is not None else cfg.detection
        self._weights = weights if weights is not None else cfg.weights
        self._scorer = scorer if scorer is not None else RelationshipScorer(self._weights)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def detect_connections(
        self,
        item: Item,
        options: DetectionOptions | None = None,
    ) -> ItemConnectionsResult:
        """Detect the items connected to *item*.

        Parameters
        ----------
        item:
            Source item.  Without an embedding an empty result is returned.
        options:
            Per-call overrides of the configured defaults.

        Returns
        -------
        ItemConnectionsResult
            Connections sorted by descending score, at most
            ``max_connections`` long.
        """
        start = time.perf_counter()
        opts = self._resolve(options)

        if not item.embedding:
            log.debug("Item %s has no embedding, skipping detection", item.id)
            return ItemConnectionsResult(item=item, execution_time=_elapsed_ms(start))

        fetch_limit = opts.max_connections * self._cfg.over_fetch_factor
        hits = await self._search.search(
            item.embedding,
            limit=fetch_limit,
            min_similarity=self._cfg.search_min_similarity,
        )

        candidates = self._filter_candidates(item, hits, opts)

        connections: list[ConnectionResult] = []
        for hit in candidates:
            result = self._scorer.score_connection(item, hit.item, hit.score, opts.weights)
            if result.overall_score >= opts.min_score:
                connections.append(result)

        # list.sort is stable: equal scores keep retrieval order.
        connections.sort(key=lambda c: c.overall_score, reverse=True)
        total_found = len(connections)
        kept = connections[: opts.max_connections]

        elapsed = _elapsed_ms(start)
        log.info(
            "Detection for %s: %d hits, %d candidates, %d above %.2f, %d returned (%.1f ms)",
            item.id,
            len(hits),
            len(candidates),
            total_found,
            opts.min_score,
            len(kept),
            elapsed,
        )
        return ItemConnectionsResult(
            item=item,
            connections=kept,
            total_found=total_found,
            execution_time=elapsed,
        )

    async def detect_connections_batch(
        self,
        items: Sequence[Item],
        options: DetectionOptions | None = None,
    ) -> list[ItemConnectionsResult]:
        """Run :meth:`detect_connections` for every item, results in input order.

        At most ``batch_concurrency`` detections are in flight at once.  The
        default of 1 processes items strictly one after another, keeping a
        single outstanding query against the vector store.  If any detection
        fails the whole batch fails.
        """
        if not items:
            return []

        start = time.perf_counter()
        concurrency = max(1, self._cfg.batch_concurrency)
        results: list[ItemConnectionsResult | None] = [None] * len(items)

        if concurrency == 1:
            for index, item in enumerate(items):
                results[index] = await self.detect_connections(item, options)
        else:
            limiter = anyio.CapacityLimiter(concurrency)

            async def _run(index: int, item: Item) -> None:
                async with limiter:
                    results[index] = await self.detect_connections(item, options)

            try:
                async with anyio.create_task_group() as tg:
                    for index, item in enumerate(items):
                        tg.start_soon(_run, index, item)
            except ExceptionGroup as eg:
                # Surface the search error itself, as the sequential path does.
                raise _first_leaf(eg) from None

        log.info(
            "Batch detection: %d items, concurrency=%d (%.1f ms)",
            len(items),
            concurrency,
            _elapsed_ms(start),
        )
        return [r for r in results if r is not None]

    async def detect_strongest_connection(
        self,
        item: Item,
        options: DetectionOptions | None = None,
    ) -> ConnectionResult | None:
        """Return the single best connection for *item*, or ``None``."""
        options = replace(options or DetectionOptions(), max_connections=1)
        result = await self.detect_connections(item, options)
        return result.connections[0] if result.connections else None

    def are_items_connected(
        self,
        item_a: Item,
        item_b: Item,
        min_score: float = 0.6,
    ) -> bool:
        """Check whether two items are connected, without the vector store.

        Cosine similarity is computed directly from both embeddings and the
        pair is scored with the default weights.  Returns ``False`` when
        either embedding is missing or their dimensions differ.
        """
        if not item_a.embedding or not item_b.embedding:
            return False

        try:
            similarity = cosine_similarity(item_a.embedding, item_b.embedding)
        except DimensionMismatchError as exc:
            log.warning("Cannot compare %s and %s: %s", item_a.id, item_b.id, exc)
            return False

        result = self._scorer.score_connection(item_a, item_b, similarity, self._weights)
        return result.overall_score >= min_score

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, options: DetectionOptions | None) -> _ResolvedOptions:
        """Merge per-call options with the configured defaults."""
        options = options or DetectionOptions()
        cfg = self._cfg
        return _ResolvedOptions(
            min_score=cfg.min_score if options.min_score is None else options.min_score,
            max_connections=(
                cfg.max_connections
                if options.max_connections is None
                else options.max_connections
            ),
            weights=self._weights.merged(options.weights),
            temporal_window_days=(
                cfg.temporal_window_days
                if options.temporal_window_days is None
                else options.temporal_window_days
            ),
            item_types=frozenset(options.item_types or ()),
        )

    @staticmethod
    def _filter_candidates(
        item: Item,
        hits: list[SearchHit],
        opts: _ResolvedOptions,
    ) -> list[SearchHit]:
        """Apply the structural filters, preserving retrieval order."""
        window = opts.temporal_window_days
        kept: list[SearchHit] = []
        for hit in hits:
            candidate = hit.item
            if candidate.id == item.id:
                continue
            if opts.item_types and candidate.type not in opts.item_types:
                continue
            if window > 0 and days_between(item.created_at, candidate.created_at) > window:
                continue
            kept.append(hit)

        log.debug(
            "Filtered %d of %d hits for %s (types=%s, window=%s days)",
            len(hits) - len(kept),
            len(hits),
            item.id,
            sorted(opts.item_types) or "any",
            window,
        )
        return kept
