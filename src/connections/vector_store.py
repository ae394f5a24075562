"""Vector search backends for candidate retrieval.

The detector only depends on the narrow :class:`VectorSearch` contract::

    await store.search(vector, limit=30, min_similarity=0.5) -> list[SearchHit]

where each hit's ``score`` is a cosine similarity in ``[0, 1]``, ordered by
descending score.  The detector treats the store as authoritative and does
not re-check distances.

Two implementations ship with the package:

* :class:`InMemoryVectorStore` -- exact brute-force cosine search, for
  tests, fixtures and small local datasets.
* :class:`QdrantVectorStore` -- thin async client for a Qdrant collection
  over its REST API.  Item payloads are read with
  :meth:`~connections.items.Item.from_dict`.

Usage::

    from connections.vector_store import InMemoryVectorStore

    store = InMemoryVectorStore()
    store.add_many(items)
    hits = await store.search(items[0].embedding, limit=5, min_similarity=0.5)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from connections.config import VectorStoreConfig, get_config
from connections.criteria import cosine_similarity
from connections.errors import DimensionMismatchError
from connections.items import Item

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A candidate item returned by a vector search, with its similarity."""

    item: Item
    score: float


@runtime_checkable
class VectorSearch(Protocol):
    """Anything that can run an approximate nearest-neighbour query."""

    async def search(
        self,
        vector: Sequence[float],
        *,
        limit: int,
        min_similarity: float,
    ) -> list[SearchHit]:
        ...


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryVectorStore:
    """Exact cosine search over items held in a dict.

    Parameters
    ----------
    dimension:
        Expected embedding length.  When ``None`` the first added item
        fixes it.
    """

    def __init__(self, dimension: int | None = None) -> None:
        self._dimension = dimension
        self._items: dict[str, Item] = {}

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def _check_vector(self, vector: Sequence[float]) -> None:
        if self._dimension is not None and len(vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(vector))

    def add(self, item: Item) -> None:
        """Insert or replace *item*.

        Raises
        ------
        ValueError
            If the item has no embedding.
        DimensionMismatchError
            If its embedding length differs from the store's dimension.
        """
        if not item.embedding:
            raise ValueError(f"Item {item.id!r} has no embedding")
        self._check_vector(item.embedding)
        if self._dimension is None:
            self._dimension = len(item.embedding)
        self._items[item.id] = item

    def add_many(self, items: Iterable[Item]) -> int:
        """Add every item that carries an embedding; return how many were added.

        Items without an embedding are skipped.  A dimension mismatch still
        raises.
        """
        added = 0
        for item in items:
            if not item.embedding:
                log.debug("Skipping item %s: no embedding", item.id)
                continue
            self.add(item)
            added += 1
        return added

    def remove(self, item_id: str) -> bool:
        """Remove an item by id; return whether it was present."""
        return self._items.pop(item_id, None) is not None

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def count(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        self._items.clear()

    async def search(
        self,
        vector: Sequence[float],
        *,
        limit: int,
        min_similarity: float,
    ) -> list[SearchHit]:
        """Return up to *limit* items with similarity >= *min_similarity*.

        Ties keep insertion order.
        """
        self._check_vector(vector)
        hits = []
        for item in self._items.values():
            score = cosine_similarity(vector, item.embedding or [])
            if score >= min_similarity:
                hits.append(SearchHit(item=item, score=score))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]


# ---------------------------------------------------------------------------
# Qdrant store
# ---------------------------------------------------------------------------


class QdrantVectorStore:
    """Read-only async client for a Qdrant collection using cosine distance.

    Errors from the HTTP layer (timeouts, connection failures, non-2xx
    responses) are raised to the caller unchanged.  No retries are made.

    Parameters
    ----------
    url:
        Base URL of the Qdrant server, e.g. ``http://localhost:6333``.
    collection:
        Name of the collection holding item points.
    api_key:
        Optional key sent in the ``api-key`` header (Qdrant Cloud).
    timeout:
        Request timeout in seconds.
    client:
        Pre-built :class:`httpx.AsyncClient` to use instead of creating one.
        The store does not close a client it did not create.
    """

    def __init__(
        self,
        url: str,
        collection: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.collection = collection
        headers = {"api-key": api_key} if api_key else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.url, headers=headers, timeout=timeout,
        )

    @classmethod
    def from_config(cls, cfg: VectorStoreConfig | None = None) -> QdrantVectorStore:
        """Build a store from :class:`~connections.config.VectorStoreConfig`."""
        cfg = cfg or get_config().vector_store
        return cls(
            url=cfg.qdrant_url,
            collection=cfg.collection,
            api_key=cfg.api_key,
            timeout=cfg.timeout_seconds,
        )

    async def search(
        self,
        vector: Sequence[float],
        *,
        limit: int,
        min_similarity: float,
    ) -> list[SearchHit]:
        """Run a ``points/search`` query and convert payloads to items.

        Points whose payload cannot be turned into an :class:`Item` are
        skipped with a warning.
        """
        body = {
            "vector": list(vector),
            "limit": limit,
            "score_threshold": min_similarity,
            "with_payload": True,
            "with_vector": True,
        }
        resp = await self._client.post(
            f"/collections/{self.collection}/points/search", json=body,
        )
        resp.raise_for_status()
        points = resp.json().get("result") or []

        hits: list[SearchHit] = []
        for point in points:
            item = self._point_to_item(point)
            if item is None:
                continue
            hits.append(SearchHit(item=item, score=float(point["score"])))

        log.debug(
            "Qdrant search on %s returned %d hits (limit=%d, min=%.2f)",
            self.collection,
            len(hits),
            limit,
            min_similarity,
        )
        return hits

    @staticmethod
    def _point_to_item(point: dict[str, Any]) -> Item | None:
        payload = dict(point.get("payload") or {})
        payload.setdefault("id", point.get("id"))
        vector = point.get("vector")
        if isinstance(vector, list) and "embedding" not in payload:
            payload["embedding"] = vector
        try:
            return Item.from_dict(payload)
        except (ValueError, TypeError) as exc:
            log.warning("Skipping Qdrant point %s: %s", point.get("id"), exc)
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> QdrantVectorStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
