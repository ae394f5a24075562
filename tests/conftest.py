"""Shared fixtures and helpers for the connections test suite."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from connections.config import get_config
from connections.items import Item
from connections.vector_store import InMemoryVectorStore, SearchHit, VectorSearch

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
"""Reference creation time used by :func:`build_item`."""


def build_item(
    item_id: str,
    embedding: list[float] | None = None,
    item_type: str = "email",
    days: float = 0.0,
    tags: list[str] | None = None,
    sentiment: str | None = None,
    priority: str | None = None,
    from_: str | None = None,
    to: list[str] | None = None,
    cc: list[str] | None = None,
    author: str | None = None,
) -> Item:
    """Build an item created *days* after :data:`BASE_TIME`."""
    return Item(
        id=item_id,
        type=item_type,
        created_at=BASE_TIME + timedelta(days=days),
        tags=tags or [],
        embedding=embedding,
        sentiment=sentiment,
        priority=priority,
        from_=from_,
        to=to or [],
        cc=cc or [],
        author=author,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure no stray CONNECTIONS_* variable leaks into the cached config."""
    for key in list(os.environ):
        if key.startswith("CONNECTIONS_"):
            monkeypatch.delenv(key)
    get_config(reload=True)


@pytest.fixture
def make_item() -> Callable[..., Item]:
    """Return :func:`build_item` so tests can build items inline."""
    return build_item


@pytest.fixture
def store() -> InMemoryVectorStore:
    """An empty in-memory vector store."""
    return InMemoryVectorStore()


@pytest.fixture
def mock_search() -> MagicMock:
    """Return a MagicMock standing in for a vector store.

    ``search`` is an AsyncMock returning no hits; tests set
    ``mock_search.search.return_value`` to a list of hits.
    """
    backend = MagicMock(spec=VectorSearch)
    backend.search = AsyncMock(return_value=[])
    return backend


def hits(*pairs: tuple[Item, float]) -> list[SearchHit]:
    """Shorthand for building a list of :class:`SearchHit`."""
    return [SearchHit(item=item, score=score) for item, score in pairs]


def as_payload(item: Item) -> dict[str, Any]:
    """Serialise an item the way the enrichment pipeline nests it."""
    return {
        "id": item.id,
        "type": item.type,
        "tags": list(item.tags),
        "createdAt": item.created_at.isoformat(),
        "metadata": {
            "from": item.from_,
            "to": list(item.to),
            "ai": {
                "embedding": item.embedding,
                "sentiment": {"type": item.sentiment} if item.sentiment else None,
                "priority": {"level": item.priority} if item.priority else None,
            },
        },
    }
