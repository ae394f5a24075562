"""Item record consumed by the connection engine.

An **item** is an opaque content record, such as an email or a task, that
the engine reads but never mutates.  Besides its identity,
category and tags, an item may carry enrichment fields filled in upstream:

- **embedding** -- fixed-length float vector describing its content.
- **sentiment** -- one of :data:`SENTIMENT_TYPES`.
- **priority** -- one of :data:`PRIORITY_LEVELS` (ordered low to critical).
- **participants** -- ``from_``, ``to``, ``cc`` and ``author``.

Any enrichment field may be absent.  Absence means *unknown*; it is never
interpreted as zero or negative.

Usage::

    from connections.items import Item

    item = Item.from_dict({
        "id": "msg-1",
        "type": "email",
        "tags": ["budget"],
        "createdAt": "2025-01-01T09:00:00Z",
        "metadata": {"ai": {"embedding": [0.1, 0.2, 0.3]}},
    })
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SENTIMENT_TYPES: tuple[str, ...] = (
    "positive",
    "neutral",
    "negative",
)
"""Closed set of sentiment labels produced by the enrichment pipeline."""

PRIORITY_LEVELS: tuple[str, ...] = (
    "low",
    "medium",
    "high",
    "critical",
)
"""Ordered priority levels, lowest first."""


# ---------------------------------------------------------------------------
# Parsing helpers (module-private)
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any) -> datetime:
    """Turn an ISO-8601 string, epoch seconds, or datetime into an aware datetime.

    Naive values are assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid created_at timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _label(value: Any, key: str) -> str | None:
    """Extract a categorical label given either ``"x"`` or ``{key: "x"}``."""
    if isinstance(value, dict):
        value = value.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _opt_str(value: Any) -> str | None:
    return None if value is None or value == "" else str(value)


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


# ---------------------------------------------------------------------------
# Item dataclass
# ---------------------------------------------------------------------------


@dataclass
class Item:
    """In-memory representation of a single content item.

    Parameters
    ----------
    id:
        Unique, stable identifier.
    type:
        Category tag, e.g. ``"email"`` or ``"task"``.
    created_at:
        Timezone-aware creation timestamp.
    tags:
        Free-form tags; order is irrelevant.
    title:
        Optional display title.
    embedding:
        Content embedding, or ``None`` when the item is not yet enriched.
    sentiment:
        Sentiment label, or ``None`` when unknown.
    priority:
        Priority level, or ``None`` when unknown.
    from_:
        Sender address (``from`` in serialised form).
    to:
        Direct recipients.
    cc:
        Carbon-copied recipients.
    author:
        Author for non-message items (documents, notes).
    """

    id: str
    type: str
    created_at: datetime
    tags: list[str] = field(default_factory=list)
    title: str = ""
    embedding: list[float] | None = None
    sentiment: str | None = None
    priority: str | None = None
    from_: str | None = None
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    author: str | None = None

    def __post_init__(self) -> None:
        if self.created_at.tzinfo is None:
            self.created_at = _parse_timestamp(self.created_at)

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        """Create an :class:`Item` from a plain mapping.

        Both the flat layout produced by :meth:`to_dict` and the nested
        layout used by the enrichment pipeline are accepted::

            {"metadata": {"from": "...", "to": [...],
                          "ai": {"embedding": [...],
                                 "sentiment": {"type": "positive"},
                                 "priority": {"level": "high"}}}}

        Flat keys win over nested ones when both are present.

        Raises
        ------
        ValueError
            If ``id`` or ``created_at`` is missing or malformed.
        """
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        ai = metadata.get("ai")
        if not isinstance(ai, dict):
            ai = {}

        def pick(*keys: str) -> Any:
            for source in (data, metadata, ai):
                for key in keys:
                    if source.get(key) is not None:
                        return source[key]
            return None

        item_id = data.get("id")
        if item_id is None or item_id == "":
            raise ValueError("Item is missing an 'id'")

        created = data.get("created_at", data.get("createdAt"))
        if created is None:
            raise ValueError(f"Item {item_id!r} is missing 'created_at'")

        embedding = pick("embedding")
        return cls(
            id=str(item_id),
            type=str(data.get("type") or "unknown"),
            created_at=_parse_timestamp(created),
            tags=_str_list(data.get("tags")),
            title=str(data.get("title") or ""),
            embedding=[float(x) for x in embedding] if embedding else None,
            sentiment=_label(pick("sentiment"), "type"),
            priority=_label(pick("priority"), "level"),
            from_=_opt_str(pick("from", "from_")),
            to=_str_list(pick("to")),
            cc=_str_list(pick("cc")),
            author=_opt_str(pick("author")),
        )

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def to_dict(self, include_embedding: bool = True) -> dict[str, Any]:
        """Serialise the item to a flat JSON-safe dict.

        Parameters
        ----------
        include_embedding:
            Set to ``False`` to leave out the (usually large) vector.
        """
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "sentiment": self.sentiment,
            "priority": self.priority,
            "from": self.from_,
            "to": list(self.to),
            "cc": list(self.cc),
            "author": self.author,
        }
        if include_embedding:
            d["embedding"] = list(self.embedding) if self.embedding else None
        return d
