"""Tests for Item parsing and serialisation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from connections.items import Item

from tests.conftest import BASE_TIME, as_payload, build_item


class TestFromDict:
    """Flat and nested layouts, timestamps, required fields."""

    def test_flat_layout(self) -> None:
        item = Item.from_dict({
            "id": "t-1",
            "type": "task",
            "title": "Ship Q3 report",
            "tags": ["q3"],
            "created_at": "2025-01-01T12:00:00+00:00",
            "embedding": [1, 2],
            "sentiment": "neutral",
            "priority": "medium",
            "from": "alice@x.io",
            "to": "bob@x.io",
            "author": "alice",
        })

        assert item.id == "t-1"
        assert item.type == "task"
        assert item.title == "Ship Q3 report"
        assert item.created_at == BASE_TIME
        assert item.embedding == [1.0, 2.0]
        assert item.sentiment == "neutral"
        assert item.priority == "medium"
        assert item.from_ == "alice@x.io"
        assert item.to == ["bob@x.io"]
        assert item.cc == []
        assert item.author == "alice"

    def test_nested_enrichment_layout(self) -> None:
        original = build_item(
            "m-1", embedding=[0.5, 0.5], sentiment="positive", priority="low",
            from_="carol@x.io", to=["dan@x.io"], tags=["ops"],
        )
        item = Item.from_dict(as_payload(original))

        assert item.embedding == [0.5, 0.5]
        assert item.sentiment == "positive"
        assert item.priority == "low"
        assert item.from_ == "carol@x.io"
        assert item.to == ["dan@x.io"]
        assert item.tags == ["ops"]

    def test_flat_keys_win(self) -> None:
        item = Item.from_dict({
            "id": "x",
            "created_at": "2025-01-01T00:00:00Z",
            "sentiment": "negative",
            "metadata": {"ai": {"sentiment": {"type": "positive"}}},
        })
        assert item.sentiment == "negative"

    def test_z_suffix_is_utc(self) -> None:
        item = Item.from_dict({"id": "x", "createdAt": "2025-01-01T12:00:00Z"})
        assert item.created_at == BASE_TIME

    def test_naive_timestamp_assumed_utc(self) -> None:
        item = Item.from_dict({"id": "x", "created_at": "2025-01-01T12:00:00"})
        assert item.created_at.tzinfo is not None
        assert item.created_at == BASE_TIME

    def test_epoch_seconds(self) -> None:
        item = Item.from_dict({"id": "x", "created_at": BASE_TIME.timestamp()})
        assert item.created_at == BASE_TIME

    def test_offset_preserved_as_instant(self) -> None:
        item = Item.from_dict({"id": "x", "created_at": "2025-01-01T14:00:00+02:00"})
        assert item.created_at == BASE_TIME
        assert item.created_at.utcoffset() == timedelta(hours=2)

    def test_missing_enrichment_is_unknown(self) -> None:
        item = Item.from_dict({"id": "x", "created_at": "2025-01-01T00:00:00Z"})
        assert item.embedding is None
        assert item.sentiment is None
        assert item.priority is None
        assert item.type == "unknown"
        assert not item.has_embedding

    def test_empty_embedding_is_none(self) -> None:
        item = Item.from_dict({"id": "x", "created_at": "2025-01-01", "embedding": []})
        assert item.embedding is None

    @pytest.mark.parametrize("data", [
        {"created_at": "2025-01-01T00:00:00Z"},
        {"id": "", "created_at": "2025-01-01T00:00:00Z"},
    ])
    def test_missing_id_raises(self, data: dict) -> None:
        with pytest.raises(ValueError, match="id"):
            Item.from_dict(data)

    def test_missing_created_at_raises(self) -> None:
        with pytest.raises(ValueError, match="created_at"):
            Item.from_dict({"id": "x"})

    def test_non_dict_metadata_ignored(self) -> None:
        item = Item.from_dict({
            "id": "x", "created_at": "2025-01-01T00:00:00Z", "metadata": "n/a",
        })
        assert item.from_ is None
        assert item.embedding is None

    def test_non_dict_ai_block_ignored(self) -> None:
        item = Item.from_dict({
            "id": "x", "created_at": "2025-01-01T00:00:00Z",
            "metadata": {"from": "a@b.c", "ai": ["junk"]},
        })
        assert item.from_ == "a@b.c"
        assert item.sentiment is None

    def test_participant_scalars_become_strings(self) -> None:
        item = Item.from_dict({
            "id": "x", "created_at": "2025-01-01T00:00:00Z", "from": 42, "author": 7,
        })
        assert item.from_ == "42"
        assert item.author == "7"

    def test_garbage_timestamp_raises(self) -> None:
        with pytest.raises(ValueError):
            Item.from_dict({"id": "x", "created_at": "not a date"})


class TestConstruction:
    """Direct construction normalises timestamps."""

    def test_naive_created_at_becomes_utc(self) -> None:
        item = Item(id="x", type="note", created_at=datetime(2025, 1, 1, 12, 0))
        assert item.created_at.tzinfo is not None
        assert item.created_at == BASE_TIME

    def test_aware_created_at_kept(self) -> None:
        moment = datetime(2025, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        item = Item(id="x", type="note", created_at=moment)
        assert item.created_at is moment


class TestToDict:
    """Flat serialisation."""

    def test_round_trips_through_from_dict(self) -> None:
        original = build_item(
            "a", embedding=[0.1, 0.2], tags=["t"], sentiment="neutral",
            priority="critical", from_="a@b.c", to=["d@e.f"], cc=["g@h.i"], author="z",
        )
        assert Item.from_dict(original.to_dict()) == original

    def test_uses_from_key(self) -> None:
        d = build_item("a", from_="a@b.c").to_dict()
        assert d["from"] == "a@b.c"
        assert "from_" not in d

    def test_can_drop_embedding(self) -> None:
        d = build_item("a", embedding=[1.0]).to_dict(include_embedding=False)
        assert "embedding" not in d

    def test_timestamp_is_iso(self) -> None:
        d = build_item("a").to_dict()
        assert datetime.fromisoformat(d["created_at"]) == BASE_TIME
        assert datetime.fromisoformat(d["created_at"]).tzinfo == timezone.utc
