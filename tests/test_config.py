"""Tests for configuration defaults, env overrides and weight merging."""

from __future__ import annotations

import pytest

from connections.config import (
    ConnectionsConfig,
    DetectionConfig,
    ScoringWeights,
    get_config,
)


class TestDefaults:
    def test_weights_sum_to_one(self) -> None:
        assert ScoringWeights().total() == pytest.approx(1.0)

    def test_detection_defaults(self) -> None:
        cfg = DetectionConfig()
        assert cfg.min_score == 0.6
        assert cfg.max_connections == 10
        assert cfg.temporal_window_days == 30
        assert cfg.search_min_similarity == 0.5
        assert cfg.over_fetch_factor == 3
        assert cfg.batch_concurrency == 1

    def test_get_config_is_cached(self) -> None:
        assert get_config() is get_config()
        assert isinstance(get_config(), ConnectionsConfig)


class TestEnvOverrides:
    """``CONNECTIONS_<SECTION>__<FIELD>`` variables."""

    def test_float_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONNECTIONS_DETECTION__MIN_SCORE", "0.7")
        assert get_config(reload=True).detection.min_score == 0.7

    def test_int_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONNECTIONS_DETECTION__BATCH_CONCURRENCY", "4")
        assert get_config(reload=True).detection.batch_concurrency == 4

    def test_weight_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONNECTIONS_WEIGHTS__SHARED_TAGS", "0.3")
        cfg = get_config(reload=True)
        assert cfg.weights.shared_tags == 0.3
        assert cfg.weights.vector_similarity == 0.4

    def test_cache_ignores_env_until_reload(self, monkeypatch: pytest.MonkeyPatch) -> None:
        before = get_config()
        monkeypatch.setenv("CONNECTIONS_DETECTION__MAX_CONNECTIONS", "3")
        assert get_config() is before
        assert get_config(reload=True).detection.max_connections == 3


class TestScoringWeights:
    """Validation and partial overrides."""

    def test_negative_weight_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            ScoringWeights(shared_tags=-0.1)

    def test_merged_partial_mapping(self) -> None:
        merged = ScoringWeights().merged({"vector_similarity": 0.8})
        assert merged.vector_similarity == 0.8
        assert merged.temporal_similarity == 0.15

    def test_merged_none_returns_self(self) -> None:
        weights = ScoringWeights()
        assert weights.merged(None) is weights

    def test_merged_full_instance_replaces(self) -> None:
        other = ScoringWeights(vector_similarity=1.0)
        assert ScoringWeights().merged(other) is other

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown scoring weight"):
            ScoringWeights().merged({"vector_similarty": 0.5})

    def test_to_dict_lists_all_six(self) -> None:
        assert list(ScoringWeights().to_dict()) == [
            "vector_similarity",
            "temporal_similarity",
            "sentiment_alignment",
            "priority_alignment",
            "shared_participants",
            "shared_tags",
        ]
