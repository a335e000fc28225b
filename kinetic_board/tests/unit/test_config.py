"""
KINETIC BOARD - Tests for Configuration, Models & Utilities
"""
import pytest
import structlog
from pydantic import ValidationError

from kinetic_board.config.settings import AppSettings, WindowSettings, load_settings
from kinetic_board.data.models import LeaderboardEntry, MetricField, Snapshot, field_accessor
from kinetic_board.errors import PipelineRunError, PipelineTimeoutError, UnknownStrategyError
from kinetic_board.utils.helpers import chunked, safe_filename, sanitize
from kinetic_board.utils.logger import run_context


# ─── Settings Tests ─────────────────────────────────────────────

class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert isinstance(settings, AppSettings)
        assert settings.windows.velocity == 20
        assert settings.limits.max_leaderboard_length == 50
        assert settings.features.preview_skips_persist is False
        assert settings.streaks.policy == "appearance"
        assert settings.prune.mode == "none"

    def test_camel_case_overrides(self):
        settings = load_settings({
            "windows": {"velocity": 5, "contextWindows": 4},
            "lookbackCap": 60,
            "limits": {"maxLeaderboardLength": 25},
            "features": {"previewSkipsPersist": True},
        })
        assert settings.windows.velocity == 5
        assert settings.windows.context_windows == 4
        assert settings.windows.acceleration == 20
        assert settings.kinetics.lookback_cap == 60
        assert settings.limits.max_leaderboard_length == 25
        assert settings.features.preview_skips_persist is True

    def test_ranking_maps_accept_camel_case(self):
        settings = load_settings({"ranking": {"weights": {"pctVelocity": 2.0}}})
        assert settings.ranking.weights == {"pct_velocity": 2.0}

    def test_invalid_window(self):
        with pytest.raises(ValidationError):
            WindowSettings(velocity=0)


# ─── Model Tests ────────────────────────────────────────────────

class TestModels:
    def test_snapshot_accepts_both_spellings(self):
        camel = Snapshot.model_validate({"symbol": "A", "timestampMs": 1, "pctChange": 0.5, "volume": 10})
        snake = Snapshot(symbol="A", timestamp_ms=1, pct_change=0.5, volume=10)
        assert camel == snake
        assert camel.to_record() == {"symbol": "A", "timestampMs": 1, "pctChange": 0.5, "volume": 10.0}

    def test_entries_are_immutable(self):
        snap = Snapshot(symbol="A", timestamp_ms=1, pct_change=0.5, volume=10)
        with pytest.raises(ValidationError):
            snap.pct_change = 1.0

    def test_leaderboard_entry_defaults(self):
        entry = LeaderboardEntry(symbol="A", timestamp_ms=1, pct_change=0.0, volume=0.0)
        assert entry.warming_up is True
        assert entry.rank is None
        assert entry.first_seen is False

    def test_field_accessor(self):
        snap = Snapshot(symbol="A", timestamp_ms=1, pct_change=0.5, volume=10)
        assert field_accessor(MetricField.VOLUME)(snap) == 10.0
        assert field_accessor("pct_change")(snap) == 0.5


# ─── Error Tests ────────────────────────────────────────────────

class TestErrors:
    def test_unknown_strategy_is_value_error(self):
        error = UnknownStrategyError("ranking", "x", ["b", "a"])
        assert isinstance(error, ValueError)
        assert error.known == ["a", "b"]

    def test_pipeline_error_payload(self):
        error = PipelineTimeoutError("gainers", "abc123", "merge", "deadline")
        assert isinstance(error, PipelineRunError)
        payload = error.to_dict()
        assert payload["error"] == "PipelineTimeoutError"
        assert payload["tag"] == "gainers"
        assert payload["correlation_id"] == "abc123"
        assert payload["stage"] == "merge"


# ─── Helper Tests ───────────────────────────────────────────────

class TestHelpers:
    def test_sanitize(self):
        assert sanitize(1.5) == 1.5
        assert sanitize(float("nan")) == 0.0
        assert sanitize(float("-inf"), fallback=-1.0) == -1.0
        assert sanitize("abc") == 0.0

    def test_chunked(self):
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
        assert list(chunked([], 3)) == []
        with pytest.raises(ValueError):
            list(chunked([1], 0))

    def test_safe_filename(self):
        assert safe_filename("BTC/USD") == "BTC%2FUSD"
        assert safe_filename("BRK.B") == "BRK.B"

    def test_safe_filename_is_collision_free(self):
        names = ["BTC/USD", "BTC_USD", "BTC%2FUSD", "a/b", "a_b", "a b", "", ".", "..", "%2E"]
        encoded = [safe_filename(n) for n in names]
        assert len(set(encoded)) == len(names)
        assert all("/" not in e for e in encoded)
        assert not {".", "..", ""} & set(encoded)

    def test_run_context_binds_and_resets(self):
        with run_context("gainers", "abc123"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["tag"] == "gainers"
            assert bound["correlation_id"] == "abc123"
        assert "tag" not in structlog.contextvars.get_contextvars()
