"""
KINETIC BOARD - Tests for Ranking & Trimming
"""
import pytest

from kinetic_board.errors import InvalidLeaderboardError, UnknownStrategyError
from kinetic_board.ranking.engine import RankingEngine, Trimmer, validate_leaderboard
from kinetic_board.ranking.strategies import (
    PctVelocityRanking,
    WeightedKineticsRanking,
    get_ranking_strategy,
)

RAW = {s: "NONE" for s in ("pct_velocity", "pct_acceleration", "vol_velocity", "vol_acceleration")}


# ─── Strategy Tests ─────────────────────────────────────────────

class TestRankingStrategies:
    def test_weighted_sum_without_normalization(self, entry_factory):
        engine = RankingEngine(WeightedKineticsRanking(normalization=RAW))
        scores = engine.score([entry_factory("A", 2.0, 4.0, 6.0, 8.0)])
        # 1.0*2 + 0.5*4 + 0.5*6 + 0.25*8
        assert scores.iloc[0] == pytest.approx(9.0)

    def test_custom_weights(self, entry_factory):
        strategy = WeightedKineticsRanking(weights={"vol_velocity": 2.0}, normalization=RAW)
        scores = RankingEngine(strategy).score([entry_factory("A", 5.0, 5.0, 3.0, 5.0)])
        assert scores.iloc[0] == pytest.approx(6.0)

    def test_unknown_weight_signal(self):
        with pytest.raises(ValueError):
            WeightedKineticsRanking(weights={"price": 1.0})

    def test_unknown_normalization_signal(self):
        with pytest.raises(ValueError):
            WeightedKineticsRanking(normalization={"price": "NONE"})

    def test_registry(self):
        assert isinstance(get_ranking_strategy("weighted_kinetics"), WeightedKineticsRanking)
        assert isinstance(get_ranking_strategy("pct_velocity"), PctVelocityRanking)
        with pytest.raises(UnknownStrategyError):
            get_ranking_strategy("momentum_magic")

    def test_pct_velocity_only(self, entry_factory):
        engine = RankingEngine(PctVelocityRanking())
        ranked = engine.rank([
            entry_factory("LOW", 0.1, vol_velocity=900.0),
            entry_factory("HIGH", 0.9, vol_velocity=-900.0),
        ])
        assert [e.symbol for e in ranked] == ["HIGH", "LOW"]


# ─── Ranking Engine Tests ───────────────────────────────────────

class TestRankingEngine:
    def test_ranks_are_dense_and_ordered(self, random_entries):
        ranked = RankingEngine().rank(random_entries)
        assert [e.rank for e in ranked] == list(range(1, len(random_entries) + 1))
        scores = [e.score for e in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_higher_velocity_ranks_first(self, entry_factory):
        entries = [entry_factory("A", 0.1), entry_factory("B", 0.5), entry_factory("C", 0.3)]
        ranked = RankingEngine().rank(entries)
        assert [e.symbol for e in ranked] == ["B", "C", "A"]

    def test_ties_keep_input_order(self, entry_factory):
        entries = [entry_factory(s, 0.2) for s in ("B", "A", "C")]
        ranked = RankingEngine().rank(entries)
        assert [e.symbol for e in ranked] == ["B", "A", "C"]
        assert [e.rank for e in ranked] == [1, 2, 3]

    def test_warming_up_ranks_last(self, entry_factory):
        entries = [
            entry_factory("WARM", 100.0, warming_up=True),
            entry_factory("A", -5.0),
            entry_factory("B", -3.0),
        ]
        ranked = RankingEngine().rank(entries)
        assert ranked[-1].symbol == "WARM"
        assert ranked[-1].score < min(e.score for e in ranked[:-1])

    def test_warming_up_excluded_from_population(self, entry_factory):
        active = [entry_factory("A", 1.0), entry_factory("B", 2.0), entry_factory("C", 3.0)]
        with_warm = active + [entry_factory("W", 1000.0, warming_up=True)]
        engine = RankingEngine()
        alone = engine.score(active)
        mixed = engine.score(with_warm)
        assert list(mixed.iloc[:3]) == pytest.approx(list(alone))

    def test_all_warming_up(self, entry_factory):
        entries = [entry_factory(s, warming_up=True) for s in ("X", "Y")]
        ranked = RankingEngine().rank(entries)
        assert [e.symbol for e in ranked] == ["X", "Y"]
        assert all(e.score == 0.0 for e in ranked)

    def test_empty(self):
        assert RankingEngine().rank([]) == []

    def test_does_not_mutate_input(self, entry_factory):
        entries = [entry_factory("A", 1.0)]
        RankingEngine().rank(entries)
        assert entries[0].rank is None


# ─── Trimming & Validation Tests ────────────────────────────────

class TestTrimmer:
    def test_trims_to_max_length(self, random_entries):
        ranked = RankingEngine().rank(random_entries)
        trimmed = Trimmer(50).trim(ranked)
        assert len(trimmed) == 50
        assert [e.rank for e in trimmed] == list(range(1, 51))
        dropped = {e.symbol for e in ranked[50:]}
        assert dropped.isdisjoint(e.symbol for e in trimmed)

    def test_shorter_list_untouched(self, entry_factory):
        ranked = RankingEngine().rank([entry_factory("A", 1.0)])
        assert Trimmer(50).trim(ranked) == ranked

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            Trimmer(0)


class TestValidateLeaderboard:
    def test_valid(self, random_entries):
        ranked = Trimmer(50).trim(RankingEngine().rank(random_entries))
        validate_leaderboard(ranked, 50)

    def test_oversize(self, random_entries):
        with pytest.raises(InvalidLeaderboardError):
            validate_leaderboard(RankingEngine().rank(random_entries), 50)

    def test_rank_gap(self, entry_factory):
        entries = [entry_factory("A", rank=1), entry_factory("B", rank=3)]
        with pytest.raises(InvalidLeaderboardError):
            validate_leaderboard(entries, 50)

    def test_duplicate_symbol(self, entry_factory):
        entries = [entry_factory("A", rank=1), entry_factory("A", rank=2)]
        with pytest.raises(InvalidLeaderboardError):
            validate_leaderboard(entries, 50)
