"""
KINETIC BOARD - Pipeline Factory
Composition root: turns settings plus injected stores into a PipelineEngine.
All strategy keys are resolved here, so configuration errors surface before
the first run instead of in the middle of one.
"""
from typing import Optional

from kinetic_board.config.settings import AppSettings, derive_kinetics_plan, get_settings
from kinetic_board.kinetics.calculator import KineticsCalculator
from kinetic_board.kinetics.derivatives import get_derivative_strategy
from kinetic_board.pipeline.engine import PipelineEngine
from kinetic_board.pipeline.stages import (
    ComputeSignalsStage,
    EmitStage,
    FetchHistoryStage,
    MergeStage,
    PersistHistoryStage,
    PersistLeaderboardStage,
    PruneStage,
    RankStage,
    TrimStage,
)
from kinetic_board.ranking.engine import RankingEngine, Trimmer
from kinetic_board.ranking.strategies import get_ranking_strategy
from kinetic_board.storage.base import HistoryStore, LeaderboardStore
from kinetic_board.streaks.merger import StreakMerger
from kinetic_board.streaks.pruning import Pruner
from kinetic_board.utils.logger import get_logger

logger = get_logger("pipeline_factory")


def build_pipeline(
    history_store: HistoryStore,
    leaderboard_store: LeaderboardStore,
    settings: Optional[AppSettings] = None,
) -> PipelineEngine:
    settings = settings or get_settings()
    plan = derive_kinetics_plan(settings.windows, settings.kinetics.lookback_cap)
    preview = settings.features.preview_skips_persist
    max_length = settings.limits.max_leaderboard_length

    derivative = get_derivative_strategy(
        settings.kinetics.derivative_mode, fallback=settings.kinetics.non_finite_fallback
    )
    ranking = get_ranking_strategy(
        settings.ranking.strategy,
        weights=settings.ranking.weights,
        normalization=settings.ranking.normalization,
    )
    merger = StreakMerger(
        policy=settings.streaks.policy,
        reset_appearances_on_absence=settings.streaks.reset_appearances_on_absence,
    )
    pruner = Pruner(
        mode=settings.prune.mode,
        max_age_days=settings.prune.max_age_days,
        max_absences=settings.prune.max_absences,
    )

    stages = [
        PersistHistoryStage(history_store, settings.limits.chunk_size, skip=preview),
        FetchHistoryStage(history_store, plan.lookback_samples),
        ComputeSignalsStage(KineticsCalculator(derivative, plan)),
        MergeStage(leaderboard_store, merger),
        PruneStage(pruner),
        RankStage(RankingEngine(ranking)),
        TrimStage(Trimmer(max_length)),
        PersistLeaderboardStage(leaderboard_store, max_length, skip=preview),
        EmitStage(),
    ]
    logger.info(
        "pipeline_built",
        stages=[s.name for s in stages],
        derivative=derivative.name,
        ranking=ranking.name,
        streak_policy=merger.policy.value,
        min_samples=plan.min_samples,
        lookback=plan.lookback_samples,
    )
    return PipelineEngine(stages)
