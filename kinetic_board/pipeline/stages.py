"""
KINETIC BOARD - Pipeline Stages
Single-responsibility steps run in a fixed order by the PipelineEngine. Each
stage takes the run context and returns a (possibly extended) context. The
only side effects are calls on the injected storage ports.
"""
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Tuple
import asyncio

from kinetic_board.data.models import EnrichedEntry, Snapshot
from kinetic_board.kinetics.calculator import KineticsCalculator, extend_tail
from kinetic_board.pipeline.context import PipelineContext
from kinetic_board.ranking.engine import RankingEngine, Trimmer, validate_leaderboard
from kinetic_board.storage.base import HistoryStore, LeaderboardStore
from kinetic_board.streaks.merger import StreakMerger
from kinetic_board.streaks.pruning import Pruner
from kinetic_board.utils.helpers import chunked
from kinetic_board.utils.logger import get_logger

logger = get_logger("pipeline_stages")


class Stage(ABC):
    """Abstract pipeline stage."""

    name: str = "stage"
    # Once a committing stage starts, the run deadline no longer applies.
    commits: bool = False

    @abstractmethod
    async def run(self, ctx: PipelineContext) -> PipelineContext:
        """Execute the stage and return the context for the next one."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


class PersistHistoryStage(Stage):
    """
    Append the batch to the history store.

    Symbols are fanned out concurrently in groups of `chunk_size`; snapshots
    of one symbol are appended sequentially in timestamp order. A failed append
    is counted and logged, never propagated: one bad symbol must not stop
    ranking for the rest of the batch.
    """

    name = "persist_history"

    def __init__(self, store: HistoryStore, chunk_size: int, skip: bool = False):
        self.store = store
        self.chunk_size = chunk_size
        self.skip = skip

    async def _append_symbol(self, tag: str, symbol: str, snaps: List[Snapshot]) -> Tuple[int, int, int]:
        appended = duplicates = failed = 0
        for snap in snaps:
            try:
                if await self.store.append_snapshot(tag, symbol, snap):
                    appended += 1
                else:
                    duplicates += 1
            except Exception as e:
                failed += 1
                logger.debug("history_append_failed", symbol=symbol,
                             timestamp_ms=snap.timestamp_ms, error=str(e))
        return appended, duplicates, failed

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        if self.skip or ctx.preview_only:
            logger.info("history_persist_skipped", stage=self.name, preview=True)
            return ctx

        grouped = ctx.batch_by_symbol()
        appended = duplicates = failed = 0
        for part in chunked(list(grouped.items()), self.chunk_size):
            results = await asyncio.gather(
                *(self._append_symbol(ctx.tag, symbol, snaps) for symbol, snaps in part)
            )
            for a, d, f in results:
                appended += a
                duplicates += d
                failed += f

        if failed:
            logger.warning("history_persist_partial", stage=self.name,
                           success=appended + duplicates, failed=failed)
        summary = {**ctx.summary, "history_appended": appended,
                   "history_duplicates": duplicates, "history_failed": failed}
        return replace(ctx, summary=summary)


class FetchHistoryStage(Stage):
    """Read the history tail of every batch symbol concurrently."""

    name = "fetch_history"

    def __init__(self, store: HistoryStore, lookback_samples: int):
        self.store = store
        self.lookback_samples = lookback_samples

    async def _read(self, tag: str, symbol: str) -> List[Snapshot]:
        try:
            return await self.store.read_tail(tag, symbol, self.lookback_samples)
        except Exception as e:
            logger.warning("history_read_failed", stage=self.name, symbol=symbol, error=str(e))
            return []

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        symbols = ctx.symbols
        tails = await asyncio.gather(*(self._read(ctx.tag, symbol) for symbol in symbols))
        return replace(ctx, history_by_symbol=dict(zip(symbols, tails)))


class ComputeSignalsStage(Stage):
    """Compute kinetics for the latest snapshot of every batch symbol."""

    name = "compute_signals"

    def __init__(self, calculator: KineticsCalculator):
        self.calculator = calculator

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        lookback = self.calculator.plan.lookback_samples
        enriched: Dict[str, EnrichedEntry] = {}
        for symbol, snaps in ctx.batch_by_symbol().items():
            tail = extend_tail(ctx.history_by_symbol.get(symbol, []), snaps)[-lookback:]
            enriched[symbol] = self.calculator.enrich(snaps[-1], tail)

        warming = sum(1 for e in enriched.values() if e.warming_up)
        logger.info("signals_computed", stage=self.name, total=len(enriched), warming_up=warming)
        return replace(ctx, enriched_by_symbol=enriched)


class MergeStage(Stage):
    """Merge the enriched batch into the persisted leaderboard, updating streaks."""

    name = "merge"

    def __init__(self, store: LeaderboardStore, merger: StreakMerger):
        self.store = store
        self.merger = merger

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        previous = await self.store.read_leaderboard(ctx.tag)
        merged = self.merger.merge(previous, ctx.enriched_by_symbol)
        return replace(ctx, previous_leaderboard=previous, leaderboard=list(merged.values()))


class PruneStage(Stage):
    """Apply the configured removal policy."""

    name = "prune"

    def __init__(self, pruner: Pruner):
        self.pruner = pruner

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        kept = self.pruner.prune(ctx.leaderboard, ctx.now_ms)
        dropped = len(ctx.leaderboard) - len(kept)
        if dropped:
            logger.info("leaderboard_pruned", stage=self.name, mode=self.pruner.mode.value, dropped=dropped)
        return replace(ctx, leaderboard=kept)


class RankStage(Stage):
    """Score and assign dense ranks over the full merged population."""

    name = "rank"

    def __init__(self, engine: RankingEngine):
        self.engine = engine

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        return replace(ctx, leaderboard=self.engine.rank(ctx.leaderboard))


class TrimStage(Stage):
    """Drop the lowest-ranked overflow."""

    name = "trim"

    def __init__(self, trimmer: Trimmer):
        self.trimmer = trimmer

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        trimmed = self.trimmer.trim(ctx.leaderboard)
        summary = {**ctx.summary, "trimmed": len(ctx.leaderboard) - len(trimmed)}
        return replace(ctx, leaderboard=trimmed, summary=summary)


class PersistLeaderboardStage(Stage):
    """Validate and atomically replace the persisted leaderboard."""

    name = "persist_leaderboard"
    commits = True

    def __init__(self, store: LeaderboardStore, max_length: int, skip: bool = False):
        self.store = store
        self.max_length = max_length
        self.skip = skip

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        validate_leaderboard(ctx.leaderboard, self.max_length)
        if self.skip or ctx.preview_only:
            logger.info("leaderboard_persist_skipped", stage=self.name, preview=True)
            return ctx
        await self.store.replace_leaderboard(ctx.tag, ctx.leaderboard)
        return replace(ctx, persisted=True)


class EmitStage(Stage):
    """Publish a compact summary of the run."""

    name = "emit"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        top = ctx.leaderboard[0].symbol if ctx.leaderboard else None
        summary = {
            **ctx.summary,
            "tag": ctx.tag,
            "correlation_id": ctx.correlation_id,
            "total": len(ctx.leaderboard),
            "top_symbol": top,
            "new_symbols": sum(
                1 for e in ctx.leaderboard if e.first_seen and e.symbol in ctx.enriched_by_symbol
            ),
            "persisted": ctx.persisted,
        }
        logger.info("leaderboard_update", stage=self.name, total=summary["total"],
                    top_symbol=top, persisted=ctx.persisted)
        return replace(ctx, summary=summary)
