"""
KINETIC BOARD - Leaderboard Service
Entry point used by the ingestion trigger: serializes runs per tag and exposes
lock-free reads of the persisted leaderboard.
"""
from typing import Any, Dict, Iterable, List, Optional, Union

from kinetic_board.config.settings import AppSettings, get_settings
from kinetic_board.data.models import LeaderboardEntry, Snapshot
from kinetic_board.pipeline.context import PipelineContext
from kinetic_board.pipeline.engine import PipelineEngine
from kinetic_board.pipeline.factory import build_pipeline
from kinetic_board.storage.base import HistoryStore, LeaderboardStore
from kinetic_board.storage.factory import build_store
from kinetic_board.utils.helpers import new_correlation_id
from kinetic_board.utils.keyed_mutex import KeyedMutex
from kinetic_board.utils.logger import get_logger

logger = get_logger("leaderboard_service")

SnapshotInput = Union[Snapshot, Dict[str, Any]]


class LeaderboardService:
    """Owns the pipeline, the leaderboard store and the per-tag mutex."""

    def __init__(
        self,
        engine: PipelineEngine,
        leaderboard_store: LeaderboardStore,
        mutex: Optional[KeyedMutex] = None,
        default_timeout: Optional[float] = None,
    ):
        self.engine = engine
        self.leaderboard_store = leaderboard_store
        self.mutex = mutex or KeyedMutex()
        self.default_timeout = default_timeout
        self._runs = 0
        self._failures = 0

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AppSettings] = None,
        store: Optional[Union[HistoryStore, LeaderboardStore]] = None,
    ) -> "LeaderboardService":
        """Build the service with one store instance serving both ports."""
        settings = settings or get_settings()
        store = store or build_store(settings)
        engine = build_pipeline(store, store, settings)
        return cls(engine, store, default_timeout=settings.run_timeout_seconds)

    @staticmethod
    def _coerce(snapshots: Iterable[SnapshotInput]) -> List[Snapshot]:
        return [s if isinstance(s, Snapshot) else Snapshot.model_validate(s) for s in snapshots]

    async def run_ingestion(
        self,
        tag: str,
        snapshots: Iterable[SnapshotInput],
        correlation_id: Optional[str] = None,
        preview: bool = False,
        timeout: Optional[float] = None,
    ) -> PipelineContext:
        """Run the pipeline for one batch and return the final context."""
        ctx = PipelineContext(
            tag=tag,
            correlation_id=correlation_id or new_correlation_id(),
            batch=self._coerce(snapshots),
            preview_only=preview,
        )
        timeout = timeout if timeout is not None else self.default_timeout

        async def _run() -> PipelineContext:
            return await self.engine.run(ctx, timeout=timeout)

        self._runs += 1
        try:
            return await self.mutex.run_exclusive(tag, _run)
        except Exception:
            self._failures += 1
            raise

    async def ingest(
        self,
        tag: str,
        snapshots: Iterable[SnapshotInput],
        correlation_id: Optional[str] = None,
        preview: bool = False,
        timeout: Optional[float] = None,
    ) -> List[LeaderboardEntry]:
        """Run the pipeline for one batch and return the updated leaderboard."""
        ctx = await self.run_ingestion(tag, snapshots, correlation_id, preview, timeout)
        return ctx.leaderboard

    async def get_leaderboard(self, tag: str) -> List[LeaderboardEntry]:
        """Current persisted leaderboard. Does not take the tag lock."""
        return await self.leaderboard_store.read_leaderboard(tag)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "runs": self._runs,
            "failures": self._failures,
            "active_tags": self.mutex.active_keys,
            "stages": self.engine.stage_names,
        }
