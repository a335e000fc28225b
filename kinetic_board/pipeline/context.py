"""
KINETIC BOARD - Pipeline Context
Per-run transient state handed from stage to stage. A context belongs to one
ingestion run and is never shared across runs.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from kinetic_board.data.models import EnrichedEntry, LeaderboardEntry, Snapshot
from kinetic_board.utils.helpers import utc_now_ms


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineContext:
    tag: str
    correlation_id: str
    batch: List[Snapshot]
    preview_only: bool = False
    now_ms: int = field(default_factory=utc_now_ms)

    history_by_symbol: Dict[str, List[Snapshot]] = field(default_factory=dict)
    enriched_by_symbol: Dict[str, EnrichedEntry] = field(default_factory=dict)
    previous_leaderboard: List[LeaderboardEntry] = field(default_factory=list)
    leaderboard: List[LeaderboardEntry] = field(default_factory=list)

    state: PipelineState = PipelineState.IDLE
    current_stage: Optional[str] = None
    persisted: bool = False
    stage_timings_ms: Dict[str, float] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

    def batch_by_symbol(self) -> Dict[str, List[Snapshot]]:
        """Batch snapshots grouped per symbol, ascending by timestamp, first-seen order."""
        grouped: Dict[str, List[Snapshot]] = {}
        for snap in self.batch:
            grouped.setdefault(snap.symbol, []).append(snap)
        return {
            symbol: sorted(snaps, key=lambda s: s.timestamp_ms)
            for symbol, snaps in grouped.items()
        }

    @property
    def symbols(self) -> List[str]:
        return list(self.batch_by_symbol())
