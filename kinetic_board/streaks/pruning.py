"""
KINETIC BOARD - Leaderboard Pruning
Explicit removal policies for stale entries, applied after merge.
"""
from enum import Enum
from typing import List, Sequence, Union

from kinetic_board.data.models import LeaderboardEntry
from kinetic_board.errors import UnknownStrategyError

MS_PER_DAY = 24 * 60 * 60 * 1000


class PruneMode(str, Enum):
    NONE = "none"
    AGE_BASED = "age_based"
    INACTIVITY_BASED = "inactivity_based"


def resolve_prune_mode(key: Union[str, PruneMode]) -> PruneMode:
    if isinstance(key, PruneMode):
        return key
    try:
        return PruneMode(str(key).lower())
    except ValueError:
        raise UnknownStrategyError("prune", str(key), [m.value for m in PruneMode]) from None


class Pruner:
    """Drops entries that are too old or have been absent for too long."""

    def __init__(
        self,
        mode: Union[str, PruneMode] = PruneMode.NONE,
        max_age_days: float = 7.0,
        max_absences: int = 5,
    ):
        self.mode = resolve_prune_mode(mode)
        self.max_age_ms = max_age_days * MS_PER_DAY
        self.max_absences = max_absences

    def keep(self, entry: LeaderboardEntry, now_ms: int) -> bool:
        if self.mode is PruneMode.AGE_BASED:
            return now_ms - entry.timestamp_ms <= self.max_age_ms
        if self.mode is PruneMode.INACTIVITY_BASED:
            return entry.consecutive_absences <= self.max_absences
        return True

    def prune(self, entries: Sequence[LeaderboardEntry], now_ms: int) -> List[LeaderboardEntry]:
        return [entry for entry in entries if self.keep(entry, now_ms)]
