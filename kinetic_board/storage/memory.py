"""
KINETIC BOARD - In-Memory Store
Process-local adapter for tests and ephemeral runs. One instance is created by
the caller and injected; nothing is module-global.
"""
from typing import Any, Dict, List, Optional, Tuple

from kinetic_board.data.models import LeaderboardEntry, Snapshot
from kinetic_board.storage.base import HistoryStore, LeaderboardStore


class InMemoryStore(HistoryStore, LeaderboardStore):
    """Implements both storage ports with plain dicts."""

    def __init__(self, history_retention: Optional[int] = None):
        self._history: Dict[Tuple[str, str], List[Snapshot]] = {}
        self._leaderboards: Dict[str, List[LeaderboardEntry]] = {}
        self._history_retention = history_retention

    async def append_snapshot(self, tag: str, symbol: str, snapshot: Snapshot) -> bool:
        series = self._history.setdefault((tag, symbol), [])
        if series and snapshot.timestamp_ms <= series[-1].timestamp_ms:
            return False
        series.append(snapshot)
        if self._history_retention and len(series) > self._history_retention:
            del series[: len(series) - self._history_retention]
        return True

    async def read_tail(self, tag: str, symbol: str, limit: int) -> List[Snapshot]:
        if limit < 1:
            return []
        return list(self._history.get((tag, symbol), [])[-limit:])

    async def initialize(self, tag: str) -> None:
        self._leaderboards.setdefault(tag, [])

    async def read_leaderboard(self, tag: str) -> List[LeaderboardEntry]:
        return list(self._leaderboards.get(tag, []))

    async def replace_leaderboard(self, tag: str, entries: List[LeaderboardEntry]) -> None:
        # swapping the list reference is the atomic step
        self._leaderboards[tag] = list(entries)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "history_series": len(self._history),
            "history_points": sum(len(v) for v in self._history.values()),
            "leaderboards": len(self._leaderboards),
        }
