"""
KINETIC BOARD - Storage Ports
Contracts the pipeline depends on. Adapters live next to this module.
"""
from abc import ABC, abstractmethod
from typing import List

from kinetic_board.data.models import LeaderboardEntry, Snapshot


class HistoryStore(ABC):
    """Append-only per-(tag, symbol) snapshot series."""

    @abstractmethod
    async def append_snapshot(self, tag: str, symbol: str, snapshot: Snapshot) -> bool:
        """
        Append a snapshot to the (tag, symbol) series.

        Returns True when appended, False when skipped because a point with the
        same or a later timestamp is already stored (idempotent re-ingestion).
        Raises StorageError on I/O failure.
        """

    @abstractmethod
    async def read_tail(self, tag: str, symbol: str, limit: int) -> List[Snapshot]:
        """Most recent `limit` snapshots, ascending by time. Empty when none exist."""


class LeaderboardStore(ABC):
    """Atomic read / replace of the ranked list of a tag."""

    async def initialize(self, tag: str) -> None:
        """Prepare storage for a tag. Optional for adapters."""

    @abstractmethod
    async def read_leaderboard(self, tag: str) -> List[LeaderboardEntry]:
        """Persisted ranked list, empty when nothing has been persisted yet."""

    @abstractmethod
    async def replace_leaderboard(self, tag: str, entries: List[LeaderboardEntry]) -> None:
        """Atomically replace the ranked list. Readers never see a partial write."""
