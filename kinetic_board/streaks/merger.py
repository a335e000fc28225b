"""
KINETIC BOARD - Streak Merger
Combines the enriched current batch with the previously persisted leaderboard
and keeps the appearance / absence counters consistent across runs.

Policies:
    appearance: a present symbol continues its appearance streak (or restarts
                at 1 after any absence); a missing symbol breaks it.
    absence:    only the absence counter is tracked; appearances are left as
                they were, both on appearance and on absence.

Merge never drops a symbol. Removal is the job of the prune stage.
"""
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Union

from kinetic_board.data.models import EnrichedEntry, LeaderboardEntry
from kinetic_board.errors import UnknownStrategyError


class StreakPolicy(str, Enum):
    APPEARANCE = "appearance"
    ABSENCE = "absence"


def resolve_streak_policy(key: Union[str, StreakPolicy]) -> StreakPolicy:
    if isinstance(key, StreakPolicy):
        return key
    try:
        return StreakPolicy(str(key).lower())
    except ValueError:
        raise UnknownStrategyError("streak", str(key), [p.value for p in StreakPolicy]) from None


class StreakMerger:
    """Produces the next leaderboard state from the previous one and a new batch."""

    def __init__(
        self,
        policy: Union[str, StreakPolicy] = StreakPolicy.APPEARANCE,
        reset_appearances_on_absence: Optional[bool] = None,
    ):
        self.policy = resolve_streak_policy(policy)
        if reset_appearances_on_absence is None:
            reset_appearances_on_absence = self.policy is StreakPolicy.APPEARANCE
        self.reset_appearances_on_absence = reset_appearances_on_absence

    def _appearance_update(self, existing: Optional[LeaderboardEntry]) -> Dict[str, int]:
        if self.policy is StreakPolicy.APPEARANCE:
            if existing is None or existing.consecutive_absences > 0:
                appearances = 1
            else:
                appearances = existing.consecutive_appearances + 1
        else:
            appearances = existing.consecutive_appearances if existing else 0
        return {"consecutive_appearances": appearances, "consecutive_absences": 0}

    def _absence_update(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        update = {"consecutive_absences": entry.consecutive_absences + 1}
        if self.reset_appearances_on_absence:
            update["consecutive_appearances"] = 0
        # first_seen is never flipped back on absence
        return entry.model_copy(update=update)

    def merge(
        self,
        previous: Sequence[LeaderboardEntry],
        current: Mapping[str, EnrichedEntry],
    ) -> Dict[str, LeaderboardEntry]:
        """
        Merge the current batch into the previous leaderboard.

        The result keeps the previous leaderboard order, followed by symbols
        seen for the first time in batch order.
        """
        merged: Dict[str, LeaderboardEntry] = {entry.symbol: entry for entry in previous}

        for symbol, enriched in current.items():
            existing = merged.get(symbol)
            fields = existing.model_dump() if existing is not None else {}
            fields.update(enriched.model_dump())
            fields.update(self._appearance_update(existing))
            fields["first_seen"] = existing is None
            merged[symbol] = LeaderboardEntry(**fields)

        for symbol, entry in merged.items():
            if symbol not in current:
                merged[symbol] = self._absence_update(entry)

        return merged

    def __repr__(self) -> str:
        return (
            f"StreakMerger(policy={self.policy.value}, "
            f"reset_appearances_on_absence={self.reset_appearances_on_absence})"
        )
