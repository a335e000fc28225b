"""
KINETIC BOARD - Data Models
Canonical data structures shared by every pipeline stage. Python attributes
are snake_case; the persisted JSON uses the camelCase names (timestampMs,
pctChange, ...). Both spellings are accepted on input.
"""
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready dict in the persisted (camelCase) shape."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, record: Dict[str, Any]):
        return cls.model_validate(record)


class Snapshot(_Record):
    """Point-in-time observation of one symbol. Immutable once stored."""
    symbol: str = Field(min_length=1)
    timestamp_ms: int
    pct_change: float
    volume: float


class EnrichedEntry(Snapshot):
    """Snapshot plus the kinetics computed for it in one run."""
    pct_velocity: float = 0.0
    pct_acceleration: float = 0.0
    vol_velocity: float = 0.0
    vol_acceleration: float = 0.0
    warming_up: bool = True
    score: float = 0.0
    rank: Optional[int] = None


class StreakState(BaseModel):
    """Read-only view of the streak counters of a leaderboard entry."""
    model_config = ConfigDict(frozen=True)

    consecutive_appearances: int = 0
    consecutive_absences: int = 0
    first_seen: bool = False


class LeaderboardEntry(EnrichedEntry):
    """The unit persisted and exposed externally."""
    consecutive_appearances: int = 0
    consecutive_absences: int = 0
    first_seen: bool = False

    @property
    def streak(self) -> StreakState:
        return StreakState(
            consecutive_appearances=self.consecutive_appearances,
            consecutive_absences=self.consecutive_absences,
            first_seen=self.first_seen,
        )


class MetricField(str, Enum):
    """Snapshot fields that kinetics are computed for."""
    PCT_CHANGE = "pct_change"
    VOLUME = "volume"


_FIELD_ACCESSORS: Dict[MetricField, Callable[[Snapshot], float]] = {
    MetricField.PCT_CHANGE: lambda snap: snap.pct_change,
    MetricField.VOLUME: lambda snap: snap.volume,
}


def field_accessor(field: MetricField) -> Callable[[Snapshot], float]:
    """Resolve a metric field to its typed accessor."""
    return _FIELD_ACCESSORS[MetricField(field)]


# Leaderboard signal columns produced by the kinetics stage, in scoring order.
SIGNAL_FIELDS = ("pct_velocity", "pct_acceleration", "vol_velocity", "vol_acceleration")
