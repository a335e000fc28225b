"""
KINETIC BOARD - Kinetics Calculator
Turns one symbol's history tail into an EnrichedEntry for the current snapshot.
"""
from typing import Iterable, List, Sequence

from kinetic_board.config.settings import KineticsPlan
from kinetic_board.data.models import EnrichedEntry, MetricField, Snapshot
from kinetic_board.kinetics.derivatives import DerivativeStrategy


def extend_tail(history: Sequence[Snapshot], pending: Iterable[Snapshot]) -> List[Snapshot]:
    """
    Append batch points newer than the last stored point.

    Covers preview runs (nothing was persisted) and failed appends, so the
    current snapshot always takes part in its own computation.
    """
    tail = list(history)
    last_ts = tail[-1].timestamp_ms if tail else None
    for snap in sorted(pending, key=lambda s: s.timestamp_ms):
        if last_ts is None or snap.timestamp_ms > last_ts:
            tail.append(snap)
            last_ts = snap.timestamp_ms
    return tail


class KineticsCalculator:
    """Computes pct/volume velocity and acceleration with warm-up handling."""

    def __init__(self, derivative: DerivativeStrategy, plan: KineticsPlan):
        self.derivative = derivative
        self.plan = plan

    def is_warming_up(self, tail: Sequence[Snapshot]) -> bool:
        return len(tail) < self.plan.min_samples

    def enrich(self, snapshot: Snapshot, tail: Sequence[Snapshot]) -> EnrichedEntry:
        base = snapshot.model_dump()
        if self.is_warming_up(tail):
            return EnrichedEntry(**base, warming_up=True)

        vel_w = self.plan.velocity_window
        acc_w = self.plan.acceleration_window
        d = self.derivative
        return EnrichedEntry(
            **base,
            pct_velocity=d.velocity(tail, MetricField.PCT_CHANGE, vel_w),
            pct_acceleration=d.acceleration(tail, MetricField.PCT_CHANGE, acc_w),
            vol_velocity=d.velocity(tail, MetricField.VOLUME, vel_w),
            vol_acceleration=d.acceleration(tail, MetricField.VOLUME, acc_w),
            warming_up=False,
        )
