"""
KINETIC BOARD - Cross-Sectional Normalization
Rescales a value against the population of values from the same batch so that
symbols with different baseline scales become comparable.

Every strategy returns 0 for an empty population and for a degenerate one
(zero spread). None of them raise on numeric input.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from kinetic_board.errors import UnknownStrategyError
from kinetic_board.utils.helpers import sanitize

MAD_SCALE = 1.4826  # MAD -> stddev for normally distributed data


class NormalizationStrategy(str, Enum):
    NONE = "NONE"
    Z_SCORE = "Z_SCORE"
    MIN_MAX = "MIN_MAX"
    ROBUST_Z = "ROBUST_Z"
    RANK = "RANK"


def resolve_normalization(key: Union[str, NormalizationStrategy]) -> NormalizationStrategy:
    """Map a config key to a strategy, failing fast on unknown keys."""
    if isinstance(key, NormalizationStrategy):
        return key
    try:
        return NormalizationStrategy(str(key).upper())
    except ValueError:
        raise UnknownStrategyError(
            "normalization", str(key), [s.value for s in NormalizationStrategy]
        ) from None


@dataclass(frozen=True)
class PopulationStats:
    """Statistics of one population, computed once per batch."""
    count: int
    mean: float
    std: float
    min: float
    max: float
    median: float
    mad: float
    sorted_values: np.ndarray

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "PopulationStats":
        arr = np.asarray(values, dtype=float)
        arr = arr[np.isfinite(arr)]
        if arr.size == 0:
            return cls(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, np.empty(0))
        median = float(np.median(arr))
        return cls(
            count=int(arr.size),
            mean=float(arr.mean()),
            std=float(arr.std()),  # population stddev
            min=float(arr.min()),
            max=float(arr.max()),
            median=median,
            mad=float(np.median(np.abs(arr - median))),
            sorted_values=np.sort(arr),
        )


def _rank_fraction(value: float, stats: PopulationStats, direction: str) -> float:
    # index of the last element <= value
    position = int(np.searchsorted(stats.sorted_values, value, side="right")) - 1
    if stats.count > 1:
        fraction = max(position, 0) / (stats.count - 1)
    else:
        fraction = 1.0 if position >= 0 else 0.0
    fraction = min(max(fraction, 0.0), 1.0)
    return 1.0 - fraction if direction == "desc" else fraction


def apply_normalization(
    value: float,
    series: Sequence[float],
    strategy: Union[str, NormalizationStrategy],
    stats: Optional[PopulationStats] = None,
    direction: str = "asc",
) -> float:
    """
    Normalize `value` against `series`.

    Args:
        value: The raw value to rescale
        series: The population it is compared with
        strategy: NONE, Z_SCORE, MIN_MAX, ROBUST_Z or RANK
        stats: Precomputed statistics of `series`, to avoid recomputing per call
        direction: "asc" or "desc", only used by RANK
    """
    strategy = resolve_normalization(strategy)
    if strategy is NormalizationStrategy.NONE:
        return value

    if stats is None:
        stats = PopulationStats.from_values(series)
    if stats.count == 0:
        return 0.0
    value = sanitize(value)

    if strategy is NormalizationStrategy.Z_SCORE:
        result = (value - stats.mean) / stats.std if stats.std > 0 else 0.0
    elif strategy is NormalizationStrategy.MIN_MAX:
        spread = stats.max - stats.min
        result = (value - stats.min) / spread if spread > 0 else 0.0
    elif strategy is NormalizationStrategy.ROBUST_Z:
        scale = stats.mad * MAD_SCALE
        result = (value - stats.median) / scale if scale > 0 else 0.0
    else:
        result = _rank_fraction(value, stats, direction)
    return sanitize(result)


def normalize_population(
    values: Sequence[float],
    strategy: Union[str, NormalizationStrategy],
    direction: str = "asc",
) -> np.ndarray:
    """Normalize every value of a population against itself in one pass."""
    strategy = resolve_normalization(strategy)
    arr = np.asarray(values, dtype=float)
    if strategy is NormalizationStrategy.NONE:
        return arr.copy()
    stats = PopulationStats.from_values(arr)
    return np.array(
        [apply_normalization(v, arr, strategy, stats=stats, direction=direction) for v in arr],
        dtype=float,
    )
