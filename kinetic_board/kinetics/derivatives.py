"""
KINETIC BOARD - Derivative Strategies
Velocity is the OLS slope of a metric over the trailing window; acceleration is
the first difference of two velocities computed one point apart.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Type

import numpy as np

from kinetic_board.data.models import MetricField, Snapshot, field_accessor
from kinetic_board.errors import UnknownStrategyError
from kinetic_board.utils.helpers import sanitize


def ols_slope(x: np.ndarray, y: np.ndarray) -> float:
    """Ordinary least squares slope of y on x. 0 when all x are identical."""
    dx = x - x.mean()
    denominator = float(np.dot(dx, dx))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(dx, y - y.mean()) / denominator)


class DerivativeStrategy(ABC):
    """
    Base class for velocity / acceleration estimators.

    Subclasses only decide what the x axis is. A window that contains a
    non-finite value yields `fallback` instead of a slope over the remaining
    points, which would be biased.
    """

    def __init__(self, name: str, fallback: float = 0.0):
        self.name = name
        self.fallback = fallback

    @abstractmethod
    def x_values(self, tail: Sequence[Snapshot]) -> np.ndarray:
        """Positions of the window points on the x axis."""

    def _slope(self, tail: Sequence[Snapshot], field: MetricField) -> Optional[float]:
        accessor = field_accessor(field)
        y = np.array([accessor(snap) for snap in tail], dtype=float)
        x = self.x_values(tail)
        if not (np.isfinite(y).all() and np.isfinite(x).all()):
            return None
        return ols_slope(x, y)

    def velocity(self, series: Sequence[Snapshot], field: MetricField, window: int) -> float:
        """Slope of `field` over the last `window` points; 0 with fewer points."""
        if window < 1 or len(series) < window:
            return 0.0
        slope = self._slope(series[-window:], field)
        if slope is None:
            return self.fallback
        return sanitize(slope, self.fallback)

    def acceleration(self, series: Sequence[Snapshot], field: MetricField, window: int) -> float:
        """vNow - vPrev over windows ending at the last and second-to-last points."""
        if window < 1 or len(series) < window + 1:
            return 0.0
        v_now = self._slope(series[-window:], field)
        v_prev = self._slope(series[-window - 1:-1], field)
        if v_now is None or v_prev is None:
            return self.fallback
        return sanitize(v_now - v_prev, self.fallback)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, fallback={self.fallback})"


class IndexBasedDerivative(DerivativeStrategy):
    """Evenly spaced samples: x = 0..w-1. Slope is per sample."""

    def __init__(self, fallback: float = 0.0):
        super().__init__(name="index", fallback=fallback)

    def x_values(self, tail: Sequence[Snapshot]) -> np.ndarray:
        return np.arange(len(tail), dtype=float)


class TimeBasedDerivative(DerivativeStrategy):
    """x = seconds since the first point of the window. Slope is per second."""

    def __init__(self, fallback: float = 0.0):
        super().__init__(name="time", fallback=fallback)

    def x_values(self, tail: Sequence[Snapshot]) -> np.ndarray:
        stamps = np.array([snap.timestamp_ms for snap in tail], dtype=float)
        if len(stamps) == 0:
            return stamps
        # offsetting keeps precision with epoch-sized values
        return (stamps - stamps[0]) / 1000.0


DERIVATIVE_STRATEGIES: Dict[str, Type[DerivativeStrategy]] = {
    "index": IndexBasedDerivative,
    "time": TimeBasedDerivative,
}


def get_derivative_strategy(key: str, fallback: float = 0.0) -> DerivativeStrategy:
    """Build the derivative strategy registered under `key`."""
    strategy_cls = DERIVATIVE_STRATEGIES.get(str(key).lower())
    if strategy_cls is None:
        raise UnknownStrategyError("derivative", key, DERIVATIVE_STRATEGIES)
    return strategy_cls(fallback=fallback)
