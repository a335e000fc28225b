"""
KINETIC BOARD - Ranking Strategies
A ranking strategy turns the signal columns of the scoring population into one
composite score per row. Normalization is cross-sectional over that population.
"""
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional, Type, Union

import numpy as np
import pandas as pd

from kinetic_board.data.models import SIGNAL_FIELDS
from kinetic_board.errors import UnknownStrategyError
from kinetic_board.kinetics.normalization import (
    NormalizationStrategy,
    normalize_population,
    resolve_normalization,
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "pct_velocity": 1.0,
    "pct_acceleration": 0.5,
    "vol_velocity": 0.5,
    "vol_acceleration": 0.25,
}


def _resolve_per_signal(
    normalization: Optional[Mapping[str, Union[str, NormalizationStrategy]]],
) -> Dict[str, NormalizationStrategy]:
    normalization = dict(normalization or {})
    unknown = set(normalization) - set(SIGNAL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown signal fields in normalization: {sorted(unknown)}")
    return {
        signal: resolve_normalization(normalization.get(signal, NormalizationStrategy.Z_SCORE))
        for signal in SIGNAL_FIELDS
    }


class RankingStrategy(ABC):
    """Abstract base class for composite scoring policies."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def score(self, signals: pd.DataFrame) -> pd.Series:
        """
        Score every row of `signals` (columns: SIGNAL_FIELDS).
        Higher is better. Must return a Series aligned to `signals.index`.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


class WeightedKineticsRanking(RankingStrategy):
    """Weighted sum of normalized pct/volume velocity and acceleration."""

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        normalization: Optional[Mapping[str, Union[str, NormalizationStrategy]]] = None,
    ):
        super().__init__(name="weighted_kinetics")
        weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        unknown = set(weights) - set(SIGNAL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown signal fields in weights: {sorted(unknown)}")
        self.weights = {signal: float(weights.get(signal, 0.0)) for signal in SIGNAL_FIELDS}
        self.normalization = _resolve_per_signal(normalization)

    def score(self, signals: pd.DataFrame) -> pd.Series:
        total = np.zeros(len(signals), dtype=float)
        for signal, weight in self.weights.items():
            if weight == 0.0:
                continue
            normalized = normalize_population(signals[signal].to_numpy(), self.normalization[signal])
            total += weight * normalized
        return pd.Series(total, index=signals.index)


class PctVelocityRanking(RankingStrategy):
    """Normalized pct-change velocity alone."""

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        normalization: Optional[Mapping[str, Union[str, NormalizationStrategy]]] = None,
    ):
        super().__init__(name="pct_velocity")
        self.normalization = _resolve_per_signal(normalization)["pct_velocity"]

    def score(self, signals: pd.DataFrame) -> pd.Series:
        normalized = normalize_population(signals["pct_velocity"].to_numpy(), self.normalization)
        return pd.Series(normalized, index=signals.index)


RANKING_STRATEGIES: Dict[str, Type[RankingStrategy]] = {
    "weighted_kinetics": WeightedKineticsRanking,
    "pct_velocity": PctVelocityRanking,
}


def get_ranking_strategy(
    key: str,
    weights: Optional[Mapping[str, float]] = None,
    normalization: Optional[Mapping[str, Union[str, NormalizationStrategy]]] = None,
) -> RankingStrategy:
    """Build the ranking strategy registered under `key`."""
    strategy_cls = RANKING_STRATEGIES.get(str(key).lower())
    if strategy_cls is None:
        raise UnknownStrategyError("ranking", key, RANKING_STRATEGIES)
    return strategy_cls(weights=weights, normalization=normalization)
