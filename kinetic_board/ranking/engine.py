"""
KINETIC BOARD - Ranking Engine & Trimmer
Scores the merged leaderboard, assigns dense 1-based ranks and caps its size.

Rules:
    - Warming-up entries are excluded from the normalization population and
      get a score strictly below every active entry, so they always rank last.
    - Equal scores keep their incoming relative order (stable mergesort), which
      is the previous leaderboard order followed by new symbols.
    - Trimming happens after ranking, never before.
"""
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from kinetic_board.data.models import SIGNAL_FIELDS, LeaderboardEntry
from kinetic_board.errors import InvalidLeaderboardError
from kinetic_board.ranking.strategies import RankingStrategy, WeightedKineticsRanking
from kinetic_board.utils.logger import get_logger

logger = get_logger("ranking_engine")


class RankingEngine:
    """Composite scoring + dense ranking over one leaderboard."""

    def __init__(self, strategy: Optional[RankingStrategy] = None):
        self.strategy = strategy or WeightedKineticsRanking()

    def _frame(self, entries: Sequence[LeaderboardEntry]) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "symbol": [e.symbol for e in entries],
                "warming_up": [e.warming_up for e in entries],
                **{signal: [getattr(e, signal) for e in entries] for signal in SIGNAL_FIELDS},
            }
        )

    def score(self, entries: Sequence[LeaderboardEntry]) -> pd.Series:
        """Composite score per entry, positionally aligned with `entries`."""
        frame = self._frame(entries)
        scores = pd.Series(0.0, index=frame.index)
        active = ~frame["warming_up"].astype(bool)
        if active.any():
            raw = self.strategy.score(frame.loc[active, list(SIGNAL_FIELDS)])
            raw = raw.replace([np.inf, -np.inf], np.nan).fillna(0.0)
            scores.loc[active] = raw
            scores.loc[~active] = float(raw.min()) - 1.0
        return scores

    def rank(self, entries: Sequence[LeaderboardEntry]) -> List[LeaderboardEntry]:
        if not entries:
            return []
        scores = self.score(entries)
        order = scores.sort_values(ascending=False, kind="mergesort").index
        ranked = [
            entries[position].model_copy(update={"score": float(scores[position]), "rank": rank})
            for rank, position in enumerate(order, start=1)
        ]
        logger.debug("leaderboard_ranked", strategy=self.strategy.name, total=len(ranked))
        return ranked


class Trimmer:
    """Enforces the maximum leaderboard length on an already ranked list."""

    def __init__(self, max_length: int):
        if max_length < 1:
            raise ValueError("max_length must be >= 1")
        self.max_length = max_length

    def trim(self, ranked: Sequence[LeaderboardEntry]) -> List[LeaderboardEntry]:
        ordered = sorted(ranked, key=lambda e: e.rank if e.rank is not None else float("inf"))
        return list(ordered[: self.max_length])


def validate_leaderboard(entries: Sequence[LeaderboardEntry], max_length: int) -> None:
    """Raise InvalidLeaderboardError unless ranks are 1..N, symbols unique and N <= cap."""
    if len(entries) > max_length:
        raise InvalidLeaderboardError(f"leaderboard has {len(entries)} entries, cap is {max_length}")
    symbols = [e.symbol for e in entries]
    if len(set(symbols)) != len(symbols):
        raise InvalidLeaderboardError("leaderboard contains duplicate symbols")
    ranks = [e.rank for e in entries]
    if ranks != list(range(1, len(entries) + 1)):
        raise InvalidLeaderboardError(f"leaderboard ranks are not contiguous from 1: {ranks[:10]}")
