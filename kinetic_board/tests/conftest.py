"""
KINETIC BOARD - Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
from typing import List, Optional

import numpy as np
import pytest

from kinetic_board.config.settings import load_settings
from kinetic_board.data.models import LeaderboardEntry, Snapshot
from kinetic_board.service import LeaderboardService
from kinetic_board.storage.memory import InMemoryStore

MINUTE_MS = 60_000


def make_snapshot(symbol: str = "AAPL", timestamp_ms: int = 0,
                  pct_change: float = 0.0, volume: float = 1000.0) -> Snapshot:
    return Snapshot(symbol=symbol, timestamp_ms=timestamp_ms, pct_change=pct_change, volume=volume)


def make_series(values: List[float], symbol: str = "AAPL", step_ms: int = MINUTE_MS,
                volumes: Optional[List[float]] = None) -> List[Snapshot]:
    volumes = volumes or [1000.0] * len(values)
    return [
        make_snapshot(symbol, i * step_ms, v, vol)
        for i, (v, vol) in enumerate(zip(values, volumes))
    ]


def make_entry(symbol: str, pct_velocity: float = 0.0, pct_acceleration: float = 0.0,
               vol_velocity: float = 0.0, vol_acceleration: float = 0.0,
               warming_up: bool = False, **extra) -> LeaderboardEntry:
    return LeaderboardEntry(
        symbol=symbol,
        timestamp_ms=extra.pop("timestamp_ms", 0),
        pct_change=extra.pop("pct_change", 0.0),
        volume=extra.pop("volume", 1000.0),
        pct_velocity=pct_velocity,
        pct_acceleration=pct_acceleration,
        vol_velocity=vol_velocity,
        vol_acceleration=vol_acceleration,
        warming_up=warming_up,
        **extra,
    )


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def series_factory():
    return make_series


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def small_window_settings():
    """velocity=2, acceleration=1 -> two samples are enough for full kinetics."""
    return load_settings({
        "windows": {"velocity": 2, "acceleration": 1, "contextWindows": 3},
        "limits": {"maxLeaderboardLength": 50, "chunkSize": 10},
        "storage": {"backend": "memory"},
    })


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def service(small_window_settings, memory_store):
    return LeaderboardService.from_settings(small_window_settings, store=memory_store)


@pytest.fixture
def random_entries():
    """60 active entries with distinct random kinetics."""
    rng = np.random.default_rng(42)
    signals = rng.normal(0.0, 1.0, size=(60, 4))
    return [
        make_entry(f"S{i:02d}", *map(float, row))
        for i, row in enumerate(signals)
    ]
