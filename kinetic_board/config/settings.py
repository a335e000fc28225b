"""
KINETIC BOARD - Central Configuration
All settings are loaded from environment variables with sensible defaults.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WindowSettings(BaseSettings):
    """Derivative window sizes, in samples."""
    velocity: int = 20
    acceleration: int = 20
    context_windows: int = 6  # multiplier for the default history lookback

    model_config = SettingsConfigDict(env_prefix="KB_WINDOW_", env_file=".env", extra="ignore")

    @field_validator("velocity", "acceleration", "context_windows")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("window sizes must be >= 1")
        return value


class LimitSettings(BaseSettings):
    """Leaderboard size and persistence fan-out limits."""
    max_leaderboard_length: int = 50
    chunk_size: int = 50
    history_retention: Optional[int] = None  # max stored snapshots per (tag, symbol)

    model_config = SettingsConfigDict(env_prefix="KB_LIMIT_", env_file=".env", extra="ignore")

    @field_validator("max_leaderboard_length", "chunk_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("limits must be >= 1")
        return value


class FeatureSettings(BaseSettings):
    """Feature switches."""
    preview_skips_persist: bool = False

    model_config = SettingsConfigDict(env_prefix="KB_FEATURE_", env_file=".env", extra="ignore")


class KineticsSettings(BaseSettings):
    """Velocity / acceleration computation."""
    derivative_mode: str = "index"  # index | time
    non_finite_fallback: float = 0.0
    lookback_cap: Optional[int] = None

    model_config = SettingsConfigDict(env_prefix="KB_KINETICS_", env_file=".env", extra="ignore")


class RankingSettings(BaseSettings):
    """Composite score weights and per-signal normalization."""
    strategy: str = "weighted_kinetics"
    weights: Dict[str, float] = {
        "pct_velocity": 1.0,
        "pct_acceleration": 0.5,
        "vol_velocity": 0.5,
        "vol_acceleration": 0.25,
    }
    normalization: Dict[str, str] = {
        "pct_velocity": "Z_SCORE",
        "pct_acceleration": "Z_SCORE",
        "vol_velocity": "Z_SCORE",
        "vol_acceleration": "Z_SCORE",
    }

    model_config = SettingsConfigDict(env_prefix="KB_RANKING_", env_file=".env", extra="ignore")


class StreakSettings(BaseSettings):
    """Appearance / absence streak tracking."""
    policy: str = "appearance"  # appearance | absence
    # None = policy default (appearance resets, absence keeps)
    reset_appearances_on_absence: Optional[bool] = None

    model_config = SettingsConfigDict(env_prefix="KB_STREAK_", env_file=".env", extra="ignore")


class PruneSettings(BaseSettings):
    """Removal of stale leaderboard entries."""
    mode: str = "none"  # none | age_based | inactivity_based
    max_age_days: float = 7.0
    max_absences: int = 5

    model_config = SettingsConfigDict(env_prefix="KB_PRUNE_", env_file=".env", extra="ignore")


class StorageSettings(BaseSettings):
    """History and leaderboard persistence."""
    backend: str = "file"  # file | memory
    base_dir: str = "data/leaderboards"

    model_config = SettingsConfigDict(env_prefix="KB_STORAGE_", env_file=".env", extra="ignore")


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "Kinetic Board"
    version: str = "1.0.0"
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    run_timeout_seconds: Optional[float] = None

    windows: WindowSettings = Field(default_factory=WindowSettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    kinetics: KineticsSettings = Field(default_factory=KineticsSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    streaks: StreakSettings = Field(default_factory=StreakSettings)
    prune: PruneSettings = Field(default_factory=PruneSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(env_prefix="KB_", env_file=".env", extra="ignore")


@dataclass(frozen=True)
class KineticsPlan:
    """Sample counts derived from the configured windows."""
    velocity_window: int
    acceleration_window: int
    longest_window: int
    min_samples: int
    lookback_samples: int


def derive_kinetics_plan(windows: WindowSettings, lookback_cap: Optional[int] = None) -> KineticsPlan:
    """
    Derive history requirements from the window sizes.

    Velocity needs `velocity` points, acceleration needs `acceleration + 1`
    (two overlapping windows one point apart). The lookback never drops below
    what a full computation needs, even when `lookback_cap` asks for less.
    """
    longest = max(windows.velocity, windows.acceleration)
    min_samples = max(windows.velocity, windows.acceleration + 1)
    default_lookback = longest * windows.context_windows
    requested = lookback_cap if lookback_cap is not None else default_lookback
    return KineticsPlan(
        velocity_window=windows.velocity,
        acceleration_window=windows.acceleration,
        longest_window=longest,
        min_samples=min_samples,
        lookback_samples=max(min_samples, requested),
    )


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {_snake(str(k)): _snake_keys(v) for k, v in value.items()}
    return value


def load_settings(overrides: Optional[Mapping[str, Any]] = None) -> AppSettings:
    """
    Build settings from a config mapping, e.g.

        {"windows": {"velocity": 5, "contextWindows": 4}, "lookbackCap": 60,
         "limits": {"maxLeaderboardLength": 25}, "features": {"previewSkipsPersist": True}}

    camelCase keys are accepted. Top-level `lookbackCap` is routed to the
    kinetics group. Anything not given falls back to the environment.
    """
    data = _snake_keys(dict(overrides or {}))
    if "lookback_cap" in data:
        kinetics = dict(data.get("kinetics") or {})
        kinetics["lookback_cap"] = data.pop("lookback_cap")
        data["kinetics"] = kinetics

    group_types = {
        "windows": WindowSettings,
        "limits": LimitSettings,
        "features": FeatureSettings,
        "kinetics": KineticsSettings,
        "ranking": RankingSettings,
        "streaks": StreakSettings,
        "prune": PruneSettings,
        "storage": StorageSettings,
    }
    for name, group_type in group_types.items():
        if name in data:
            data[name] = group_type(**data[name])
    return AppSettings(**data)


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
