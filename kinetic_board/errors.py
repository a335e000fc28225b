"""
KINETIC BOARD - Error Taxonomy
Degenerate numeric input is not represented here: it never raises and always
resolves to a fallback value.
"""
from typing import Iterable, Optional


class KineticBoardError(Exception):
    """Base class for all errors raised by the leaderboard core."""


class UnknownStrategyError(KineticBoardError, ValueError):
    """An unrecognised normalization / ranking / derivative / policy key was requested."""

    def __init__(self, kind: str, key: str, known: Iterable[str] = ()):
        self.kind = kind
        self.key = key
        self.known = sorted(known)
        super().__init__(f"Unknown {kind} strategy '{key}'. Known: {', '.join(self.known) or '-'}")


class StorageError(KineticBoardError):
    """A single storage call failed (e.g. one history append)."""


class StorageUnavailableError(StorageError):
    """The leaderboard for a tag could not be read or replaced."""

    def __init__(self, tag: str, operation: str, reason: str = ""):
        self.tag = tag
        self.operation = operation
        message = f"Leaderboard store unavailable for tag '{tag}' during {operation}"
        super().__init__(f"{message}: {reason}" if reason else message)


class PipelineRunError(KineticBoardError):
    """A pipeline run failed. The persisted leaderboard is left as it was."""

    def __init__(self, tag: str, correlation_id: str, stage: Optional[str], reason: str = ""):
        self.tag = tag
        self.correlation_id = correlation_id
        self.stage = stage
        super().__init__(
            f"Pipeline run {correlation_id} for tag '{tag}' failed at stage "
            f"'{stage or '-'}'" + (f": {reason}" if reason else "")
        )

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "tag": self.tag,
            "correlation_id": self.correlation_id,
            "stage": self.stage,
            "message": str(self),
        }


class PipelineTimeoutError(PipelineRunError):
    """The run exceeded its deadline before the leaderboard was persisted."""


class InvalidLeaderboardError(KineticBoardError):
    """A leaderboard failed structural validation (ranks, duplicates, size)."""
