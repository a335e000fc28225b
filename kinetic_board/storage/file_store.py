"""
KINETIC BOARD - File Store
JSON file adapter:
    <base_dir>/<tag>/history/<symbol>.jsonl   one snapshot per line, ascending
    <base_dir>/<tag>/leaderboard.json         ranked array of entries

History files are append-only: an append writes one line and fsyncs it, and a
tail read seeks backwards from the end of the file, so neither grows with the
length of the history. The leaderboard (and a history file being compacted
to its retention) goes to a temp file in the same directory and is moved into
place with os.replace, so a crash mid-write leaves the previous file intact.
"""
from pathlib import Path
from typing import Dict, List, Optional
import asyncio
import json
import os
import tempfile

from kinetic_board.data.models import LeaderboardEntry, Snapshot
from kinetic_board.errors import StorageError, StorageUnavailableError
from kinetic_board.storage.base import HistoryStore, LeaderboardStore
from kinetic_board.utils.helpers import safe_filename
from kinetic_board.utils.logger import get_logger

logger = get_logger("file_store")


def atomic_write_text(path: Path, text: str) -> None:
    """Write `text` to `path` without ever exposing a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as temp_file:
            temp_file.write(text)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)


def tail_lines(path: Path, count: int, block_size: int = 8192) -> List[str]:
    """
    Last `count` non-blank lines of a text file, oldest first.

    Reads fixed-size blocks backwards from the end until enough newlines have
    been seen, so the cost depends on `count` and not on the file length.
    A missing file has no lines.
    """
    if count < 1 or not path.exists():
        return []
    with path.open("rb") as fh:
        fh.seek(0, os.SEEK_END)
        position = fh.tell()
        data = b""
        while position > 0 and data.count(b"\n") <= count:
            step = min(block_size, position)
            position -= step
            fh.seek(position)
            data = fh.read(step) + data
    lines = data.decode("utf-8", errors="replace").splitlines()
    if position > 0:
        # the first line may be cut at the block boundary
        lines = lines[1:]
    return [line for line in lines if line.strip()][-count:]


class FileStore(HistoryStore, LeaderboardStore):
    """Implements both storage ports on the local filesystem."""

    def __init__(self, base_dir: str, history_retention: Optional[int] = None):
        self.base_dir = Path(base_dir)
        self.history_retention = history_retention
        self._line_counts: Dict[Path, int] = {}

    def _tag_dir(self, tag: str) -> Path:
        return self.base_dir / safe_filename(tag)

    def history_path(self, tag: str, symbol: str) -> Path:
        return self._tag_dir(tag) / "history" / f"{safe_filename(symbol)}.jsonl"

    def leaderboard_path(self, tag: str) -> Path:
        return self._tag_dir(tag) / "leaderboard.json"

    # ─── History ────────────────────────────────────────────────

    def _append_sync(self, tag: str, symbol: str, snapshot: Snapshot) -> bool:
        path = self.history_path(tag, symbol)
        last = tail_lines(path, 1)
        if last and snapshot.timestamp_ms <= int(json.loads(last[0])["timestampMs"]):
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(snapshot.to_record()) + "\n")
            fh.flush()
            os.fsync(fh.fileno())
        if self.history_retention:
            self._enforce_retention(path)
        return True

    def _enforce_retention(self, path: Path) -> None:
        count = self._line_counts.get(path)
        if count is None:
            with path.open("r", encoding="utf-8") as fh:
                count = sum(1 for line in fh if line.strip())
        else:
            count += 1
        if count > self.history_retention:
            kept = tail_lines(path, self.history_retention)
            atomic_write_text(path, "".join(line + "\n" for line in kept))
            count = len(kept)
        self._line_counts[path] = count

    async def append_snapshot(self, tag: str, symbol: str, snapshot: Snapshot) -> bool:
        try:
            return await asyncio.to_thread(self._append_sync, tag, symbol, snapshot)
        except (OSError, ValueError, KeyError) as e:
            raise StorageError(f"append failed for {tag}/{symbol}: {e}") from e

    def _read_tail_sync(self, tag: str, symbol: str, limit: int) -> List[Snapshot]:
        lines = tail_lines(self.history_path(tag, symbol), limit)
        tail = [Snapshot.from_record(json.loads(line)) for line in lines]
        return sorted(tail, key=lambda s: s.timestamp_ms)

    async def read_tail(self, tag: str, symbol: str, limit: int) -> List[Snapshot]:
        if limit < 1:
            return []
        try:
            return await asyncio.to_thread(self._read_tail_sync, tag, symbol, limit)
        except (OSError, ValueError) as e:
            raise StorageError(f"history read failed for {tag}/{symbol}: {e}") from e

    # ─── Leaderboard ────────────────────────────────────────────

    def _initialize_sync(self, tag: str) -> None:
        (self._tag_dir(tag) / "history").mkdir(parents=True, exist_ok=True)
        path = self.leaderboard_path(tag)
        if not path.exists():
            atomic_write_text(path, "[]")

    async def initialize(self, tag: str) -> None:
        try:
            await asyncio.to_thread(self._initialize_sync, tag)
        except OSError as e:
            raise StorageUnavailableError(tag, "initialize", str(e)) from e

    def _read_leaderboard_sync(self, tag: str) -> List[LeaderboardEntry]:
        path = self.leaderboard_path(tag)
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        return [LeaderboardEntry.from_record(r) for r in payload]

    async def read_leaderboard(self, tag: str) -> List[LeaderboardEntry]:
        try:
            return await asyncio.to_thread(self._read_leaderboard_sync, tag)
        except (OSError, ValueError) as e:
            raise StorageUnavailableError(tag, "read", str(e)) from e

    def _replace_leaderboard_sync(self, tag: str, entries: List[LeaderboardEntry]) -> None:
        payload = [entry.to_record() for entry in entries]
        atomic_write_text(self.leaderboard_path(tag), json.dumps(payload))

    async def replace_leaderboard(self, tag: str, entries: List[LeaderboardEntry]) -> None:
        try:
            await asyncio.to_thread(self._replace_leaderboard_sync, tag, list(entries))
        except (OSError, ValueError) as e:
            raise StorageUnavailableError(tag, "replace", str(e)) from e
        logger.debug("leaderboard_file_replaced", tag=tag, total=len(entries))
