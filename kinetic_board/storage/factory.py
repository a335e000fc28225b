"""
KINETIC BOARD - Storage Factory
Builds the configured adapter once at process start.
"""
from typing import Optional, Union

from kinetic_board.config.settings import AppSettings, get_settings
from kinetic_board.errors import UnknownStrategyError
from kinetic_board.storage.file_store import FileStore
from kinetic_board.storage.memory import InMemoryStore

STORAGE_BACKENDS = ("file", "memory")


def build_store(settings: Optional[AppSettings] = None) -> Union[FileStore, InMemoryStore]:
    settings = settings or get_settings()
    backend = settings.storage.backend.lower()
    retention = settings.limits.history_retention
    if backend == "file":
        return FileStore(settings.storage.base_dir, history_retention=retention)
    if backend == "memory":
        return InMemoryStore(history_retention=retention)
    raise UnknownStrategyError("storage", settings.storage.backend, STORAGE_BACKENDS)
