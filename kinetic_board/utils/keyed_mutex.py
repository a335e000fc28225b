"""
KINETIC BOARD - Keyed Mutex
Per-key async critical section. Callers for the same key run one at a time in
arrival order; different keys never wait on each other.
"""
from typing import Awaitable, Callable, Dict, List, TypeVar
import asyncio

T = TypeVar("T")


class KeyedMutex:
    """
    FIFO lock per key, built as a chain of futures.

    Each caller waits on the gate of the caller before it and owns a gate of
    its own that it opens when done. The gate is opened on success, error and
    cancellation alike. A caller cancelled while still queued only opens its
    gate once its predecessor has finished, so the chain stays intact.
    """

    def __init__(self):
        self._tails: Dict[str, asyncio.Future] = {}

    def _open(self, key: str, gate: asyncio.Future) -> None:
        if not gate.done():
            gate.set_result(None)
        if self._tails.get(key) is gate:
            del self._tails[key]

    async def run_exclusive(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        loop = asyncio.get_running_loop()
        previous = self._tails.get(key)
        gate = loop.create_future()
        self._tails[key] = gate
        acquired = previous is None
        try:
            if previous is not None:
                # shield: cancelling this waiter must not cancel the predecessor's gate
                await asyncio.shield(previous)
                acquired = True
            return await fn()
        finally:
            if acquired or previous.done():
                self._open(key, gate)
            else:
                previous.add_done_callback(lambda _f: self._open(key, gate))

    def locked(self, key: str) -> bool:
        """True while some caller holds or waits for `key`."""
        return key in self._tails

    @property
    def active_keys(self) -> List[str]:
        return list(self._tails)
