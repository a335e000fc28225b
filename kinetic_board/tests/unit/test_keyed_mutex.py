"""
KINETIC BOARD - Tests for the Keyed Mutex
"""
import asyncio

import pytest

from kinetic_board.utils.keyed_mutex import KeyedMutex


class TestKeyedMutex:
    @pytest.mark.asyncio
    async def test_same_key_runs_one_at_a_time_in_order(self):
        mutex = KeyedMutex()
        order = []
        active = 0
        peak = 0

        def job(i):
            async def run():
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.001)
                order.append(i)
                active -= 1
                return i
            return run

        results = await asyncio.gather(*(mutex.run_exclusive("k", job(i)) for i in range(5)))
        assert results == [0, 1, 2, 3, 4]
        assert order == [0, 1, 2, 3, 4]
        assert peak == 1
        assert mutex.locked("k") is False

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        mutex = KeyedMutex()
        a_started = asyncio.Event()
        b_started = asyncio.Event()

        async def a():
            a_started.set()
            await b_started.wait()

        async def b():
            b_started.set()
            await a_started.wait()

        # would deadlock if the keys shared a lock
        await asyncio.wait_for(
            asyncio.gather(mutex.run_exclusive("x", a), mutex.run_exclusive("y", b)), timeout=1.0
        )

    @pytest.mark.asyncio
    async def test_released_after_exception(self):
        mutex = KeyedMutex()

        async def boom():
            raise ValueError("bad batch")

        async def ok():
            return "ok"

        results = await asyncio.gather(
            mutex.run_exclusive("k", boom), mutex.run_exclusive("k", ok), return_exceptions=True
        )
        assert isinstance(results[0], ValueError)
        assert results[1] == "ok"
        assert mutex.active_keys == []

    @pytest.mark.asyncio
    async def test_cancelled_waiter_keeps_exclusion(self):
        mutex = KeyedMutex()
        release = asyncio.Event()
        ran = []

        async def holder():
            await release.wait()
            ran.append("holder")

        def record(name):
            async def run():
                ran.append(name)
            return run

        first = asyncio.create_task(mutex.run_exclusive("k", holder))
        await asyncio.sleep(0)
        second = asyncio.create_task(mutex.run_exclusive("k", record("second")))
        third = asyncio.create_task(mutex.run_exclusive("k", record("third")))
        await asyncio.sleep(0)

        second.cancel()
        with pytest.raises(asyncio.CancelledError):
            await second
        await asyncio.sleep(0.01)
        assert ran == []
        assert mutex.locked("k") is True

        release.set()
        await asyncio.gather(first, third)
        assert ran == ["holder", "third"]
        assert mutex.locked("k") is False
