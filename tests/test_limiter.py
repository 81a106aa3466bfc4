import asyncio

import pytest

from satsuma.errors import ConfigurationError
from satsuma.limiter import Limiter, limiter


def test_limiter_never_exceeds_concurrency():
    gate = Limiter(3)
    peak = {"value": 0}

    async def work(i):
        peak["value"] = max(peak["value"], gate.active)
        await asyncio.sleep(0.001 * (i % 4))
        return i * 2

    async def main():
        return await asyncio.gather(*(gate.run(lambda i=i: work(i)) for i in range(20)))

    results = asyncio.run(main())
    assert results == [i * 2 for i in range(20)]
    assert peak["value"] == 3
    assert gate.active == 0
    assert gate.pending == 0


def test_limiter_admits_in_fifo_order():
    started = []
    run = limiter(1)

    async def work(i):
        started.append(i)
        await asyncio.sleep(0)

    async def main():
        await asyncio.gather(*(run(lambda i=i: work(i)) for i in range(5)))

    asyncio.run(main())
    assert started == [0, 1, 2, 3, 4]


def test_limiter_propagates_task_errors_and_keeps_going():
    gate = Limiter(1)

    async def boom():
        raise ValueError("nope")

    async def ok():
        return "fine"

    async def main():
        return await asyncio.gather(gate.run(boom), gate.run(ok), return_exceptions=True)

    first, second = asyncio.run(main())
    assert isinstance(first, ValueError)
    assert second == "fine"
    assert gate.active == 0


@pytest.mark.parametrize("value", [0, -1, 1.5, "4", True, None])
def test_limiter_rejects_invalid_concurrency(value):
    with pytest.raises(ConfigurationError):
        Limiter(value)


def test_clear_drops_queued_tasks_and_join_waits_for_running_ones():
    gate = Limiter(1)
    finished = []

    async def work(name):
        await asyncio.sleep(0.01)
        finished.append(name)

    async def main():
        first = asyncio.ensure_future(gate.run(lambda: work("first")))
        second = asyncio.ensure_future(gate.run(lambda: work("second")))
        await asyncio.sleep(0)
        assert (gate.active, gate.pending) == (1, 1)
        gate.clear()
        await gate.join()
        await asyncio.gather(first, second, return_exceptions=True)
        return second.cancelled()

    assert asyncio.run(main()) is True
    assert finished == ["first"]
    assert gate.active == 0 and gate.pending == 0
