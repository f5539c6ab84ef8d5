import asyncio

import pytest

from build_orchestrator.core.exceptions import PoolClosedError
from build_orchestrator.services.execution_pool import ExecutionPool


async def _double(value: int) -> int:
    await asyncio.sleep(0)
    return value * 2


async def test_results_are_delivered_through_futures():
    async with ExecutionPool(max_workers=2, queue_capacity=10) as pool:
        futures = [await pool.submit(_double, value) for value in range(5)]
        results = await asyncio.gather(*futures)

    assert results == [0, 2, 4, 6, 8]


async def test_saturated_queue_runs_tasks_on_submitter():
    completed = []

    async def _task(index: int) -> int:
        await asyncio.sleep(0.001)
        completed.append(index)
        return index

    async with ExecutionPool(max_workers=1, queue_capacity=1) as pool:
        futures = [await pool.submit(_task, index) for index in range(20)]
        results = await asyncio.gather(*futures)

    assert sorted(results) == list(range(20))
    assert sorted(completed) == list(range(20))
    assert pool.inline_runs > 0


async def test_concurrency_is_bounded_by_worker_count():
    running = 0
    peak = 0

    async def _task() -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    async with ExecutionPool(max_workers=3, queue_capacity=100) as pool:
        futures = [await pool.submit(_task) for _ in range(9)]
        await asyncio.gather(*futures)

    assert peak == 3


async def test_task_exception_is_set_on_future():
    async def _fail() -> None:
        raise RuntimeError("pipeline exploded")

    async with ExecutionPool(max_workers=1, queue_capacity=5) as pool:
        future = await pool.submit(_fail)
        with pytest.raises(RuntimeError, match="pipeline exploded"):
            await future

        # the worker survives a failing task
        assert await (await pool.submit(_double, 4)) == 8


async def test_shutdown_drains_pending_tasks():
    pool = ExecutionPool(max_workers=1, queue_capacity=10)
    futures = [await pool.submit(_double, value) for value in range(5)]

    await pool.shutdown()

    assert all(future.done() for future in futures)
    assert [future.result() for future in futures] == [0, 2, 4, 6, 8]


async def test_submit_after_shutdown_is_rejected():
    pool = ExecutionPool(max_workers=1, queue_capacity=1)
    await pool.shutdown()

    with pytest.raises(PoolClosedError):
        await pool.submit(_double, 1)
    assert pool.closed
