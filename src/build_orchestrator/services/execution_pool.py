"""Bounded worker pool for concurrent pipeline builds."""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import structlog

from ..core.config import settings
from ..core.exceptions import PoolClosedError

logger = structlog.get_logger(__name__)

_Job = Tuple[Callable[..., Awaitable[Any]], tuple, dict, asyncio.Future]


class ExecutionPool:
    """Fixed number of workers fed from a bounded queue.

    When the queue is full the submitter runs the task itself, so a
    submission is never rejected or dropped. Workers spend most of their time
    awaiting HTTP calls and poll sleeps; the pool size bounds how many
    pipelines are monitored at once.
    """

    def __init__(self, max_workers: Optional[int] = None, queue_capacity: Optional[int] = None):
        self.max_workers = max_workers or settings.build_pool_workers
        self.queue_capacity = queue_capacity or settings.build_queue_capacity
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._closed = False
        self.inline_runs = 0

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the worker tasks on the running event loop."""
        if self._queue is not None:
            return
        self._queue = asyncio.Queue(maxsize=self.queue_capacity)
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"build-worker-{index}")
            for index in range(self.max_workers)
        ]
        logger.debug("Execution pool started", workers=self.max_workers, capacity=self.queue_capacity)

    async def submit(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> asyncio.Future:
        """Schedule ``fn(*args, **kwargs)`` and return a future for its result.

        Raises:
            PoolClosedError: the pool was shut down
        """
        if self._closed:
            raise PoolClosedError()
        self.start()

        future = asyncio.get_running_loop().create_future()
        job = (fn, args, kwargs, future)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self.inline_runs += 1
            logger.warning("Build queue full, running task on submitter", capacity=self.queue_capacity)
            await self._execute(job)
        return future

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._execute(job)
            finally:
                self._queue.task_done()

    @staticmethod
    async def _execute(job: _Job) -> None:
        fn, args, kwargs, future = job
        if future.cancelled():
            return
        try:
            result = await fn(*args, **kwargs)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    async def shutdown(self) -> None:
        """Stop accepting work, drain queued tasks and stop the workers."""
        self._closed = True
        if self._queue is None:
            return
        await self._queue.join()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.debug("Execution pool shut down", inline_runs=self.inline_runs)
