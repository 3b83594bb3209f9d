"""
Click dispatcher: fixed pool of asyncio workers draining a bounded queue.

The redirect handler calls submit() and moves on. submit() never waits and
never raises; when the queue is full the click is dropped and logged.
Workers outlive any single failed task.
"""

import asyncio

import structlog

from snaplink.core.accounting import ClickAccountant, ClickTask

logger = structlog.get_logger()


class ClickDispatcher:
    def __init__(self, accountant: ClickAccountant, workers: int = 4, queue_size: int = 10000):
        self.accountant = accountant
        self.workers = workers
        self._queue: asyncio.Queue[ClickTask] = asyncio.Queue(maxsize=queue_size)
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(n), name=f"click-accounting-{n}")
            for n in range(self.workers)
        ]
        logger.info("click_dispatcher_started", workers=self.workers)

    def submit(self, task: ClickTask) -> bool:
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            logger.warning("click_dropped_queue_full", link_id=str(task.link_id))
            return False
        return True

    async def drain(self) -> None:
        """Wait until every submitted task has been processed."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("click_dispatcher_drain_timeout", pending=self.pending)

        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("click_dispatcher_stopped")

    async def _worker(self, n: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self.accountant.record(task)
            except Exception as e:
                logger.error("accounting_task_failed", worker=n, link_id=str(task.link_id), error=str(e))
            finally:
                self._queue.task_done()
