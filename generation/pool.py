"""
Worker Pool - Bounded async fan-out with a result queue and join barrier

Items go onto a task queue; a fixed number of workers pull from it and push a
TaskOutcome per item onto the result queue. run() returns once every worker
has finished. Per-item failures (including a per-item deadline) are captured
in the outcome and never cancel sibling items.

If run() itself is cancelled (an outer deadline), the workers are cancelled
and whatever outcomes were already produced stay available through drain().
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from config import get_logger
from exceptions import PipelineTimeoutError

logger = get_logger(__name__).bind(component="pool")

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskOutcome(Generic[T, R]):
    index: int
    item: T
    result: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkerPool:
    """Fixed-size pool of asyncio workers"""

    def __init__(self, size: int, name: str = "pool", item_timeout: Optional[float] = None):
        """Initialize pool

        Args:
            size: Maximum concurrent workers (at least 1)
            name: Label used in logs and timeout errors
            item_timeout: Optional deadline in seconds for each item
        """
        if size < 1:
            raise ValueError(f"pool size must be at least 1, got {size}")
        self.size = size
        self.name = name
        self.item_timeout = item_timeout
        self._results: "asyncio.Queue[TaskOutcome]" = asyncio.Queue()

    async def run(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[R]],
    ) -> List[TaskOutcome]:
        """Process every item and return all outcomes (completion order)"""
        self._results = asyncio.Queue()
        if not items:
            return []

        tasks: "asyncio.Queue[Any]" = asyncio.Queue()
        for index, item in enumerate(items):
            tasks.put_nowait((index, item))

        worker_count = min(self.size, len(items))
        logger.debug("pool started", pool=self.name, items=len(items), workers=worker_count)

        workers = [
            asyncio.create_task(self._worker(worker_id, tasks, handler))
            for worker_id in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        outcomes = self.drain()
        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.debug("pool finished", pool=self.name, items=len(items), failed=failed)
        return outcomes

    def drain(self) -> List[TaskOutcome]:
        """Take every outcome currently on the result queue"""
        outcomes = []
        while True:
            try:
                outcomes.append(self._results.get_nowait())
            except asyncio.QueueEmpty:
                return outcomes

    async def _worker(self, worker_id: int, tasks: asyncio.Queue, handler) -> None:
        while True:
            try:
                index, item = tasks.get_nowait()
            except asyncio.QueueEmpty:
                return

            outcome = TaskOutcome(index=index, item=item)
            try:
                if self.item_timeout is not None:
                    outcome.result = await asyncio.wait_for(handler(item), timeout=self.item_timeout)
                else:
                    outcome.result = await handler(item)
            except asyncio.TimeoutError:
                outcome.error = PipelineTimeoutError(
                    f"{self.name} item {index + 1} timed out after {self.item_timeout}s",
                    timeout_seconds=self.item_timeout
                )
            except Exception as e:
                outcome.error = e

            if outcome.error is not None:
                logger.warning(
                    "pool item failed",
                    pool=self.name,
                    worker=worker_id,
                    item=index + 1,
                    error=str(outcome.error),
                    error_type=type(outcome.error).__name__
                )
            self._results.put_nowait(outcome)
