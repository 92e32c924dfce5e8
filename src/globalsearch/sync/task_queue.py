"""
Async Task Queue for index synchronization

Lifecycle events are turned into SyncTasks and pushed onto a bounded
asyncio queue drained by a fixed pool of worker tasks.

Key Features:
- Bounded FIFO queue; pushes beyond capacity are rejected, not blocked
- Worker pool with explicit start/stop and shutdown timeout
- Drain: wait until every accepted task has been processed
- No retry: a failed task is logged and counted, then discarded
"""

import asyncio
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from ..constants import SYNC_QUEUE_MAX_SIZE, SYNC_QUEUE_POP_TIMEOUT, SYNC_WORKER_COUNT
from ..error_handling import QueueError
from ..logger_config import logger
from ..models.entities import EntityType, SourceEntity


class SyncOperation(Enum):
    """Kind of index mutation a task performs."""
    UPSERT = "upsert"
    DELETE = "delete"


_task_ids = itertools.count(1)


@dataclass
class SyncTask:
    """
    One pending index mutation.

    Attributes:
        operation: UPSERT (create/update events) or DELETE
        entity_type: Type of the affected entity
        entity_id: Identifier of the affected entity
        entity: The entity snapshot to project (UPSERT only)
        event: Name of the lifecycle event that produced the task
    """
    operation: SyncOperation
    entity_type: EntityType
    entity_id: int
    entity: Optional[SourceEntity] = None
    event: str = ""
    task_id: int = field(default_factory=lambda: next(_task_ids))
    enqueued_at: float = field(default_factory=time.time)

    def describe(self) -> str:
        return f"{self.operation.value} {self.entity_type.label} {self.entity_id}"


class AsyncBoundedQueue:
    """
    Bounded FIFO queue of SyncTasks.

    Tracks unfinished tasks (queued plus in-flight) so that callers can
    wait for the queue to drain.
    """

    def __init__(self, max_size: int = SYNC_QUEUE_MAX_SIZE):
        """
        Args:
            max_size: Maximum number of queued tasks (hard limit)
        """
        if max_size < 1:
            raise QueueError("max_size must be >= 1", context={'max_size': max_size})
        self._items: Deque[SyncTask] = deque()
        self._max_size = max_size
        self._unfinished = 0
        self._total_added = 0
        self._total_popped = 0
        self._total_dropped = 0
        self._closed = False
        self._lock = asyncio.Lock()
        self._not_empty = asyncio.Condition(lock=self._lock)
        self._all_done = asyncio.Condition(lock=self._lock)

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._items)

    async def push(self, task: SyncTask) -> bool:
        """
        Push a task onto the queue.

        Returns:
            True if accepted, False if the queue is full or closed
        """
        async with self._lock:
            if self._closed:
                logger.warning(
                    f"Queue closed, dropping task: {task.describe()}",
                    extra={'component': 'AsyncBoundedQueue', 'action': 'closed'}
                )
                self._total_dropped += 1
                return False

            if len(self._items) >= self._max_size:
                logger.warning(
                    f"Queue at hard limit ({len(self._items)}/{self._max_size}), "
                    f"dropping task: {task.describe()}",
                    extra={'component': 'AsyncBoundedQueue', 'action': 'hard_limit_reached',
                           'queue_size': len(self._items)}
                )
                self._total_dropped += 1
                return False

            self._items.append(task)
            self._unfinished += 1
            self._total_added += 1
            self._not_empty.notify()

            logger.debug(
                f"Queued task {task.task_id}: {task.describe()}",
                extra={'component': 'AsyncBoundedQueue', 'action': 'push'}
            )
            return True

    async def pop(self, timeout: Optional[float] = None) -> Optional[SyncTask]:
        """
        Pop the oldest task, waiting up to ``timeout`` seconds.

        Returns:
            SyncTask or None on timeout
        """
        async with self._not_empty:
            if not self._items:
                try:
                    await asyncio.wait_for(self._not_empty.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    return None
                if not self._items:
                    return None

            task = self._items.popleft()
            self._total_popped += 1
            return task

    async def task_done(self) -> None:
        """Mark a popped task as finished (successfully or not)."""
        async with self._lock:
            if self._unfinished <= 0:
                raise QueueError("task_done() called more times than tasks were queued")
            self._unfinished -= 1
            if self._unfinished == 0:
                self._all_done.notify_all()

    async def wait_until_empty(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every accepted task has been processed.

        Returns:
            True if drained, False on timeout
        """
        async with self._all_done:
            if self._unfinished == 0:
                return True
            try:
                await asyncio.wait_for(
                    self._all_done.wait_for(lambda: self._unfinished == 0),
                    timeout=timeout
                )
            except asyncio.TimeoutError:
                return False
            return True

    async def close(self) -> None:
        """Reject all further pushes."""
        async with self._lock:
            self._closed = True

    async def reopen(self) -> None:
        async with self._lock:
            self._closed = False

    async def discard_pending(self) -> int:
        """Drop every queued (not in-flight) task. Returns how many were dropped."""
        async with self._lock:
            dropped = len(self._items)
            self._items.clear()
            self._unfinished -= dropped
            self._total_dropped += dropped
            if self._unfinished == 0:
                self._all_done.notify_all()
            if dropped:
                logger.warning(
                    f"Discarded {dropped} pending sync tasks",
                    extra={'component': 'AsyncBoundedQueue', 'action': 'discard', 'dropped': dropped}
                )
            return dropped

    async def get_stats(self) -> Dict[str, Any]:
        async with self._lock:
            return {
                "queue_size": len(self._items),
                "unfinished": self._unfinished,
                "total_added": self._total_added,
                "total_popped": self._total_popped,
                "total_dropped": self._total_dropped,
                "max_size": self._max_size,
                "closed": self._closed,
                "utilization_percent": round(len(self._items) / self._max_size * 100, 2),
            }


TaskHandler = Callable[[SyncTask], Awaitable[None]]


class AsyncTaskProcessor:
    """
    Processes SyncTasks from an AsyncBoundedQueue with a worker pool.

    The handler is awaited once per task. An exception from the handler is
    logged and counted; the task is not retried.
    """

    def __init__(
        self,
        queue: AsyncBoundedQueue,
        handler: TaskHandler,
        worker_count: int = SYNC_WORKER_COUNT,
    ):
        """
        Args:
            queue: The bounded queue to process tasks from
            handler: Coroutine function applied to each task
            worker_count: Number of worker tasks
        """
        if worker_count < 1:
            raise QueueError("worker_count must be >= 1", context={'worker_count': worker_count})
        self.queue = queue
        self.handler = handler
        self.worker_count = worker_count

        self._workers: List[asyncio.Task] = []
        self._running = False
        self._stats_lock = asyncio.Lock()
        self._processing_stats = {
            "total_processed": 0,
            "total_failed": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker pool."""
        if self._running:
            logger.warning("Task processor already running",
                           extra={'component': 'AsyncTaskProcessor', 'action': 'already_running'})
            return

        self._running = True
        for i in range(self.worker_count):
            worker = asyncio.create_task(self._worker(f"sync-worker-{i}"))
            self._workers.append(worker)

        logger.info(f"Started {self.worker_count} sync workers",
                    extra={'component': 'AsyncTaskProcessor', 'action': 'started',
                           'worker_count': self.worker_count})

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the worker pool.

        Workers finish the task they hold and exit. Workers still running
        after ``timeout`` seconds are cancelled.
        """
        if not self._running:
            return

        logger.info("Stopping sync workers...",
                    extra={'component': 'AsyncTaskProcessor', 'action': 'stopping'})
        self._running = False

        if self._workers:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._workers, return_exceptions=True),
                    timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.warning("Worker shutdown timed out, cancelling workers",
                               extra={'component': 'AsyncTaskProcessor', 'action': 'shutdown_timeout'})
                for worker in self._workers:
                    if not worker.done():
                        worker.cancel()
                await asyncio.gather(*self._workers, return_exceptions=True)

        self._workers.clear()
        logger.info("Sync workers stopped",
                    extra={'component': 'AsyncTaskProcessor', 'action': 'stopped'})

    async def _worker(self, worker_name: str) -> None:
        logger.debug(f"{worker_name} started",
                     extra={'component': 'AsyncTaskProcessor', 'action': 'worker_start'})

        while self._running:
            task = await self.queue.pop(timeout=SYNC_QUEUE_POP_TIMEOUT)
            if task is None:
                continue
            try:
                await self._process_task(task, worker_name)
            finally:
                await self.queue.task_done()

        logger.debug(f"{worker_name} stopped",
                     extra={'component': 'AsyncTaskProcessor', 'action': 'worker_stop'})

    async def _process_task(self, task: SyncTask, worker_name: str) -> None:
        start_time = time.perf_counter()
        try:
            await self.handler(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            async with self._stats_lock:
                self._processing_stats["total_failed"] += 1
            logger.error(
                f"{worker_name} failed task {task.task_id} ({task.describe()}): {e}",
                extra={'component': 'AsyncTaskProcessor', 'action': 'failed',
                       'task_id': task.task_id, 'error': str(e)}
            )
            return

        async with self._stats_lock:
            self._processing_stats["total_processed"] += 1
        logger.debug(
            f"{worker_name} completed task {task.task_id} in {(time.perf_counter() - start_time) * 1000:.1f}ms",
            extra={'component': 'AsyncTaskProcessor', 'action': 'completed', 'task_id': task.task_id}
        )

    async def get_stats(self) -> Dict[str, Any]:
        queue_stats = await self.queue.get_stats()
        async with self._stats_lock:
            return {
                **queue_stats,
                "worker_count": self.worker_count,
                "is_running": self._running,
                "total_processed": self._processing_stats["total_processed"],
                "total_failed": self._processing_stats["total_failed"],
            }
