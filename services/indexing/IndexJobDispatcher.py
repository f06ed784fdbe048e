"""Bounded asyncio worker pool that runs indexing off the caller's path.

Callers hand jobs to publish() and return immediately. A fixed number of
resident workers drain the queue; while a backlog exists, extra workers are
started up to the configured ceiling and exit once the queue is empty. When
the queue is full new work is dropped with a warning.
"""

import asyncio
import threading
from typing import Any, Awaitable, Callable, NamedTuple

from services.indexing.IndexJobWorker import IndexJobWorker
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import IndexingSettings
from shared.models.indexing import IndexJob

SHUTDOWN_TIMEOUT_SECONDS = 10.0


class _WorkItem(NamedTuple):
    label: str
    fn: Callable[..., Awaitable[Any]]
    args: tuple


class IndexJobDispatcher:
    def __init__(self, helper_config: HelperConfig, settings: IndexingSettings, worker: IndexJobWorker) -> None:
        self.logging = helper_config.get_logger()
        self._settings = settings
        self._worker = worker
        self._queue: asyncio.Queue[_WorkItem] = asyncio.Queue(maxsize=settings.executor_queue_capacity)
        self._workers: set[asyncio.Task] = set()
        self._busy = 0
        self._serial = 0
        self._accepting = True
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def start(self) -> None:
        """Start the resident workers on the running event loop."""
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._accepting = True
        for _ in range(self._settings.executor_core_pool_size):
            self._spawn(resident=True)
        self.logging.info(
            "Index dispatcher started (core=%d, max=%d, queue=%d, enabled=%s)",
            self._settings.executor_core_pool_size,
            self._settings.executor_max_pool_size,
            self._settings.executor_queue_capacity,
            self._settings.enabled,
        )

    async def drain(self) -> None:
        """Wait until every queued item has been processed."""
        await self._queue.join()

    async def stop(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS) -> None:
        """Stop accepting work, give queued items up to timeout seconds, then cancel the workers."""
        self._accepting = False
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            self.logging.warning("Index dispatcher stopped with %d queued item(s) unprocessed.", self._queue.qsize())
        workers = list(self._workers)
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()

    ##########################################
    ################ PUBLISH #################
    ##########################################

    def publish(self, job: IndexJob) -> None:
        """Queue a job for indexing. Never blocks, never raises.

        Safe to call from the event loop thread or from a worker thread
        (e.g. a sync FastAPI endpoint running in the threadpool).
        """
        if not self._settings.enabled:
            self.logging.debug("INDEX: disabled, dropping job apiPath=%s", job.api_path)
            return
        label = f"job sourceType={job.source_type.value} teamId={job.team_id} apiPath={job.api_path} resourceId={job.resource_id}"
        self._offer(_WorkItem(label=label, fn=self._worker.handle, args=(job,)))

    def submit(self, label: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        """Queue an auxiliary coroutine (webhook refresh, bulk load) on the same pool."""
        self._offer(_WorkItem(label=label, fn=fn, args=args))

    def _offer(self, item: _WorkItem) -> None:
        if not self._accepting:
            self.logging.warning("INDEX: dispatcher stopped, dropping %s", item.label)
            return
        if self._loop is not None and threading.get_ident() != self._loop_thread:
            self._loop.call_soon_threadsafe(self._enqueue, item)
            return
        self._enqueue(item)

    def _enqueue(self, item: _WorkItem) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.logging.warning("INDEX: queue full (%d), dropping %s", self._queue.maxsize, item.label)
            return
        self._maybe_scale()

    ##########################################
    ################ WORKERS #################
    ##########################################

    def _maybe_scale(self) -> None:
        if self._loop is None:
            return
        idle = len(self._workers) - self._busy
        if self._queue.qsize() > idle and len(self._workers) < self._settings.executor_max_pool_size:
            self._spawn(resident=False)

    def _spawn(self, resident: bool) -> None:
        self._serial += 1
        task = asyncio.get_running_loop().create_task(self._run(resident), name=f"index-{self._serial}")
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    async def _run(self, resident: bool) -> None:
        while True:
            if resident:
                item = await self._queue.get()
            else:
                try:
                    item = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
            self._busy += 1
            try:
                await item.fn(*item.args)
            except Exception as e:
                self.logging.error("INDEX: %s failed: %s", item.label, e, exc_info=True)
            finally:
                self._busy -= 1
                self._queue.task_done()
