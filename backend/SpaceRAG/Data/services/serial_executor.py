"""
Serial Job Executor

A FIFO queue drained by a single worker task per event loop. Jobs submitted
to one executor never overlap and start in submission order, even when
callers submit concurrently. Each job's result or error goes back to its
own caller; a failing job does not affect the jobs queued behind it.

Callers on different event loops (for example one asyncio.run per thread)
each get a worker on their own loop. A gate shared by all workers lets only
one job run at a time across loops; ordering is FIFO within a loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable[Any]]
_QueueItem = Optional[Tuple[Job, "asyncio.Future[Any]"]]

# How often a worker re-checks the gate while another loop's job runs
GATE_POLL_SECONDS = 0.01


@dataclass
class _Worker:
    queue: asyncio.Queue
    task: asyncio.Task


class SerialJobExecutor:
    """
    Run coroutine jobs one at a time, in submission order.

    Example:
        executor = SerialJobExecutor()
        result = await executor.submit(lambda: ingest_batch(space, docs))
        await executor.close()
    """

    def __init__(self, name: str = "serial"):
        self.name = name
        # Guards the worker map and enqueue order across threads
        self._lock = threading.Lock()
        # Held while a job runs, whichever loop runs it
        self._gate = threading.Lock()
        self._workers: Dict[asyncio.AbstractEventLoop, _Worker] = {}
        self._running = False
        self._closed = False

    @property
    def pending(self) -> int:
        """Jobs queued or running."""
        with self._lock:
            queued = sum(w.queue.qsize() for w in self._workers.values())
        return queued + (1 if self._running else 0)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop) -> asyncio.Queue:
        # Caller holds self._lock. Workers of finished loops are dropped.
        for stale in [l for l in self._workers if l.is_closed()]:
            del self._workers[stale]

        worker = self._workers.get(loop)
        if worker is None or worker.task.done():
            queue: asyncio.Queue = asyncio.Queue()
            worker = _Worker(queue=queue, task=loop.create_task(self._drain(queue)))
            self._workers[loop] = worker
        return worker.queue

    async def submit(self, job: Callable[[], Awaitable[T]]) -> T:
        """
        Queue a job and wait for its result.

        Args:
            job: Zero-argument coroutine function

        Returns:
            Whatever the job returns

        Raises:
            Whatever the job raises; RuntimeError if the executor is closed
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        with self._lock:
            if self._closed:
                raise RuntimeError(f"Executor '{self.name}' is closed")
            queue = self._ensure_worker(loop)
            queue.put_nowait((job, future))

        return await future

    async def _acquire_gate(self) -> None:
        while not self._gate.acquire(blocking=False):
            await asyncio.sleep(GATE_POLL_SECONDS)

    async def _drain(self, queue: asyncio.Queue) -> None:
        while True:
            item: _QueueItem = await queue.get()
            if item is None:
                return

            job, future = item
            if future.done():
                # Caller was cancelled before the job started
                continue

            await self._acquire_gate()
            try:
                if future.done():
                    continue
                if self._closed:
                    future.set_exception(RuntimeError(f"Executor '{self.name}' closed"))
                    continue
                await self._run_job(job, future)
            finally:
                self._gate.release()

    async def _run_job(self, job: Job, future: asyncio.Future) -> None:
        self._running = True
        try:
            result = await job()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            logger.error(f"Job failed in executor '{self.name}': {e}")
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._running = False

    def _shutdown_queue(self, queue: asyncio.Queue) -> None:
        # Runs on the queue's own loop
        while not queue.empty():
            item = queue.get_nowait()
            if item is None:
                continue
            _, future = item
            if not future.done():
                future.set_exception(RuntimeError(f"Executor '{self.name}' closed"))
        queue.put_nowait(None)

    async def close(self) -> None:
        """
        Stop accepting jobs, fail queued ones and wait for the running job.

        Queues on other event loops are shut down on their own loop. Safe
        to call more than once.
        """
        with self._lock:
            self._closed = True
            workers = list(self._workers.items())
            self._workers.clear()

        current = asyncio.get_running_loop()
        local: List[asyncio.Task] = []
        for loop, worker in workers:
            if loop is current:
                self._shutdown_queue(worker.queue)
                local.append(worker.task)
                continue
            try:
                loop.call_soon_threadsafe(self._shutdown_queue, worker.queue)
            except RuntimeError:
                # Loop closed in the meantime; its worker is already gone
                logger.debug(f"Executor '{self.name}': skipped a closed event loop")

        for task in local:
            if not task.done():
                await task

        # A job started on another loop still holds the gate
        await self._acquire_gate()
        self._gate.release()
