"""In-memory implementation of InspectableJobQueuePort.

Jobs run on asyncio worker tasks inside the current process, FIFO per queue
name. A job added to a queue without a registered handler stays pending until
a handler is registered. Suitable for tests, local development and single
process deployments.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from storeindex.adapters.retry_tenacity import TenacityRetryAdapter
from storeindex.core.interfaces.job_queue import InspectableJobQueuePort
from storeindex.core.interfaces.retry import RetryPort
from storeindex.core.logging_config import correlation_id_var
from storeindex.core.models.job import Job, JobState
from storeindex.core.settings import logger

JobHandler = Callable[[Job], Awaitable[Any]]


class InMemoryJobQueue(InspectableJobQueuePort):
    def __init__(self, retry: Optional[RetryPort] = None) -> None:
        self._retry: RetryPort = retry or TenacityRetryAdapter()
        self._jobs: Dict[str, Job] = {}
        self._queues: Dict[str, asyncio.Queue] = {}
        self._handlers: Dict[str, JobHandler] = {}
        self._concurrency: Dict[str, int] = {}
        self._workers: List[asyncio.Task] = []
        self._lock = asyncio.Lock()
        self._running = False

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False

    def register_handler(self, queue_name: str, handler: JobHandler, concurrency: int = 1) -> None:
        if queue_name in self._handlers:
            raise ValueError(f"Handler already registered for queue '{queue_name}'")
        self._handlers[queue_name] = handler
        self._concurrency[queue_name] = max(1, concurrency)
        if self._running:
            self._spawn_workers(queue_name)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for queue_name in self._handlers:
            self._spawn_workers(queue_name)
        logger.debug(f"[queue] started queues={list(self._handlers)}")

    async def stop(self) -> None:
        self._running = False
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.debug("[queue] stopped")

    async def add(self, job: Job) -> Job:
        async with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job already exists: {job.id}")
            stored = job if job.state == JobState.pending else job.transition(JobState.pending)
            self._jobs[job.id] = stored
        self._queue(job.queue_name).put_nowait(job.id)
        logger.debug(f"[queue:add] job_id={job.id} queue={job.queue_name}")
        return stored

    async def find_job(self, job_id: str) -> Optional[Job]:
        async with self._lock:
            return self._jobs.get(job_id)

    async def find_jobs(
        self,
        queue_name: Optional[str] = None,
        state: Optional[JobState] = None,
    ) -> Sequence[Job]:
        async with self._lock:
            jobs = list(self._jobs.values())
            if queue_name is not None:
                jobs = [j for j in jobs if j.queue_name == queue_name]
            if state is not None:
                jobs = [j for j in jobs if j.state == state]
            return jobs

    async def join(self, *queue_names: str) -> None:
        """Wait until the given queues (default: all with a handler) are idle."""
        names = queue_names or tuple(self._handlers)
        for name in names:
            await self._queue(name).join()

    def _queue(self, queue_name: str) -> asyncio.Queue:
        if queue_name not in self._queues:
            self._queues[queue_name] = asyncio.Queue()
        return self._queues[queue_name]

    def _spawn_workers(self, queue_name: str) -> None:
        for _ in range(self._concurrency[queue_name]):
            self._workers.append(asyncio.create_task(self._worker(queue_name)))

    async def _worker(self, queue_name: str) -> None:
        queue = self._queue(queue_name)
        while True:
            job_id = await queue.get()
            try:
                await self._run(job_id, self._handlers[queue_name])
            finally:
                queue.task_done()

    async def _set(self, job: Job) -> Job:
        async with self._lock:
            self._jobs[job.id] = job
        return job

    async def _run(self, job_id: str, handler: JobHandler) -> None:
        job = await self.find_job(job_id)
        if job is None or job.state != JobState.pending:
            return
        job = await self._set(job.transition(JobState.running))

        def before_attempt(attempt_number: int) -> None:
            current = self._jobs[job_id]
            self._jobs[job_id] = current.model_copy(update={"attempts": attempt_number})
            if attempt_number > 1:
                logger.debug(f"[queue:retry] job_id={job_id} attempt={attempt_number}")

        token = correlation_id_var.set(job_id)
        try:
            result = await self._retry.execute(
                handler,
                job,
                attempts=job.retries + 1,
                before_attempt=before_attempt,
            )
        except asyncio.CancelledError:
            await self._set(self._jobs[job_id].transition(JobState.cancelled, error="cancelled"))
            raise
        except Exception as exc:
            logger.error(f"[queue:failed] job_id={job_id} queue={job.queue_name} error={exc!r}")
            await self._set(self._jobs[job_id].transition(JobState.failed, error=str(exc) or repr(exc)))
        else:
            await self._set(self._jobs[job_id].transition(JobState.completed, result=result))
            logger.debug(f"[queue:completed] job_id={job_id} queue={job.queue_name}")
        finally:
            correlation_id_var.reset(token)
