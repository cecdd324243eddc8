"""SearchJobBufferService: wiring of the search index buffers.

Registers the index-update and collection-filter buffers when buffering is
enabled and exposes the operational queries used by the ops endpoints: how
many updates are pending, and "run them now".

Index documents carry collection ids, so index updates must only run after
pending collection recomputation has finished. `run_pending_search_updates`
therefore flushes the collection buffer first and, if the queue can be
inspected, waits for those jobs before flushing the index buffer.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Set, Union

from storeindex.core.config import SearchBufferConfig
from storeindex.core.exceptions import JobNotFoundError, JobWaitTimeoutError
from storeindex.core.interfaces.job_queue import is_inspectable
from storeindex.core.managers.collection_job_buffer import CollectionJobBuffer
from storeindex.core.managers.job_buffer_registry import JobBufferRegistry
from storeindex.core.managers.search_index_job_buffer import SearchIndexJobBuffer
from storeindex.core.managers.subscribable_job import SubscribableJob
from storeindex.core.models.context import RequestContext
from storeindex.core.models.index_jobs import ReindexJobData, update_index_job
from storeindex.core.models.job import BufferedJob, Job, JobState
from storeindex.core.settings import logger


class SearchJobBufferService:
    """Registers the search buffers and runs buffered search updates.

    Attributes:
        config: Immutable buffering configuration (enabled flag, wait timings)
    """

    def __init__(self, registry: JobBufferRegistry, config: SearchBufferConfig) -> None:
        self.registry = registry
        self.config = config
        self.search_index_job_buffer = SearchIndexJobBuffer()
        self.collection_job_buffer = CollectionJobBuffer()
        self._flush_tasks: Set[asyncio.Task] = set()
        self._flush_lock = asyncio.Lock()
        self._shutdown = False

    async def bootstrap(self) -> None:
        if not self.config.buffer_updates:
            logger.info("[search:buffer] buffering disabled; index jobs run immediately")
            return
        for buffer in (self.search_index_job_buffer, self.collection_job_buffer):
            if not self.registry.is_registered(buffer):
                self.registry.register(buffer)
        logger.info("[search:buffer] buffering enabled for search index and collection filter jobs")
        if self.config.flush_interval and not self._flush_tasks:
            self._schedule_periodic_flush(self.config.flush_interval)

    async def get_pending_search_updates(self) -> int:
        if not self.config.buffer_updates:
            return 0
        sizes = self.registry.buffer_size(self.search_index_job_buffer, self.collection_job_buffer)
        return sizes.get(self.search_index_job_buffer.id, 0) + sizes.get(self.collection_job_buffer.id, 0)

    async def run_pending_search_updates(self) -> None:
        if not self.config.buffer_updates:
            return
        # a periodic flush and an ops request must not interleave their two phases
        async with self._flush_lock:
            collection_jobs = await self.registry.flush(self.collection_job_buffer)
            queue = self.registry.job_queue
            if collection_jobs and is_inspectable(queue):
                await self._wait_for_jobs(collection_jobs, queue)
            elif collection_jobs:
                logger.debug(
                    f"[search:buffer] queue not inspectable; flushing index updates without waiting "
                    f"for {len(collection_jobs)} collection jobs"
                )
            await self.registry.flush(self.search_index_job_buffer)

    async def reindex(self, ctx: RequestContext) -> Union[Job, BufferedJob]:
        logger.info(f"[search:reindex] reindex requested channel={ctx.channel_id}")
        return await self.registry.submit(update_index_job(ReindexJobData(ctx=ctx)))

    async def _wait_for_jobs(self, jobs: List[Job], queue) -> None:
        subscriptions = [SubscribableJob(job, queue) for job in jobs]
        results = await asyncio.gather(
            *(
                s.wait_until_settled(poll_interval=self.config.poll_interval, timeout=self.config.timeout)
                for s in subscriptions
            ),
            return_exceptions=True,
        )
        unexpected: Optional[BaseException] = None
        for subscription, result in zip(subscriptions, results):
            if isinstance(result, JobWaitTimeoutError):
                logger.warning(
                    f"[search:buffer] collection job_id={result.job_id} still unsettled after "
                    f"{self.config.timeout}s; index updates may use stale collection membership"
                )
            elif isinstance(result, JobNotFoundError):
                logger.warning(
                    f"[search:buffer] collection job_id={result.job_id} vanished from the queue; "
                    f"continuing with index updates"
                )
            elif isinstance(result, BaseException):
                unexpected = unexpected or result
            elif result.state != JobState.completed:
                logger.warning(
                    f"[search:buffer] collection job_id={result.id} settled as {result.state}; "
                    f"continuing with index updates"
                )
        if unexpected is not None:
            raise unexpected

    # ---------------- Periodic flush -----------------
    def _schedule_periodic_flush(self, interval: float) -> None:
        if self._shutdown:
            return
        logger.debug(f"[search:buffer] scheduling periodic flush interval={interval}s")
        task = asyncio.create_task(self._flush_loop(interval))
        self._flush_tasks.add(task)
        task.add_done_callback(lambda t: self._flush_tasks.discard(t))

    async def _flush_loop(self, interval: float) -> None:
        while not self._shutdown:
            await asyncio.sleep(interval)
            try:
                pending = await self.get_pending_search_updates()
                if pending:
                    await self.run_pending_search_updates()
            except Exception as exc:
                # next tick retries whatever the buffers retained
                logger.error(f"[search:buffer] periodic flush failed error={exc!r}")

    async def shutdown(self) -> None:
        self._shutdown = True
        for task in list(self._flush_tasks):
            task.cancel()
        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
