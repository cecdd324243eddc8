"""SubscribableJob: observe a submitted job until it settles.

Only usable with an inspectable queue. Waiting is a bounded polling loop:
the caller picks the poll interval and an overall timeout.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from storeindex.core.exceptions import JobNotFoundError, JobWaitTimeoutError
from storeindex.core.interfaces.job_queue import InspectableJobQueuePort
from storeindex.core.models.job import Job
from storeindex.core.settings import logger


class SubscribableJob:
    def __init__(self, job: Job, queue: InspectableJobQueuePort) -> None:
        self.job = job
        self._queue = queue

    async def updates(self, poll_interval: float = 0.5, timeout: float = 180.0) -> AsyncIterator[Job]:
        """Yield a snapshot whenever state or progress changes, ending with the settled job.

        Raises JobWaitTimeoutError when the job has not settled within `timeout` seconds
        and JobNotFoundError when the queue stops knowing the job.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + timeout
        last: Optional[tuple] = None

        while True:
            current = await self._queue.find_job(self.job.id)
            if current is None:
                raise JobNotFoundError(self.job.id)
            self.job = current
            marker = (current.state, current.progress)
            if marker != last:
                last = marker
                yield current
            if current.is_settled():
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise JobWaitTimeoutError(self.job.id, loop.time() - started, timeout)
            await asyncio.sleep(min(poll_interval, remaining))

    async def wait_until_settled(self, poll_interval: float = 0.5, timeout: float = 180.0) -> Job:
        async for snapshot in self.updates(poll_interval=poll_interval, timeout=timeout):
            logger.debug(
                f"[job:subscribe] job_id={snapshot.id} state={snapshot.state} progress={snapshot.progress}"
            )
        return self.job
