"""JobBufferRegistry: buffer-aware submission point and flush coordinator.

Producers call `submit` instead of adding to the queue directly. A job claimed
by a registered buffer is held; anything else goes straight to the execution
queue. `flush` drains buffers, reduces their batches and submits the result.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple, Union

from storeindex.core.exceptions import BufferCollectError, FlushSubmissionError, JobSubmissionError
from storeindex.core.interfaces.job_buffer import JobBuffer
from storeindex.core.interfaces.job_queue import JobQueuePort
from storeindex.core.models.job import BufferedJob, Job
from storeindex.core.settings import logger

BufferRef = Union[JobBuffer, str]


class JobBufferRegistry:
    """Owns the active buffers in registration order.

    Two buffers accepting the same job is a configuration error; it is not
    detected here and the first registered buffer wins.
    """

    def __init__(self, job_queue: JobQueuePort) -> None:
        self._queue = job_queue
        self._buffers: Dict[str, JobBuffer] = {}

    @property
    def job_queue(self) -> JobQueuePort:
        return self._queue

    def register(self, buffer: JobBuffer) -> None:
        if buffer.id in self._buffers:
            logger.warning(
                f"[buffer:register] buffer id={buffer.id} already registered; replacing previous instance"
            )
        self._buffers[buffer.id] = buffer
        logger.debug(f"[buffer:register] registered buffer id={buffer.id}")

    def unregister(self, buffer: BufferRef) -> List[BufferedJob]:
        """Remove a buffer and hand back whatever it still held."""
        buffer_id = buffer if isinstance(buffer, str) else buffer.id
        removed = self._buffers.pop(buffer_id, None)
        if removed is None:
            return []
        held = removed.drain()
        if held:
            logger.warning(
                f"[buffer:unregister] buffer id={buffer_id} removed with {len(held)} held jobs"
            )
        return held

    def buffers(self) -> List[JobBuffer]:
        return list(self._buffers.values())

    def is_registered(self, buffer: BufferRef) -> bool:
        buffer_id = buffer if isinstance(buffer, str) else buffer.id
        return buffer_id in self._buffers

    async def submit(self, job: Job) -> Union[Job, BufferedJob]:
        for buffer in self._buffers.values():
            if buffer.accepts(job):
                buffered = buffer.add(job)
                logger.debug(
                    f"[buffer:submit] held job_id={job.id} queue={job.queue_name} buffer={buffer.id}"
                )
                return buffered
        try:
            submitted = await self._queue.add(job)
        except Exception as exc:
            logger.error(f"[buffer:submit] queue rejected job_id={job.id} queue={job.queue_name} error={exc!r}")
            raise JobSubmissionError(job, exc) from exc
        logger.debug(f"[buffer:submit] job_id={submitted.id} queue={job.queue_name} sent to queue")
        return submitted

    def buffer_size(self, *buffers: BufferRef) -> Dict[str, int]:
        return {buffer.id: buffer.size() for buffer in self._resolve(buffers)}

    async def flush(self, *buffers: BufferRef) -> List[Job]:
        """Flush the given buffers (all registered buffers when none given).

        Raises BufferCollectError as soon as a reducer fails (that buffer keeps
        its batch, later buffers are not flushed). Submission failures are
        raised as FlushSubmissionError once every requested buffer was flushed.
        """
        submitted: List[Job] = []
        submission_errors: List[FlushSubmissionError] = []

        for buffer in self._resolve(buffers):
            try:
                submitted.extend(await self._flush_buffer(buffer))
            except FlushSubmissionError as exc:
                submitted.extend(exc.submitted)
                submission_errors.append(exc)

        if submission_errors:
            if len(submission_errors) == 1:
                raise submission_errors[0]
            failures = [f for err in submission_errors for f in err.failures]
            raise FlushSubmissionError(
                ",".join(err.buffer_id for err in submission_errors), submitted, failures
            )
        return submitted

    async def _flush_buffer(self, buffer: JobBuffer) -> List[Job]:
        held = buffer.drain()
        if not held:
            return []

        try:
            collected = buffer.collect(held)
        except Exception as exc:
            buffer.restore(held)
            logger.error(
                f"[buffer:flush] collect failed buffer={buffer.id} held={len(held)} error={exc!r}; batch retained"
            )
            raise BufferCollectError(buffer.id, exc) from exc

        logger.info(
            f"[buffer:flush] buffer={buffer.id} collected {len(held)} held jobs into {len(collected)}"
        )

        submitted: List[Job] = []
        failures: List[Tuple[Job, BaseException]] = []
        for job in collected:
            try:
                submitted.append(await self._queue.add(job))
            except Exception as exc:
                logger.error(
                    f"[buffer:flush] submit failed buffer={buffer.id} job_id={job.id} error={exc!r}"
                )
                failures.append((job, exc))

        if failures:
            raise FlushSubmissionError(buffer.id, submitted, failures)
        return submitted

    def _resolve(self, buffers: Sequence[BufferRef]) -> List[JobBuffer]:
        if not buffers:
            return list(self._buffers.values())
        resolved: List[JobBuffer] = []
        for ref in buffers:
            buffer_id = ref if isinstance(ref, str) else ref.id
            registered = self._buffers.get(buffer_id)
            if registered is not None:
                resolved.append(registered)
        return resolved
