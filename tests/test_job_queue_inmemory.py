"""Tests for InMemoryJobQueue (worker lifecycle, retries, inspection)."""

import asyncio

import pytest

from storeindex.adapters.job_queue_inmemory import InMemoryJobQueue
from storeindex.adapters.retry_tenacity import TenacityRetryAdapter
from storeindex.core.interfaces.job_queue import is_inspectable
from storeindex.core.logging_config import correlation_id_var
from storeindex.core.models.job import Job, JobState

FAST_RETRY = TenacityRetryAdapter(wait_initial=0.001, wait_max=0.01)


class TestInMemoryJobQueue:
    def test_is_inspectable(self):
        assert is_inspectable(InMemoryJobQueue())

    @pytest.mark.asyncio
    async def test_jobs_run_fifo_and_complete(self):
        seen = []

        async def handler(job):
            seen.append(job.data["n"])
            return job.data["n"] * 2

        async with InMemoryJobQueue(retry=FAST_RETRY) as queue:
            queue.register_handler("work", handler)
            jobs = [await queue.add(Job(queue_name="work", data={"n": n})) for n in range(5)]
            await queue.join("work")

            assert seen == [0, 1, 2, 3, 4]
            done = await queue.find_job(jobs[3].id)
            assert done.state == JobState.completed
            assert done.result == 6
            assert done.progress == 100
            assert done.attempts == 1

    @pytest.mark.asyncio
    async def test_failing_job_is_retried_then_failed(self):
        calls = []

        async def flaky(job):
            calls.append(job.id)
            raise RuntimeError("backend down")

        async with InMemoryJobQueue(retry=FAST_RETRY) as queue:
            queue.register_handler("work", flaky)
            job = await queue.add(Job(queue_name="work", retries=2))
            await queue.join("work")
            failed = await queue.find_job(job.id)

        assert len(calls) == 3
        assert failed.state == JobState.failed
        assert failed.error == "backend down"
        assert failed.attempts == 3

    @pytest.mark.asyncio
    async def test_retry_can_succeed(self):
        attempts = []

        async def second_time_lucky(job):
            attempts.append(1)
            if len(attempts) < 2:
                raise RuntimeError("transient")
            return "ok"

        async with InMemoryJobQueue(retry=FAST_RETRY) as queue:
            queue.register_handler("work", second_time_lucky)
            job = await queue.add(Job(queue_name="work", retries=1))
            await queue.join("work")
            assert (await queue.find_job(job.id)).state == JobState.completed

    @pytest.mark.asyncio
    async def test_job_without_handler_stays_pending(self):
        async with InMemoryJobQueue() as queue:
            job = await queue.add(Job(queue_name="nobody-listens"))
            await asyncio.sleep(0.05)
            assert (await queue.find_job(job.id)).state == JobState.pending

    @pytest.mark.asyncio
    async def test_handler_registered_later_picks_up_pending_jobs(self):
        async with InMemoryJobQueue() as queue:
            job = await queue.add(Job(queue_name="late"))
            queue.register_handler("late", lambda j: asyncio.sleep(0))
            await queue.join("late")
            assert (await queue.find_job(job.id)).state == JobState.completed

    @pytest.mark.asyncio
    async def test_correlation_id_is_job_id_during_handler(self):
        seen = []

        async def handler(job):
            seen.append(correlation_id_var.get())

        async with InMemoryJobQueue() as queue:
            queue.register_handler("work", handler)
            job = await queue.add(Job(queue_name="work"))
            await queue.join("work")

        assert seen == [job.id]

    @pytest.mark.asyncio
    async def test_find_jobs_filters(self):
        async with InMemoryJobQueue() as queue:
            queue.register_handler("a", lambda j: asyncio.sleep(0))
            await queue.add(Job(queue_name="a"))
            pending = await queue.add(Job(queue_name="b"))
            await queue.join("a")

            assert [j.queue_name for j in await queue.find_jobs(state=JobState.completed)] == ["a"]
            assert [j.id for j in await queue.find_jobs(queue_name="b")] == [pending.id]

    @pytest.mark.asyncio
    async def test_duplicate_job_id_rejected(self):
        queue = InMemoryJobQueue()
        job = Job(queue_name="a")
        await queue.add(job)
        with pytest.raises(ValueError):
            await queue.add(job)

    @pytest.mark.asyncio
    async def test_stop_cancels_running_job(self):
        started = asyncio.Event()

        async def long_running(job):
            started.set()
            await asyncio.sleep(10)

        queue = InMemoryJobQueue()
        queue.register_handler("work", long_running)
        await queue.start()
        job = await queue.add(Job(queue_name="work"))
        await started.wait()
        await queue.stop()

        assert (await queue.find_job(job.id)).state == JobState.cancelled
