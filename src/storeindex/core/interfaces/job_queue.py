"""JobQueuePort: hexagonal port for the execution queue.

The queue runs jobs on its own workers (possibly another process); the core
only decides what is submitted and when. Inspection is an optional
capability: callers probe it with `is_inspectable` and degrade gracefully.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from storeindex.core.models.job import Job, JobState


class JobQueuePort(ABC):
    """Port abstraction for submitting jobs to the execution queue."""

    @abstractmethod
    async def add(self, job: Job) -> Job:
        """Submit a job for execution and return the live queue job."""
        raise NotImplementedError


class InspectableJobQueuePort(JobQueuePort):
    """Execution queue that can report the current state of submitted jobs."""

    @abstractmethod
    async def find_job(self, job_id: str) -> Optional[Job]:
        """Return the current snapshot of a job or None if unknown."""
        raise NotImplementedError

    @abstractmethod
    async def find_jobs(
        self,
        queue_name: Optional[str] = None,
        state: Optional[JobState] = None,
    ) -> Sequence[Job]:
        """List jobs filtered by queue name / state."""
        raise NotImplementedError


def is_inspectable(queue: JobQueuePort) -> bool:
    return isinstance(queue, InspectableJobQueuePort)
