"""JobBuffer: interceptor that holds jobs of one kind until flushed.

A buffer never executes jobs. It classifies (`accepts`) and reduces
(`collect`); holding and draining the batch is shared behaviour implemented
here so every concrete buffer gets the same locking guarantees.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, Sequence

from storeindex.core.models.job import BufferedJob, Job


class JobBuffer(ABC):
    """Base class for named job buffers.

    Subclasses provide `id`, `accepts` and `collect`. The held batch is an
    ordered list guarded by a lock, so producers on any thread may call `add`
    while a flush is draining the buffer.
    """

    id: str

    def __init__(self) -> None:
        self._held: List[BufferedJob] = []
        self._lock = threading.Lock()

    @abstractmethod
    def accepts(self, job: Job) -> bool:
        """Return True if this buffer claims the job. Must be side-effect free."""
        raise NotImplementedError

    @abstractmethod
    def collect(self, batch: Sequence[BufferedJob]) -> List[Job]:
        """Reduce a held batch (arrival order) to the jobs that are submitted.

        Must be a pure function of `batch`.
        """
        raise NotImplementedError

    def add(self, job: Job) -> BufferedJob:
        buffered = BufferedJob(job=job, buffer_id=self.id)
        with self._lock:
            self._held.append(buffered)
        return buffered

    def size(self) -> int:
        with self._lock:
            return len(self._held)

    def drain(self) -> List[BufferedJob]:
        """Atomically swap the held batch for an empty one and return it."""
        with self._lock:
            held, self._held = self._held, []
        return held

    def restore(self, batch: Sequence[BufferedJob]) -> None:
        """Put a drained batch back in front of jobs added since the drain."""
        if not batch:
            return
        with self._lock:
            self._held = list(batch) + self._held

    def clear(self) -> None:
        with self._lock:
            self._held = []

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}(id={self.id!r}, size={self.size()})"
