from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from enum import StrEnum
import uuid


class JobState(StrEnum):
    pending = "PENDING"
    running = "RUNNING"
    completed = "COMPLETED"
    failed = "FAILED"
    cancelled = "CANCELLED"


SETTLED_STATES = frozenset({JobState.completed, JobState.failed, JobState.cancelled})


def _new_job_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """Immutable job descriptor.

    Notes:
    - Producers create jobs in `pending` state; only the queue executor moves a
      job through `running` into one of the settled states, and it does so by
      producing an updated copy via `transition`.
    - `data` must stay JSON-compatible so jobs can cross process boundaries
      (typed payload models live in `index_jobs`).
    - `retries` is the number of additional attempts after the first failure.
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=_new_job_id)
    queue_name: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    retries: int = Field(default=0, ge=0)
    attempts: int = Field(default=0, ge=0)
    state: JobState = JobState.pending
    progress: int = Field(default=0, ge=0, le=100)
    started_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    result: Optional[Any] = None
    error: Optional[str] = None

    def is_settled(self) -> bool:
        return self.state in SETTLED_STATES

    def transition(self, state: JobState, **changes: Any) -> "Job":
        """Return a copy in `state`, stamping start/settle timestamps."""
        update: Dict[str, Any] = {"state": state, **changes}
        now = _utcnow()
        if state == JobState.running and self.started_at is None:
            update.setdefault("started_at", now)
        if state in SETTLED_STATES:
            update.setdefault("settled_at", now)
            if state == JobState.completed:
                update.setdefault("progress", 100)
        return self.model_copy(update=update)


class BufferedJob(BaseModel):
    """A job held by a buffer instead of being executed.

    Consumed on flush; it never reaches a settled state itself but is replaced
    by the jobs the buffer's collect step produces.
    """

    model_config = {"frozen": True}

    job: Job
    buffer_id: str
    buffered_at: datetime = Field(default_factory=_utcnow)

    @property
    def queue_name(self) -> str:  # pragma: no cover - simple accessor
        return self.job.queue_name

    @property
    def data(self) -> Dict[str, Any]:  # pragma: no cover - simple accessor
        return self.job.data
