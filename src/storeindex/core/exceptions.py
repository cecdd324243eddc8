from typing import List, Optional, Sequence, Tuple

from storeindex.core.models.job import Job


class StoreIndexError(Exception):
    """Base exception for search index coordination failures.

    Attributes:
        message: Human-readable error description
        diagnostic: Technical diagnostic information for debugging
    """
    def __init__(self, message: str, diagnostic: Optional[str] = None):
        self.message = message
        self.diagnostic = diagnostic
        super().__init__(message)


class UserInputError(StoreIndexError):
    """Raised when caller supplied arguments are invalid (e.g. unknown filter operator)."""


class BufferCollectError(StoreIndexError):
    """Raised when a buffer's collect step fails during a flush.

    The held batch is restored to the buffer, so the next flush retries it.

    Attributes:
        buffer_id: Identity of the buffer whose reducer failed
    """
    def __init__(self, buffer_id: str, cause: BaseException):
        self.buffer_id = buffer_id
        message = f"Collecting buffered jobs failed for buffer '{buffer_id}'"
        super().__init__(message=message, diagnostic=repr(cause))


class JobSubmissionError(StoreIndexError):
    """Raised when the execution queue rejects a job.

    Attributes:
        job: The job that could not be submitted
    """
    def __init__(self, job: Job, cause: Optional[BaseException] = None):
        self.job = job
        message = f"Job {job.id} could not be added to queue '{job.queue_name}'"
        super().__init__(message=message, diagnostic=repr(cause) if cause else None)


class FlushSubmissionError(StoreIndexError):
    """Raised when some collected jobs could not be submitted during a flush.

    Successfully submitted jobs are not rolled back and the buffer is not
    restored; the affected index entries are refreshed by later events.

    Attributes:
        buffer_id: Identity of the flushed buffer
        submitted: Jobs accepted by the queue during this flush
        failures: (job, exception) pairs for the rejected jobs
    """
    def __init__(
        self,
        buffer_id: str,
        submitted: Sequence[Job],
        failures: Sequence[Tuple[Job, BaseException]],
    ):
        self.buffer_id = buffer_id
        self.submitted: List[Job] = list(submitted)
        self.failures: List[Tuple[Job, BaseException]] = list(failures)
        message = (
            f"{len(self.failures)} of {len(self.submitted) + len(self.failures)} "
            f"collected jobs from buffer '{buffer_id}' could not be submitted"
        )
        diagnostic = "; ".join(f"{job.id}: {exc!r}" for job, exc in self.failures)
        super().__init__(message=message, diagnostic=diagnostic)


class JobWaitTimeoutError(StoreIndexError):
    """Raised when a job does not settle within the configured wait timeout.

    Attributes:
        job_id: Identifier of the job being waited for
        elapsed_seconds: Time elapsed before giving up
        timeout_seconds: Configured timeout value
    """
    def __init__(self, job_id: str, elapsed_seconds: float, timeout_seconds: float):
        self.job_id = job_id
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds
        message = f"Job {job_id} did not settle after {elapsed_seconds:.1f}s (limit: {timeout_seconds}s)"
        super().__init__(message=message)


class JobNotFoundError(StoreIndexError):
    """Raised when the queue no longer knows a job that is being waited for.

    Attributes:
        job_id: Identifier of the vanished job
    """
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(message=f"Job {job_id} is no longer known to the queue")


class SearchIndexError(StoreIndexError):
    """Raised when the search index backend fails or rejects a request.

    Attributes:
        status: HTTP status code returned by the backend (if applicable)
    """
    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        diagnostic: Optional[str] = None,
    ):
        self.status = status
        super().__init__(message=message, diagnostic=diagnostic)
