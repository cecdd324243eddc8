from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from storeindex.core.config import JobQueueConfig
from storeindex.core.settings import logger


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"[retry] attempt={retry_state.attempt_number} failed error={exc!r}; retrying in {wait:.2f}s"
    )


class TenacityRetryAdapter:
    """Tenacity-based adapter implementing RetryPort.

    Exponential backoff between attempts. The job queue passes the attempt
    count per job; the remaining policy comes from the constructor unless
    overridden per call (attempts, wait_initial, wait_max, exception_types).
    A `before_attempt` hook receives the attempt number so callers can
    record it on the job.
    """

    def __init__(
        self,
        attempts: int = 3,
        wait_initial: float = 0.2,
        wait_max: float = 1.0,
        exception_types: Sequence[Type[Exception]] = (Exception,),
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.exception_types = tuple(exception_types)

    @classmethod
    def from_config(cls, config: JobQueueConfig) -> "TenacityRetryAdapter":
        return cls(
            attempts=config.default_retries + 1,
            wait_initial=config.retry_wait_initial,
            wait_max=config.retry_wait_max,
        )

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        attempts = kwargs.pop("attempts", self.attempts)
        wait_initial = kwargs.pop("wait_initial", self.wait_initial)
        wait_max = kwargs.pop("wait_max", self.wait_max)
        exception_types = tuple(kwargs.pop("exception_types", self.exception_types))
        before_attempt: Optional[Callable[[int], None]] = kwargs.pop("before_attempt", None)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(multiplier=wait_initial, max=wait_max),
            retry=retry_if_exception_type(exception_types),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                if before_attempt is not None:
                    before_attempt(attempt.retry_state.attempt_number)
                return await func(*args, **kwargs)
