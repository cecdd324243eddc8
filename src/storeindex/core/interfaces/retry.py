from typing import Any, Awaitable, Callable, Protocol


class RetryPort(Protocol):
    """Retry policy used by queue workers to re-run failing job handlers.

    The queue decides how many attempts a job gets (`job.retries + 1`) and
    passes it per call; backoff timing stays with the implementation.
    """

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:  # pragma: no cover - protocol
        """Await `func(*args, **kwargs)`, retrying on failure.

        Keyword overrides consumed by the implementation (not forwarded):
            attempts: total number of attempts, at least 1
            wait_initial / wait_max: exponential backoff bounds in seconds
            exception_types: exceptions that trigger another attempt
            before_attempt: callback receiving the 1-based attempt number
        Raises:
            The last exception once attempts are exhausted.
        """
        ...
