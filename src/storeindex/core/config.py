"""Configuration models for core domain components.

This module provides Pydantic-based configuration classes that consolidate
settings for domain managers, enabling dependency injection and testability.
"""

from typing import Optional
from pydantic import BaseModel, Field


class SearchBufferConfig(BaseModel):
    """Configuration for SearchJobBufferService behavior.

    Read once in the composition root and passed to the service; the core
    never reaches for process-wide settings itself.

    Attributes:
        buffer_updates: Hold search index jobs in buffers until flushed
        poll_interval: Seconds between job state polls while waiting for collection jobs
        timeout: Maximum seconds to wait for collection jobs before flushing index updates
        flush_interval: Seconds between automatic flushes (None = flush on demand only)
    """

    buffer_updates: bool = Field(
        default=False,
        description="Divert search index and collection filter jobs into buffers"
    )

    poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Interval in seconds between job state polling requests"
    )

    timeout: float = Field(
        default=3 * 60,
        gt=0,
        description="Maximum time in seconds to wait for collection filter jobs to settle"
    )

    flush_interval: Optional[float] = Field(
        default=None,
        gt=0,
        description="Interval in seconds between automatic buffer flushes (None for manual only)"
    )

    model_config = {
        "frozen": True,  # Immutable after creation for safety
        "extra": "forbid",  # Reject unknown fields
    }

    @classmethod
    def from_app_settings(cls, settings) -> "SearchBufferConfig":
        """Factory method to construct config from StoreIndexSettings instance.

        Args:
            settings: StoreIndexSettings instance from core.settings

        Returns:
            SearchBufferConfig with values from app settings
        """
        return cls(
            buffer_updates=settings.STOREINDEX_BUFFER_UPDATES,
            poll_interval=settings.STOREINDEX_JOB_POLL_INTERVAL,
            timeout=settings.STOREINDEX_JOB_WAIT_TIMEOUT,
            flush_interval=settings.STOREINDEX_BUFFER_FLUSH_INTERVAL,
        )


class JobQueueConfig(BaseModel):
    """Configuration for the in-process job queue workers."""

    default_retries: int = Field(default=2, ge=0, le=10)
    retry_wait_initial: float = Field(default=0.2, gt=0)
    retry_wait_max: float = Field(default=2.0, gt=0)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "JobQueueConfig":
        return cls(
            default_retries=settings.STOREINDEX_JOB_RETRIES,
            retry_wait_initial=settings.STOREINDEX_JOB_RETRY_WAIT_INITIAL,
            retry_wait_max=settings.STOREINDEX_JOB_RETRY_WAIT_MAX,
        )
