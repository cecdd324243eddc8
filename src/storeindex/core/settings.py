# Logging adapter for application-wide logging
from storeindex.adapters.logging_adapter import LoggingAdapter

from typing import Optional

from pydantic import HttpUrl, field_validator
from pydantic_settings import BaseSettings
from rich import print

from storeindex.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class StoreIndexSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    STOREINDEX_LOG_LEVEL: str = "INFO"
    STOREINDEX_API_SERVER_HOST: str = "0.0.0.0"
    STOREINDEX_API_SERVER_PORT: int = 8000
    # When enabled, search index jobs are held in buffers until flushed
    STOREINDEX_BUFFER_UPDATES: bool = False
    STOREINDEX_JOB_POLL_INTERVAL: float = 0.5  # seconds
    STOREINDEX_JOB_WAIT_TIMEOUT: float = 180.0  # seconds
    # Periodic flush of buffered jobs; unset means flush only on demand
    STOREINDEX_BUFFER_FLUSH_INTERVAL: Optional[float] = None  # seconds
    STOREINDEX_JOB_RETRIES: int = 2
    STOREINDEX_JOB_RETRY_WAIT_INITIAL: float = 0.2
    STOREINDEX_JOB_RETRY_WAIT_MAX: float = 2.0
    STOREINDEX_ELASTICSEARCH_URL: HttpUrl = HttpUrl("http://localhost:9200")
    STOREINDEX_ELASTICSEARCH_INDEX: str = "storeindex-variants"
    STOREINDEX_ELASTICSEARCH_TIMEOUT: float = 10.0  # seconds

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("StoreIndex Settings:")
        print(self)

    @field_validator("STOREINDEX_ELASTICSEARCH_INDEX", mode="before")
    def lowercase_index_name(cls, value: str) -> str:
        """Elasticsearch index names must be lowercase."""
        return str(value).lower()


app_settings = StoreIndexSettings()

logger = LoggingAdapter("storeindex", app_settings.STOREINDEX_LOG_LEVEL)
