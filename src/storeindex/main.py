# main.py
import uvicorn
from storeindex.adapters.catalog_inmemory import InMemoryCatalog
from storeindex.adapters.elasticsearch_index_adapter import ElasticsearchIndexAdapter
from storeindex.adapters.event_bus_inmemory import InMemoryEventBus
from storeindex.adapters.job_queue_inmemory import InMemoryJobQueue
from storeindex.adapters.retry_tenacity import TenacityRetryAdapter
from storeindex.adapters.web.fastapi import create_app
from storeindex.core.config import JobQueueConfig, SearchBufferConfig
from storeindex.core.logging_config import configure_logging
from storeindex.core.managers.collection_filter_service import CollectionFilterService
from storeindex.core.managers.index_event_subscriber import IndexEventSubscriber
from storeindex.core.managers.job_buffer_registry import JobBufferRegistry
from storeindex.core.managers.search_indexer import SearchIndexer
from storeindex.core.managers.search_job_buffer_service import SearchJobBufferService
from storeindex.core.models.index_jobs import APPLY_COLLECTION_FILTERS_QUEUE, UPDATE_SEARCH_INDEX_QUEUE
from storeindex.core.settings import app_settings, logger


# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together
# Starts the application

def main():
    # Central logging configuration BEFORE anything logs so uvicorn adopts level/format
    configure_logging(app_settings.STOREINDEX_LOG_LEVEL)
    app_settings.print_settings(logger)

    queue_config = JobQueueConfig.from_app_settings(app_settings)
    buffer_config = SearchBufferConfig.from_app_settings(app_settings)

    # Instantiate infrastructure adapters
    retry_adapter = TenacityRetryAdapter.from_config(queue_config)
    job_queue = InMemoryJobQueue(retry=retry_adapter)
    catalog = InMemoryCatalog()
    event_bus = InMemoryEventBus()
    search_index = ElasticsearchIndexAdapter(
        str(app_settings.STOREINDEX_ELASTICSEARCH_URL),
        app_settings.STOREINDEX_ELASTICSEARCH_INDEX,
        timeout=app_settings.STOREINDEX_ELASTICSEARCH_TIMEOUT,
    )
    registry = JobBufferRegistry(job_queue)

    # Factory passed to web adapter keeps composition here; it runs once the
    # queue and index adapters are open
    def service_factory(index):
        indexer = SearchIndexer(catalog, index)
        collections = CollectionFilterService(
            registry, catalog, event_bus, job_retries=queue_config.default_retries
        )
        job_queue.register_handler(UPDATE_SEARCH_INDEX_QUEUE, indexer.handle)
        # single worker: collection jobs arrive parent first and must run in that order
        job_queue.register_handler(
            APPLY_COLLECTION_FILTERS_QUEUE, collections.apply_collection_filters, concurrency=1
        )

        IndexEventSubscriber(registry, job_retries=queue_config.default_retries).subscribe(event_bus)
        collections.subscribe()
        return SearchJobBufferService(registry, buffer_config)

    app = create_app(
        job_queue=job_queue,
        search_index=search_index,
        service_factory=service_factory,
    )

    # Let uvicorn inherit existing logging (separate sinks & correlation ids)
    uvicorn.run(
        app,
        host=app_settings.STOREINDEX_API_SERVER_HOST,
        port=app_settings.STOREINDEX_API_SERVER_PORT,
        log_config=None,
        log_level=str(app_settings.STOREINDEX_LOG_LEVEL).lower(),
    )


if __name__ == "__main__":
    main()
