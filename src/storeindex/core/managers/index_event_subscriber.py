"""Translate catalog domain events into search index jobs.

Every job goes through `JobBufferRegistry.submit`, so it is buffered or
executed immediately depending on which buffers are registered.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Union

from storeindex.core.interfaces.event_bus import EventBusPort
from storeindex.core.managers.job_buffer_registry import JobBufferRegistry
from storeindex.core.models.catalog import Product, ProductVariant
from storeindex.core.models.events import (
    CatalogModificationEvent,
    CollectionModificationEvent,
    TaxRateModificationEvent,
)
from storeindex.core.models.index_jobs import (
    DeleteProductsJobData,
    DeleteVariantsJobData,
    ReindexJobData,
    UpdateProductsJobData,
    UpdateVariantsJobData,
    update_index_job,
)
from storeindex.core.models.job import BufferedJob, Job
from storeindex.core.settings import logger


class IndexEventSubscriber:
    def __init__(self, registry: JobBufferRegistry, job_retries: int = 0) -> None:
        self._registry = registry
        self._retries = job_retries
        self._unsubscribers: List[Callable[[], None]] = []

    def subscribe(self, event_bus: EventBusPort) -> None:
        self._unsubscribers = [
            event_bus.subscribe(CatalogModificationEvent, self.on_catalog_modified),
            event_bus.subscribe(CollectionModificationEvent, self.on_collection_modified),
            event_bus.subscribe(TaxRateModificationEvent, self.on_tax_rate_modified),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def on_catalog_modified(self, event: CatalogModificationEvent) -> Optional[Union[Job, BufferedJob]]:
        entity = event.entity
        deleted = event.type == "deleted"
        if isinstance(entity, ProductVariant):
            data_cls = DeleteVariantsJobData if deleted else UpdateVariantsJobData
            payload = data_cls(ctx=event.ctx, variant_ids=[entity.id])
        elif isinstance(entity, Product):
            data_cls = DeleteProductsJobData if deleted else UpdateProductsJobData
            payload = data_cls(ctx=event.ctx, product_ids=[entity.id])
        else:
            return None
        logger.debug(f"[index:event] {payload.type} id={entity.id} channel={event.ctx.channel_id}")
        return await self._registry.submit(update_index_job(payload, retries=self._retries))

    async def on_collection_modified(self, event: CollectionModificationEvent) -> Optional[Union[Job, BufferedJob]]:
        if not event.product_variant_ids:
            return None
        payload = UpdateVariantsJobData(ctx=event.ctx, variant_ids=list(event.product_variant_ids))
        logger.debug(
            f"[index:event] collection={event.collection.id} variants={len(payload.variant_ids)}"
        )
        return await self._registry.submit(update_index_job(payload, retries=self._retries))

    async def on_tax_rate_modified(self, event: TaxRateModificationEvent) -> Optional[Union[Job, BufferedJob]]:
        default_tax_zone_id = event.ctx.default_tax_zone_id
        if not default_tax_zone_id or default_tax_zone_id != event.tax_rate.zone_id:
            return None
        logger.info(
            f"[index:event] tax rate={event.tax_rate.id} changed in default zone={default_tax_zone_id}; reindexing"
        )
        return await self._registry.submit(update_index_job(ReindexJobData(ctx=event.ctx), retries=self._retries))
