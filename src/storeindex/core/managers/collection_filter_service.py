"""CollectionFilterService: keeps collection membership up to date.

Producer side: a changed collection definition becomes an
apply-collection-filters job covering the collection and its descendants.

Worker side: `apply_collection_filters` recomputes membership for each
collection in the job and publishes a CollectionModificationEvent with the
variants whose membership changed, which in turn queues index updates.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from storeindex.core.interfaces.catalog import CatalogPort
from storeindex.core.interfaces.event_bus import EventBusPort
from storeindex.core.managers.collection_filters import filter_variant_ids
from storeindex.core.managers.job_buffer_registry import JobBufferRegistry
from storeindex.core.models.catalog import Collection, CollectionFilterDefinition, Product
from storeindex.core.models.events import CollectionEvent, CollectionModificationEvent
from storeindex.core.models.index_jobs import (
    ApplyCollectionFiltersJobData,
    CollectionTarget,
    apply_collection_filters_job,
    parse_apply_collection_filters_data,
)
from storeindex.core.models.job import BufferedJob, Job
from storeindex.core.settings import logger


class CollectionFilterService:
    def __init__(
        self,
        registry: JobBufferRegistry,
        catalog: CatalogPort,
        event_bus: EventBusPort,
        job_retries: int = 0,
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._event_bus = event_bus
        self._retries = job_retries
        self._unsubscribe: Optional[Callable[[], None]] = None

    def subscribe(self) -> None:
        self._unsubscribe = self._event_bus.subscribe(CollectionEvent, self.on_collection_event)

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def on_collection_event(self, event: CollectionEvent) -> Optional[Union[Job, BufferedJob]]:
        if event.type == "deleted":
            await self._clear_membership(event)
            return None
        collections = [event.collection] + await self._catalog.get_descendants(event.collection.id)
        targets = [await self._target(c) for c in collections]
        payload = ApplyCollectionFiltersJobData(
            ctx=event.ctx,
            collections=targets,
            apply_to_changed_variants_only=event.type != "created",
        )
        logger.debug(
            f"[collection:event] {event.type} collection={event.collection.id} targets={len(targets)}"
        )
        return await self._registry.submit(apply_collection_filters_job(payload, retries=self._retries))

    async def apply_collection_filters(self, job: Job) -> Dict[str, Any]:
        """Queue handler for apply-collection-filters jobs."""
        data = parse_apply_collection_filters_data(job.data)
        variants = await self._catalog.list_variants()
        products: Dict[str, Product] = {}
        for variant in variants:
            if variant.product_id not in products:
                product = await self._catalog.get_product(variant.product_id)
                if product is not None:
                    products[variant.product_id] = product

        changed_total = 0
        for target in data.collections:
            collection = await self._catalog.get_collection(target.id)
            if collection is None:
                logger.debug(f"[collection:apply] collection={target.id} no longer exists; skipping")
                continue
            filters = await self._effective_filters(collection)
            new_ids = filter_variant_ids(variants, products, filters)
            old_ids = await self._catalog.get_collection_variant_ids(collection.id)
            await self._catalog.set_collection_variant_ids(collection.id, new_ids)

            if data.apply_to_changed_variants_only:
                new_set, old_set = set(new_ids), set(old_ids)
                affected = [i for i in new_ids if i not in old_set] + [i for i in old_ids if i not in new_set]
            else:
                affected = list(dict.fromkeys(new_ids + old_ids))
            changed_total += len(affected)
            logger.debug(
                f"[collection:apply] collection={collection.id} members={len(new_ids)} affected={len(affected)}"
            )
            if affected:
                await self._event_bus.publish(
                    CollectionModificationEvent(
                        ctx=data.ctx, collection=collection, product_variant_ids=affected
                    )
                )
        return {"collections": len(data.collections), "affectedVariants": changed_total}

    async def _effective_filters(self, collection: Collection) -> List[CollectionFilterDefinition]:
        filters = list(collection.filters)
        if not collection.inherit_filters:
            return filters
        current = collection
        # walk up while each level inherits from its parent
        for ancestor in reversed(await self._catalog.get_ancestors(collection.id)):
            if not current.inherit_filters:
                break
            filters.extend(ancestor.filters)
            current = ancestor
        return filters

    async def _target(self, collection: Collection) -> CollectionTarget:
        ancestors = await self._catalog.get_ancestors(collection.id)
        return CollectionTarget(id=collection.id, ancestor_ids=[a.id for a in ancestors])

    async def _clear_membership(self, event: CollectionEvent) -> None:
        old_ids = await self._catalog.get_collection_variant_ids(event.collection.id)
        await self._catalog.set_collection_variant_ids(event.collection.id, [])
        if old_ids:
            await self._event_bus.publish(
                CollectionModificationEvent(
                    ctx=event.ctx, collection=event.collection, product_variant_ids=old_ids
                )
            )
