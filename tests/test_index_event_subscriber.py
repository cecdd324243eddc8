"""Unit tests for IndexEventSubscriber (domain events -> index jobs)."""

from unittest.mock import AsyncMock

import pytest

from storeindex.adapters.event_bus_inmemory import InMemoryEventBus
from storeindex.core.managers.index_event_subscriber import IndexEventSubscriber
from storeindex.core.models.catalog import Collection, Product, ProductVariant, TaxRate
from storeindex.core.models.context import RequestContext
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
    parse_update_index_data,
)

CTX = RequestContext(channel_id="default", default_tax_zone_id="zone-eu")


@pytest.fixture
def registry():
    registry = AsyncMock()
    registry.submit = AsyncMock(side_effect=lambda job: job)
    return registry


@pytest.fixture
def subscriber(registry):
    return IndexEventSubscriber(registry, job_retries=2)


def submitted_data(registry):
    return [parse_update_index_data(call.args[0].data) for call in registry.submit.await_args_list]


def variant(id="v1"):
    return ProductVariant(id=id, product_id="p1", name="Shirt M", sku="SH-M", price=1000)


def tax_rate(zone_id):
    return TaxRate(id="t1", name="Standard", zone_id=zone_id, category_id="std", value=20)


class TestCatalogEvents:
    @pytest.mark.asyncio
    async def test_variant_update(self, subscriber, registry):
        job = await subscriber.on_catalog_modified(CatalogModificationEvent(ctx=CTX, entity=variant()))

        data = submitted_data(registry)
        assert isinstance(data[0], UpdateVariantsJobData)
        assert data[0].variant_ids == ["v1"]
        assert job.retries == 2

    @pytest.mark.asyncio
    async def test_variant_delete(self, subscriber, registry):
        await subscriber.on_catalog_modified(CatalogModificationEvent(ctx=CTX, entity=variant(), type="deleted"))
        assert isinstance(submitted_data(registry)[0], DeleteVariantsJobData)

    @pytest.mark.asyncio
    async def test_product_update_and_delete(self, subscriber, registry):
        product = Product(id="p1", name="Shirt")
        await subscriber.on_catalog_modified(CatalogModificationEvent(ctx=CTX, entity=product))
        await subscriber.on_catalog_modified(CatalogModificationEvent(ctx=CTX, entity=product, type="deleted"))

        first, second = submitted_data(registry)
        assert isinstance(first, UpdateProductsJobData) and first.product_ids == ["p1"]
        assert isinstance(second, DeleteProductsJobData)

    @pytest.mark.asyncio
    async def test_other_entities_are_ignored(self, subscriber, registry):
        result = await subscriber.on_catalog_modified(CatalogModificationEvent(ctx=CTX, entity={"id": "x"}))
        assert result is None
        registry.submit.assert_not_awaited()


class TestCollectionModified:
    @pytest.mark.asyncio
    async def test_changed_variants_are_reindexed(self, subscriber, registry):
        event = CollectionModificationEvent(
            ctx=CTX, collection=Collection(id="c1", name="Sale"), product_variant_ids=["v1", "v2"]
        )
        await subscriber.on_collection_modified(event)
        assert submitted_data(registry)[0].variant_ids == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_no_changed_variants_submits_nothing(self, subscriber, registry):
        event = CollectionModificationEvent(ctx=CTX, collection=Collection(id="c1", name="Sale"))
        await subscriber.on_collection_modified(event)
        registry.submit.assert_not_awaited()


class TestTaxRateModified:
    @pytest.mark.asyncio
    async def test_default_zone_triggers_reindex(self, subscriber, registry):
        await subscriber.on_tax_rate_modified(TaxRateModificationEvent(ctx=CTX, tax_rate=tax_rate("zone-eu")))
        assert isinstance(submitted_data(registry)[0], ReindexJobData)

    @pytest.mark.asyncio
    async def test_other_zone_submits_nothing(self, subscriber, registry):
        await subscriber.on_tax_rate_modified(TaxRateModificationEvent(ctx=CTX, tax_rate=tax_rate("zone-us")))
        registry.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_context_without_default_zone_submits_nothing(self, subscriber, registry):
        ctx = RequestContext(channel_id="default")
        await subscriber.on_tax_rate_modified(TaxRateModificationEvent(ctx=ctx, tax_rate=tax_rate("zone-eu")))
        registry.submit.assert_not_awaited()


class TestSubscription:
    @pytest.mark.asyncio
    async def test_events_published_on_bus_reach_registry(self, subscriber, registry):
        bus = InMemoryEventBus()
        subscriber.subscribe(bus)

        await bus.publish(CatalogModificationEvent(ctx=CTX, entity=variant()))
        assert registry.submit.await_count == 1

        subscriber.unsubscribe()
        await bus.publish(CatalogModificationEvent(ctx=CTX, entity=variant()))
        assert registry.submit.await_count == 1
