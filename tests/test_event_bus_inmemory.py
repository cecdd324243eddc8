import pytest

from storeindex.adapters.event_bus_inmemory import InMemoryEventBus
from storeindex.core.models.catalog import TaxRate
from storeindex.core.models.context import RequestContext
from storeindex.core.models.events import DomainEvent, TaxRateModificationEvent

CTX = RequestContext(channel_id="default")


def tax_event():
    return TaxRateModificationEvent(
        ctx=CTX, tax_rate=TaxRate(id="t1", name="Standard", zone_id="eu", category_id="std", value=20)
    )


class TestInMemoryEventBus:
    @pytest.mark.asyncio
    async def test_sync_and_async_handlers_in_subscription_order(self):
        bus = InMemoryEventBus()
        calls = []

        async def async_handler(event):
            calls.append("async")

        bus.subscribe(TaxRateModificationEvent, lambda e: calls.append("sync"))
        bus.subscribe(TaxRateModificationEvent, async_handler)

        await bus.publish(tax_event())

        assert calls == ["sync", "async"]

    @pytest.mark.asyncio
    async def test_base_class_subscription_receives_subclasses(self):
        bus = InMemoryEventBus()
        received = []
        bus.subscribe(DomainEvent, received.append)

        await bus.publish(tax_event())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_delivery(self):
        bus = InMemoryEventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(TaxRateModificationEvent, broken)
        bus.subscribe(TaxRateModificationEvent, received.append)

        await bus.publish(tax_event())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = InMemoryEventBus()
        received = []
        unsubscribe = bus.subscribe(TaxRateModificationEvent, received.append)
        unsubscribe()
        unsubscribe()

        await bus.publish(tax_event())

        assert received == []
