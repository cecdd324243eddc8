"""In-process event bus.

Handlers run in subscription order and are matched with isinstance, so a
subscription to a base event class also receives its subclasses. A failing
handler is logged and does not stop delivery to the others.
"""
from __future__ import annotations

import inspect
from typing import Callable, List, Tuple, Type

from storeindex.core.interfaces.event_bus import E, EventBusPort, EventHandler
from storeindex.core.models.events import DomainEvent
from storeindex.core.settings import logger


class InMemoryEventBus(EventBusPort):
    def __init__(self) -> None:
        self._subscriptions: List[Tuple[Type[DomainEvent], EventHandler]] = []

    def subscribe(self, event_type: Type[E], handler: EventHandler) -> Callable[[], None]:
        entry = (event_type, handler)
        self._subscriptions.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscriptions:
                self._subscriptions.remove(entry)

        return unsubscribe

    async def publish(self, event: DomainEvent) -> None:
        # snapshot: handlers may subscribe/unsubscribe while being notified
        for event_type, handler in list(self._subscriptions):
            if not isinstance(event, event_type):
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error(
                    f"[event:error] handler={getattr(handler, '__qualname__', repr(handler))} "
                    f"event={type(event).__name__} error={exc!r}"
                )
