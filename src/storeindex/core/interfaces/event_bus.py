from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Type, TypeVar, Union

from storeindex.core.models.events import DomainEvent

E = TypeVar("E", bound=DomainEvent)

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBusPort(ABC):
    @abstractmethod
    def subscribe(self, event_type: Type[E], handler: EventHandler) -> Callable[[], None]:
        """Register handler for events of `event_type` (and subclasses).

        Returns a callable that removes the subscription.
        """
        pass

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """Deliver event to every matching handler."""
        pass
