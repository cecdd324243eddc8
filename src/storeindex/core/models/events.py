"""Domain events published on the event bus.

Only the events consumed by the search index subsystem are modelled here.
"""

from datetime import datetime, timezone
from typing import Any, List, Literal

from pydantic import BaseModel, Field

from storeindex.core.models.catalog import Collection, TaxRate
from storeindex.core.models.context import RequestContext

ModificationType = Literal["created", "updated", "deleted"]


class DomainEvent(BaseModel):
    ctx: RequestContext
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CatalogModificationEvent(DomainEvent):
    """A catalog entity changed. Entities other than products/variants are ignored by the index."""

    entity: Any  # Product, ProductVariant or any other catalog entity
    type: ModificationType = "updated"


class CollectionModificationEvent(DomainEvent):
    """Membership of a collection was recomputed; carries the affected variant ids."""

    collection: Collection
    product_variant_ids: List[str] = Field(default_factory=list)


class CollectionEvent(DomainEvent):
    """A collection definition (filters, parent) was created, updated or deleted."""

    collection: Collection
    type: ModificationType = "updated"


class TaxRateModificationEvent(DomainEvent):
    tax_rate: TaxRate
