"""In-memory implementation of CatalogPort.

Holds products, variants, collections, tax rates and the computed collection
membership in dictionaries guarded by an asyncio.Lock. Returned models are
copies so callers cannot mutate the stored state.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

from storeindex.core.interfaces.catalog import CatalogPort
from storeindex.core.models.catalog import Collection, Product, ProductVariant, TaxRate


class InMemoryCatalog(CatalogPort):
    def __init__(self) -> None:
        self._products: Dict[str, Product] = {}
        self._variants: Dict[str, ProductVariant] = {}
        self._collections: Dict[str, Collection] = {}
        self._tax_rates: Dict[str, TaxRate] = {}
        self._membership: Dict[str, List[str]] = {}
        self._lock = asyncio.Lock()

    # Mutators (not part of the port; used by the composition root and tests)
    async def add_product(self, product: Product) -> None:
        async with self._lock:
            self._products[product.id] = product.model_copy(deep=True)

    async def add_variant(self, variant: ProductVariant) -> None:
        async with self._lock:
            self._variants[variant.id] = variant.model_copy(deep=True)

    async def add_collection(self, collection: Collection) -> None:
        async with self._lock:
            self._collections[collection.id] = collection.model_copy(deep=True)

    async def add_tax_rate(self, tax_rate: TaxRate) -> None:
        async with self._lock:
            self._tax_rates[tax_rate.id] = tax_rate.model_copy(deep=True)

    async def remove_product(self, product_id: str) -> None:
        async with self._lock:
            self._products.pop(product_id, None)
            for variant_id in [v.id for v in self._variants.values() if v.product_id == product_id]:
                del self._variants[variant_id]

    async def remove_variant(self, variant_id: str) -> None:
        async with self._lock:
            self._variants.pop(variant_id, None)

    async def remove_collection(self, collection_id: str) -> None:
        async with self._lock:
            self._collections.pop(collection_id, None)
            self._membership.pop(collection_id, None)

    # CatalogPort
    async def get_product(self, product_id: str) -> Optional[Product]:
        async with self._lock:
            p = self._products.get(product_id)
            return p.model_copy(deep=True) if p else None

    async def get_variants(self, variant_ids: Sequence[str]) -> List[ProductVariant]:
        async with self._lock:
            return [
                self._variants[i].model_copy(deep=True)
                for i in dict.fromkeys(variant_ids)
                if i in self._variants
            ]

    async def get_variants_for_product(self, product_id: str) -> List[ProductVariant]:
        async with self._lock:
            return [v.model_copy(deep=True) for v in self._variants.values() if v.product_id == product_id]

    async def list_variants(self) -> List[ProductVariant]:
        async with self._lock:
            return [v.model_copy(deep=True) for v in self._variants.values()]

    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        async with self._lock:
            c = self._collections.get(collection_id)
            return c.model_copy(deep=True) if c else None

    async def get_ancestors(self, collection_id: str) -> List[Collection]:
        async with self._lock:
            ancestors: List[Collection] = []
            seen = {collection_id}
            current = self._collections.get(collection_id)
            while current is not None and current.parent_id and current.parent_id not in seen:
                seen.add(current.parent_id)
                current = self._collections.get(current.parent_id)
                if current is not None:
                    ancestors.append(current.model_copy(deep=True))
            ancestors.reverse()
            return ancestors

    async def get_descendants(self, collection_id: str) -> List[Collection]:
        async with self._lock:
            result: List[Collection] = []
            seen = {collection_id}
            frontier = [collection_id]
            while frontier:
                next_frontier: List[str] = []
                for parent_id in frontier:
                    for c in self._collections.values():
                        if c.parent_id == parent_id and c.id not in seen:
                            seen.add(c.id)
                            result.append(c.model_copy(deep=True))
                            next_frontier.append(c.id)
                frontier = next_frontier
            return result

    async def get_collection_variant_ids(self, collection_id: str) -> List[str]:
        async with self._lock:
            return list(self._membership.get(collection_id, []))

    async def set_collection_variant_ids(self, collection_id: str, variant_ids: Sequence[str]) -> None:
        async with self._lock:
            self._membership[collection_id] = list(dict.fromkeys(variant_ids))

    async def get_collection_ids_for_variant(self, variant_id: str) -> List[str]:
        async with self._lock:
            return [cid for cid, members in self._membership.items() if variant_id in members]

    async def get_tax_rate(self, zone_id: str, category_id: str) -> Optional[TaxRate]:
        async with self._lock:
            for rate in self._tax_rates.values():
                if rate.zone_id == zone_id and rate.category_id == category_id and rate.enabled:
                    return rate.model_copy(deep=True)
            return None
