"""CatalogPort: read access to catalog data needed for indexing.

Also stores recomputed collection membership, the only catalog write the
search subsystem performs. Async for uniformity with DB-backed adapters.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from storeindex.core.models.catalog import Collection, Product, ProductVariant, TaxRate


class CatalogPort(ABC):

	@abstractmethod
	async def get_product(self, product_id: str) -> Optional[Product]:
		raise NotImplementedError

	@abstractmethod
	async def get_variants(self, variant_ids: Sequence[str]) -> List[ProductVariant]:
		"""Return existing variants among `variant_ids` (unknown ids are skipped)."""
		raise NotImplementedError

	@abstractmethod
	async def get_variants_for_product(self, product_id: str) -> List[ProductVariant]:
		raise NotImplementedError

	@abstractmethod
	async def list_variants(self) -> List[ProductVariant]:
		raise NotImplementedError

	@abstractmethod
	async def get_collection(self, collection_id: str) -> Optional[Collection]:
		raise NotImplementedError

	@abstractmethod
	async def get_ancestors(self, collection_id: str) -> List[Collection]:
		"""Ancestors of a collection ordered root first."""
		raise NotImplementedError

	@abstractmethod
	async def get_descendants(self, collection_id: str) -> List[Collection]:
		"""Descendants of a collection, breadth first."""
		raise NotImplementedError

	@abstractmethod
	async def get_collection_variant_ids(self, collection_id: str) -> List[str]:
		raise NotImplementedError

	@abstractmethod
	async def set_collection_variant_ids(self, collection_id: str, variant_ids: Sequence[str]) -> None:
		raise NotImplementedError

	@abstractmethod
	async def get_collection_ids_for_variant(self, variant_id: str) -> List[str]:
		raise NotImplementedError

	@abstractmethod
	async def get_tax_rate(self, zone_id: str, category_id: str) -> Optional[TaxRate]:
		raise NotImplementedError
