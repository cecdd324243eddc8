"""In-memory implementation of SearchIndexPort (tests / local runs)."""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

from storeindex.core.interfaces.search_index import SearchIndexPort
from storeindex.core.models.catalog import SearchDocument


class InMemorySearchIndex(SearchIndexPort):
    def __init__(self) -> None:
        self._documents: Dict[str, SearchDocument] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, documents: Sequence[SearchDocument]) -> None:
        async with self._lock:
            for doc in documents:
                self._documents[doc.id] = doc.model_copy(deep=True)

    async def delete_variants(self, variant_ids: Sequence[str], channel_id: Optional[str] = None) -> None:
        ids = set(variant_ids)
        await self._delete_where(lambda d: d.variant_id in ids, channel_id)

    async def delete_products(self, product_ids: Sequence[str], channel_id: Optional[str] = None) -> None:
        ids = set(product_ids)
        await self._delete_where(lambda d: d.product_id in ids, channel_id)

    async def replace_channel(
        self, channel_id: str, language_code: str, documents: Sequence[SearchDocument]
    ) -> None:
        async with self._lock:
            self._documents = {
                k: d
                for k, d in self._documents.items()
                if not (d.channel_id == channel_id and d.language_code == language_code)
            }
            for doc in documents:
                self._documents[doc.id] = doc.model_copy(deep=True)

    async def count(self) -> int:
        async with self._lock:
            return len(self._documents)

    # Convenience accessors (not part of port but useful for tests)
    async def get(self, document_id: str) -> Optional[SearchDocument]:
        async with self._lock:
            doc = self._documents.get(document_id)
            return doc.model_copy(deep=True) if doc else None

    async def documents(self) -> List[SearchDocument]:
        async with self._lock:
            return [d.model_copy(deep=True) for d in self._documents.values()]

    async def _delete_where(self, predicate, channel_id: Optional[str]) -> None:
        async with self._lock:
            for doc_id in [
                k
                for k, d in self._documents.items()
                if predicate(d) and (channel_id is None or d.channel_id == channel_id)
            ]:
                del self._documents[doc_id]
