from abc import ABC, abstractmethod
from typing import Optional, Sequence

from storeindex.core.models.catalog import SearchDocument


class SearchIndexPort(ABC):
    """Write side of the product search index."""

    @abstractmethod
    async def upsert(self, documents: Sequence[SearchDocument]) -> None:
        pass

    @abstractmethod
    async def delete_variants(self, variant_ids: Sequence[str], channel_id: Optional[str] = None) -> None:
        """Remove documents of the given variants (all channels when channel_id is None)."""
        pass

    @abstractmethod
    async def delete_products(self, product_ids: Sequence[str], channel_id: Optional[str] = None) -> None:
        pass

    @abstractmethod
    async def replace_channel(
        self, channel_id: str, language_code: str, documents: Sequence[SearchDocument]
    ) -> None:
        """Drop the documents of one channel and language and index `documents` instead.

        Documents of other channels or languages are left untouched.
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        pass
