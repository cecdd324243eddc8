"""SearchIndexer: executes update-search-index jobs.

Runs on the queue worker side. Documents are built from the catalog at
execution time, so an update of an entity that has since been deleted simply
removes its documents. Collection ids are read from the stored membership,
which is why collection recomputation has to finish before index updates run.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from storeindex.core.interfaces.catalog import CatalogPort
from storeindex.core.interfaces.search_index import SearchIndexPort
from storeindex.core.models.catalog import Product, ProductVariant, SearchDocument
from storeindex.core.models.context import RequestContext
from storeindex.core.models.index_jobs import (
    DeleteProductsJobData,
    DeleteVariantsJobData,
    ReindexJobData,
    UpdateProductsJobData,
    UpdateVariantsJobData,
    parse_update_index_data,
)
from storeindex.core.models.job import Job
from storeindex.core.settings import logger


class SearchIndexer:
    def __init__(self, catalog: CatalogPort, index: SearchIndexPort) -> None:
        self._catalog = catalog
        self._index = index

    async def handle(self, job: Job) -> Dict[str, Any]:
        """Queue handler for update-search-index jobs."""
        data = parse_update_index_data(job.data)
        logger.debug(f"[indexer] job_id={job.id} type={data.type}")

        if isinstance(data, ReindexJobData):
            return await self.reindex(data.ctx)
        if isinstance(data, UpdateProductsJobData):
            return await self.update_products(data.ctx, data.product_ids)
        if isinstance(data, UpdateVariantsJobData):
            return await self.update_variants(data.ctx, data.variant_ids)
        if isinstance(data, DeleteProductsJobData):
            await self._index.delete_products(data.product_ids, channel_id=data.ctx.channel_id)
            return {"deletedProducts": len(data.product_ids)}
        if isinstance(data, DeleteVariantsJobData):
            await self._index.delete_variants(data.variant_ids, channel_id=data.ctx.channel_id)
            return {"deletedVariants": len(data.variant_ids)}
        raise ValueError(f"Unsupported index job type: {data.type}")  # pragma: no cover

    async def update_products(self, ctx: RequestContext, product_ids: Sequence[str]) -> Dict[str, Any]:
        documents: List[SearchDocument] = []
        missing: List[str] = []
        for product_id in product_ids:
            product = await self._catalog.get_product(product_id)
            if product is None:
                missing.append(product_id)
                continue
            # variants removed from the product must not linger in the index
            await self._index.delete_products([product_id], channel_id=ctx.channel_id)
            variants = await self._catalog.get_variants_for_product(product_id)
            documents.extend(await self._build_documents(ctx, variants, {product_id: product}))
        if missing:
            await self._index.delete_products(missing, channel_id=ctx.channel_id)
        if documents:
            await self._index.upsert(documents)
        return {"indexed": len(documents), "removedProducts": len(missing)}

    async def update_variants(self, ctx: RequestContext, variant_ids: Sequence[str]) -> Dict[str, Any]:
        variants = await self._catalog.get_variants(variant_ids)
        found = {v.id for v in variants}
        missing = [i for i in variant_ids if i not in found]
        if missing:
            await self._index.delete_variants(missing, channel_id=ctx.channel_id)
        documents = await self._build_documents(ctx, variants)
        if documents:
            await self._index.upsert(documents)
        return {"indexed": len(documents), "removedVariants": len(missing)}

    async def reindex(self, ctx: RequestContext) -> Dict[str, Any]:
        variants = await self._catalog.list_variants()
        documents = await self._build_documents(ctx, variants)
        await self._index.replace_channel(ctx.channel_id, ctx.language_code, documents)
        logger.info(
            f"[indexer] reindex complete documents={len(documents)} "
            f"channel={ctx.channel_id} language={ctx.language_code}"
        )
        return {"indexed": len(documents)}

    async def _build_documents(
        self,
        ctx: RequestContext,
        variants: Sequence[ProductVariant],
        products: Optional[Dict[str, Product]] = None,
    ) -> List[SearchDocument]:
        products = dict(products or {})
        documents: List[SearchDocument] = []
        for variant in variants:
            product = products.get(variant.product_id)
            if product is None:
                product = await self._catalog.get_product(variant.product_id)
                if product is None:
                    continue
                products[variant.product_id] = product
            documents.append(await self._build_document(ctx, product, variant))
        return documents

    async def _build_document(
        self, ctx: RequestContext, product: Product, variant: ProductVariant
    ) -> SearchDocument:
        price_with_tax = variant.price
        if ctx.default_tax_zone_id and variant.tax_category_id:
            rate = await self._catalog.get_tax_rate(ctx.default_tax_zone_id, variant.tax_category_id)
            if rate is not None:
                price_with_tax = rate.apply(variant.price)
        return SearchDocument(
            id=SearchDocument.make_id(ctx.channel_id, ctx.language_code, variant.id),
            channel_id=ctx.channel_id,
            language_code=ctx.language_code,
            product_id=product.id,
            variant_id=variant.id,
            product_name=product.localized_name(ctx.language_code),
            variant_name=variant.localized_name(ctx.language_code),
            sku=variant.sku,
            price=variant.price,
            price_with_tax=price_with_tax,
            enabled=product.enabled and variant.enabled,
            facet_value_ids=list(dict.fromkeys(product.facet_value_ids + variant.facet_value_ids)),
            collection_ids=await self._catalog.get_collection_ids_for_variant(variant.id),
        )
