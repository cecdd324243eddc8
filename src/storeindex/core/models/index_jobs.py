"""Typed payloads for the search index and collection filter queues.

Jobs carry plain dicts (`Job.data`); these models are the single place where
those dicts are built and parsed, so producers, reducers and workers agree on
the shape.
"""

from typing import Annotated, Any, ClassVar, Dict, List, Literal, Sequence, Union

from pydantic import BaseModel, Field, TypeAdapter

from storeindex.core.models.context import RequestContext
from storeindex.core.models.job import Job

UPDATE_SEARCH_INDEX_QUEUE = "update-search-index"
APPLY_COLLECTION_FILTERS_QUEUE = "apply-collection-filters"


class _EntityBatchJobData(BaseModel):
    """Index payload addressing a list of entity ids within one context."""

    ids_field: ClassVar[str]

    ctx: RequestContext

    def ids(self) -> List[str]:
        return list(getattr(self, self.ids_field))

    def with_ids(self, ids: Sequence[str]) -> "_EntityBatchJobData":
        return self.model_copy(update={self.ids_field: list(ids)})


class UpdateProductsJobData(_EntityBatchJobData):
    ids_field: ClassVar[str] = "product_ids"
    type: Literal["update-products"] = "update-products"
    product_ids: List[str]


class UpdateVariantsJobData(_EntityBatchJobData):
    ids_field: ClassVar[str] = "variant_ids"
    type: Literal["update-variants"] = "update-variants"
    variant_ids: List[str]


class DeleteProductsJobData(_EntityBatchJobData):
    ids_field: ClassVar[str] = "product_ids"
    type: Literal["delete-products"] = "delete-products"
    product_ids: List[str]


class DeleteVariantsJobData(_EntityBatchJobData):
    ids_field: ClassVar[str] = "variant_ids"
    type: Literal["delete-variants"] = "delete-variants"
    variant_ids: List[str]


class ReindexJobData(BaseModel):
    """Rebuild the index of one channel and language; supersedes narrower updates of that scope."""

    type: Literal["reindex"] = "reindex"
    ctx: RequestContext


UpdateIndexJobData = Annotated[
    Union[
        UpdateProductsJobData,
        UpdateVariantsJobData,
        DeleteProductsJobData,
        DeleteVariantsJobData,
        ReindexJobData,
    ],
    Field(discriminator="type"),
]

_update_index_adapter: TypeAdapter = TypeAdapter(UpdateIndexJobData)


def parse_update_index_data(data: Dict[str, Any]) -> UpdateIndexJobData:
    return _update_index_adapter.validate_python(data)


def update_index_job(payload: BaseModel, retries: int = 0) -> Job:
    return Job(
        queue_name=UPDATE_SEARCH_INDEX_QUEUE,
        data=payload.model_dump(mode="json"),
        retries=retries,
    )


class CollectionTarget(BaseModel):
    """A collection to recompute plus its ancestry (root first)."""

    id: str
    ancestor_ids: List[str] = Field(default_factory=list)

    @property
    def depth(self) -> int:
        return len(self.ancestor_ids)


class ApplyCollectionFiltersJobData(BaseModel):
    ctx: RequestContext
    collections: List[CollectionTarget]
    # False forces an index update for every member, not only changed ones
    apply_to_changed_variants_only: bool = True


def parse_apply_collection_filters_data(data: Dict[str, Any]) -> ApplyCollectionFiltersJobData:
    return ApplyCollectionFiltersJobData.model_validate(data)


def apply_collection_filters_job(payload: ApplyCollectionFiltersJobData, retries: int = 0) -> Job:
    return Job(
        queue_name=APPLY_COLLECTION_FILTERS_QUEUE,
        data=payload.model_dump(mode="json"),
        retries=retries,
    )
