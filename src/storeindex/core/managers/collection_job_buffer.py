"""Buffer collecting apply-collection-filters jobs.

Membership of a child collection is computed from its parent's filters, so
parents have to be recomputed first. The reducer emits one job per distinct
collection, ordered shallowest first. That order only holds at execution time
when the apply-collection-filters queue runs its jobs one at a time.
"""

from typing import Dict, List, Sequence

from storeindex.core.interfaces.job_buffer import JobBuffer
from storeindex.core.models.index_jobs import (
    APPLY_COLLECTION_FILTERS_QUEUE,
    ApplyCollectionFiltersJobData,
    CollectionTarget,
    apply_collection_filters_job,
    parse_apply_collection_filters_data,
)
from storeindex.core.models.job import BufferedJob, Job


class _PendingCollection:
    __slots__ = ("target", "data", "retries", "changed_only")

    def __init__(self, target: CollectionTarget, data: ApplyCollectionFiltersJobData, retries: int):
        self.target = target
        self.data = data
        self.retries = retries
        self.changed_only = data.apply_to_changed_variants_only


class CollectionJobBuffer(JobBuffer):
    id = "search-plugin-apply-collection-filters"

    def accepts(self, job: Job) -> bool:
        return job.queue_name == APPLY_COLLECTION_FILTERS_QUEUE

    def collect(self, batch: Sequence[BufferedJob]) -> List[Job]:
        pending: Dict[str, _PendingCollection] = {}
        for buffered in batch:
            data = parse_apply_collection_filters_data(buffered.job.data)
            for target in data.collections:
                existing = pending.get(target.id)
                if existing is None:
                    pending[target.id] = _PendingCollection(target, data, buffered.job.retries)
                    continue
                # latest ancestry reflects the current tree; a full recompute wins
                existing.target = target
                existing.changed_only = existing.changed_only and data.apply_to_changed_variants_only
                existing.retries = max(existing.retries, buffered.job.retries)

        # sorted() is stable, so equal depths keep arrival order
        ordered = sorted(pending.values(), key=lambda p: p.target.depth)
        return [
            apply_collection_filters_job(
                ApplyCollectionFiltersJobData(
                    ctx=p.data.ctx,
                    collections=[p.target],
                    apply_to_changed_variants_only=p.changed_only,
                ),
                retries=p.retries,
            )
            for p in ordered
        ]
