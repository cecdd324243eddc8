"""Buffer collecting search index update jobs.

Many small per-entity updates (one per saved product or variant) are merged
into one batch job per (operation, channel, language), with duplicate ids
removed. A reindex rebuilds one (channel, language) scope from the catalog,
so it replaces every other job of that scope in the batch.
"""

from typing import Dict, List, Sequence, Tuple

from storeindex.core.interfaces.job_buffer import JobBuffer
from storeindex.core.models.index_jobs import (
    UPDATE_SEARCH_INDEX_QUEUE,
    ReindexJobData,
    parse_update_index_data,
    update_index_job,
)
from storeindex.core.models.job import BufferedJob, Job


class SearchIndexJobBuffer(JobBuffer):
    id = "search-plugin-update-search-index"

    def accepts(self, job: Job) -> bool:
        return job.queue_name == UPDATE_SEARCH_INDEX_QUEUE

    def collect(self, batch: Sequence[BufferedJob]) -> List[Job]:
        if not batch:
            return []

        parsed = [(buffered.job, parse_update_index_data(buffered.job.data)) for buffered in batch]

        # a reindex rebuilds its (channel, language) scope, so narrower jobs of
        # that scope are redundant; other scopes are reduced as usual
        reindexed = {data.ctx.key() for _, data in parsed if isinstance(data, ReindexJobData)}

        # dict preserves first-arrival order of the groups
        groups: Dict[Tuple[str, str, str], Tuple[Job, object, Dict[str, None]]] = {}
        for job, data in parsed:
            scope = data.ctx.key()
            if scope in reindexed and not isinstance(data, ReindexJobData):
                continue
            key = (data.type, *scope)
            if key not in groups:
                groups[key] = (job, data, {})
            if isinstance(data, ReindexJobData):
                continue
            ids = groups[key][2]
            for entity_id in data.ids():
                ids.setdefault(entity_id, None)

        collected: List[Job] = []
        for reference_job, reference_data, ids in groups.values():
            if isinstance(reference_data, ReindexJobData):
                collected.append(update_index_job(reference_data, retries=reference_job.retries))
            elif ids:
                merged = reference_data.with_ids(list(ids))
                collected.append(update_index_job(merged, retries=reference_job.retries))
        return collected
