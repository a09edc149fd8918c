"""federation_etl.seed

Seed run: the fixed stage sequence

    organizations -> athletes -> categories -> results

Each collection stage acquires its own token, fetches the whole collection
and upserts it in chunks. The results stage reads the athletes already in
the store and hands them to the reconciler. Stages run strictly one after
the other; any error aborts the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from federation_etl.config import RunConfig
from federation_etl.mappings import ATHLETE, CATEGORY, ORGANIZATION, TableSpec
from federation_etl.reconcile_results import reconcile_results
from federation_etl.remote import (
    ATHLETES_ENDPOINT,
    CATEGORIES_ENDPOINT,
    ORGANIZATIONS_ENDPOINT,
    RemoteFetcher,
    TokenProvider,
)
from federation_etl.shared import ProgressCallback, RejectWriter, RunCounters
from federation_etl.store import BulkStore
from federation_etl.upsert import upsert_chunked

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionStage:
    name: str
    endpoint: str
    spec: TableSpec


COLLECTION_STAGES: dict[str, CollectionStage] = {
    "organizations": CollectionStage("organizations", ORGANIZATIONS_ENDPOINT, ORGANIZATION),
    "athletes": CollectionStage("athletes", ATHLETES_ENDPOINT, ATHLETE),
    "categories": CollectionStage("categories", CATEGORIES_ENDPOINT, CATEGORY),
}


async def import_collection(
    stage: CollectionStage,
    store: BulkStore,
    tokens: TokenProvider,
    fetcher: RemoteFetcher,
    counters: RunCounters,
    chunk_size: int = 1000,
    on_progress: ProgressCallback | None = None,
    rejects: RejectWriter | None = None,
) -> None:
    token = await tokens.get_token()
    log.info("fetching %s", stage.name)
    records = await fetcher.fetch_collection(stage.endpoint, token)

    result = await upsert_chunked(
        store, stage.spec, records, chunk_size,
        on_progress=on_progress, stage=stage.name, rejects=rejects,
    )
    ctrs = counters.stage(stage.name)
    ctrs.fetched += len(records)
    ctrs.inserted += result.inserted_count
    ctrs.chunks += result.chunks
    ctrs.rejected += result.rejected
    log.info(
        "inserted %d of %d %s (%d chunks)",
        result.inserted_count, len(records), stage.name, result.chunks,
    )


async def run_seed(
    store: BulkStore,
    tokens: TokenProvider,
    fetcher: RemoteFetcher,
    run_config: RunConfig,
    counters: RunCounters,
    on_progress: ProgressCallback | None = None,
    rejects: RejectWriter | None = None,
) -> None:
    for stage_name in run_config.enabled_stages():
        if stage_name == "results":
            athletes = await store.list_athletes(run_config.results_athlete_limit)
            log.info("fetched %d athletes from the store", len(athletes))
            await reconcile_results(
                store, fetcher, athletes, counters,
                chunk_size=run_config.chunk_size,
                max_concurrency=run_config.max_concurrency,
                on_progress=on_progress,
                rejects=rejects,
            )
        else:
            await import_collection(
                COLLECTION_STAGES[stage_name], store, tokens, fetcher, counters,
                chunk_size=run_config.chunk_size,
                on_progress=on_progress,
                rejects=rejects,
            )
