"""federation_etl.search_partitions

Alternate athlete import from the public search endpoint.

The search API is partitioned by a one-letter prefix; the default range is
'a' through 'c' (configurable via search_prefixes in the run config). Each
partition returns athletes with their organization embedded. Per chunk of
athletes the distinct organizations are written first so athlete rows can
reference them, then the athletes; both insert-or-ignore.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from federation_etl.mappings import ATHLETE, ORGANIZATION
from federation_etl.normalize import chunk_count, iter_chunks
from federation_etl.remote import RemoteFetcher
from federation_etl.shared import (
    FetchError,
    ProgressCallback,
    ProgressEvent,
    RejectWriter,
    RunCounters,
    emit,
)
from federation_etl.store import BulkStore
from federation_etl.upsert import write_chunk

log = logging.getLogger(__name__)

STAGE = "search_partitions"


async def import_partition(
    store: BulkStore,
    fetcher: RemoteFetcher,
    prefix: str,
    counters: RunCounters,
    chunk_size: int = 1000,
    on_progress: ProgressCallback | None = None,
    rejects: RejectWriter | None = None,
) -> None:
    payload = await fetcher.fetch_search_partition(prefix)
    athletes = payload.get("athletes")
    if not isinstance(athletes, list):
        raise FetchError(f"search partition {prefix!r} has no athletes array")
    log.info("found %s: %d", prefix, len(athletes))

    stage_name = f"{STAGE}:{prefix}"
    ctrs = counters.stage(stage_name)
    ctrs.fetched += len(athletes)
    total = chunk_count(len(athletes), chunk_size)

    for chunk_no, chunk in enumerate(iter_chunks(athletes, chunk_size), start=1):
        orgs = _embedded_organizations(chunk)
        inserted_orgs, _ = await write_chunk(store, ORGANIZATION, orgs, rejects)
        inserted_athletes, rejected = await write_chunk(store, ATHLETE, chunk, rejects)
        log.debug(
            "%s chunk %d/%d: inserted %d athletes and %d organizations",
            prefix, chunk_no, total, inserted_athletes, inserted_orgs,
        )
        ctrs.inserted += inserted_athletes
        ctrs.rejected += rejected
        ctrs.chunks += 1
        counters.organizations_inserted += inserted_orgs
        emit(on_progress, ProgressEvent(stage_name, chunk_no, total, ctrs.inserted))

    counters.prefixes_fetched += 1


def _embedded_organizations(athletes: Sequence[Any]) -> list[dict[str, Any]]:
    return [
        a["organization"]
        for a in athletes
        if isinstance(a, dict) and isinstance(a.get("organization"), dict)
    ]


async def import_search_partitions(
    store: BulkStore,
    fetcher: RemoteFetcher,
    prefixes: Sequence[str],
    counters: RunCounters,
    chunk_size: int = 1000,
    on_progress: ProgressCallback | None = None,
    rejects: RejectWriter | None = None,
) -> RunCounters:
    for prefix in prefixes:
        await import_partition(
            store, fetcher, prefix, counters,
            chunk_size=chunk_size, on_progress=on_progress, rejects=rejects,
        )
    return counters
