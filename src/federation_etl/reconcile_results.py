"""federation_etl.reconcile_results

Per-athlete results import.

For each known athlete the full result history is fetched by live id and
split across three tables:
  1.  event       <- nested `event` objects
  2.  event_type  <- nested `eventType` objects
  3.  result      <- every result entry; event_id comes from the nested
                     event only, event type and category ids from the flat
                     id field or, failing that, the nested object's id

A response without a results array aborts the run with FetchError.

Athlete tasks run concurrently behind an asyncio.Semaphore, so at most
max_concurrency result fetches are in flight. Counters are plain integers
updated between awaits on a single event loop, so totals are exact whatever
order the tasks finish in.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from federation_etl.mappings import EVENT, EVENT_TYPE, RESULT
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
from federation_etl.upsert import upsert_chunked

log = logging.getLogger(__name__)

STAGE = "results"


@dataclass
class ReconcileContext:
    store: BulkStore
    fetcher: RemoteFetcher
    counters: RunCounters
    semaphore: asyncio.Semaphore
    chunk_size: int
    total: int
    on_progress: ProgressCallback | None = None
    rejects: RejectWriter | None = None
    done: int = 0


def _athlete_label(athlete: dict[str, Any]) -> str:
    name = " ".join(p for p in (athlete.get("firstname"), athlete.get("lastname")) if p)
    return name or f"athlete {athlete.get('id')}"


async def _reconcile_athlete(ctx: ReconcileContext, athlete: dict[str, Any]) -> None:
    async with ctx.semaphore:
        label = _athlete_label(athlete)
        live_id = athlete.get("live_id")
        if live_id is None:
            ctx.counters.athletes_skipped += 1
            ctx.counters.warnings.append(f"no live_id for {label} (id={athlete.get('id')})")
            log.warning("Skipping %s: no live id", label)
        else:
            payload = await ctx.fetcher.fetch_athlete_results(live_id)
            results = payload.get("results")
            if not isinstance(results, list):
                raise FetchError(f"results for {label} (live id {live_id}) have no results array")
            results = [r for r in results if isinstance(r, dict)]
            log.debug("got %d results for %s", len(results), label)

            events = [r["event"] for r in results if r.get("event")]
            event_types = [r["eventType"] for r in results if r.get("eventType")]

            ev = await upsert_chunked(
                ctx.store, EVENT, events, ctx.chunk_size, rejects=ctx.rejects,
            )
            et = await upsert_chunked(
                ctx.store, EVENT_TYPE, event_types, ctx.chunk_size, rejects=ctx.rejects,
            )
            res = await upsert_chunked(
                ctx.store, RESULT, results, ctx.chunk_size, rejects=ctx.rejects,
            )
            log.debug("inserted %d results for %s", res.inserted_count, label)

            ctx.counters.events_inserted += ev.inserted_count
            ctx.counters.event_types_inserted += et.inserted_count
            ctx.counters.results_fetched += len(results)
            ctx.counters.results_inserted += res.inserted_count
            ctx.counters.athletes_processed += 1

        ctx.done += 1
        emit(
            ctx.on_progress,
            ProgressEvent(STAGE, ctx.done, ctx.total, ctx.counters.results_inserted),
        )


async def reconcile_results(
    store: BulkStore,
    fetcher: RemoteFetcher,
    athletes: Sequence[dict[str, Any]],
    counters: RunCounters,
    *,
    chunk_size: int = 1000,
    max_concurrency: int = 10,
    on_progress: ProgressCallback | None = None,
    rejects: RejectWriter | None = None,
) -> RunCounters:
    """Fetch and store every athlete's results.

    The first failing athlete aborts the whole reconciliation: pending tasks
    are cancelled and the error is re-raised.
    """
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

    ctx = ReconcileContext(
        store=store,
        fetcher=fetcher,
        counters=counters,
        semaphore=asyncio.Semaphore(max_concurrency),
        chunk_size=chunk_size,
        total=len(athletes),
        on_progress=on_progress,
        rejects=rejects,
    )
    log.info(
        "Reconciling results for %d athletes (max %d in flight)",
        len(athletes), max_concurrency,
    )

    tasks = [asyncio.create_task(_reconcile_athlete(ctx, a)) for a in athletes]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    stage = counters.stage(STAGE)
    stage.fetched = counters.results_fetched
    stage.inserted = counters.results_inserted
    return counters
