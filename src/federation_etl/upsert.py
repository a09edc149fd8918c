"""federation_etl.upsert

Chunked insert-or-ignore of in-memory collections.

Processing order per call:
  1.  Split records into consecutive chunks of at most chunk_size.
  2.  For each chunk:
      a.  Map every record through the TableSpec (absent/null fields dropped).
      b.  Reject records without a primary key.
      c.  Drop repeated keys inside the chunk (first occurrence wins).
      d.  One store.insert_ignore call.
      e.  Emit ProgressEvent(stage, chunk_no, total_chunks, inserted_so_far).

A StoreError from any chunk aborts the call; chunks already written stay
written, which is safe because re-running skips them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from federation_etl.mappings import TableSpec
from federation_etl.normalize import chunk_count, iter_chunks, unique_by
from federation_etl.shared import (
    ProgressCallback,
    ProgressEvent,
    RejectWriter,
    emit,
)
from federation_etl.store import BulkStore

log = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    inserted_count: int = 0
    chunks: int = 0
    rejected: int = 0


def prepare_rows(
    spec: TableSpec,
    records: Sequence[dict[str, Any]],
    rejects: RejectWriter | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """Map records to rows, dropping keyless records and repeated keys.

    Returns (rows, rejected_count).
    """
    rows: list[dict[str, Any]] = []
    rejected = 0
    for record in records:
        row = spec.map_record(record) if isinstance(record, dict) else {}
        if spec.key not in row:
            rejected += 1
            log.warning("Skipping %s record without %s", spec.name, spec.key)
            if rejects is not None:
                rejects.write(spec.name, record, f"missing_primary_key:{spec.key}")
            continue
        rows.append(row)
    return unique_by(rows, spec.key), rejected


async def write_chunk(
    store: BulkStore,
    spec: TableSpec,
    records: Sequence[dict[str, Any]],
    rejects: RejectWriter | None = None,
) -> tuple[int, int]:
    """Write one chunk. Returns (inserted, rejected)."""
    rows, rejected = prepare_rows(spec, records, rejects)
    if not rows:
        return 0, rejected
    inserted = await store.insert_ignore(spec.name, rows, spec.key)
    return inserted, rejected


async def upsert_chunked(
    store: BulkStore,
    spec: TableSpec,
    records: Sequence[dict[str, Any]],
    chunk_size: int = 1000,
    on_progress: ProgressCallback | None = None,
    stage: str | None = None,
    rejects: RejectWriter | None = None,
) -> UpsertResult:
    total = chunk_count(len(records), chunk_size)
    stage = stage or spec.name
    result = UpsertResult()

    for chunk_no, chunk in enumerate(iter_chunks(records, chunk_size), start=1):
        inserted, rejected = await write_chunk(store, spec, chunk, rejects)
        result.inserted_count += inserted
        result.rejected += rejected
        result.chunks = chunk_no
        log.debug(
            "%s chunk %d/%d: inserted %d of %d", stage, chunk_no, total, inserted, len(chunk)
        )
        emit(on_progress, ProgressEvent(stage, chunk_no, total, result.inserted_count))

    return result
