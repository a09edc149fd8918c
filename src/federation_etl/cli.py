"""federation_etl.cli

Unified import CLI.

Modes:
  - seed               organizations -> athletes -> categories -> results
                       (stage toggles from --config / --stage)
  - search_partitions  athletes + embedded organizations from the public
                       search endpoint, one letter prefix at a time

Exit status is 0 on success and 1 on any failure. The database connection
and HTTP client are released in both cases.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path

import click
from dotenv import load_dotenv

from federation_etl.config import (
    STAGE_ORDER,
    RemoteSettings,
    RunConfig,
    load_run_config,
)
from federation_etl.remote import RemoteFetcher, TokenProvider, build_client
from federation_etl.search_partitions import import_search_partitions
from federation_etl.seed import run_seed
from federation_etl.shared import (
    ImportRunError,
    ProgressEvent,
    RejectWriter,
    RunCounters,
    write_run_report,
)
from federation_etl.store import PostgresStore

log = logging.getLogger("federation_etl")


def _progress_logger(run_id: str):
    def on_progress(event: ProgressEvent) -> None:
        log.info(
            "[%s] %s %d/%d (inserted %d)",
            run_id, event.stage, event.completed, event.total, event.inserted,
        )
    return on_progress


async def _run(
    mode: str,
    db_dsn: str,
    settings: RemoteSettings,
    run_config: RunConfig,
    counters: RunCounters,
    rejects: RejectWriter,
    run_id: str,
    dry_run: bool,
) -> None:
    store = await PostgresStore.connect(db_dsn, autocommit=not dry_run)
    try:
        async with build_client(settings) as client:
            tokens = TokenProvider(client, settings)
            fetcher = RemoteFetcher(client, settings)
            on_progress = _progress_logger(run_id)
            if mode == "search_partitions":
                await import_search_partitions(
                    store, fetcher, run_config.search_prefixes(), counters,
                    chunk_size=run_config.chunk_size,
                    on_progress=on_progress,
                    rejects=rejects,
                )
            else:
                await run_seed(
                    store, tokens, fetcher, run_config, counters,
                    on_progress=on_progress,
                    rejects=rejects,
                )
        if dry_run:
            await store.rollback()
            click.echo(f"[{run_id}] [dry-run] All changes rolled back.")
    finally:
        await store.close()


@click.command()
@click.option(
    "--mode",
    default="seed",
    type=click.Choice(["seed", "search_partitions"]),
    show_default=True,
    help="Import mode",
)
@click.option("--db-dsn", required=True, envvar="DATABASE_URL", help="PostgreSQL DSN (env DATABASE_URL)")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML run config")
@click.option(
    "--stage",
    "stages",
    multiple=True,
    type=click.Choice(list(STAGE_ORDER)),
    help="[seed] Run only these stages (repeatable); overrides the config toggles",
)
@click.option("--chunk-size", default=None, type=click.IntRange(min=1), help="Records per bulk insert")
@click.option("--max-concurrency", default=None, type=click.IntRange(min=1), help="[seed] Athletes fetched in parallel by the results stage")
@click.option("--dry-run", is_flag=True, default=False)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--rejects-path", default=None, type=click.Path(), help="JSON-lines file for rejected records [default: ./artifacts/rejects/<run_id>.jsonl]")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
)
def main(
    mode: str,
    db_dsn: str,
    config_path: str | None,
    stages: tuple[str, ...],
    chunk_size: int | None,
    max_concurrency: int | None,
    dry_run: bool,
    run_id: str | None,
    rejects_path: str | None,
    log_level: str,
) -> None:
    """Import federation data into PostgreSQL."""
    load_dotenv()
    logging.basicConfig(
        level=log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.utcnow().isoformat()
    counters = RunCounters()
    rejects = RejectWriter(Path(rejects_path or f"./artifacts/rejects/{run_id}.jsonl"))

    click.echo(f"[{run_id}] Starting {mode} run (dry_run={dry_run})")

    status = "failed"
    run_config: RunConfig | None = None
    try:
        settings = RemoteSettings.from_env()
        run_config = load_run_config(Path(config_path) if config_path else None)
        if stages:
            run_config.only_stages(list(stages))
        if chunk_size is not None:
            run_config.chunk_size = chunk_size
        if max_concurrency is not None:
            run_config.max_concurrency = max_concurrency

        if mode == "seed":
            click.echo(f"[{run_id}] Stages: {', '.join(run_config.enabled_stages()) or '(none)'}")
        else:
            click.echo(f"[{run_id}] Prefixes: {', '.join(run_config.search_prefixes())}")

        asyncio.run(_run(
            mode, db_dsn, settings, run_config, counters, rejects, run_id, dry_run,
        ))
        status = "succeeded"
    except ImportRunError as exc:
        click.echo(f"[{run_id}] FATAL: {type(exc).__name__}: {exc}", err=True)
    except Exception as exc:
        log.exception("[%s] unexpected failure", run_id)
        click.echo(f"[{run_id}] FATAL: unexpected error: {exc}", err=True)
    finally:
        rejects.close()
        report_path = write_run_report(
            run_id, started_at, mode, dry_run, status,
            {
                "config_path": config_path,
                "config_hash": run_config.yaml_hash if run_config else None,
            },
            counters,
        )
        click.echo(f"[{run_id}] Run report: {report_path}")

    for name, ctrs in counters.stages.items():
        click.echo(
            f"[{run_id}] {name}: {ctrs.fetched} fetched, {ctrs.inserted} inserted, "
            f"{ctrs.rejected} rejected"
        )
    if rejects.count:
        click.echo(f"[{run_id}] {rejects.count} rejected record(s) written to the rejects file")

    if status != "succeeded":
        sys.exit(1)
    click.echo(f"[{run_id}] Done.")


if __name__ == "__main__":
    main()
