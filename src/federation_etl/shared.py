"""federation_etl.shared

Shared utilities used by the seed stages and the search-partition import.
Includes the error taxonomy, RejectWriter, RunCounters, progress events and
run-report writing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ImportRunError(Exception):
    """Base class for failures that abort an import run."""


class ConfigurationError(ImportRunError):
    """Raised when a required setting is missing or invalid."""


class AuthenticationError(ImportRunError):
    """Raised when the client-credentials token exchange fails."""


class FetchError(ImportRunError):
    """Raised when a collection or detail GET fails."""


class StoreError(ImportRunError):
    """Raised when the database rejects a bulk insert."""


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    completed: int
    total: int
    inserted: int = 0


ProgressCallback = Callable[[ProgressEvent], None]


def emit(on_progress: ProgressCallback | None, event: ProgressEvent) -> None:
    if on_progress is not None:
        on_progress(event)


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open JSON-lines writer for rejected source records."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self.count = 0

    def write(self, table: str, record: Any, reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "a", encoding="utf-8")
        line = {"table": table, "reason": reason, "record": record}
        self._fh.write(json.dumps(line, default=str) + "\n")
        self._fh.flush()
        self.count += 1

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class StageCounters:
    fetched: int = 0
    inserted: int = 0
    chunks: int = 0
    rejected: int = 0


@dataclass
class RunCounters:
    stages: dict[str, StageCounters] = field(default_factory=dict)
    # Results reconciliation
    athletes_processed: int = 0
    athletes_skipped: int = 0
    results_fetched: int = 0
    results_inserted: int = 0
    events_inserted: int = 0
    event_types_inserted: int = 0
    # Search-partition import
    prefixes_fetched: int = 0
    organizations_inserted: int = 0
    warnings: list[str] = field(default_factory=list)

    def stage(self, name: str) -> StageCounters:
        if name not in self.stages:
            self.stages[name] = StageCounters()
        return self.stages[name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stages": {
                name: dict(vars(ctrs)) for name, ctrs in self.stages.items()
            },
            "athletes_processed": self.athletes_processed,
            "athletes_skipped": self.athletes_skipped,
            "results_fetched": self.results_fetched,
            "results_inserted": self.results_inserted,
            "events_inserted": self.events_inserted,
            "event_types_inserted": self.event_types_inserted,
            "prefixes_fetched": self.prefixes_fetched,
            "organizations_inserted": self.organizations_inserted,
            "warnings": self.warnings[:50],
        }


def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    status: str,
    extra: dict[str, Any],
    counters: RunCounters,
    reports_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        "dry_run": dry_run,
        "status": status,
        **extra,
        "counters": counters.to_dict(),
    }
    report_path = reports_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
