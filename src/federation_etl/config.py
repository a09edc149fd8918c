"""federation_etl.config

Run configuration.

Two sources:
  - RemoteSettings: remote API endpoints and client credentials, read from
    the environment (REMOTE_* variables).
  - RunConfig: stage toggles and tuning knobs, read from an optional YAML
    file (config/import.example.yml documents every key).

Usage:
    from pathlib import Path
    from federation_etl.config import RemoteSettings, load_run_config

    settings = RemoteSettings.from_env()
    run_config = load_run_config(Path("config/import.yml"))
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from federation_etl.normalize import letter_range
from federation_etl.shared import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STAGE_ORDER = ("organizations", "athletes", "categories", "results")

DEFAULT_SEARCH_URL = "https://www.beathletics.be/api/search/public"
DEFAULT_HTTP_TIMEOUT = 60.0
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_RESULTS_ATHLETE_LIMIT = 3000
DEFAULT_MAX_CONCURRENCY = 10

RUN_CONFIG_KEYS = frozenset({
    "stages",
    "chunk_size",
    "results_athlete_limit",
    "max_concurrency",
    "search_prefixes",
})


# ---------------------------------------------------------------------------
# RemoteSettings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RemoteSettings:
    auth_url: str | None = None
    api_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    search_url: str = DEFAULT_SEARCH_URL
    timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RemoteSettings:
        env = os.environ if environ is None else environ
        timeout_raw = _blank_to_none(env.get("REMOTE_HTTP_TIMEOUT"))
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT
        except ValueError:
            raise ConfigurationError(
                f"REMOTE_HTTP_TIMEOUT must be a number, got {timeout_raw!r}"
            ) from None
        return cls(
            auth_url=_blank_to_none(env.get("REMOTE_AUTH_URL")),
            api_url=_blank_to_none(env.get("REMOTE_API_URL")),
            client_id=_blank_to_none(env.get("REMOTE_CLIENT_ID")),
            client_secret=_blank_to_none(env.get("REMOTE_CLIENT_SECRET")),
            search_url=_blank_to_none(env.get("REMOTE_SEARCH_URL")) or DEFAULT_SEARCH_URL,
            timeout=timeout,
        )

    def require_auth_url(self) -> str:
        if not self.auth_url:
            raise ConfigurationError("REMOTE_AUTH_URL is not defined")
        return self.auth_url

    def require_api_url(self) -> str:
        if not self.api_url:
            raise ConfigurationError("REMOTE_API_URL is not defined")
        return self.api_url.rstrip("/")


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# RunConfig
# ---------------------------------------------------------------------------

@dataclass
class RunConfig:
    stages: dict[str, bool] = field(
        default_factory=lambda: {stage: True for stage in STAGE_ORDER}
    )
    chunk_size: int = DEFAULT_CHUNK_SIZE
    results_athlete_limit: int | None = DEFAULT_RESULTS_ATHLETE_LIMIT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    search_prefix_start: str = "a"
    search_prefix_end: str = "c"
    yaml_hash: str | None = None

    def enabled_stages(self) -> list[str]:
        """Enabled stages in their fixed execution order."""
        return [stage for stage in STAGE_ORDER if self.stages.get(stage, False)]

    def search_prefixes(self) -> list[str]:
        return letter_range(self.search_prefix_start, self.search_prefix_end)

    def only_stages(self, stages: list[str]) -> None:
        """Replace the toggles so exactly *stages* run."""
        unknown = set(stages) - set(STAGE_ORDER)
        if unknown:
            raise ConfigurationError(f"unknown stage(s): {sorted(unknown)}")
        self.stages = {stage: stage in stages for stage in STAGE_ORDER}


def load_run_config(yaml_path: Path | None) -> RunConfig:
    """Load and validate a YAML run config; None returns the defaults.

    Raises:
        ConfigurationError: file unreadable, unknown keys, or invalid values.
    """
    if yaml_path is None:
        return RunConfig()
    try:
        raw = yaml_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"cannot read run config {yaml_path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {yaml_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{yaml_path}: top level must be a mapping")

    config = _validate(data, str(yaml_path))
    config.yaml_hash = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return config


def _validate(data: dict[str, Any], source: str) -> RunConfig:
    unknown = set(data) - RUN_CONFIG_KEYS
    if unknown:
        raise ConfigurationError(f"{source}: unknown key(s) {sorted(unknown)}")

    config = RunConfig()

    stages = data.get("stages")
    if stages is not None:
        if not isinstance(stages, dict):
            raise ConfigurationError(f"{source}: 'stages' must be a mapping")
        bad = set(stages) - set(STAGE_ORDER)
        if bad:
            raise ConfigurationError(f"{source}: unknown stage(s) {sorted(bad)}")
        for stage, enabled in stages.items():
            if not isinstance(enabled, bool):
                raise ConfigurationError(f"{source}: stages.{stage} must be true or false")
            config.stages[stage] = enabled

    if "chunk_size" in data:
        config.chunk_size = _positive_int(data["chunk_size"], "chunk_size", source)
    if "max_concurrency" in data:
        config.max_concurrency = _positive_int(data["max_concurrency"], "max_concurrency", source)
    if "results_athlete_limit" in data:
        limit = data["results_athlete_limit"]
        config.results_athlete_limit = (
            None if limit is None
            else _positive_int(limit, "results_athlete_limit", source)
        )

    prefixes = data.get("search_prefixes")
    if prefixes is not None:
        if not isinstance(prefixes, dict):
            raise ConfigurationError(f"{source}: 'search_prefixes' must be a mapping")
        config.search_prefix_start = str(prefixes.get("start", config.search_prefix_start))
        config.search_prefix_end = str(prefixes.get("end", config.search_prefix_end))
        try:
            config.search_prefixes()
        except ValueError as exc:
            raise ConfigurationError(f"{source}: {exc}") from exc

    return config


def _positive_int(value: Any, name: str, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"{source}: {name} must be a positive integer, got {value!r}")
    return value
