"""
Central configuration for the profiler.

All tunables for a profiling run live in :class:`ProfilerConfig`.  Values can
be overridden from the environment (``DDPROFILER_<FIELD>``, optionally via a
``.env`` file) or programmatically with :func:`dataclasses.replace`.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import dotenv_values, load_dotenv

from ddprofiler.errors import ConfigurationError

__all__ = [
    "DB_PROPERTY_KEYS",
    "ExecutionMode",
    "ProfilerConfig",
    "StoreType",
    "load_db_properties",
]

logger = logging.getLogger(__name__)

ENV_PREFIX = "DDPROFILER_"


class ExecutionMode(Enum):
    """How the run discovers its work."""

    ONLINE = 0
    OFFLINE_FILES = 1
    OFFLINE_DB = 2
    BENCHMARK = 3


class StoreType(Enum):
    """Backend selected by :func:`ddprofiler.store.make_store`."""

    NULL = "null"
    ELASTIC = "elastic"
    DUCKDB = "duckdb"


@dataclass(frozen=True)
class ProfilerConfig:
    """Immutable configuration container for one profiling run."""

    # ── Run ────────────────────────────────────────────────────────────
    execution_mode: ExecutionMode = ExecutionMode.OFFLINE_FILES
    db_name: str = "default"
    """Dataset name attached to every profile of the run."""

    sources_to_analyze_folder: str = ""
    """Root walked in offline-files mode; the benchmark file in benchmark mode."""

    csv_separator: str = ","
    db_properties_path: str = "db.properties"

    # ── Conductor ──────────────────────────────────────────────────────
    num_workers: int = 4
    benchmark_queue_threshold: int = 30_000

    # ── Store ──────────────────────────────────────────────────────────
    store_type: StoreType = StoreType.ELASTIC
    es_host: str = "localhost"
    es_port: int = 9200
    es_profile_index: str = "profile"
    es_text_index: str = "text"
    duckdb_path: str = "ddprofiler.db"
    store_bulk_size: int = 500
    """Profiles buffered by a store before a batch is pushed to the backend."""

    build_fts: bool = True
    """Rebuild the DuckDB full-text indexes at teardown."""

    # ── Profiling ──────────────────────────────────────────────────────
    sample_rows: int = 10_000
    """Max rows read per source (0 reads everything)."""

    csv_encoding: str = "utf-8"
    minhash_num_perm: int = 512
    limit_text_values: bool = True
    max_text_values: int = 1_000
    """Max unique values kept per text column for the keyword index."""

    aws_region: str = "us-east-1"

    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, *, dotenv_path: str | Path | None = None, **overrides: Any) -> ProfilerConfig:
        """Build a config from ``DDPROFILER_*`` environment variables.

        A ``.env`` file is loaded first (without overriding variables that
        are already set).  Keyword *overrides* win over the environment.
        """
        load_dotenv(dotenv_path)
        values: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is not None:
                values[f.name] = _coerce(f.name, raw, f.default)
        values.update(overrides)
        return cls(**values)

    def validate(self) -> ProfilerConfig:
        """Check ranges and required values; return ``self`` when valid."""
        if self.num_workers < 1:
            raise ConfigurationError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.store_bulk_size < 1:
            raise ConfigurationError(f"store_bulk_size must be >= 1, got {self.store_bulk_size}")
        if self.sample_rows < 0:
            raise ConfigurationError(f"sample_rows must be >= 0, got {self.sample_rows}")
        if self.minhash_num_perm < 1:
            raise ConfigurationError("minhash_num_perm must be positive")
        if self.benchmark_queue_threshold < 1:
            raise ConfigurationError("benchmark_queue_threshold must be positive")
        if not self.csv_separator:
            raise ConfigurationError("csv_separator must not be empty")
        if not self.db_name:
            raise ConfigurationError("db_name must not be empty")
        if (
            self.execution_mode in (ExecutionMode.OFFLINE_FILES, ExecutionMode.BENCHMARK)
            and not self.sources_to_analyze_folder
        ):
            raise ConfigurationError(
                f"{self.execution_mode.name} mode needs sources_to_analyze_folder"
            )
        return self


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field's default."""
    try:
        if isinstance(default, bool):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, ExecutionMode):
            return ExecutionMode[raw.upper()] if not raw.isdigit() else ExecutionMode(int(raw))
        if isinstance(default, StoreType):
            return StoreType(raw.lower())
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e
    return raw


# ---------------------------------------------------------------------------
# Catalog connection file (offline database mode)
# ---------------------------------------------------------------------------

DB_PROPERTY_KEYS = (
    "db_system_name",
    "conn_ip",
    "port",
    "conn_path",
    "user_name",
    "password",
    "dbschema",
)


def load_db_properties(path: str | Path) -> dict[str, str]:
    """Read the ``key=value`` catalog connection file used in offline-DB mode.

    Every key in :data:`DB_PROPERTY_KEYS` must be present; ``password`` and
    ``user_name`` may be empty (e.g. for file-based engines).
    """
    p = Path(path)
    if not p.is_file():
        raise ConfigurationError(f"DB properties file not found: {p}")
    props = {k: (v or "") for k, v in dotenv_values(p).items()}
    missing = [k for k in DB_PROPERTY_KEYS if k not in props]
    if missing:
        raise ConfigurationError(f"DB properties file {p} is missing keys: {', '.join(missing)}")
    logger.debug("Loaded DB properties from %s", p)
    return props
