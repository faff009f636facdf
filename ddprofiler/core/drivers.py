"""
Drivers — discover work, feed the conductor, and own the run lifecycle.

:func:`run_profiler` is the entry point of a run.  It builds the store and
the conductor (:class:`ProfilerRun`), hands the conductor to the driver of
the configured :class:`~ddprofiler.config.ExecutionMode`, waits for the
work to drain, then stops the conductor *before* tearing down the store.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from ddprofiler.config import ExecutionMode, load_db_properties
from ddprofiler.core.conductor import Conductor, ConductorStats
from ddprofiler.core.task import (
    DBType,
    make_benchmark_task,
    make_csv_file_task,
    make_db_task,
    make_remote_csv_file_task,
)
from ddprofiler.errors import ConfigurationError
from ddprofiler.profiler.source_readers import (
    default_schema,
    list_remote_objects,
    list_tables,
    local_files,
)
from ddprofiler.store import make_store

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig
    from ddprofiler.core.task import TaskDescriptor
    from ddprofiler.profiler.pipeline import ProfilingPipeline
    from ddprofiler.store.base import Store

__all__ = [
    "ProfilerRun",
    "RunStats",
    "benchmark_system",
    "read_directory_and_create_tasks",
    "read_tables_from_db_and_create_tasks",
    "run_profiler",
    "serve_online",
]

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("s3",)


@dataclass(frozen=True)
class RunStats(ConductorStats):
    """Conductor counters plus what the store persisted, read after teardown.

    ``profiles_dropped`` includes profiles lost in batch flushes and in the
    final teardown flush, which ``write_failures`` cannot see.
    """

    profiles_stored: int = 0
    profiles_dropped: int = 0


# ─────────────────────────────────────────────────────────────────────
# Run lifecycle
# ─────────────────────────────────────────────────────────────────────

class ProfilerRun:
    """One store and one conductor, created and torn down together.

    Usage::

        with ProfilerRun(config) as run:
            run.conductor.submit_task(task)
            run.conductor.wait_until_drained()
    """

    def __init__(
        self,
        config: ProfilerConfig,
        *,
        store: Store | None = None,
        pipeline: ProfilingPipeline | None = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else make_store(config)
        self.conductor = Conductor(config, self.store, pipeline)

    def __enter__(self) -> ProfilerRun:
        # setup failures surface here, before any task is submitted
        self.store.init_store()
        try:
            self.conductor.start()
        except BaseException:
            self.store.tear_down_store()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.conductor.stop()
        self.store.tear_down_store()


# ─────────────────────────────────────────────────────────────────────
# Offline drivers
# ─────────────────────────────────────────────────────────────────────

def read_directory_and_create_tasks(
    conductor: Conductor,
    db_name: str,
    root: str | Path,
    separator: str = ",",
    *,
    region: str = "us-east-1",
) -> int:
    """Submit one file task per file directly under *root*.

    Local paths produce :class:`CSVFileTask`; ``s3://`` roots produce
    :class:`RemoteCSVFileTask`.  Returns the number of tasks submitted.
    """
    root_str = str(root)
    scheme = urlparse(root_str).scheme
    total = 0

    if scheme in REMOTE_SCHEMES:
        for uri in list_remote_objects(root_str, region=region):
            conductor.submit_task(make_remote_csv_file_task(db_name, uri, separator=separator))
            total += 1
    elif scheme in ("", "file"):
        folder = Path(urlparse(root_str).path if scheme == "file" else root_str)
        if not folder.is_dir():
            raise ConfigurationError(f"Sources folder does not exist: {folder}")
        for f in local_files(folder):
            conductor.submit_task(make_csv_file_task(db_name, f.parent, f.name, separator))
            total += 1
    else:
        raise ConfigurationError(f"Unsupported filesystem scheme {scheme!r} for {root_str}")

    logger.info("Total files submitted for processing: %d", total)
    return total


def read_tables_from_db_and_create_tasks(
    conductor: Conductor,
    db_name: str,
    props: dict[str, str],
) -> int:
    """Submit one :class:`DBTask` per table of the catalog in *props*.

    *props* uses the keys of :data:`ddprofiler.config.DB_PROPERTY_KEYS`.
    """
    db_type = DBType.from_name(props["db_system_name"])
    host = props["conn_ip"]
    port = props["port"] or None
    database = props["conn_path"]
    user = props["user_name"]
    password = props["password"]
    schema = props["dbschema"] or default_schema(db_type, database)

    try:
        port_num = int(port) if port else None
    except ValueError:
        raise ConfigurationError(f"Invalid port in DB properties: {port!r}") from None

    logger.info("Conn to DB on: %s:%s/%s", host, port, database)
    tables = list_tables(db_type, host, port_num, database, schema, user, password)
    for table in tables:
        logger.info("Detected relational table: %s", table)
        conductor.submit_task(
            make_db_task(
                db_name, db_type, host, port_num, database, table,
                user=user, password=password, schema=schema,
            )
        )
    return len(tables)


# ─────────────────────────────────────────────────────────────────────
# Benchmark and online drivers
# ─────────────────────────────────────────────────────────────────────

def benchmark_system(
    conductor: Conductor,
    task: TaskDescriptor,
    threshold: int,
    *,
    duration: float | None = None,
    interval: float = 0.01,
    stop_event: threading.Event | None = None,
) -> int:
    """Keep roughly *threshold* copies of *task* queued.

    Without *duration* the queue is filled once, up to the threshold.  With
    a duration (seconds) the queue is topped up every *interval* until the
    duration elapses or *stop_event* is set.  Returns the number of
    submissions.
    """
    submitted = 0
    deadline = time.monotonic() + duration if duration is not None else None
    stop_event = stop_event or threading.Event()

    while True:
        while conductor.approx_queue_length() < threshold:
            conductor.submit_task(task)
            submitted += 1
        if deadline is None or time.monotonic() >= deadline:
            break
        if stop_event.wait(interval):
            break

    logger.info("Benchmark submitted %d tasks (threshold %d)", submitted, threshold)
    return submitted


def serve_online(conductor: Conductor, stop_event: threading.Event) -> None:
    """Keep the conductor started until *stop_event* is set.

    Submissions come from whatever front end holds the conductor.
    """
    logger.info("Profiler online; waiting for submissions")
    stop_event.wait()
    logger.info("Online mode stopping")


# ─────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────

def run_profiler(
    config: ProfilerConfig,
    *,
    store: Store | None = None,
    pipeline: ProfilingPipeline | None = None,
    stop_event: threading.Event | None = None,
    benchmark_duration: float | None = None,
) -> RunStats:
    """Run one profiling job in the configured execution mode.

    Returns the conductor's final counters together with the store's
    written and dropped totals, read after teardown.
    """
    config.validate()
    start = time.monotonic()
    mode = config.execution_mode
    run = ProfilerRun(config, store=store, pipeline=pipeline)

    with run:
        conductor = run.conductor
        if mode is ExecutionMode.ONLINE:
            serve_online(conductor, stop_event or threading.Event())
        elif mode is ExecutionMode.OFFLINE_FILES:
            read_directory_and_create_tasks(
                conductor,
                config.db_name,
                config.sources_to_analyze_folder,
                config.csv_separator,
                region=config.aws_region,
            )
        elif mode is ExecutionMode.OFFLINE_DB:
            props = load_db_properties(config.db_properties_path)
            read_tables_from_db_and_create_tasks(conductor, config.db_name, props)
        elif mode is ExecutionMode.BENCHMARK:
            task = make_benchmark_task(config.sources_to_analyze_folder, config.csv_separator)
            benchmark_system(
                conductor,
                task,
                config.benchmark_queue_threshold,
                duration=benchmark_duration,
                stop_event=stop_event,
            )
        else:
            raise ConfigurationError(f"Unknown execution mode: {mode!r}")

        if mode is not ExecutionMode.ONLINE:
            conductor.wait_until_drained()

    stats = RunStats(
        **dataclasses.asdict(run.conductor.stats()),
        profiles_stored=run.store.written,
        profiles_dropped=run.store.dropped,
    )
    logger.info(
        "Finished processing in %.2fs: %d tasks completed, %d failed, %d profiles stored, %d dropped",
        time.monotonic() - start,
        stats.completed,
        stats.failed,
        stats.profiles_stored,
        stats.profiles_dropped,
    )
    return stats
