"""
ddprofiler CLI — run the profiler from the command line.

Commands
--------
- ``files`` — profile every file directly under a local folder or ``s3://`` prefix.
- ``db`` — profile every table of the catalog described by a properties file.
- ``benchmark`` — load the system with one file, re-submitted continuously.

Usage::

    ddprofiler files ./tables --db-name lake --store duckdb
    ddprofiler db db.properties --db-name warehouse
    ddprofiler benchmark ./tables/big.csv --threshold 100 --duration 30 --store null

Settings not given as options are read from ``DDPROFILER_*`` environment
variables (and a ``.env`` file).
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.table import Table

from ddprofiler.config import ExecutionMode, ProfilerConfig, StoreType
from ddprofiler.core.drivers import run_profiler
from ddprofiler.errors import ProfilerError

console = Console()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"


# ── Shared options ───────────────────────────────────────────────────

@click.group()
@click.version_option(package_name="ddprofiler")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--env-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="dotenv file with DDPROFILER_* settings.")
@click.pass_context
def main(ctx: click.Context, log_level: str, env_file: Path | None) -> None:
    """ddprofiler — profile data sources into a searchable store."""
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT, datefmt="%H:%M:%S")
    ctx.obj = {"env_file": env_file}


_RUN_OPTIONS = (
    click.option("--db-name", default=None, help="Dataset name attached to every profile."),
    click.option("--workers", type=int, default=None, help="Worker threads in the pool."),
    click.option("--store", "store_type", default=None,
                 type=click.Choice([s.value for s in StoreType]), help="Store backend."),
    click.option("--duckdb-path", default=None, help="DuckDB file for --store duckdb."),
    click.option("--es-host", default=None),
    click.option("--es-port", type=int, default=None),
    click.option("--sample-rows", type=int, default=None, help="Max rows read per source (0 = all)."),
)


def run_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every run command."""
    for option in reversed(_RUN_OPTIONS):
        fn = option(fn)
    return fn


def _build_config(ctx: click.Context, mode: ExecutionMode, **options: Any) -> ProfilerConfig:
    overrides = {k: v for k, v in options.items() if v is not None}
    if "workers" in overrides:
        overrides["num_workers"] = overrides.pop("workers")
    if "store_type" in overrides:
        overrides["store_type"] = StoreType(overrides["store_type"])
    try:
        config = ProfilerConfig.from_env(dotenv_path=ctx.obj.get("env_file"))
    except ProfilerError as e:
        console.print(f"[bold red]✗[/] {e}")
        sys.exit(1)
    return dataclasses.replace(config, execution_mode=mode, **overrides)


def _run(config: ProfilerConfig, **kwargs: Any) -> None:
    try:
        stats = run_profiler(config, **kwargs)
    except ProfilerError as e:
        console.print(f"[bold red]✗[/] {e}")
        sys.exit(1)

    table = Table(title=f"Profiling run ({config.execution_mode.name.lower()})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for field in dataclasses.fields(stats):
        table.add_row(field.name.replace("_", " "), str(getattr(stats, field.name)))
    console.print(table)
    if stats.failed:
        console.print(f"[bold yellow]![/] {stats.failed} source(s) could not be profiled; see the log.")
    if stats.profiles_dropped:
        console.print(f"[bold yellow]![/] {stats.profiles_dropped} profile(s) were not persisted by the store.")


# ── files ────────────────────────────────────────────────────────────

@main.command("files")
@click.argument("root")
@click.option("--separator", default=None, help="CSV field separator.")
@run_options
@click.pass_context
def files(ctx: click.Context, root: str, separator: str | None, **options: Any) -> None:
    """Profile every file directly under ROOT (local folder or s3:// prefix)."""
    config = _build_config(
        ctx, ExecutionMode.OFFLINE_FILES,
        sources_to_analyze_folder=root, csv_separator=separator, **options,
    )
    console.print(f"[bold blue]Profiling[/] {root} …")
    _run(config)


# ── db ───────────────────────────────────────────────────────────────

@main.command("db")
@click.argument("properties", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@run_options
@click.pass_context
def db(ctx: click.Context, properties: Path, **options: Any) -> None:
    """Profile every table of the catalog described in PROPERTIES."""
    config = _build_config(
        ctx, ExecutionMode.OFFLINE_DB, db_properties_path=str(properties), **options,
    )
    console.print(f"[bold blue]Profiling tables[/] from {properties} …")
    _run(config)


# ── benchmark ────────────────────────────────────────────────────────

@main.command("benchmark")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--separator", default=None, help="CSV field separator.")
@click.option("--threshold", type=int, default=None, help="Queued tasks to maintain.")
@click.option("--duration", type=float, default=None,
              help="Seconds to keep the queue topped up (default: fill once).")
@run_options
@click.pass_context
def benchmark(
    ctx: click.Context,
    path: str,
    separator: str | None,
    threshold: int | None,
    duration: float | None,
    **options: Any,
) -> None:
    """Load the system by re-submitting PATH continuously."""
    config = _build_config(
        ctx, ExecutionMode.BENCHMARK,
        sources_to_analyze_folder=path, csv_separator=separator,
        benchmark_queue_threshold=threshold, **options,
    )
    console.print(f"[bold blue]Benchmarking[/] with {path} …")
    _run(config, benchmark_duration=duration)


if __name__ == "__main__":
    main()
