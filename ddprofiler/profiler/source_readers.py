"""
Source readers — turn one task descriptor into a pandas DataFrame.

There is exactly one reader per :class:`~ddprofiler.core.task.TaskKind`
(see :data:`READERS`):

* local CSV and benchmark files — ``pandas.read_csv``;
* remote CSV objects — DuckDB ``httpfs`` with reservoir row sampling;
* database tables — DuckDB scanners (``postgres``, ``mysql``, ``sqlite``)
  or a native DuckDB file, attached read-only.

Every reader raises :class:`SourceAccessError` when the source cannot be
read.  The discovery helpers :func:`list_tables` and
:func:`list_remote_objects` are used by the offline drivers.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import boto3
import duckdb
import pandas as pd

from ddprofiler.core.task import (
    BenchmarkTask,
    CSVFileTask,
    DBTask,
    DBType,
    RemoteCSVFileTask,
    TaskDescriptor,
    TaskKind,
)
from ddprofiler.errors import ConfigurationError, SourceAccessError

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig

__all__ = [
    "READERS",
    "list_remote_objects",
    "list_tables",
    "reader_for",
]

logger = logging.getLogger(__name__)

Reader = Callable[[TaskDescriptor, "ProfilerConfig"], pd.DataFrame]

_ALIAS = "src"


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _sql_ident(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


# ---------------------------------------------------------------------------
# Local files
# ---------------------------------------------------------------------------

def _read_local_csv(location: str, separator: str, config: ProfilerConfig) -> pd.DataFrame:
    logger.debug("Reading CSV %s", location)
    try:
        return pd.read_csv(
            location,
            sep=separator,
            encoding=config.csv_encoding,
            nrows=config.sample_rows or None,
            low_memory=False,
        )
    except (OSError, ValueError) as e:
        # pandas parser / empty-data / decode errors are ValueErrors
        raise SourceAccessError(f"Cannot read {location}: {e}") from e


def read_csv_file(task: CSVFileTask, config: ProfilerConfig) -> pd.DataFrame:
    return _read_local_csv(task.location, task.separator, config)


def read_benchmark_file(task: BenchmarkTask, config: ProfilerConfig) -> pd.DataFrame:
    return _read_local_csv(task.path, task.separator, config)


# ---------------------------------------------------------------------------
# Remote files (DuckDB httpfs)
# ---------------------------------------------------------------------------

def _connect_httpfs(region: str) -> duckdb.DuckDBPyConnection:
    con = duckdb.connect()
    con.execute("INSTALL httpfs;")
    con.execute("LOAD httpfs;")
    con.execute(f"SET s3_region={_sql_literal(region)};")
    access_key = os.getenv("AWS_ACCESS_KEY_ID")
    secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
    if access_key and secret_key:
        con.execute(f"SET s3_access_key_id={_sql_literal(access_key)};")
        con.execute(f"SET s3_secret_access_key={_sql_literal(secret_key)};")
    return con


def read_remote_csv_file(task: RemoteCSVFileTask, config: ProfilerConfig) -> pd.DataFrame:
    query = f"SELECT * FROM read_csv_auto({_sql_literal(task.uri)}, delim={_sql_literal(task.separator)})"
    if config.sample_rows:
        query += f" USING SAMPLE {int(config.sample_rows)} ROWS"
    logger.debug("Reading remote CSV %s", task.uri)
    try:
        con = _connect_httpfs(config.aws_region)
        try:
            return con.execute(query).df()
        finally:
            con.close()
    except duckdb.Error as e:
        raise SourceAccessError(f"Cannot read {task.uri}: {e}") from e


# ---------------------------------------------------------------------------
# Database tables
# ---------------------------------------------------------------------------

def default_schema(db_type: DBType, database: str) -> str:
    """Schema holding user tables when the catalog does not name one."""
    if db_type is DBType.POSTGRESQL:
        return "public"
    if db_type is DBType.MYSQL:
        return database
    return "main"


def _attach_statement(
    db_type: DBType,
    host: str,
    port: int | None,
    database: str,
    user: str,
    password: str,
) -> str:
    if db_type is DBType.POSTGRESQL:
        parts = [f"host={host}", f"dbname={database}"]
        if port:
            parts.append(f"port={port}")
        if user:
            parts.append(f"user={user}")
        if password:
            parts.append(f"password={password}")
        target = " ".join(parts)
    elif db_type is DBType.MYSQL:
        parts = [f"host={host}", f"database={database}"]
        if port:
            parts.append(f"port={port}")
        if user:
            parts.append(f"user={user}")
        if password:
            parts.append(f"password={password}")
        target = " ".join(parts)
    else:
        target = database

    options = "READ_ONLY" if db_type is DBType.DUCKDB else f"TYPE {db_type.value}, READ_ONLY"
    return f"ATTACH {_sql_literal(target)} AS {_ALIAS} ({options});"


def _connect_db(
    db_type: DBType,
    host: str,
    port: int | None,
    database: str,
    user: str,
    password: str,
) -> duckdb.DuckDBPyConnection:
    con = duckdb.connect()
    try:
        if db_type is not DBType.DUCKDB:
            con.execute(f"INSTALL {db_type.value};")
            con.execute(f"LOAD {db_type.value};")
        con.execute(_attach_statement(db_type, host, port, database, user, password))
    except duckdb.Error:
        con.close()
        raise
    return con


def read_db_table(task: DBTask, config: ProfilerConfig) -> pd.DataFrame:
    query = f"SELECT * FROM {_ALIAS}.{_sql_ident(task.schema)}.{_sql_ident(task.table)}"
    if config.sample_rows:
        query += f" LIMIT {int(config.sample_rows)}"
    logger.debug("Reading table %s", task.location)
    try:
        con = _connect_db(task.db_type, task.host, task.port, task.database, task.user, task.password)
        try:
            return con.execute(query).df()
        finally:
            con.close()
    except duckdb.Error as e:
        raise SourceAccessError(f"Cannot read table {task.location}: {e}") from e


def list_tables(
    db_type: DBType,
    host: str,
    port: int | None,
    database: str,
    schema: str,
    user: str = "",
    password: str = "",
) -> list[str]:
    """Return the tables (and views) of *schema*, sorted by name.

    Connection failures here happen before any task is submitted and are
    raised as :class:`ConfigurationError`.
    """
    try:
        con = _connect_db(db_type, host, port, database, user, password)
        try:
            rows = con.execute(
                "SELECT table_name FROM information_schema.tables"
                " WHERE table_catalog = ? AND table_schema = ?"
                " ORDER BY table_name",
                [_ALIAS, schema],
            ).fetchall()
        finally:
            con.close()
    except duckdb.Error as e:
        raise ConfigurationError(f"Cannot list tables of {database}/{schema}: {e}") from e
    return [r[0] for r in rows]


# ---------------------------------------------------------------------------
# Remote listing (S3)
# ---------------------------------------------------------------------------

def list_remote_objects(uri: str, region: str = "us-east-1") -> Iterator[str]:
    """Yield ``s3://bucket/key`` for every object directly under the *uri* prefix."""
    parsed = urlparse(uri)
    if parsed.scheme != "s3":
        raise ConfigurationError(f"Listing is only supported for s3:// roots, got {uri!r}")
    bucket = parsed.netloc
    prefix = parsed.path.lstrip("/")
    if prefix and not prefix.endswith("/"):
        prefix += "/"

    s3 = boto3.client(
        "s3",
        region_name=region,
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
    )
    paginator = s3.get_paginator("list_objects_v2")
    # Delimiter keeps the listing non-recursive, like the local walk
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter="/"):
        for obj in page.get("Contents", []):
            key = obj["Key"]
            if key.endswith("/"):
                continue
            yield f"s3://{bucket}/{key}"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

READERS: dict[TaskKind, Reader] = {
    TaskKind.CSV_FILE: read_csv_file,  # type: ignore[dict-item]
    TaskKind.REMOTE_CSV_FILE: read_remote_csv_file,  # type: ignore[dict-item]
    TaskKind.DB_TABLE: read_db_table,  # type: ignore[dict-item]
    TaskKind.BENCHMARK: read_benchmark_file,  # type: ignore[dict-item]
}


def reader_for(task: TaskDescriptor) -> Reader:
    try:
        return READERS[task.kind]
    except KeyError:
        raise ValueError(f"No reader registered for task kind {task.kind!r}") from None


def local_files(root: str | Path) -> Iterator[Path]:
    """Regular files directly under *root*, sorted by name."""
    for p in sorted(Path(root).iterdir()):
        if p.is_file():
            yield p
