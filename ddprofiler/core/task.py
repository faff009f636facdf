"""
Task descriptors — immutable descriptions of one data source to profile.

A descriptor is fully self-describing: the worker that executes it needs
nothing beyond the descriptor and the process-wide :class:`ProfilerConfig`.
The set of variants is closed (see :class:`TaskKind`); the profiling
pipeline resolves the reader for a descriptor once, from its ``kind``.

Descriptors are built through the ``make_*`` factory functions, which only
check structural completeness.  Connectivity is checked lazily, when the
descriptor is executed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from ddprofiler.errors import ConfigurationError, TaskDescriptorError

__all__ = [
    "BenchmarkTask",
    "CSVFileTask",
    "DBTask",
    "DBType",
    "RemoteCSVFileTask",
    "TaskDescriptor",
    "TaskKind",
    "make_benchmark_task",
    "make_csv_file_task",
    "make_db_task",
    "make_remote_csv_file_task",
]

BENCHMARK_DB_NAME = "benchmark"


class TaskKind(Enum):
    CSV_FILE = "csv_file"
    REMOTE_CSV_FILE = "remote_csv_file"
    DB_TABLE = "db_table"
    BENCHMARK = "benchmark"


class DBType(Enum):
    """Relational engines reachable through DuckDB's scanners."""

    POSTGRESQL = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    DUCKDB = "duckdb"

    @classmethod
    def from_name(cls, name: str) -> DBType:
        """Map a catalog engine name (``db_system_name``) to a :class:`DBType`."""
        key = (name or "").strip().lower()
        aliases = {
            "postgresql": cls.POSTGRESQL,
            "postgres": cls.POSTGRESQL,
            "mysql": cls.MYSQL,
            "sqlite": cls.SQLITE,
            "duckdb": cls.DUCKDB,
        }
        if key not in aliases:
            raise ConfigurationError(f"Unsupported database system: {name!r}")
        return aliases[key]


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CSVFileTask:
    """A CSV file on the local filesystem."""

    db_name: str
    path: str
    """Directory containing the file."""

    file_name: str
    separator: str = ","
    kind: TaskKind = field(default=TaskKind.CSV_FILE, init=False)

    @property
    def source_name(self) -> str:
        return self.file_name

    @property
    def location(self) -> str:
        return str(Path(self.path) / self.file_name)

    def describe(self) -> str:
        return f"csv:{self.location}"


@dataclass(frozen=True)
class RemoteCSVFileTask:
    """A CSV object on a remote/distributed filesystem, addressed by URI."""

    db_name: str
    uri: str
    """Full object URI, e.g. ``s3://bucket/prefix/file.csv``."""

    file_name: str
    separator: str = ","
    kind: TaskKind = field(default=TaskKind.REMOTE_CSV_FILE, init=False)

    @property
    def source_name(self) -> str:
        return self.file_name

    @property
    def location(self) -> str:
        return self.uri

    def describe(self) -> str:
        return f"remote:{self.uri}"


@dataclass(frozen=True)
class DBTask:
    """One table of a relational database."""

    db_name: str
    db_type: DBType
    host: str
    port: int | None
    database: str
    schema: str
    table: str
    user: str = ""
    password: str = field(default="", repr=False)
    kind: TaskKind = field(default=TaskKind.DB_TABLE, init=False)

    @property
    def source_name(self) -> str:
        return self.table

    @property
    def location(self) -> str:
        where = f"{self.host}:{self.port}" if self.host else "local"
        return f"{self.db_type.value}://{where}/{self.database}/{self.schema}.{self.table}"

    def describe(self) -> str:
        return f"db:{self.location}"


@dataclass(frozen=True)
class BenchmarkTask:
    """A single CSV file re-submitted over and over to load the system."""

    path: str
    separator: str = ","
    kind: TaskKind = field(default=TaskKind.BENCHMARK, init=False)

    @property
    def db_name(self) -> str:
        return BENCHMARK_DB_NAME

    @property
    def source_name(self) -> str:
        return Path(self.path).name

    @property
    def location(self) -> str:
        return self.path

    def describe(self) -> str:
        return f"benchmark:{self.path}"


TaskDescriptor = Union[CSVFileTask, RemoteCSVFileTask, DBTask, BenchmarkTask]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def _require(value: object, what: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise TaskDescriptorError(f"{what} must not be empty")


def _require_separator(separator: str) -> None:
    if not isinstance(separator, str) or not separator:
        raise TaskDescriptorError("separator must be a non-empty string")


def make_csv_file_task(db_name: str, path: str | Path, file_name: str, separator: str = ",") -> CSVFileTask:
    _require(db_name, "db_name")
    _require(str(path) if path is not None else None, "path")
    _require(file_name, "file_name")
    _require_separator(separator)
    return CSVFileTask(db_name=db_name, path=str(path), file_name=file_name, separator=separator)


def make_remote_csv_file_task(db_name: str, uri: str, file_name: str | None = None, separator: str = ",") -> RemoteCSVFileTask:
    """Build a remote-file descriptor; *file_name* defaults to the last URI segment."""
    _require(db_name, "db_name")
    _require(uri, "uri")
    if "://" not in uri:
        raise TaskDescriptorError(f"uri must carry a scheme: {uri!r}")
    name = file_name or uri.rstrip("/").rsplit("/", 1)[-1]
    _require(name, "file_name")
    _require_separator(separator)
    return RemoteCSVFileTask(db_name=db_name, uri=uri, file_name=name, separator=separator)


def make_db_task(
    db_name: str,
    db_type: DBType,
    host: str,
    port: int | str | None,
    database: str,
    table: str,
    user: str = "",
    password: str = "",
    schema: str = "public",
) -> DBTask:
    _require(db_name, "db_name")
    if not isinstance(db_type, DBType):
        raise TaskDescriptorError(f"db_type must be a DBType, got {db_type!r}")
    _require(database, "database")
    _require(table, "table")
    _require(schema, "schema")

    port_num: int | None = None
    if port not in (None, ""):
        try:
            port_num = int(port)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise TaskDescriptorError(f"port must be an integer, got {port!r}") from e
        if port_num <= 0:
            raise TaskDescriptorError(f"port must be positive, got {port_num}")
    if db_type in (DBType.POSTGRESQL, DBType.MYSQL):
        _require(host, "host")

    return DBTask(
        db_name=db_name,
        db_type=db_type,
        host=host or "",
        port=port_num,
        database=database,
        schema=schema,
        table=table,
        user=user or "",
        password=password or "",
    )


def make_benchmark_task(path: str | Path, separator: str = ",") -> BenchmarkTask:
    _require(str(path) if path is not None else None, "path")
    _require_separator(separator)
    return BenchmarkTask(path=str(path), separator=separator)
