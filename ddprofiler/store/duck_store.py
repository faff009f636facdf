"""
DuckDB store — embedded alternative to Elasticsearch.

A single ``.db`` file with the same layout as the ES indices:

* **``profile``** — one row per column (metadata + minhash + numeric stats).
* **``text_index``** — one row per text column (unique values, space-joined).

DuckDB allows a single writer per connection; the base class lock
serialises every worker's writes onto the one connection.  Full-text
indexes are (re)built once, at teardown.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

from ddprofiler.errors import StoreError, StoreUnavailableError
from ddprofiler.store.base import Store

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig
    from ddprofiler.profiler.column_profiler import ColumnProfile

__all__ = ["DuckStore"]

logger = logging.getLogger(__name__)


_CREATE_PROFILE = """
CREATE TABLE IF NOT EXISTS profile (
    nid           VARCHAR PRIMARY KEY,
    db_name       VARCHAR,
    path          VARCHAR DEFAULT '',
    source_name   VARCHAR NOT NULL,
    column_name   VARCHAR NOT NULL,
    data_type     VARCHAR NOT NULL,   -- 'T' or 'N'
    total_values  BIGINT  DEFAULT 0,
    unique_values BIGINT  DEFAULT 0,
    minhash       BIGINT[],
    min_value     DOUBLE  DEFAULT 0,
    max_value     DOUBLE  DEFAULT 0,
    avg_value     DOUBLE  DEFAULT 0,
    median        DOUBLE  DEFAULT 0,
    iqr           DOUBLE  DEFAULT 0
);
"""

_CREATE_TEXT_INDEX = """
CREATE TABLE IF NOT EXISTS text_index (
    nid         VARCHAR PRIMARY KEY,
    db_name     VARCHAR,
    source_name VARCHAR,
    column_name VARCHAR,
    text        VARCHAR
);
"""

_INSERT_PROFILE = """
INSERT OR REPLACE INTO profile
    (nid, db_name, path, source_name, column_name, data_type,
     total_values, unique_values, minhash,
     min_value, max_value, avg_value, median, iqr)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_INSERT_TEXT = """
INSERT OR REPLACE INTO text_index (nid, db_name, source_name, column_name, text)
VALUES (?, ?, ?, ?, ?)
"""


class DuckStore(Store):
    """Embedded DuckDB store for column profiles.

    Parameters
    ----------
    config : ProfilerConfig
        Uses ``duckdb_path``, ``store_bulk_size`` and ``build_fts``.
    db_path : str | Path, optional
        Overrides ``config.duckdb_path``; ``":memory:"`` works for tests.
    """

    def __init__(self, config: ProfilerConfig, db_path: str | Path | None = None) -> None:
        super().__init__(config)
        self._db_path = str(db_path if db_path is not None else config.duckdb_path)
        self._con: duckdb.DuckDBPyConnection | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    def init_store(self) -> None:
        """Open the database file and create the tables if missing."""
        try:
            self._con = duckdb.connect(self._db_path)
            self._con.execute(_CREATE_PROFILE)
            self._con.execute(_CREATE_TEXT_INDEX)
        except duckdb.Error as e:
            raise StoreUnavailableError(f"Cannot open DuckDB store at {self._db_path}: {e}") from e
        logger.info("DuckDB tables ready at %s", self._db_path)

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._con is None:
            raise StoreError("DuckStore used before init_store()")
        return self._con

    def _write_batch(self, batch: list[ColumnProfile]) -> int:
        con = self._connection()
        profile_rows = [
            (
                p.nid, p.db_name, p.path, p.source_name, p.column_name, p.data_type,
                p.total_values, p.unique_values, p.minhash,
                p.min_value, p.max_value, p.avg_value, p.median, p.iqr,
            )
            for p in batch
        ]
        text_rows = [
            (doc["id"], doc["dbName"], doc["sourceName"], doc["columnName"], doc["text"])
            for doc in (p.text_document() for p in batch)
            if doc is not None
        ]

        try:
            con.execute("BEGIN TRANSACTION;")
            try:
                con.executemany(_INSERT_PROFILE, profile_rows)
                if text_rows:
                    con.executemany(_INSERT_TEXT, text_rows)
                con.execute("COMMIT;")
            except duckdb.Error:
                con.execute("ROLLBACK;")
                raise
        except duckdb.Error as e:
            raise StoreError(f"DuckDB insert failed: {e}") from e

        logger.debug("Inserted %d profile rows, %d text rows", len(profile_rows), len(text_rows))
        return len(profile_rows)

    def _rebuild_fts(self) -> None:
        """(Re)create the FTS indexes on ``text_index`` and ``profile``."""
        con = self._connection()
        con.execute("INSTALL fts; LOAD fts;")
        with contextlib.suppress(duckdb.CatalogException):
            con.execute("PRAGMA drop_fts_index('text_index');")
        con.execute(
            "PRAGMA create_fts_index("
            "  'text_index', 'nid', 'text',"
            "  stemmer='english', stopwords='english'"
            ");"
        )
        # stopwords='none' keeps identifiers like "Id" or "No" findable
        with contextlib.suppress(duckdb.CatalogException):
            con.execute("PRAGMA drop_fts_index('profile');")
        con.execute(
            "PRAGMA create_fts_index("
            "  'profile', 'nid', 'source_name', 'column_name',"
            "  stemmer='english', stopwords='none'"
            ");"
        )
        logger.info("FTS indexes rebuilt on text_index and profile")

    def _close(self) -> None:
        if self._con is None:
            return
        if self._config.build_fts:
            try:
                self._rebuild_fts()
            except duckdb.Error as e:
                logger.warning("Could not build FTS indexes: %s", e)
        self._con.close()
        self._con = None

    # ------------------------------------------------------------------
    # Read-back
    # ------------------------------------------------------------------

    def count_profiles(self) -> int:
        with self._lock:
            row = self._connection().execute("SELECT count(*) FROM profile").fetchone()
        return int(row[0]) if row else 0

    def iter_profiles(self) -> Iterator[tuple[str, str, str, str]]:
        """Yield ``(nid, db_name, source_name, column_name)`` for every stored column."""
        with self._lock:
            rows = self._connection().execute(
                "SELECT nid, db_name, source_name, column_name FROM profile ORDER BY source_name, column_name"
            ).fetchall()
        yield from rows
