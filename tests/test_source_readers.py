"""Tests for ddprofiler.profiler.source_readers and the default pipeline."""

import dataclasses
from unittest.mock import MagicMock, patch

import duckdb
import pytest

from ddprofiler.core.task import (
    DBType,
    TaskKind,
    make_benchmark_task,
    make_csv_file_task,
    make_db_task,
)
from ddprofiler.errors import ConfigurationError, SourceAccessError
from ddprofiler.profiler.pipeline import DefaultPipeline
from ddprofiler.profiler.source_readers import (
    READERS,
    default_schema,
    list_remote_objects,
    list_tables,
    local_files,
    read_benchmark_file,
    read_csv_file,
    read_db_table,
    reader_for,
)


# ── helpers ──────────────────────────────────────────────────────────

def _duckdb_file(tmp_path):
    path = str(tmp_path / "warehouse.db")
    con = duckdb.connect(path)
    con.execute("CREATE TABLE orders (id INTEGER, customer VARCHAR, total DOUBLE)")
    con.execute("INSERT INTO orders VALUES (1, 'acme', 10.5), (2, 'globex', 20.0), (3, 'acme', 7.25)")
    con.execute("CREATE TABLE customers (name VARCHAR)")
    con.close()
    return path


# ── local files ──────────────────────────────────────────────────────

class TestLocalCSV:
    def test_read(self, csv_dir, config):
        task = make_csv_file_task("lake", csv_dir, "employees.csv")
        df = read_csv_file(task, config)
        assert list(df.columns) == ["id", "name", "salary"]
        assert len(df) == 4

    def test_separator(self, tmp_path, config):
        (tmp_path / "semi.csv").write_text("a;b\n1;x\n2;y\n")
        df = read_csv_file(make_csv_file_task("lake", tmp_path, "semi.csv", ";"), config)
        assert list(df.columns) == ["a", "b"]

    def test_sample_rows(self, tmp_path, config):
        (tmp_path / "big.csv").write_text("n\n" + "".join(f"{i}\n" for i in range(100)))
        cfg = dataclasses.replace(config, sample_rows=10)
        df = read_csv_file(make_csv_file_task("lake", tmp_path, "big.csv"), cfg)
        assert len(df) == 10

    def test_missing_file(self, tmp_path, config):
        with pytest.raises(SourceAccessError):
            read_csv_file(make_csv_file_task("lake", tmp_path, "nope.csv"), config)

    def test_empty_file(self, tmp_path, config):
        (tmp_path / "empty.csv").write_text("")
        with pytest.raises(SourceAccessError):
            read_csv_file(make_csv_file_task("lake", tmp_path, "empty.csv"), config)

    def test_benchmark_file(self, csv_dir, config):
        df = read_benchmark_file(make_benchmark_task(csv_dir / "counties.csv"), config)
        assert len(df) == 3

    def test_local_files_sorted_regular_only(self, csv_dir):
        (csv_dir / "nested").mkdir()
        names = [p.name for p in local_files(csv_dir)]
        assert names == ["counties.csv", "departments.csv", "employees.csv"]


# ── database tables ──────────────────────────────────────────────────

class TestDBTables:
    def test_read_duckdb_table(self, tmp_path, config):
        path = _duckdb_file(tmp_path)
        task = make_db_task("wh", DBType.DUCKDB, "", None, path, "orders", schema="main")
        df = read_db_table(task, config)
        assert list(df.columns) == ["id", "customer", "total"]
        assert len(df) == 3

    def test_read_respects_sample_rows(self, tmp_path, config):
        path = _duckdb_file(tmp_path)
        task = make_db_task("wh", DBType.DUCKDB, "", None, path, "orders", schema="main")
        df = read_db_table(task, dataclasses.replace(config, sample_rows=2))
        assert len(df) == 2

    def test_missing_table(self, tmp_path, config):
        path = _duckdb_file(tmp_path)
        task = make_db_task("wh", DBType.DUCKDB, "", None, path, "nope", schema="main")
        with pytest.raises(SourceAccessError):
            read_db_table(task, config)

    def test_list_tables(self, tmp_path):
        path = _duckdb_file(tmp_path)
        assert list_tables(DBType.DUCKDB, "", None, path, "main") == ["customers", "orders"]

    def test_list_tables_unreachable(self, tmp_path):
        with pytest.raises(ConfigurationError):
            list_tables(DBType.DUCKDB, "", None, str(tmp_path / "missing" / "x.db"), "main")

    @pytest.mark.parametrize("db_type,expected", [
        (DBType.POSTGRESQL, "public"),
        (DBType.MYSQL, "shop"),
        (DBType.SQLITE, "main"),
        (DBType.DUCKDB, "main"),
    ])
    def test_default_schema(self, db_type, expected):
        assert default_schema(db_type, "shop") == expected


# ── remote listing ───────────────────────────────────────────────────

class TestRemoteListing:
    def test_non_s3_root(self):
        with pytest.raises(ConfigurationError):
            list(list_remote_objects("hdfs://namenode/data"))

    def test_lists_objects_under_prefix(self):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "raw/a.csv"}, {"Key": "raw/"}]},
            {"Contents": [{"Key": "raw/b.csv"}]},
            {},
        ]
        client = MagicMock()
        client.get_paginator.return_value = paginator
        with patch("ddprofiler.profiler.source_readers.boto3.client", return_value=client):
            uris = list(list_remote_objects("s3://bucket/raw"))
        assert uris == ["s3://bucket/raw/a.csv", "s3://bucket/raw/b.csv"]
        paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="raw/", Delimiter="/")


# ── dispatch / pipeline ──────────────────────────────────────────────

class TestDispatch:
    def test_every_kind_has_a_reader(self):
        assert set(READERS) == set(TaskKind)

    def test_reader_for(self, csv_dir):
        assert reader_for(make_csv_file_task("lake", csv_dir, "a.csv")) is read_csv_file
        assert reader_for(make_benchmark_task(csv_dir / "a.csv")) is read_benchmark_file


class TestDefaultPipeline:
    def test_csv(self, csv_dir, config):
        task = make_csv_file_task("lake", csv_dir, "employees.csv")
        profiles = DefaultPipeline(config).run(task)
        assert [p.column_name for p in profiles] == ["id", "name", "salary"]
        assert all(p.db_name == "lake" and p.source_name == "employees.csv" for p in profiles)
        assert all(p.path == task.location for p in profiles)
        salary = profiles[2]
        assert salary.data_type == "N"
        assert salary.total_values == 3

    def test_db_table(self, tmp_path, config):
        path = _duckdb_file(tmp_path)
        task = make_db_task("wh", DBType.DUCKDB, "", None, path, "orders", schema="main")
        profiles = DefaultPipeline(config).run(task)
        assert {p.column_name: p.data_type for p in profiles} == {
            "id": "N", "customer": "T", "total": "N",
        }

    def test_unreadable_source_raises(self, tmp_path, config):
        with pytest.raises(SourceAccessError):
            DefaultPipeline(config).run(make_csv_file_task("lake", tmp_path, "gone.csv"))
