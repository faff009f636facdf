"""Tests for ddprofiler.config."""

import dataclasses

import pytest

from ddprofiler.config import (
    DB_PROPERTY_KEYS,
    ExecutionMode,
    ProfilerConfig,
    StoreType,
    load_db_properties,
)
from ddprofiler.errors import ConfigurationError


def test_defaults():
    cfg = ProfilerConfig()
    assert cfg.num_workers == 4
    assert cfg.store_type is StoreType.ELASTIC
    assert cfg.execution_mode is ExecutionMode.OFFLINE_FILES
    assert cfg.benchmark_queue_threshold == 30_000
    assert cfg.csv_separator == ","


def test_immutable():
    cfg = ProfilerConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.num_workers = 8  # type: ignore[misc]


def test_custom_values():
    cfg = ProfilerConfig(num_workers=2, store_type=StoreType.DUCKDB)
    assert cfg.num_workers == 2
    assert cfg.store_type is StoreType.DUCKDB
    # other defaults unchanged
    assert cfg.sample_rows == 10_000


class TestFromEnv:
    def test_overrides_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DDPROFILER_NUM_WORKERS", "8")
        monkeypatch.setenv("DDPROFILER_STORE_TYPE", "duckdb")
        monkeypatch.setenv("DDPROFILER_BUILD_FTS", "false")
        monkeypatch.setenv("DDPROFILER_EXECUTION_MODE", "benchmark")
        monkeypatch.setenv("DDPROFILER_DB_NAME", "lake")
        cfg = ProfilerConfig.from_env(dotenv_path=tmp_path / "missing.env")
        assert cfg.num_workers == 8
        assert cfg.store_type is StoreType.DUCKDB
        assert cfg.build_fts is False
        assert cfg.execution_mode is ExecutionMode.BENCHMARK
        assert cfg.db_name == "lake"

    def test_numeric_execution_mode(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DDPROFILER_EXECUTION_MODE", "2")
        cfg = ProfilerConfig.from_env(dotenv_path=tmp_path / "missing.env")
        assert cfg.execution_mode is ExecutionMode.OFFLINE_DB

    def test_dotenv_file(self, monkeypatch, tmp_path):
        # register the variable so monkeypatch removes it again afterwards
        monkeypatch.setenv("DDPROFILER_CSV_SEPARATOR", "")
        monkeypatch.delenv("DDPROFILER_CSV_SEPARATOR")
        env = tmp_path / ".env"
        env.write_text("DDPROFILER_CSV_SEPARATOR=|\n")
        cfg = ProfilerConfig.from_env(dotenv_path=env)
        assert cfg.csv_separator == "|"

    def test_keyword_overrides_win(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DDPROFILER_NUM_WORKERS", "8")
        cfg = ProfilerConfig.from_env(dotenv_path=tmp_path / "missing.env", num_workers=2)
        assert cfg.num_workers == 2

    def test_invalid_value(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DDPROFILER_NUM_WORKERS", "many")
        with pytest.raises(ConfigurationError):
            ProfilerConfig.from_env(dotenv_path=tmp_path / "missing.env")

    def test_invalid_store(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DDPROFILER_STORE_TYPE", "cassandra")
        with pytest.raises(ConfigurationError):
            ProfilerConfig.from_env(dotenv_path=tmp_path / "missing.env")


class TestValidate:
    def test_valid(self):
        cfg = ProfilerConfig(sources_to_analyze_folder="/data")
        assert cfg.validate() is cfg

    @pytest.mark.parametrize("kwargs", [
        {"num_workers": 0},
        {"store_bulk_size": 0},
        {"sample_rows": -1},
        {"csv_separator": ""},
        {"benchmark_queue_threshold": 0},
    ])
    def test_out_of_range(self, kwargs):
        with pytest.raises(ConfigurationError):
            ProfilerConfig(sources_to_analyze_folder="/data", **kwargs).validate()

    def test_files_mode_needs_folder(self):
        with pytest.raises(ConfigurationError):
            ProfilerConfig(execution_mode=ExecutionMode.OFFLINE_FILES).validate()

    def test_db_mode_needs_no_folder(self):
        cfg = ProfilerConfig(execution_mode=ExecutionMode.OFFLINE_DB)
        assert cfg.validate() is cfg


class TestDBProperties:
    def _write(self, path, **overrides):
        values = {k: "" for k in DB_PROPERTY_KEYS}
        values.update(db_system_name="postgresql", conn_ip="10.0.0.1", port="5432",
                      conn_path="sales", user_name="u", password="p", dbschema="public")
        values.update(overrides)
        path.write_text("".join(f"{k}={v}\n" for k, v in values.items() if v is not None))
        return path

    def test_load(self, tmp_path):
        props = load_db_properties(self._write(tmp_path / "db.properties"))
        assert props["db_system_name"] == "postgresql"
        assert props["port"] == "5432"
        assert props["dbschema"] == "public"

    def test_empty_values_allowed(self, tmp_path):
        props = load_db_properties(self._write(tmp_path / "db.properties", password=""))
        assert props["password"] == ""

    def test_missing_key(self, tmp_path):
        with pytest.raises(ConfigurationError, match="conn_ip"):
            load_db_properties(self._write(tmp_path / "db.properties", conn_ip=None))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_db_properties(tmp_path / "nope.properties")
