"""Tests for ddprofiler.profiler.column_profiler."""

import dataclasses

import pandas as pd
import pytest

from ddprofiler.profiler.column_profiler import (
    ColumnProfile,
    column_type,
    compute_cardinality,
    compute_field_id,
    compute_kmin_hash,
    compute_numeric_stats,
    profile_column,
    profile_dataframe,
)


def test_field_id_deterministic():
    a = compute_field_id("lake", "a.csv", "id")
    assert a == compute_field_id("lake", "a.csv", "id")
    assert a != compute_field_id("lake", "b.csv", "id")
    assert a.isdigit()


class TestSketches:
    def test_minhash_length(self):
        sig = compute_kmin_hash(["New York", "new_york", "Boston"], k=32)
        assert len(sig) == 32
        assert all(isinstance(h, int) for h in sig)

    def test_minhash_tokenisation_ignores_case(self):
        assert compute_kmin_hash(["New York"], k=16) == compute_kmin_hash(["new-york"], k=16)

    def test_cardinality(self):
        values = [str(i % 50) for i in range(1000)]
        assert abs(compute_cardinality(values) - 50) <= 2

    def test_cardinality_empty(self):
        assert compute_cardinality([]) == 0


class TestNumericStats:
    def test_basic(self):
        mn, mx, avg, med, iqr = compute_numeric_stats(["1", "2", "3", "4"])
        assert (mn, mx) == (1.0, 4.0)
        assert avg == pytest.approx(2.5)
        assert med == pytest.approx(2.5)
        assert iqr == pytest.approx(1.5)

    def test_non_finite_filtered(self):
        mn, mx, *_ = compute_numeric_stats(["1", "inf", "nan", "x", "5"])
        assert (mn, mx) == (1.0, 5.0)

    def test_nothing_numeric(self):
        assert compute_numeric_stats(["a", "b"]) == (0.0, 0.0, 0.0, 0.0, 0.0)


class TestProfileColumn:
    def test_text(self):
        p = profile_column("lake", "people.csv", "name", ["Alice", "Bob", "Alice"], "T",
                           minhash_num_perm=16, path="/data/people.csv")
        assert p.data_type == "T"
        assert p.total_values == 3
        assert p.unique_values == 2
        assert len(p.minhash) == 16
        assert p.raw_values == ["Alice", "Bob"]
        assert p.path == "/data/people.csv"
        assert p.nid == compute_field_id("lake", "people.csv", "name")

    def test_numeric(self):
        p = profile_column("lake", "people.csv", "age", ["10", "20", "30"], "N", minhash_num_perm=16)
        assert p.data_type == "N"
        assert p.min_value == 10.0
        assert p.max_value == 30.0
        assert p.minhash == []
        assert p.raw_values == []

    def test_text_value_cap(self):
        values = [f"v{i}" for i in range(20)]
        p = profile_column("lake", "s", "c", values, "T", minhash_num_perm=8, max_text_values=5)
        assert p.raw_values == values[:5]


class TestColumnType:
    @pytest.mark.parametrize("series,expected", [
        (pd.Series([1, 2, 3]), "N"),
        (pd.Series([1.5, None]), "N"),
        (pd.Series(["a", "b"]), "T"),
        (pd.Series([True, False]), "T"),
    ])
    def test_types(self, series, expected):
        assert column_type(series) == expected


class TestProfileDataframe:
    def test_one_profile_per_column(self, config):
        df = pd.DataFrame({"id": [1, 2, 3], "name": ["a", "b", None], "flag": [True, False, True]})
        profiles = profile_dataframe(df, db_name="lake", source_name="t.csv", config=config, path="/x/t.csv")
        assert [p.column_name for p in profiles] == ["id", "name", "flag"]
        assert [p.data_type for p in profiles] == ["N", "T", "T"]
        # nulls are dropped before profiling
        assert profiles[1].total_values == 2
        assert all(p.path == "/x/t.csv" for p in profiles)

    def test_text_cap_from_config(self, config):
        cfg = dataclasses.replace(config, max_text_values=3)
        df = pd.DataFrame({"w": [f"w{i}" for i in range(10)]})
        (profile,) = profile_dataframe(df, db_name="lake", source_name="t", config=cfg)
        assert len(profile.raw_values) == 3

    def test_cap_disabled(self, config):
        cfg = dataclasses.replace(config, max_text_values=3, limit_text_values=False)
        df = pd.DataFrame({"w": [f"w{i}" for i in range(10)]})
        (profile,) = profile_dataframe(df, db_name="lake", source_name="t", config=cfg)
        assert len(profile.raw_values) == 10

    def test_empty_frame(self, config):
        assert profile_dataframe(pd.DataFrame(), db_name="lake", source_name="t", config=config) == []


class TestDocuments:
    def test_profile_document(self):
        p = ColumnProfile(nid="1", db_name="lake", source_name="s", column_name="c",
                          data_type="N", total_values=4, min_value=1.0)
        doc = p.to_document()
        assert doc["id"] == "1"
        assert doc["dbName"] == "lake"
        assert doc["sourceNameNA"] == "s"
        assert doc["minValue"] == 1.0
        assert "entities" not in doc

    def test_text_document(self):
        p = ColumnProfile(nid="1", db_name="lake", source_name="s", column_name="c",
                          data_type="T", raw_values=["a", "b"])
        assert p.text_document()["text"] == "a b"

    def test_no_text_document_for_numeric(self):
        p = ColumnProfile(nid="1", db_name="lake", source_name="s", column_name="c", data_type="N")
        assert p.text_document() is None
