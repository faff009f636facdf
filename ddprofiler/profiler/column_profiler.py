"""
Column profiler — per-column statistics for one data source.

Given the DataFrame read for a single task, computes one
:class:`ColumnProfile` per column:

* type (``"N"`` numeric / ``"T"`` text) from the pandas dtype,
* approximate cardinality (HyperLogLog),
* k-MinHash signature over tokens (text columns),
* min / max / mean / median / IQR over finite values (numeric columns).

Profiles are plain dataclasses; stores turn them into backend documents
with :meth:`ColumnProfile.to_document`.
"""

from __future__ import annotations

import binascii
import logging
import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
from datasketch import HyperLogLog, MinHash

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig

__all__ = [
    "ColumnProfile",
    "compute_cardinality",
    "compute_field_id",
    "compute_kmin_hash",
    "compute_numeric_stats",
    "profile_column",
    "profile_dataframe",
]

logger = logging.getLogger(__name__)

TEXT = "T"
NUMERIC = "N"


def compute_field_id(db_name: str, source_name: str, column_name: str) -> str:
    """Return the CRC32 of *db_name + source_name + column_name* as a string.

    This is the document id under which a column is stored, so re-profiling
    a source overwrites its previous profiles.
    """
    raw = db_name + source_name + column_name
    return str(binascii.crc32(raw.encode("utf-8")))


@dataclass
class ColumnProfile:
    """All computed statistics for a single column of a single source."""

    nid: str
    db_name: str
    source_name: str
    column_name: str
    data_type: str
    """``"T"`` for text, ``"N"`` for numeric."""

    total_values: int = 0
    unique_values: int = 0

    # ── Text ───────────────────────────────────────────────────────────
    minhash: list[int] = field(default_factory=list)
    raw_values: list[str] = field(default_factory=list, repr=False)

    # ── Numeric ────────────────────────────────────────────────────────
    min_value: float = 0.0
    max_value: float = 0.0
    avg_value: float = 0.0
    median: float = 0.0
    iqr: float = 0.0

    path: str = ""
    """Location of the source (file path, object URI or table address)."""

    def to_document(self) -> dict[str, Any]:
        """Camel-cased document for the ``profile`` index."""
        return {
            "id": self.nid,
            "dbName": self.db_name,
            "path": self.path,
            "sourceName": self.source_name,
            "sourceNameNA": self.source_name,
            "columnName": self.column_name,
            "columnNameNA": self.column_name,
            "dataType": self.data_type,
            "totalValues": self.total_values,
            "uniqueValues": self.unique_values,
            "minhash": self.minhash,
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "avgValue": self.avg_value,
            "median": self.median,
            "iqr": self.iqr,
        }

    def text_document(self) -> dict[str, Any] | None:
        """Document for the keyword (``text``) index; ``None`` for numeric columns."""
        if self.data_type != TEXT or not self.raw_values:
            return None
        return {
            "id": self.nid,
            "dbName": self.db_name,
            "sourceName": self.source_name,
            "columnName": self.column_name,
            "text": " ".join(self.raw_values),
        }


# ---------------------------------------------------------------------------
# Sketches
# ---------------------------------------------------------------------------

_TOKENIZER = re.compile(r"[\s_\-]+")


def compute_kmin_hash(values: list[str], k: int) -> list[int]:
    """MinHash signature (``num_perm=k``) over lowercased tokens of *values*.

    Hash values are returned as signed 64-bit ints so they fit ``long``
    fields in Elasticsearch and ``BIGINT[]`` in DuckDB.
    """
    m = MinHash(num_perm=k)
    for val in values:
        for token in _TOKENIZER.split(val.lower()):
            if token:
                m.update(token.encode("utf-8"))
    return m.hashvalues.astype(np.int64).tolist()


def compute_cardinality(values: list[str]) -> int:
    """Approximate distinct count via HyperLogLog (p=16)."""
    hll = HyperLogLog(p=16)
    for val in values:
        hll.update(val.encode("utf-8"))
    return int(round(hll.count()))


def compute_numeric_stats(values: list[str]) -> tuple[float, float, float, float, float]:
    """``(min, max, avg, median, iqr)`` over the finite numeric *values*."""
    finite: list[float] = []
    for v in values:
        try:
            f = float(v)
        except (TypeError, ValueError, OverflowError):
            continue
        if math.isfinite(f):
            finite.append(f)

    if not finite:
        return (0.0, 0.0, 0.0, 0.0, 0.0)

    arr = np.asarray(finite)
    q75, q25 = np.percentile(arr, [75, 25])
    return (
        float(arr.min()),
        float(arr.max()),
        float(arr.mean()),
        float(np.median(arr)),
        float(q75 - q25),
    )


# ---------------------------------------------------------------------------
# Profiling
# ---------------------------------------------------------------------------

def profile_column(
    db_name: str,
    source_name: str,
    column_name: str,
    values: list[str],
    data_type: str,
    *,
    minhash_num_perm: int = 512,
    max_text_values: int | None = None,
    path: str = "",
) -> ColumnProfile:
    """Profile one column given its string-coerced, non-null *values*."""
    profile = ColumnProfile(
        nid=compute_field_id(db_name, source_name, column_name),
        db_name=db_name,
        source_name=source_name,
        column_name=column_name,
        data_type=data_type,
        total_values=len(values),
        unique_values=compute_cardinality(values),
        path=path,
    )

    if data_type == TEXT:
        profile.minhash = compute_kmin_hash(values, k=minhash_num_perm)
        unique = list(dict.fromkeys(values))
        profile.raw_values = unique[:max_text_values] if max_text_values else unique
    else:
        (
            profile.min_value,
            profile.max_value,
            profile.avg_value,
            profile.median,
            profile.iqr,
        ) = compute_numeric_stats(values)

    return profile


def column_type(series: pd.Series) -> str:
    # bool columns are categorical, not measurements
    if pd.api.types.is_bool_dtype(series.dtype):
        return TEXT
    return NUMERIC if pd.api.types.is_numeric_dtype(series.dtype) else TEXT


def profile_dataframe(
    df: pd.DataFrame,
    *,
    db_name: str,
    source_name: str,
    config: ProfilerConfig,
    path: str = "",
) -> list[ColumnProfile]:
    """Profile every column of *df* and return the complete batch."""
    max_text = config.max_text_values if config.limit_text_values else None
    profiles: list[ColumnProfile] = []
    for col_name in df.columns:
        series = df[col_name]
        values = series.dropna().astype(str).tolist()
        profiles.append(
            profile_column(
                db_name,
                source_name,
                str(col_name),
                values,
                column_type(series),
                minhash_num_perm=config.minhash_num_perm,
                max_text_values=max_text,
                path=path,
            )
        )
    logger.debug("Profiled %d columns of %s", len(profiles), source_name)
    return profiles
