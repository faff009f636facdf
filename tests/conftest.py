"""Shared fixtures: a small config, a recording store, and CSV sources on disk."""

from __future__ import annotations

from pathlib import Path

import pytest

from ddprofiler.config import ProfilerConfig, StoreType
from ddprofiler.store.base import Store


class RecordingStore(Store):
    """Keeps every profile it is asked to persist."""

    def __init__(self, config: ProfilerConfig) -> None:
        super().__init__(config)
        self.profiles = []
        self.initialised = False
        self.torn_down = False

    def init_store(self) -> None:
        self.initialised = True

    def _write_batch(self, batch):
        self.profiles.extend(batch)
        return len(batch)

    def _close(self) -> None:
        self.torn_down = True


@pytest.fixture
def config() -> ProfilerConfig:
    return ProfilerConfig(
        store_type=StoreType.NULL,
        num_workers=4,
        minhash_num_perm=16,
        store_bulk_size=10,
        build_fts=False,
    )


@pytest.fixture
def recording_store(config: ProfilerConfig) -> RecordingStore:
    return RecordingStore(config)


@pytest.fixture
def csv_dir(tmp_path: Path) -> Path:
    """Three small CSV files with distinct names and shapes."""
    folder = tmp_path / "sources"
    folder.mkdir()
    (folder / "employees.csv").write_text(
        "id,name,salary\n1,Alice,100.5\n2,Bob,90\n3,Carol,120\n4,Dan,\n"
    )
    (folder / "departments.csv").write_text(
        "dept_id,dept_name\n10,Engineering\n20,Sales\n30,Marketing\n"
    )
    (folder / "counties.csv").write_text(
        "county,population,state\nAda,50000,ID\nBoise,8000,ID\nCanyon,230000,ID\n"
    )
    return folder
