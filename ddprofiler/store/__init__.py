"""Store gateway backends for column profiles — Elasticsearch, DuckDB, null."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ddprofiler.config import StoreType
from ddprofiler.errors import ConfigurationError
from ddprofiler.store.base import NullStore, Store
from ddprofiler.store.duck_store import DuckStore
from ddprofiler.store.elastic_store import ElasticStore

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig

__all__ = ["DuckStore", "ElasticStore", "NullStore", "Store", "make_store"]


def make_store(config: ProfilerConfig) -> Store:
    """Instantiate the backend selected by ``config.store_type``."""
    if config.store_type is StoreType.ELASTIC:
        return ElasticStore(config)
    if config.store_type is StoreType.DUCKDB:
        return DuckStore(config)
    if config.store_type is StoreType.NULL:
        return NullStore(config)
    raise ConfigurationError(f"Unsupported store type: {config.store_type!r}")
