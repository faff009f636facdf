"""
Elasticsearch store — the searchable index downstream discovery tools query.

Two indices, one document of each per column:

* **``profile``** — metadata, MinHash signature and numeric stats.
* **``text``** — the column's unique values, analysed for keyword search.

Documents are keyed by the column id, so re-profiling a source replaces
its previous documents.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from elasticsearch import ApiError, Elasticsearch, TransportError
from elasticsearch.helpers import bulk

from ddprofiler.errors import StoreError, StoreUnavailableError
from ddprofiler.store.base import Store

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig
    from ddprofiler.profiler.column_profiler import ColumnProfile

__all__ = ["ElasticStore"]

logger = logging.getLogger(__name__)


_PROFILE_MAPPING: dict[str, Any] = {
    "properties": {
        "id":           {"type": "keyword"},
        "dbName":       {"type": "keyword", "index": False},
        "path":         {"type": "keyword", "index": False},
        "sourceName":   {"type": "text", "analyzer": "standard"},
        "sourceNameNA": {"type": "keyword"},
        "columnName":   {"type": "text", "analyzer": "standard"},
        "columnNameNA": {"type": "keyword"},
        "dataType":     {"type": "keyword"},
        "totalValues":  {"type": "long"},
        "uniqueValues": {"type": "long"},
        "minhash":      {"type": "long"},
        "minValue":     {"type": "double"},
        "maxValue":     {"type": "double"},
        "avgValue":     {"type": "double"},
        "median":       {"type": "double"},
        "iqr":          {"type": "double"},
    }
}

_TEXT_MAPPING: dict[str, Any] = {
    "properties": {
        "id":         {"type": "keyword"},
        "dbName":     {"type": "keyword", "index": False},
        "sourceName": {"type": "keyword", "index": False},
        "columnName": {"type": "keyword", "index": False},
        "text":       {"type": "text", "analyzer": "english"},
    }
}


class ElasticStore(Store):
    """Bulk-indexes column profiles into Elasticsearch.

    Parameters
    ----------
    config : ProfilerConfig
        Uses ``es_host``, ``es_port``, the two index names and
        ``store_bulk_size``.
    client : Elasticsearch, optional
        Pre-built client; one is created from the config otherwise.
    """

    def __init__(self, config: ProfilerConfig, client: Elasticsearch | None = None) -> None:
        super().__init__(config)
        self._profile_index = config.es_profile_index
        self._text_index = config.es_text_index
        self._client = client or Elasticsearch(f"http://{config.es_host}:{config.es_port}")

    def init_store(self) -> None:
        """Check the cluster is reachable and create missing indices."""
        try:
            if not self._client.ping():
                raise StoreUnavailableError(
                    f"Elasticsearch at {self._config.es_host}:{self._config.es_port} is not reachable"
                )
            for name, mapping in ((self._profile_index, _PROFILE_MAPPING),
                                  (self._text_index, _TEXT_MAPPING)):
                if not self._client.indices.exists(index=name):
                    self._client.indices.create(index=name, mappings=mapping)
                    logger.info("Created index '%s'", name)
        except (ApiError, TransportError) as e:
            raise StoreUnavailableError(f"Cannot initialise Elasticsearch indices: {e}") from e

    def _actions(self, batch: list[ColumnProfile]) -> list[dict[str, Any]]:
        actions: list[dict[str, Any]] = []
        for p in batch:
            actions.append({"_index": self._profile_index, "_id": p.nid, "_source": p.to_document()})
            text_doc = p.text_document()
            if text_doc is not None:
                actions.append({"_index": self._text_index, "_id": p.nid, "_source": text_doc})
        return actions

    def _write_batch(self, batch: list[ColumnProfile]) -> int:
        try:
            _, errors = bulk(self._client, self._actions(batch), raise_on_error=False)
        except (ApiError, TransportError) as e:
            raise StoreError(f"Elasticsearch bulk request failed: {e}") from e

        if not errors:
            return len(batch)
        # a profile counts as failed if any document under its id was rejected;
        # the same id can occur several times in one batch
        failed: set[str] = set()
        for item in errors:
            for result in item.values():
                failed.add(str(result.get("_id")))
        logger.warning("Elasticsearch rejected %d documents", len(errors))
        return sum(1 for p in batch if p.nid not in failed)

    def _close(self) -> None:
        try:
            self._client.indices.refresh(index=[self._profile_index, self._text_index])
        except (ApiError, TransportError) as e:
            logger.warning("Index refresh failed at teardown: %s", e)
        self._client.close()
