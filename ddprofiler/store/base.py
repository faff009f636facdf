"""
Store gateway — where column profiles end up.

All backends share the same contract:

* ``init_store()`` — prepare indices/tables; raise
  :class:`~ddprofiler.errors.StoreUnavailableError` if the backend cannot
  be reached (fatal, before any work is submitted).
* ``write(profile)`` — called concurrently by every conductor worker.
  Profiles are buffered under a lock and pushed in batches of
  ``config.store_bulk_size``.
* ``flush()`` — push the buffer.  Backend failures are logged and counted
  in :attr:`Store.dropped`; they never propagate to the worker.
* ``tear_down_store()`` — flush and close; called once, after the
  conductor has stopped.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ddprofiler.errors import StoreError

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig
    from ddprofiler.profiler.column_profiler import ColumnProfile

__all__ = ["NullStore", "Store"]

logger = logging.getLogger(__name__)


class Store(ABC):
    """Buffered, thread-safe base for profile stores.

    Subclasses implement :meth:`_write_batch` (which returns the number of
    profiles acknowledged by the backend, or raises :class:`StoreError`)
    and :meth:`_close`.
    """

    def __init__(self, config: ProfilerConfig) -> None:
        self._config = config
        self._bulk_size = config.store_bulk_size
        self._lock = threading.Lock()
        self._buffer: list[ColumnProfile] = []
        self._closed = False
        self.written = 0
        self.dropped = 0

    def init_store(self) -> None:
        """Prepare the backend.  The default does nothing."""

    def write(self, profile: ColumnProfile) -> bool:
        """Buffer *profile*; flush when the buffer is full.

        Returns False when the profile was dropped (store already torn
        down, or the batch it triggered failed).
        """
        with self._lock:
            if self._closed:
                self.dropped += 1
                logger.warning("Dropping profile %s: store is closed", profile.nid)
                return False
            self._buffer.append(profile)
            if len(self._buffer) < self._bulk_size:
                return True
            return self._flush_locked()

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def tear_down_store(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._flush_locked()
            self._closed = True
            self._close()
        logger.info("Store torn down: %d written, %d dropped", self.written, self.dropped)

    def _flush_locked(self) -> bool:
        if not self._buffer:
            return True
        batch, self._buffer = self._buffer, []
        try:
            ok = self._write_batch(batch)
        except StoreError as e:
            logger.error("Store write of %d profiles failed: %s", len(batch), e)
            self.dropped += len(batch)
            return False
        self.written += ok
        if ok < len(batch):
            self.dropped += len(batch) - ok
            logger.warning("Store acknowledged %d of %d profiles", ok, len(batch))
            return False
        return True

    @abstractmethod
    def _write_batch(self, batch: list[ColumnProfile]) -> int:
        ...

    def _close(self) -> None:
        """Release backend resources."""


class NullStore(Store):
    """Accepts every profile and persists nothing.  For tests and benchmarks."""

    def _write_batch(self, batch: list[ColumnProfile]) -> int:
        return len(batch)
