"""
Conductor — the scheduler and worker pool of a profiling run.

Task descriptors are submitted to one unbounded FIFO queue and consumed by
a fixed pool of worker threads.  A worker runs the profiling pipeline on
the descriptor, then forwards every profile it produced to the store, and
only then marks the submission finished.

Pending work is tracked with a counter guarded by a condition variable:
it is incremented *before* a submission is enqueued and decremented only
after its profiles have reached the store (or it failed, or was
discarded).  :meth:`Conductor.is_there_pending_work` therefore never
reports "no work" while a submission is queued or executing, and
:meth:`Conductor.wait_until_drained` can block on the same condition
instead of polling.

Lifecycle::

    CREATED --start()--> STARTED --stop()--> STOPPING --> STOPPED

Failures inside one task are logged and counted; they never reach other
workers or the caller.  There is no per-task timeout and no retry.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ddprofiler.errors import ConductorStateError, ConfigurationError, ProfilerError
from ddprofiler.profiler.pipeline import DefaultPipeline

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig
    from ddprofiler.core.task import TaskDescriptor
    from ddprofiler.profiler.column_profiler import ColumnProfile
    from ddprofiler.profiler.pipeline import ProfilingPipeline
    from ddprofiler.store.base import Store

__all__ = ["Conductor", "ConductorState", "ConductorStats"]

logger = logging.getLogger(__name__)

_SENTINEL = object()


class ConductorState(Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ConductorStats:
    """Point-in-time counters of a conductor."""

    submitted: int
    completed: int
    failed: int
    discarded: int
    profiles_forwarded: int
    write_failures: int
    queued: int
    in_flight: int

    @property
    def pending(self) -> int:
        return self.queued + self.in_flight


@dataclass(frozen=True)
class _Submission:
    """One submission of a descriptor; the same descriptor may be submitted many times."""

    seq: int
    task: TaskDescriptor


class Conductor:
    """Fixed-size worker pool over an unbounded task queue.

    Parameters
    ----------
    config : ProfilerConfig
        Run configuration; ``num_workers`` sizes the pool.
    store : Store
        Destination of every produced profile.  Shared by all workers.
    pipeline : ProfilingPipeline, optional
        Defaults to :class:`DefaultPipeline` over *config*.
    num_workers : int, optional
        Overrides ``config.num_workers``.
    """

    def __init__(
        self,
        config: ProfilerConfig,
        store: Store,
        pipeline: ProfilingPipeline | None = None,
        *,
        num_workers: int | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._pipeline = pipeline if pipeline is not None else DefaultPipeline(config)
        self._num_workers = num_workers if num_workers is not None else config.num_workers
        if self._num_workers < 1:
            raise ConfigurationError(f"Conductor needs at least one worker, got {self._num_workers}")

        self._queue: queue.Queue[_Submission | object] = queue.Queue()
        self._cond = threading.Condition()
        self._stop_requested = threading.Event()
        self._workers: list[threading.Thread] = []
        self._seq = itertools.count()
        self._state = ConductorState.CREATED

        # guarded by self._cond
        self._pending = 0
        self._in_flight = 0
        self._submitted = 0
        self._completed = 0
        self._failed = 0
        self._discarded = 0
        self._forwarded = 0
        self._write_failures = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConductorState:
        with self._cond:
            return self._state

    @property
    def num_workers(self) -> int:
        return self._num_workers

    def start(self) -> None:
        """Spawn the worker pool.  Must be called exactly once."""
        with self._cond:
            if self._state is not ConductorState.CREATED:
                raise ConductorStateError(f"Cannot start a conductor in state {self._state.value}")
            self._state = ConductorState.STARTED

        for i in range(self._num_workers):
            t = threading.Thread(target=self._work, name=f"ddprofiler-worker-{i}", daemon=True)
            t.start()
            self._workers.append(t)
        logger.info("Conductor started with %d workers", self._num_workers)

    def stop(self) -> None:
        """Finish in-flight tasks, discard queued ones, and join the pool.

        After this returns no further task is dispatched and the store can
        be torn down.
        """
        with self._cond:
            if self._state in (ConductorState.STOPPING, ConductorState.STOPPED):
                return
            self._state = ConductorState.STOPPING
        logger.info("Stopping conductor (%d queued, %d in flight)", *self._queued_and_in_flight())

        self._stop_requested.set()
        for _ in self._workers:
            self._queue.put(_SENTINEL)
        for t in self._workers:
            t.join()

        # a conductor that was never started still owns its queue
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _SENTINEL:
                self._discard(item)  # type: ignore[arg-type]

        with self._cond:
            self._state = ConductorState.STOPPED
            self._cond.notify_all()
            discarded = self._discarded
        if discarded:
            logger.warning("Conductor stopped; %d queued tasks were never executed", discarded)
        else:
            logger.info("Conductor stopped")

    # ------------------------------------------------------------------
    # Submission and introspection
    # ------------------------------------------------------------------

    def submit_task(self, task: TaskDescriptor) -> None:
        """Enqueue *task*.  Never blocks.

        Allowed before :meth:`start` (the task waits for the pool) and while
        started; rejected once :meth:`stop` has been called.
        """
        with self._cond:
            if self._state in (ConductorState.STOPPING, ConductorState.STOPPED):
                raise ConductorStateError(f"Cannot submit to a conductor in state {self._state.value}")
            self._pending += 1
            self._submitted += 1
            # put under the lock so stop() can never slip in between
            self._queue.put(_Submission(next(self._seq), task))

    def is_there_pending_work(self) -> bool:
        """True while any submission is queued or executing."""
        with self._cond:
            return self._pending > 0

    def approx_queue_length(self) -> int:
        """Best-effort count of submissions not yet picked up by a worker."""
        return self._queue.qsize()

    def wait_until_drained(self, timeout: float | None = None) -> bool:
        """Block until there is no pending work.

        Returns False if *timeout* (seconds) elapsed first.
        """
        with self._cond:
            if self._state is ConductorState.CREATED and self._pending:
                raise ConductorStateError("Pending work can never drain: conductor not started")
            return self._cond.wait_for(lambda: self._pending == 0, timeout)

    def stats(self) -> ConductorStats:
        with self._cond:
            return ConductorStats(
                submitted=self._submitted,
                completed=self._completed,
                failed=self._failed,
                discarded=self._discarded,
                profiles_forwarded=self._forwarded,
                write_failures=self._write_failures,
                queued=self._pending - self._in_flight,
                in_flight=self._in_flight,
            )

    def _queued_and_in_flight(self) -> tuple[int, int]:
        with self._cond:
            return self._pending - self._in_flight, self._in_flight

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is _SENTINEL:
                return
            if self._stop_requested.is_set():
                self._discard(item)  # type: ignore[arg-type]
            else:
                self._execute(item)  # type: ignore[arg-type]

    def _execute(self, sub: _Submission) -> None:
        with self._cond:
            self._in_flight += 1

        ok = False
        forwarded = write_failures = 0
        try:
            profiles = self._pipeline.run(sub.task)
        except ProfilerError as e:
            logger.error("Task #%d %s failed: %s", sub.seq, sub.task.describe(), e)
        except Exception:
            logger.exception("Task #%d %s failed", sub.seq, sub.task.describe())
        else:
            ok = True
            forwarded, write_failures = self._forward(sub, profiles)
            logger.debug("Task #%d %s: %d profiles", sub.seq, sub.task.describe(), forwarded)
        finally:
            with self._cond:
                self._in_flight -= 1
                self._pending -= 1
                if ok:
                    self._completed += 1
                else:
                    self._failed += 1
                self._forwarded += forwarded
                self._write_failures += write_failures
                self._cond.notify_all()

    def _forward(self, sub: _Submission, profiles: list[ColumnProfile]) -> tuple[int, int]:
        """Hand every profile to the store once; return ``(forwarded, failed)``."""
        forwarded = failed = 0
        for profile in profiles:
            forwarded += 1
            try:
                accepted = self._store.write(profile)
            except Exception:
                logger.exception("Store write failed for %s of task #%d", profile.nid, sub.seq)
                accepted = False
            if not accepted:
                failed += 1
        return forwarded, failed

    def _discard(self, sub: _Submission) -> None:
        logger.debug("Discarding task #%d %s", sub.seq, sub.task.describe())
        with self._cond:
            self._pending -= 1
            self._discarded += 1
            self._cond.notify_all()
