"""
Profiling pipeline — task descriptor in, column profiles out.

The conductor treats the pipeline as an opaque callable: ``run(task)``
returns the complete list of profiles for one source or raises.  Nothing is
forwarded to the store until ``run`` has returned, so a source is profiled
all-or-nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from ddprofiler.profiler.column_profiler import ColumnProfile, profile_dataframe
from ddprofiler.profiler.source_readers import reader_for

if TYPE_CHECKING:
    from ddprofiler.config import ProfilerConfig
    from ddprofiler.core.task import TaskDescriptor

__all__ = ["DefaultPipeline", "ProfilingPipeline"]

logger = logging.getLogger(__name__)


class ProfilingPipeline(Protocol):
    """Anything that turns a task descriptor into column profiles."""

    def run(self, task: TaskDescriptor) -> list[ColumnProfile]:
        ...


class DefaultPipeline:
    """Read the source of *task* with its reader and profile every column."""

    def __init__(self, config: ProfilerConfig) -> None:
        self._config = config

    def run(self, task: TaskDescriptor) -> list[ColumnProfile]:
        read = reader_for(task)
        df = read(task, self._config)
        profiles = profile_dataframe(
            df,
            db_name=task.db_name,
            source_name=task.source_name,
            config=self._config,
            path=task.location,
        )
        logger.debug("%s -> %d profiles", task.describe(), len(profiles))
        return profiles
