"""
ddprofiler — data profiler for discovery.

Profiles every column of a collection of sources (CSV files on local or
remote filesystems, database tables) and stores the profiles in a
searchable backend (Elasticsearch or DuckDB).

Quick start::

    from ddprofiler import ProfilerConfig, run_profiler
    stats = run_profiler(ProfilerConfig(sources_to_analyze_folder="/data/csvs"))
"""

from ddprofiler.config import ExecutionMode, ProfilerConfig, StoreType
from ddprofiler.core.conductor import Conductor, ConductorState, ConductorStats
from ddprofiler.core.drivers import ProfilerRun, RunStats, run_profiler

__all__ = [
    "Conductor",
    "ConductorState",
    "ConductorStats",
    "ExecutionMode",
    "ProfilerConfig",
    "ProfilerRun",
    "RunStats",
    "StoreType",
    "run_profiler",
]
__version__ = "0.1.0"
