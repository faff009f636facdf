"""
Core engine — task descriptors, the conductor, and the run drivers.

Modules
-------
task
    Immutable descriptors of one data source each, plus factories.
conductor
    Worker pool over the task queue; routes profiles to the store.
drivers
    Offline file/DB walks, benchmark loop, online mode, ``run_profiler``.
"""
