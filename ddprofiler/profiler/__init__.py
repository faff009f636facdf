"""
Profiling pipeline — from one task descriptor to its column profiles.

Modules
-------
source_readers
    One reader per task kind (local CSV, remote CSV, database table, benchmark).
column_profiler
    Per-column statistics: type, HyperLogLog cardinality, MinHash, numeric ranges.
pipeline
    The ``ProfilingPipeline`` contract consumed by the conductor.
"""
