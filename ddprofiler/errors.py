"""
Exception hierarchy for the profiler.

Setup failures (configuration, unreachable store, malformed task
descriptors) are fatal to a run and propagate to the driver.  Per-task
and per-write failures are recovered inside the conductor and the stores.
"""


class ProfilerError(Exception):
    """Base exception for all profiler errors."""


# --- Setup errors (fatal) ---

class ConfigurationError(ProfilerError):
    """Raised for invalid or incomplete configuration."""


class TaskDescriptorError(ConfigurationError, ValueError):
    """Raised when a task descriptor is structurally incomplete."""


# --- Per-task errors (recovered by the conductor) ---

class SourceAccessError(ProfilerError):
    """Raised when a data source cannot be read (missing file, refused connection, bad query)."""


# --- Store errors ---

class StoreError(ProfilerError):
    """Base class for store backend failures."""


class StoreUnavailableError(StoreError):
    """Raised by ``init_store`` when the backend cannot be reached at all."""


# --- Lifecycle errors ---

class ConductorStateError(ProfilerError, RuntimeError):
    """Raised when a conductor operation is not allowed in its current state."""
