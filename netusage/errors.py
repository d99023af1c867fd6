"""
Error taxonomy for the monitoring pipeline.

Storage and probe errors are raised inside their component and converted
to degraded results at its public boundary. Only StorageUnavailable (at
startup) and ExportFailed reach callers.
"""


class NetUsageError(Exception):
    """Base class for all netusage errors."""


class StorageUnavailable(NetUsageError):
    """The storage engine could not be opened or initialized."""


class WriteFailed(NetUsageError):
    """A single write to storage failed."""


class QueryFailed(NetUsageError):
    """A read from storage failed."""


class CounterReadFailed(NetUsageError):
    """The platform counter probe could not be read."""


class ExportFailed(NetUsageError):
    """Export output could not be written to its destination."""
