"""Exceptions raised by the sleepsync core."""


class SleepSyncError(Exception):
    """Base class for all sleepsync errors."""


class InvalidInput(SleepSyncError, ValueError):
    """A field required by the requested computation is missing or malformed."""


class InvalidState(SleepSyncError, RuntimeError):
    """An operation was invoked while its preconditions did not hold."""
