"""Error types for the reading tracker.

Data errors are recovered at component boundaries and handed back to the
caller as values (``last_error``, ``OffloadResponse``) rather than being
raised into the reading path.
"""


class ReadingTrackerError(Exception):
    """Base error for reading tracker operations."""

    pass


class PersistenceError(ReadingTrackerError):
    """Reading the event log from storage or writing to it failed."""

    def __init__(self, message: str, operation: str = "write"):
        super().__init__(message)
        self.operation = operation


class InitializationNotReady(ReadingTrackerError):
    """A read was requested before the store finished its startup load."""

    pass


class OffloadUnavailable(ReadingTrackerError):
    """The analytics worker process could not be created or reached."""

    pass


class AnalyticsError(ReadingTrackerError):
    """An analytics function failed inside the worker."""

    def __init__(self, function: str, message: str):
        super().__init__(f"{function}: {message}")
        self.function = function
