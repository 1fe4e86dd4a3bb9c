class TimeClockError(Exception):
    """Base class for failures raised by the time clock core."""


class NotFound(TimeClockError):
    pass


class InvalidState(TimeClockError):
    """The status register holds a value the state machine does not know.

    Treated as data corruption: it is raised and logged, never repaired.
    """


class ValidationError(TimeClockError):
    pass
