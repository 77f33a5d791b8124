class SchedulerError(Exception):
    """Base class for errors raised by the scheduling engine and its collaborators."""


class DataSourceError(SchedulerError):
    """A booking source could not deliver its data."""
