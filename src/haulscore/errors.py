"""Exception types raised by the trip store and other setup-dependent operations."""


class HaulScoreError(Exception):
    """Base class for errors surfaced to callers."""


class TripStoreError(HaulScoreError):
    """A trip could not be written to or read from the database."""


class PreconditionError(HaulScoreError):
    """An operation was invoked before the state it depends on was set up."""
