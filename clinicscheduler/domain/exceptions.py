"""
Domain-specific exception hierarchy for the clinic scheduler.

Booking conflicts are not exceptions: booking operations report them by
returning False. These classes cover failures the caller cannot retry away
by picking another slot.
"""


class SchedulerError(Exception):
    """Base class for all application-level errors."""


class PersistenceError(SchedulerError):
    """Raised when scheduler state cannot be saved, read or rebuilt."""
