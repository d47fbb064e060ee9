"""Errors raised by the scheduling engine.

All of them are local and synchronous: the caller has to fix its input,
retrying the same call never helps.
"""


class SchedulerError(ValueError):
    """Base class for scheduling errors."""


class ConfigurationError(SchedulerError):
    """The scheduler parameters are internally inconsistent."""


class InvalidRatingError(SchedulerError):
    """A rating outside the values the operation accepts."""


class InvalidCardStateError(SchedulerError):
    """A card whose state or learning step cannot be scheduled."""
