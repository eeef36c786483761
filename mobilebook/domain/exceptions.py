"""
Domain-specific exception hierarchy for the mobilebook scheduling engine.
"""


class MobileBookError(Exception):
    """Base class for all application-level errors."""


class InvalidConfigurationError(MobileBookError):
    """Raised when working hours or provider settings are malformed."""


class InvalidRequestError(MobileBookError):
    """Raised for non-positive durations, malformed time strings and similar input errors."""


class InvalidScheduleError(MobileBookError):
    """Raised when a computed time would leave the single scheduling day."""


class TravelEstimationError(MobileBookError):
    """Raised by oracle adapters when travel data cannot be fetched or parsed."""
