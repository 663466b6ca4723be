"""
Domain-specific exception hierarchy for the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for all engine-level errors."""


class ValidationError(SchedulingError, ValueError):
    """Raised when time input or a required field is malformed."""


class NotFoundError(SchedulingError, LookupError):
    """Raised when a referenced provider, fulfillment or order is absent."""


class BusinessLogicError(SchedulingError):
    """Raised for illegal transitions and unavailable or conflicting slots."""


class DuplicateError(SchedulingError):
    """Raised when a record is created under an id that already exists."""


class ConcurrentUpdateError(BusinessLogicError):
    """Raised when a compare-and-swap update finds a newer stored version."""


class ConfigError(SchedulingError, ValueError):
    """Raised when the configuration file cannot be loaded or is invalid."""
