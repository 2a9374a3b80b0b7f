"""Domain-specific exceptions for the budget calendar core."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class InvalidRecurrence(ValidationError):
    """Raised when a budget item's recurrence cannot be expanded."""


class InvalidRange(ValidationError):
    """Raised when a date range is reversed or its bounds are not dates."""


class RecordNotFoundError(LookupError):
    """Raised when a transaction or budget item cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""
