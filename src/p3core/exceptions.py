"""
Exception hierarchy for p3core.

Configuration errors are fatal and raised before any work starts. Data errors
are raised per offending record or file so the caller can decide whether to
count-and-continue or abort.
"""


class P3CoreException(Exception):
    """Base exception for all p3core errors."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize exception with message and optional details.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# Configuration exceptions
class ConfigurationException(P3CoreException):
    """Base exception for invalid configuration."""
    pass


class InvalidParameterError(ConfigurationException):
    """Parameter value is invalid or out of range."""
    pass


class MissingFileError(ConfigurationException):
    """A required input file is missing or empty."""
    pass


# Data exceptions
class DataException(P3CoreException):
    """Base exception for bad input records or files."""
    pass


class MalformedSequenceError(DataException):
    """Sequence record cannot be used."""
    pass


class InvalidLocationError(DataException):
    """Location string cannot be parsed."""
    pass


class DatabaseNotFoundError(DataException):
    """Serialized k-mer database file not found."""
    pass


class DatabaseCorruptedError(DataException):
    """Serialized k-mer database is corrupted, truncated or of an unknown version."""
    pass
