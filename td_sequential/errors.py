"""
Custom exceptions for the TD Sequential engine.
"""


class TDSequentialError(Exception):
    """Base class for all exceptions in the package."""
    pass


class ConfigurationError(TDSequentialError, ValueError):
    """Raised when an engine parameter is outside its documented range."""
    pass


class DataError(TDSequentialError, ValueError):
    """Raised when an input frame cannot be turned into bars."""
    pass


class InvariantViolation(TDSequentialError):
    """A broken engine invariant.

    Never raised on the bar path. The engine records instances in
    ``TDSequential.diagnostics`` and keeps processing.
    """

    def __init__(self, message, index=None):
        super().__init__(message)
        self.index = index
