class InvalidInputError(ValueError):
    """Raised when a track cannot be simplified as given (empty, bad tolerance, bad coordinates)."""


class OptimizationCancelled(Exception):
    """Raised when a cancellation request is observed; no partial result is produced."""
