"""Exceptions raised by sigcluster, for consistent error handling."""

import functools
from typing import Optional


class ClusteringError(Exception):
    """Base clustering error."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class PreconditionViolation(ClusteringError, ValueError):
    """Raised when inputs or parameters are out of range.

    Raised before the matrix is touched, so no partial mutation is visible.
    """
    pass


class StateError(PreconditionViolation):
    """Raised when a disposed cluster state is used."""
    pass


class ResourceExhaustion(ClusteringError, MemoryError):
    """Raised when scratch or output storage cannot be allocated."""
    pass


def handle_allocation_error(operation_name: str):
    """Decorator to surface allocation failures as ResourceExhaustion."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ResourceExhaustion:
                raise
            except MemoryError as e:
                raise ResourceExhaustion(
                    f"{operation_name} failed: out of memory", e
                ) from e
        return wrapper
    return decorator
