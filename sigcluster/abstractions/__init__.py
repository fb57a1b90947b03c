"""Abstractions layer - pure data types with no clustering dependencies."""

# Re-export key types for convenience
from .types import (
    Row, SignalMatrix, MISSING_LABEL, is_missing,
    ClusterStatus, KMeansResult
)

__all__ = [
    'Row',
    'SignalMatrix',
    'MISSING_LABEL',
    'is_missing',
    'ClusterStatus',
    'KMeansResult',
]
