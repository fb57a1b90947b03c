# sigcluster/abstractions/types/__init__.py
"""Type definitions for the abstractions layer."""

from .matrix_types import Row, SignalMatrix, MISSING_LABEL, is_missing
from .cluster_types import ClusterStatus, KMeansResult

__all__ = [
    'Row',
    'SignalMatrix',
    'MISSING_LABEL',
    'is_missing',
    'ClusterStatus',
    'KMeansResult',
]
