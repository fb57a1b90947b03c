"""
Signal-matrix clustering package.

This package groups per-region signal profiles, aligned along a genomic
interval, into k clusters and reorders the rows so each cluster is a
contiguous block for downstream sorters and writers.
"""

__version__ = "1.0.0"
__description__ = "K-means clustering of per-region signal matrices"

from .abstractions.types import SignalMatrix, Row, KMeansResult, ClusterStatus
from .clustering import (
    KMeansConfig, MatrixPreparer, LloydClusterer, ClusterState,
    init, run, dispose
)
from .exceptions import (
    ClusteringError, PreconditionViolation, StateError, ResourceExhaustion
)

__all__ = [
    'SignalMatrix',
    'Row',
    'KMeansResult',
    'ClusterStatus',
    'KMeansConfig',
    'MatrixPreparer',
    'LloydClusterer',
    'ClusterState',
    'init',
    'run',
    'dispose',
    'ClusteringError',
    'PreconditionViolation',
    'StateError',
    'ResourceExhaustion',
]
