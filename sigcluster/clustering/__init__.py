"""K-means clustering for per-region signal matrices.

This module implements Lloyd k-means with deterministic stride
initialization over matrices whose rows may contain missing values.
"""

from .kmeans_config import KMeansConfig
from .preparer import MatrixPreparer
from .core import LloydClusterer
from .state import ClusterState, init, run, dispose

__all__ = [
    'KMeansConfig',
    'MatrixPreparer',
    'LloydClusterer',
    'ClusterState',
    'init',
    'run',
    'dispose',
]
