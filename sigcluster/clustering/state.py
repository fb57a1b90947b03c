"""Cluster state lifecycle: init, run and dispose over a caller-owned matrix."""

import math
from typing import Optional, List

import numpy as np

from sigcluster.abstractions.types import SignalMatrix, ClusterStatus, KMeansResult
from sigcluster.exceptions import PreconditionViolation, StateError
from sigcluster.infrastructure.logging import get_logger, LoggingContext, log_operation
from .kmeans_config import KMeansConfig
from .preparer import MatrixPreparer
from .core import LloydClusterer

logger = get_logger(__name__)


class ClusterState:
    """Clustering parameters and results bound to one signal matrix.

    The matrix stays owned by the caller; the state only borrows it and
    mutates labels and row order. ``cluster_sizes`` and ``centroids`` are
    readable once the state is finalized and are released by ``dispose``.

    Example:
        with ClusterState.from_matrix(matrix, k=4) as state:
            state.run(tolerance=1e-4)
            centroids = state.centroids
    """

    def __init__(self, matrix: SignalMatrix, k: int, num_na: int,
                 config: KMeansConfig, logging_context: LoggingContext):
        self.matrix = matrix
        self.k = k
        self.n = matrix.n_rows
        self.m = matrix.n_cols
        self.num_na = num_na
        self.config = config
        self.logging_context = logging_context

        # These will be set by run
        self.cluster_sizes: Optional[np.ndarray] = None
        self.centroids: Optional[np.ndarray] = None
        self.errors: List[float] = []
        self.n_iter = 0
        self.converged = False
        self.status = ClusterStatus.INITIALIZED

    @classmethod
    def from_matrix(cls, matrix: SignalMatrix, k: Optional[int] = None,
                    config: Optional[KMeansConfig] = None) -> 'ClusterState':
        """Validate k, quarantine missing rows and wrap the matrix.

        Args:
            matrix: Caller-owned matrix, reordered in place
            k: Number of clusters (``config.n_clusters`` if None)
            config: K-means configuration (project config if None)

        Raises:
            PreconditionViolation: k out of range, empty matrix or zero-width rows
        """
        if config is None:
            config = KMeansConfig.from_config()
        if k is None:
            k = config.n_clusters

        if matrix.n_rows == 0:
            raise PreconditionViolation("Cannot cluster an empty matrix")
        if matrix.n_cols == 0:
            raise PreconditionViolation("Cannot cluster zero-width rows")

        preparer = MatrixPreparer()
        n_valid = matrix.n_rows - preparer.count_missing(matrix)
        if k < 1 or (n_valid > 0 and k > n_valid):
            raise PreconditionViolation(
                f"k={k} out of range: need 1 <= k <= {n_valid} valid rows"
            )

        context = LoggingContext()
        with context.stage('prepare', n_rows=matrix.n_rows, n_cols=matrix.n_cols):
            num_na = preparer.prepare(matrix)

        return cls(matrix, k, num_na, config, context)

    @property
    def is_finalized(self) -> bool:
        return self.status is ClusterStatus.FINALIZED

    def _require_live(self, operation: str):
        if self.status is ClusterStatus.DISPOSED:
            raise StateError(f"Cannot {operation} a disposed cluster state")

    def run(self, tolerance: Optional[float] = None) -> KMeansResult:
        """Cluster the valid rows and leave the matrix grouped by label.

        A finalized state with ``warm_start`` restarts from its centroids
        and compares the first pass against the previous final error.

        Args:
            tolerance: Convergence tolerance (``config.tol`` if None)

        Returns:
            KMeansResult of this run
        """
        self._require_live("run")
        if tolerance is None:
            tolerance = self.config.tol

        initial_centroids = None
        previous_error = math.inf
        if self.is_finalized and self.config.warm_start and self.centroids is not None:
            initial_centroids = self.centroids
            previous_error = self.errors[-1] if self.errors else math.inf
            logger.debug("Warm start from previous centroids")

        clusterer = LloydClusterer(self.config)
        with self.logging_context.stage('cluster', k=self.k, n_valid=self.n - self.num_na):
            result = clusterer.cluster(
                self.matrix, self.num_na, self.k,
                tolerance=tolerance,
                initial_centroids=initial_centroids,
                previous_error=previous_error
            )

        self.cluster_sizes = result.cluster_sizes
        self.centroids = result.centroids
        self.errors = result.errors
        self.n_iter = result.n_iter
        self.converged = result.converged
        self.status = ClusterStatus.FINALIZED
        return result

    def dispose(self):
        """Release centroids, sizes and the matrix reference."""
        if self.status is ClusterStatus.DISPOSED:
            return
        self.cluster_sizes = None
        self.centroids = None
        self.errors = []
        self.matrix = None
        self.status = ClusterStatus.DISPOSED
        logger.debug("Cluster state disposed")

    def summary(self) -> dict:
        """Counts and convergence details of the current state."""
        self._require_live("summarize")
        return {
            'k': self.k,
            'n_rows': self.n,
            'n_cols': self.m,
            'num_na': self.num_na,
            'status': self.status.value,
            'cluster_sizes': None if self.cluster_sizes is None else self.cluster_sizes.tolist(),
            'n_iter': self.n_iter,
            'converged': self.converged,
            'final_error': self.errors[-1] if self.errors else None,
        }

    def __enter__(self) -> 'ClusterState':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False


@log_operation("init_cluster_state", log_args=True)
def init(matrix: SignalMatrix, k: Optional[int] = None,
         config: Optional[KMeansConfig] = None) -> ClusterState:
    """Wrap ``matrix`` for clustering into k groups and quarantine missing rows."""
    return ClusterState.from_matrix(matrix, k, config)


def run(state: ClusterState, tolerance: Optional[float] = None) -> KMeansResult:
    """Cluster and reorder the state's matrix; see ``ClusterState.run``."""
    return state.run(tolerance)


def dispose(state: ClusterState):
    """Release the state's centroids, sizes and matrix reference."""
    state.dispose()
