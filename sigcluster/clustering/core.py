"""Core Lloyd k-means implementation for signal matrices."""

import math
import time
from typing import Optional, Tuple

import numpy as np

from sigcluster.abstractions.types import SignalMatrix, KMeansResult
from sigcluster.exceptions import PreconditionViolation, handle_allocation_error
from sigcluster.infrastructure.logging import get_logger
from .kmeans_config import KMeansConfig
from .memory import estimate_clustering_memory_mb, check_memory_available

logger = get_logger(__name__)


class LloydClusterer:
    """Lloyd k-means over the valid suffix of a prepared signal matrix.

    This implementation:
    - Seeds centroids by stride sampling, so results depend only on row order
    - Breaks distance ties towards the lowest cluster index
    - Stops when the iteration error changes by no more than the tolerance
    - Leaves rows grouped by label, each cluster a contiguous row range
    """

    def __init__(self, config: Optional[KMeansConfig] = None):
        """Initialize clusterer.

        Args:
            config: K-means configuration (defaults if omitted)
        """
        self.config = config or KMeansConfig()

    @handle_allocation_error("K-means clustering")
    def cluster(self, matrix: SignalMatrix, num_na: int, k: int,
                tolerance: Optional[float] = None,
                initial_centroids: Optional[np.ndarray] = None,
                previous_error: float = math.inf) -> KMeansResult:
        """Cluster rows ``[num_na, n)`` of ``matrix`` into k groups.

        Labels are written onto the matrix rows and the valid suffix is
        stably sorted by label before returning.

        Args:
            matrix: Prepared matrix; rows from ``num_na`` on must be finite
            num_na: Length of the missing-value prefix
            k: Number of clusters, 1 <= k <= n - num_na
            tolerance: Convergence tolerance (config default if None)
            initial_centroids: Seed centroids (k, m) instead of stride sampling
            previous_error: Error the first pass is compared against

        Returns:
            KMeansResult with labels aligned to the final row order
        """
        if tolerance is None:
            tolerance = self.config.tol
        self._validate(matrix, num_na, k, tolerance)

        n_rows, n_cols = matrix.values.shape
        n_valid = n_rows - num_na

        if n_valid == 0:
            logger.warning(f"All {n_rows} rows have missing values, nothing to cluster")
            return KMeansResult(
                labels=matrix.labels.copy(),
                cluster_sizes=np.zeros(k, dtype=np.int64),
                centroids=np.zeros((k, n_cols), dtype=np.float64),
                converged=True
            )

        if self.config.check_memory:
            check_memory_available(
                estimate_clustering_memory_mb(n_valid, n_cols, k, self.config.chunk_size),
                self.config.memory_headroom
            )

        if initial_centroids is None:
            centroids = self.initialize_centroids(matrix.values, num_na, k)
        else:
            centroids = np.array(initial_centroids, dtype=np.float64, copy=True)
            if centroids.shape != (k, n_cols):
                raise PreconditionViolation(
                    f"initial_centroids has shape {centroids.shape}, expected ({k}, {n_cols})"
                )

        logger.info(f"Running k-means: k={k}, {n_valid} rows x {n_cols} columns, "
                    f"tol={tolerance} ({self.config.tolerance_mode})")
        start_time = time.time()

        valid = matrix.values[num_na:]
        errors = []
        error = previous_error
        converged = False

        while True:
            old_error = error
            assigned, distances = self.assign(valid, centroids)
            error = float(distances.sum())
            sums, sizes = self.accumulate(valid, assigned, k)
            centroids = self.update_centroids(sums, sizes)
            errors.append(error)
            logger.debug(f"Iteration {len(errors)}: error={error:.6g}, "
                         f"empty clusters={int((sizes == 0).sum())}")

            if self._has_converged(error, old_error, tolerance):
                converged = True
                break

            if self.config.max_iter is not None and len(errors) >= self.config.max_iter:
                logger.warning(f"Stopped after max_iter={self.config.max_iter} passes "
                               f"without converging (last change {abs(error - old_error):.6g})")
                break

            if self.config.empty_cluster == 'reseed':
                self._reseed_empty_clusters(valid, centroids, sizes, distances)

        matrix.labels[num_na:] = assigned
        self.sort_by_label(matrix, num_na)

        duration = time.time() - start_time
        if converged:
            logger.info(f"Converged after {len(errors)} iterations, error={error:.6g}")
        logger.log_performance('kmeans', duration,
                               items_processed=n_valid,
                               iterations=len(errors),
                               converged=converged)

        return KMeansResult(
            labels=matrix.labels.copy(),
            cluster_sizes=sizes,
            centroids=centroids,
            errors=errors,
            n_iter=len(errors),
            converged=converged
        )

    def _validate(self, matrix: SignalMatrix, num_na: int, k: int, tolerance: float):
        n_rows, n_cols = matrix.values.shape

        if n_rows == 0:
            raise PreconditionViolation("Cannot cluster an empty matrix")
        if n_cols == 0:
            raise PreconditionViolation("Cannot cluster zero-width rows")
        if not 0 <= num_na <= n_rows:
            raise PreconditionViolation(f"num_na={num_na} out of range for {n_rows} rows")
        if math.isnan(tolerance) or tolerance < 0:
            raise PreconditionViolation(f"tolerance must be non-negative, got {tolerance}")

        n_valid = n_rows - num_na
        if k < 1 or (n_valid > 0 and k > n_valid):
            raise PreconditionViolation(
                f"k={k} out of range: need 1 <= k <= {n_valid} valid rows"
            )

    def initialize_centroids(self, values: np.ndarray, num_na: int, k: int) -> np.ndarray:
        """Pick k seed centroids at equally spaced rows of the valid suffix.

        Centroid i is a copy of row ``num_na + floor(i * n_valid / k)``.
        """
        n_valid = values.shape[0] - num_na
        indices = num_na + (np.arange(k, dtype=np.int64) * n_valid) // k
        return values[indices].copy()

    def assign(self, valid: np.ndarray, centroids: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Assign each row to its nearest centroid by squared Euclidean distance.

        Rows are processed in blocks of ``chunk_size`` to bound the size of
        the broadcast difference array. On exact ties the lowest cluster
        index wins.

        Returns:
            labels: Cluster index per row
            distances: Squared distance of each row to its centroid
        """
        n_valid = valid.shape[0]
        labels = np.empty(n_valid, dtype=np.int64)
        distances = np.empty(n_valid, dtype=np.float64)
        chunk_size = self.config.chunk_size

        for start in range(0, n_valid, chunk_size):
            stop = min(start + chunk_size, n_valid)
            diff = valid[start:stop, None, :] - centroids[None, :, :]
            block = np.einsum('ijk,ijk->ij', diff, diff)
            # argmin returns the first minimizer
            best = np.argmin(block, axis=1)
            labels[start:stop] = best
            distances[start:stop] = block[np.arange(stop - start), best]

        return labels, distances

    def accumulate(self, valid: np.ndarray, labels: np.ndarray,
                   k: int) -> Tuple[np.ndarray, np.ndarray]:
        """Per-cluster coordinate sums and member counts."""
        sizes = np.bincount(labels, minlength=k).astype(np.int64)
        sums = np.zeros((k, valid.shape[1]), dtype=np.float64)
        np.add.at(sums, labels, valid)
        return sums, sizes

    def update_centroids(self, sums: np.ndarray, sizes: np.ndarray) -> np.ndarray:
        """Mean of each cluster; an empty cluster keeps its zero sum."""
        centroids = sums.copy()
        nonempty = sizes > 0
        centroids[nonempty] /= sizes[nonempty, None]
        return centroids

    def _reseed_empty_clusters(self, valid: np.ndarray, centroids: np.ndarray,
                               sizes: np.ndarray, distances: np.ndarray):
        """Move each empty centroid onto the row farthest from its own centroid."""
        empty = np.flatnonzero(sizes == 0)
        if len(empty) == 0:
            return

        # Farthest rows first; each row seeds at most one cluster
        candidates = np.argsort(-distances, kind='stable')
        for cluster, row in zip(empty, candidates):
            centroids[cluster] = valid[row]
            logger.debug(f"Reseeded empty cluster {cluster} from row {row} "
                         f"(distance {distances[row]:.6g})")

    def _has_converged(self, error: float, old_error: float, tolerance: float) -> bool:
        if error == old_error:
            return True
        delta = abs(error - old_error)
        if self.config.tolerance_mode == 'relative':
            if not math.isfinite(old_error):
                return False
            return delta <= tolerance * abs(old_error)
        return delta <= tolerance

    def sort_by_label(self, matrix: SignalMatrix, num_na: int):
        """Stably sort the valid suffix by label so clusters are contiguous."""
        suffix_order = np.argsort(matrix.labels[num_na:], kind='stable')
        order = np.concatenate((np.arange(num_na), num_na + suffix_order))
        matrix.permute(order)
