"""Type definitions for k-means clustering results and state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List
import numpy as np


class ClusterStatus(Enum):
    """Lifecycle of a cluster state."""
    INITIALIZED = "initialized"  # Matrix prepared, clustering not yet run
    FINALIZED = "finalized"      # Labels written, centroids readable
    DISPOSED = "disposed"


@dataclass
class KMeansResult:
    """Result of one Lloyd clustering call."""
    labels: np.ndarray         # Shape: (n_rows,), -1 on the missing prefix
    cluster_sizes: np.ndarray  # Shape: (k,)
    centroids: np.ndarray      # Shape: (k, n_cols)
    errors: List[float] = field(default_factory=list)  # Iteration error per pass
    n_iter: int = 0
    converged: bool = False

    @property
    def k(self) -> int:
        return len(self.cluster_sizes)

    @property
    def final_error(self) -> float:
        """Iteration error of the last pass."""
        return self.errors[-1] if self.errors else float('inf')

    @property
    def n_empty_clusters(self) -> int:
        return int((self.cluster_sizes == 0).sum())
