"""Memory checks for clustering scratch storage."""

import logging

import numpy as np
import psutil

from sigcluster.exceptions import ResourceExhaustion

logger = logging.getLogger(__name__)

_FLOAT_BYTES = np.dtype(np.float64).itemsize
_INT_BYTES = np.dtype(np.int64).itemsize


def estimate_clustering_memory_mb(n_valid: int, n_cols: int, k: int,
                                  chunk_size: int) -> float:
    """Estimate peak scratch memory of one clustering call in MB.

    Counts the broadcast distance block, the per-row labels and
    distances, and the centroid/accumulator pair.
    """
    block_rows = min(n_valid, chunk_size)
    distance_block = block_rows * k * n_cols * _FLOAT_BYTES
    distance_matrix = block_rows * k * _FLOAT_BYTES
    per_row = n_valid * (_INT_BYTES + _FLOAT_BYTES)
    centroids = 2 * k * n_cols * _FLOAT_BYTES + k * _INT_BYTES
    return (distance_block + distance_matrix + per_row + centroids) / (1024 * 1024)


def available_memory_mb() -> float:
    return psutil.virtual_memory().available / (1024 * 1024)


def check_memory_available(required_mb: float, headroom: float = 0.8) -> float:
    """Raise ResourceExhaustion when the estimate exceeds usable memory.

    Args:
        required_mb: Estimated requirement in MB
        headroom: Fraction of available memory that may be used

    Returns:
        Available memory in MB at the time of the check
    """
    available_mb = available_memory_mb()
    usable_mb = available_mb * headroom

    if required_mb > usable_mb:
        raise ResourceExhaustion(
            f"Clustering needs ~{required_mb:.1f}MB scratch but only "
            f"{usable_mb:.1f}MB of {available_mb:.1f}MB available may be used"
        )

    logger.debug(f"Memory check passed: {required_mb:.1f}MB of {usable_mb:.1f}MB usable")
    return available_mb
