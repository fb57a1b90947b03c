"""Shared fixtures for sigcluster tests."""

import os

# Keep discovered config files out of the tests
os.environ.setdefault('SIGCLUSTER_TEST_MODE', 'true')

import numpy as np
import pytest

from sigcluster.abstractions.types import SignalMatrix
from sigcluster.clustering import KMeansConfig


@pytest.fixture
def config():
    """Default k-means configuration without the memory pre-check."""
    return KMeansConfig(check_memory=False)


@pytest.fixture
def two_cluster_matrix():
    """Four 1-D rows forming two obvious groups."""
    return SignalMatrix.from_rows(
        [[0.0], [0.1], [10.0], [10.1]],
        names=['r0', 'r1', 'r2', 'r3']
    )


@pytest.fixture
def matrix_with_nan():
    """Three 2-D rows, the middle one carrying a NaN."""
    return SignalMatrix.from_rows(
        [[1.0, 2.0], [np.nan, 3.0], [1.1, 2.1]],
        names=['a', 'b', 'c']
    )


@pytest.fixture
def blob_values():
    """Synthetic signal profiles: 1000 rows x 10 positions around 5 centres."""
    rng = np.random.default_rng(42)
    centres = rng.uniform(-20, 20, size=(5, 10))
    membership = rng.integers(0, 5, size=1000)
    return centres[membership] + rng.normal(0, 1.0, size=(1000, 10))
