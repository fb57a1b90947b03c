"""Configuration dataclass for k-means clustering."""

from dataclasses import dataclass, fields
from typing import Optional, Literal
import math


@dataclass
class KMeansConfig:
    """Configuration for Lloyd k-means over a signal matrix.

    The defaults reproduce the plain algorithm: stride initialization,
    absolute tolerance on the iteration error, no iteration cap, and
    empty clusters collapsing to the origin.

    Attributes:
        n_clusters: Number of clusters used when ``init`` gets no k
        tol: Default convergence tolerance for ``run``
        tolerance_mode: 'absolute' compares |E_t - E_{t-1}| with tol,
            'relative' compares it with tol * E_{t-1}
        max_iter: Optional cap on the number of passes
        empty_cluster: 'keep' leaves an empty centroid at the origin,
            'reseed' moves it to the row farthest from its own centroid
        warm_start: Re-running a finalized state starts from its centroids
        chunk_size: Rows per block in the distance computation
        check_memory: Compare the scratch estimate with available memory
        memory_headroom: Fraction of available memory the scratch may use
    """
    n_clusters: int = 8
    tol: float = 1e-4
    tolerance_mode: Literal['absolute', 'relative'] = 'absolute'
    max_iter: Optional[int] = None
    empty_cluster: Literal['keep', 'reseed'] = 'keep'
    warm_start: bool = True
    chunk_size: int = 10000
    check_memory: bool = True
    memory_headroom: float = 0.8

    def __post_init__(self):
        """Validate configuration."""
        if self.n_clusters < 1:
            raise ValueError("n_clusters must be at least 1")

        if math.isnan(self.tol) or self.tol < 0:
            raise ValueError("tol must be non-negative")

        if self.tolerance_mode not in ('absolute', 'relative'):
            raise ValueError(f"Unknown tolerance_mode: {self.tolerance_mode}")

        if self.max_iter is not None and self.max_iter < 1:
            raise ValueError("max_iter must be at least 1 when set")

        if self.empty_cluster not in ('keep', 'reseed'):
            raise ValueError(f"Unknown empty_cluster strategy: {self.empty_cluster}")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        if not 0 < self.memory_headroom <= 1:
            raise ValueError("memory_headroom must be in (0, 1]")

    @classmethod
    def from_config(cls, config=None, **overrides) -> 'KMeansConfig':
        """Create from the ``clustering`` section of the project configuration.

        Args:
            config: ``Config`` instance (the global one if omitted)
            **overrides: Field values taking precedence over the config file
        """
        if config is None:
            from sigcluster.config import config

        section = config.get('clustering', {}) or {}
        valid_keys = {f.name for f in fields(cls)}
        values = {k: v for k, v in section.items() if k in valid_keys}
        values.update(overrides)
        return cls(**values)
