"""Quarantine of rows containing missing values."""

import logging

import numpy as np

from sigcluster.abstractions.types import SignalMatrix, MISSING_LABEL
from sigcluster.exceptions import handle_allocation_error

logger = logging.getLogger(__name__)


class MatrixPreparer:
    """Moves rows with missing values to the front of a signal matrix.

    After ``prepare`` the matrix has two segments: a prefix of rows
    labelled -1 that may hold missing values, and a suffix of rows whose
    values are all finite. Only the suffix is ever clustered.
    """

    def count_missing(self, matrix: SignalMatrix) -> int:
        """Count rows with a missing value without touching the matrix."""
        return int(matrix.missing_mask().sum())

    @handle_allocation_error("Matrix preparation")
    def prepare(self, matrix: SignalMatrix) -> int:
        """Label missing rows -1 and partition them to the front.

        The partition is stable: rows keep their relative order within
        each segment. Labels of valid rows are left untouched.

        Args:
            matrix: Matrix to prepare in place

        Returns:
            Number of rows containing a missing value
        """
        mask = matrix.missing_mask()
        num_na = int(mask.sum())

        if num_na:
            order = np.concatenate((np.flatnonzero(mask), np.flatnonzero(~mask)))
            matrix.permute(order)
            matrix.labels[:num_na] = MISSING_LABEL

        n_rows = matrix.n_rows
        if n_rows:
            logger.info(f"Quarantined {num_na}/{n_rows} rows with missing values "
                        f"({100 * num_na / n_rows:.1f}%)")
        return num_na
