"""Tests for the Lloyd k-means core."""

import importlib
import math

import numpy as np
import pytest

from sigcluster.abstractions.types import SignalMatrix, MISSING_LABEL
from sigcluster.clustering import KMeansConfig, LloydClusterer, MatrixPreparer
from sigcluster.exceptions import PreconditionViolation, ResourceExhaustion


def _cluster(matrix, k, config, tolerance=1e-6, **kwargs):
    num_na = MatrixPreparer().prepare(matrix)
    result = LloydClusterer(config).cluster(matrix, num_na, k, tolerance=tolerance, **kwargs)
    return num_na, result


def _assert_invariants(matrix, num_na, result, k):
    valid_labels = matrix.labels[num_na:]
    assert np.all(matrix.labels[:num_na] == MISSING_LABEL)
    assert np.all((valid_labels >= 0) & (valid_labels < k))
    assert np.all(np.diff(valid_labels) >= 0)
    assert result.cluster_sizes.sum() == matrix.n_rows - num_na
    for cluster in range(k):
        members = matrix.values[num_na:][valid_labels == cluster]
        if len(members):
            np.testing.assert_allclose(result.centroids[cluster], members.mean(axis=0))


class TestLloydScenarios:
    """End-to-end clustering of small known inputs."""

    def test_two_obvious_clusters(self, two_cluster_matrix, config):
        num_na, result = _cluster(two_cluster_matrix, 2, config)

        assert num_na == 0
        assert list(two_cluster_matrix.labels) == [0, 0, 1, 1]
        assert list(result.cluster_sizes) == [2, 2]
        np.testing.assert_allclose(sorted(result.centroids[:, 0]), [0.05, 10.05])
        assert result.converged
        assert result.n_iter == 3
        _assert_invariants(two_cluster_matrix, num_na, result, 2)

    def test_nan_row_quarantined(self, matrix_with_nan, config):
        num_na, result = _cluster(matrix_with_nan, 1, config)

        assert num_na == 1
        assert matrix_with_nan.names[0] == 'b'
        assert list(matrix_with_nan.labels) == [-1, 0, 0]
        np.testing.assert_allclose(result.centroids, [[1.05, 2.05]])
        assert list(result.cluster_sizes) == [2]
        _assert_invariants(matrix_with_nan, num_na, result, 1)

    def test_k_equals_valid_rows(self, config):
        matrix = SignalMatrix.from_rows([[1.0], [2.0], [3.0]])
        num_na, result = _cluster(matrix, 3, config)

        assert list(result.cluster_sizes) == [1, 1, 1]
        np.testing.assert_allclose(result.centroids[:, 0], [1.0, 2.0, 3.0])
        assert result.final_error == 0.0

    def test_empty_cluster_tolerated(self, config):
        matrix = SignalMatrix.from_rows([[0.0]] * 5)
        num_na, result = _cluster(matrix, 3, config)

        assert result.cluster_sizes.sum() == 5
        assert (result.cluster_sizes > 0).sum() <= 1
        assert result.n_empty_clusters == 2
        for cluster in np.flatnonzero(result.cluster_sizes == 0):
            np.testing.assert_array_equal(result.centroids[cluster], [0.0])

    def test_tie_break_lowest_index(self, config):
        matrix = SignalMatrix.from_rows([[0.0], [0.0]])
        num_na, result = _cluster(matrix, 2, config)

        assert list(matrix.labels) == [0, 0]
        assert list(result.cluster_sizes) == [2, 0]

    def test_convergence_on_random_input(self, blob_values):
        matrix = SignalMatrix(blob_values.copy())
        config = KMeansConfig(check_memory=False, tol=1e-4)
        num_na, result = _cluster(matrix, 5, config, tolerance=1e-4)

        assert result.converged
        assert result.n_iter <= 300
        errors = np.array(result.errors)
        assert np.all(np.diff(errors) <= 1e-9 * errors[0])
        _assert_invariants(matrix, num_na, result, 5)


class TestLloydSteps:
    """Individual steps of the iteration."""

    def test_stride_initialization(self):
        values = np.arange(10, dtype=float).reshape(10, 1)
        centroids = LloydClusterer().initialize_centroids(values, 2, 3)
        # rows 2 + floor(i * 8 / 3) for i = 0, 1, 2
        np.testing.assert_array_equal(centroids[:, 0], [2.0, 4.0, 7.0])

    def test_initialization_copies_rows(self):
        values = np.zeros((4, 2))
        centroids = LloydClusterer().initialize_centroids(values, 0, 2)
        centroids[0, 0] = 99.0
        assert values[0, 0] == 0.0

    def test_assign_tie_goes_to_lowest_index(self, config):
        valid = np.array([[5.0], [1.0], [9.0]])
        centroids = np.array([[0.0], [10.0]])
        labels, distances = LloydClusterer(config).assign(valid, centroids)

        assert list(labels) == [0, 0, 1]
        np.testing.assert_allclose(distances, [25.0, 1.0, 1.0])

    def test_chunked_assign_matches_single_block(self, blob_values):
        centroids = blob_values[:5].copy()
        whole = LloydClusterer(KMeansConfig(check_memory=False)).assign(blob_values, centroids)
        chunked = LloydClusterer(KMeansConfig(check_memory=False, chunk_size=7)).assign(
            blob_values, centroids)

        np.testing.assert_array_equal(whole[0], chunked[0])
        np.testing.assert_allclose(whole[1], chunked[1])

    def test_accumulate_and_update(self):
        valid = np.array([[1.0, 2.0], [3.0, 4.0], [10.0, 10.0]])
        labels = np.array([0, 0, 2])
        clusterer = LloydClusterer()

        sums, sizes = clusterer.accumulate(valid, labels, 3)
        assert list(sizes) == [2, 0, 1]
        np.testing.assert_array_equal(sums, [[4.0, 6.0], [0.0, 0.0], [10.0, 10.0]])

        centroids = clusterer.update_centroids(sums, sizes)
        np.testing.assert_array_equal(centroids, [[2.0, 3.0], [0.0, 0.0], [10.0, 10.0]])

    def test_sort_by_label_is_stable(self):
        matrix = SignalMatrix.from_rows([[0.0], [1.0], [2.0], [3.0], [4.0]],
                                        names=['na', 'a', 'b', 'c', 'd'])
        matrix.labels[:] = [MISSING_LABEL, 1, 0, 1, 0]

        LloydClusterer().sort_by_label(matrix, 1)

        assert list(matrix.names) == ['na', 'b', 'd', 'a', 'c']
        assert list(matrix.labels) == [-1, 0, 0, 1, 1]
        assert list(matrix.values[:, 0]) == [0.0, 2.0, 4.0, 1.0, 3.0]


class TestStoppingRules:
    """Tolerance modes and the iteration cap."""

    def test_absolute_tolerance(self):
        clusterer = LloydClusterer(KMeansConfig(tol=0.5))
        assert clusterer._has_converged(10.0, 10.4, 0.5)
        assert not clusterer._has_converged(10.0, 11.0, 0.5)
        assert not clusterer._has_converged(10.0, math.inf, 0.5)

    def test_equal_errors_converge(self):
        clusterer = LloydClusterer()
        assert clusterer._has_converged(0.0, 0.0, 0.0)
        assert clusterer._has_converged(math.inf, math.inf, 0.0)

    def test_relative_tolerance(self):
        clusterer = LloydClusterer(KMeansConfig(tolerance_mode='relative'))
        assert clusterer._has_converged(95.0, 100.0, 0.1)
        assert not clusterer._has_converged(80.0, 100.0, 0.1)
        assert not clusterer._has_converged(5.0, math.inf, 0.1)

    def test_relative_tolerance_end_to_end(self, two_cluster_matrix):
        config = KMeansConfig(check_memory=False, tolerance_mode='relative')
        num_na, result = _cluster(two_cluster_matrix, 2, config, tolerance=0.01)

        assert result.converged
        assert list(result.cluster_sizes) == [2, 2]

    def test_max_iter_caps_passes(self, blob_values):
        matrix = SignalMatrix(blob_values.copy())
        config = KMeansConfig(check_memory=False, max_iter=1)
        num_na, result = _cluster(matrix, 5, config, tolerance=0.0)

        assert result.n_iter == 1
        assert not result.converged
        _assert_invariants(matrix, num_na, result, 5)


class TestEmptyClusterReseed:
    """Optional reseeding of empty clusters."""

    def test_reseed_uses_farthest_row(self):
        clusterer = LloydClusterer(KMeansConfig(empty_cluster='reseed'))
        valid = np.array([[1.0], [2.0], [7.0]])
        centroids = np.array([[1.0], [0.0], [0.0]])
        sizes = np.array([3, 0, 0])
        distances = np.array([0.0, 1.0, 36.0])

        clusterer._reseed_empty_clusters(valid, centroids, sizes, distances)

        np.testing.assert_array_equal(centroids[:, 0], [1.0, 7.0, 2.0])

    def test_reseed_leaves_full_clusters_alone(self):
        clusterer = LloydClusterer(KMeansConfig(empty_cluster='reseed'))
        centroids = np.array([[1.0], [2.0]])
        clusterer._reseed_empty_clusters(np.array([[1.0], [2.0]]), centroids,
                                         np.array([1, 1]), np.array([0.0, 0.0]))
        np.testing.assert_array_equal(centroids[:, 0], [1.0, 2.0])

    def test_reseed_end_to_end(self, config):
        matrix = SignalMatrix.from_rows([[0.0], [0.0], [0.0], [10.0]])
        config = KMeansConfig(check_memory=False, empty_cluster='reseed')
        num_na, result = _cluster(matrix, 3, config)

        assert result.converged
        _assert_invariants(matrix, num_na, result, 3)
        outlier_label = matrix.labels[matrix.values[:, 0] == 10.0][0]
        assert result.cluster_sizes[outlier_label] == 1


class TestPreconditions:
    """Inputs rejected before any mutation."""

    @pytest.mark.parametrize('k', [0, 5])
    def test_k_out_of_range(self, two_cluster_matrix, config, k):
        with pytest.raises(PreconditionViolation):
            LloydClusterer(config).cluster(two_cluster_matrix, 0, k)
        assert list(two_cluster_matrix.labels) == [0, 0, 0, 0]

    def test_empty_matrix(self, config):
        with pytest.raises(PreconditionViolation):
            LloydClusterer(config).cluster(SignalMatrix(np.empty((0, 3))), 0, 1)

    def test_zero_width_rows(self, config):
        with pytest.raises(PreconditionViolation):
            LloydClusterer(config).cluster(SignalMatrix(np.empty((3, 0))), 0, 1)

    def test_negative_tolerance(self, two_cluster_matrix, config):
        with pytest.raises(PreconditionViolation):
            LloydClusterer(config).cluster(two_cluster_matrix, 0, 2, tolerance=-1.0)

    def test_num_na_out_of_range(self, two_cluster_matrix, config):
        with pytest.raises(PreconditionViolation):
            LloydClusterer(config).cluster(two_cluster_matrix, 5, 1)

    def test_initial_centroids_shape(self, two_cluster_matrix, config):
        with pytest.raises(PreconditionViolation):
            LloydClusterer(config).cluster(two_cluster_matrix, 0, 2,
                                           initial_centroids=np.zeros((3, 1)))

    def test_precondition_is_value_error(self, two_cluster_matrix, config):
        with pytest.raises(ValueError):
            LloydClusterer(config).cluster(two_cluster_matrix, 0, 0)


class TestResources:
    """Memory pre-check and the all-missing short-circuit."""

    def test_memory_check_failure(self, two_cluster_matrix, monkeypatch):
        monkeypatch.setattr('sigcluster.clustering.memory.available_memory_mb', lambda: 1e-6)
        clusterer = LloydClusterer(KMeansConfig(check_memory=True))

        with pytest.raises(ResourceExhaustion):
            clusterer.cluster(two_cluster_matrix, 0, 2)
        assert list(two_cluster_matrix.labels) == [0, 0, 0, 0]

    def test_memory_error_becomes_resource_exhaustion(self, two_cluster_matrix, config,
                                                      monkeypatch):
        def fail(*args, **kwargs):
            raise MemoryError()

        clusterer = LloydClusterer(config)
        monkeypatch.setattr(clusterer, 'assign', fail)

        with pytest.raises(ResourceExhaustion) as exc_info:
            clusterer.cluster(two_cluster_matrix, 0, 2)
        assert isinstance(exc_info.value.original_exception, MemoryError)

    def test_all_rows_missing(self, config):
        matrix = SignalMatrix.from_rows([[np.nan], [np.inf]])
        num_na, result = _cluster(matrix, 1, config)

        assert num_na == 2
        assert list(matrix.labels) == [-1, -1]
        assert list(result.cluster_sizes) == [0]
        np.testing.assert_array_equal(result.centroids, [[0.0]])
        assert result.n_iter == 0
        assert result.final_error == math.inf


class TestModuleSurface:
    """Names the core module exposes."""

    def test_core_imports_only_what_it_uses(self):
        core = importlib.import_module('sigcluster.clustering.core')
        assert not hasattr(core, 'MISSING_LABEL')
        assert core.LloydClusterer is LloydClusterer
