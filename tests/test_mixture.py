"""
Tests for the mixture module.
"""

import warnings

import numpy as np
import pytest

from scipy import stats

from postpred.exceptions import (
    EmptyDrawSetError,
    InvalidDimensionError,
    NonSimplexRowWarning,
)
from postpred.mixture import (
    assign_labels,
    check_simplex_rows,
    class_membership_probabilities,
    mean_class_probabilities,
    mixture_log_density,
)


def random_simplex_tensor(n_draws, n_obs, n_classes, seed=0):
    """Random class-probability tensor whose rows are valid simplexes."""
    return np.random.default_rng(seed).dirichlet(
        np.ones(n_classes), size=(n_draws, n_obs)
    )


class TestMeanClassProbabilities:
    """Test the mean_class_probabilities function."""

    def test_rows_sum_to_one(self):
        tensor = random_simplex_tensor(200, 15, 3)
        with warnings.catch_warnings():
            warnings.simplefilter("error", NonSimplexRowWarning)
            mean_probs = mean_class_probabilities(tensor)
        assert mean_probs.shape == (15, 3)
        np.testing.assert_allclose(mean_probs.sum(axis=1), 1.0, atol=1e-9)

    def test_matches_mean(self):
        tensor = random_simplex_tensor(10, 4, 2, seed=1)
        np.testing.assert_allclose(mean_class_probabilities(tensor), tensor.mean(axis=0))

    def test_non_simplex_rows_warn_not_renormalized(self):
        tensor = np.array([[[0.5, 0.5], [0.3, 0.3]], [[0.5, 0.5], [0.3, 0.3]]])
        with pytest.warns(NonSimplexRowWarning, match=r"\(1,\)"):
            mean_probs = mean_class_probabilities(tensor)
        np.testing.assert_allclose(mean_probs[1], [0.3, 0.3])

    def test_errors(self):
        with pytest.raises(InvalidDimensionError):
            mean_class_probabilities(np.ones((3, 2)))
        with pytest.raises(EmptyDrawSetError):
            mean_class_probabilities(np.empty((0, 2, 2)))


class TestCheckSimplexRows:
    """Test the check_simplex_rows function."""

    def test_mask(self):
        probs = np.array([[0.2, 0.8], [0.2, 0.7], [1.0, 0.0]])
        with pytest.warns(NonSimplexRowWarning, match="1 class-probability row"):
            failing = check_simplex_rows(probs)
        np.testing.assert_array_equal(failing, [False, True, False])

    def test_tolerance(self):
        probs = np.array([[0.5, 0.5 + 1e-6]])
        with pytest.warns(NonSimplexRowWarning):
            check_simplex_rows(probs)
        with warnings.catch_warnings():
            warnings.simplefilter("error", NonSimplexRowWarning)
            assert not check_simplex_rows(probs, atol=1e-3).any()


class TestAssignLabels:
    """Test the assign_labels function."""

    def test_unique_maximum(self):
        matrix = np.array([[0.1, 0.7, 0.2], [0.6, 0.3, 0.1], [0.2, 0.2, 0.6]])
        labels = assign_labels(matrix)
        np.testing.assert_array_equal(labels, [1, 0, 2])
        assert labels.dtype == np.int64

    def test_ties_go_to_lowest_index(self):
        np.testing.assert_array_equal(assign_labels([[0.5, 0.5], [0.25, 0.75]]), [0, 1])

    def test_deterministic(self):
        matrix = random_simplex_tensor(1, 50, 4)[0]
        np.testing.assert_array_equal(assign_labels(matrix), assign_labels(matrix))

    def test_errors(self):
        with pytest.raises(InvalidDimensionError):
            assign_labels([0.5, 0.5])
        with pytest.raises(InvalidDimensionError):
            assign_labels(np.empty((3, 0)))


class TestMixtureDensities:
    """Test the marginal mixture density and membership functions."""

    @pytest.fixture
    def parameters(self):
        weights = np.array([[0.3, 0.7], [0.5, 0.5]])
        locs = np.array([[-2.0, 2.0], [-1.0, 3.0]])
        scales = np.array([[1.0, 0.5], [1.0, 1.0]])
        return weights, locs, scales

    def test_log_density(self, parameters):
        weights, locs, scales = parameters
        y = np.array([-2.0, 0.0, 2.5])
        result = mixture_log_density(y, weights, locs, scales)
        assert result.shape == (2, 3)

        expected = np.log(
            weights[1, 0] * stats.norm.pdf(0.0, locs[1, 0], scales[1, 0])
            + weights[1, 1] * stats.norm.pdf(0.0, locs[1, 1], scales[1, 1])
        )
        assert result[1, 1] == pytest.approx(expected)

    def test_membership(self, parameters):
        weights, locs, scales = parameters
        y = np.array([-2.0, 0.0, 2.5])
        tensor = class_membership_probabilities(y, weights, locs, scales)
        assert tensor.shape == (2, 3, 2)
        np.testing.assert_allclose(tensor.sum(axis=-1), 1.0)

        labels = assign_labels(mean_class_probabilities(tensor))
        np.testing.assert_array_equal(labels, [0, 0, 1])

    def test_parameter_checks(self, parameters):
        weights, locs, scales = parameters
        with pytest.raises(InvalidDimensionError):
            mixture_log_density([0.0], weights, locs[:, :1], scales)
        with pytest.raises(ValueError, match="scales"):
            mixture_log_density([0.0], weights, locs, -scales)
        with pytest.raises(ValueError, match="weights"):
            mixture_log_density([0.0], -weights, locs, scales)
        with pytest.raises(EmptyDrawSetError):
            mixture_log_density([0.0], np.empty((0, 2)), np.empty((0, 2)), np.empty((0, 2)))
