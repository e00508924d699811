# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Class assignment for Gaussian mixture models.

Mixture models are fit in their marginalized form: the discrete class label of
each observation is summed out of the likelihood, and the posterior probability
of every class is recovered per draw, either as a generated quantity of the Stan
program or with :py:func:`class_membership_probabilities` from the mixture
parameter draws.

The resulting ``[draw, observation, class]`` tensor is reduced to one hard label
per observation by averaging over draws (:py:func:`mean_class_probabilities`) and
taking the most probable class (:py:func:`assign_labels`).

Example:
    >>> tensor = draws.quantity("class_probs")
    >>> labels = assign_labels(mean_class_probabilities(tensor))
"""

from __future__ import annotations

import warnings

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from scipy import stats
from scipy.special import logsumexp

from postpred import utils
from postpred.defaults import DEFAULT_SIMPLEX_ATOL
from postpred.exceptions import (
    EmptyDrawSetError,
    InvalidDimensionError,
    NonSimplexRowWarning,
)

if TYPE_CHECKING:
    from postpred import custom_types


def check_simplex_rows(
    probabilities: npt.NDArray[np.floating],
    atol: "custom_types.Float" = DEFAULT_SIMPLEX_ATOL,
) -> npt.NDArray[np.bool_]:
    """Flag rows of a probability matrix that do not sum to one.

    A :py:class:`~postpred.exceptions.NonSimplexRowWarning` naming the offending
    rows is emitted when any are found. Rows are not renormalized.

    :param probabilities: Array whose last axis indexes classes
    :type probabilities: npt.NDArray[np.floating]
    :param atol: Absolute tolerance on the row sums. Defaults to 1e-9.
    :type atol: custom_types.Float

    :returns: Boolean array over the leading axes, True where a row fails
    :rtype: npt.NDArray[np.bool_]
    """
    failing = np.abs(probabilities.sum(axis=-1) - 1.0) > atol
    if np.any(failing):
        bad_rows = [tuple(int(i) for i in ind) for ind in np.argwhere(failing)]
        shown = ", ".join(map(str, bad_rows[:10]))
        warnings.warn(
            f"{len(bad_rows)} class-probability row(s) do not sum to 1 within "
            f"{atol:g}: {shown}{', ...' if len(bad_rows) > 10 else ''}",
            NonSimplexRowWarning,
        )
    return failing


def mean_class_probabilities(
    tensor: "custom_types.VectorLike",
    atol: "custom_types.Float" = DEFAULT_SIMPLEX_ATOL,
) -> npt.NDArray[np.float64]:
    """Average a ``[draw, observation, class]`` tensor over draws.

    :param tensor: Per-draw class-membership probabilities
    :type tensor: custom_types.VectorLike
    :param atol: Tolerance for the row-sum check. Defaults to 1e-9.
    :type atol: custom_types.Float

    :returns: Matrix of shape ``[observation, class]``. Rows that do not sum to
        one within `atol` trigger a NonSimplexRowWarning and are returned as is.
    :rtype: npt.NDArray[np.float64]

    :raises InvalidDimensionError: If the tensor is not 3-D
    :raises EmptyDrawSetError: If the draw axis is empty
    """
    tensor = utils.as_float_array(tensor, "tensor", 3)
    if tensor.shape[0] == 0:
        raise EmptyDrawSetError("The class-probability tensor has no draws.")

    mean_probs = tensor.mean(axis=0)
    check_simplex_rows(mean_probs, atol=atol)
    return mean_probs


def assign_labels(
    mean_prob_matrix: "custom_types.VectorLike",
) -> npt.NDArray[np.int64]:
    """Most probable class of every observation.

    Ties go to the lowest class index.

    :param mean_prob_matrix: Class probabilities of shape ``[observation, class]``
    :type mean_prob_matrix: custom_types.VectorLike

    :returns: One class index per observation
    :rtype: npt.NDArray[np.int64]

    :raises InvalidDimensionError: If the matrix is not 2-D or has no classes
    """
    matrix = utils.as_float_array(mean_prob_matrix, "mean_prob_matrix", 2)
    if matrix.shape[1] == 0:
        raise InvalidDimensionError("The class-probability matrix has no classes.")

    # `argmax` returns the first occurrence of the maximum
    return np.argmax(matrix, axis=1).astype(np.int64)


def _mixture_parameters(
    weights, locs, scales
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Validate per-draw mixture parameters, each ``(n_draws, n_classes)``."""
    weights = utils.as_float_array(weights, "weights", 2)
    locs = utils.as_float_array(locs, "locs", 2)
    scales = utils.as_float_array(scales, "scales", 2)

    if not weights.shape == locs.shape == scales.shape:
        raise InvalidDimensionError(
            "Mixture weights, locations, and scales must share a shape. Got "
            f"{weights.shape}, {locs.shape}, and {scales.shape}."
        )
    if weights.shape[0] == 0:
        raise EmptyDrawSetError("No mixture parameter draws were provided.")
    if np.any(weights < 0):
        raise ValueError("Mixture weights must be non-negative.")
    if np.any(scales <= 0):
        raise ValueError("Mixture scales must be positive.")
    check_simplex_rows(weights)

    return weights, locs, scales


def _joint_log_density(y, weights, locs, scales) -> npt.NDArray[np.float64]:
    """``log w_k + log N(y_n | mu_k, sigma_k)`` with shape ``[draw, obs, class]``."""
    y = utils.as_float_array(y, "y", 1)
    weights, locs, scales = _mixture_parameters(weights, locs, scales)
    with np.errstate(divide="ignore"):
        log_weights = np.log(weights)
    return log_weights[:, None, :] + stats.norm.logpdf(
        y[None, :, None], loc=locs[:, None, :], scale=scales[:, None, :]
    )


def mixture_log_density(
    y: "custom_types.VectorLike",
    weights: "custom_types.DrawsLike",
    locs: "custom_types.DrawsLike",
    scales: "custom_types.DrawsLike",
) -> npt.NDArray[np.float64]:
    """Marginal log density of every observation under every draw.

    The class label is summed out:
    ``log p(y_n) = logsumexp_k(log w_k + log N(y_n | mu_k, sigma_k))``.

    :param y: Observations
    :type y: custom_types.VectorLike
    :param weights: Mixture weights, ``(n_draws, n_classes)``
    :type weights: custom_types.DrawsLike
    :param locs: Component means, ``(n_draws, n_classes)``
    :type locs: custom_types.DrawsLike
    :param scales: Component standard deviations, ``(n_draws, n_classes)``
    :type scales: custom_types.DrawsLike

    :returns: Array of shape ``(n_draws, n_observations)``
    :rtype: npt.NDArray[np.float64]
    """
    return logsumexp(_joint_log_density(y, weights, locs, scales), axis=-1)


def class_membership_probabilities(
    y: "custom_types.VectorLike",
    weights: "custom_types.DrawsLike",
    locs: "custom_types.DrawsLike",
    scales: "custom_types.DrawsLike",
) -> npt.NDArray[np.float64]:
    """Posterior class-membership probabilities of every observation per draw.

    Computes ``p(z_n = k | y_n, draw)`` by normalizing the joint density over
    classes in log space.

    :param y: Observations
    :type y: custom_types.VectorLike
    :param weights: Mixture weights, ``(n_draws, n_classes)``
    :type weights: custom_types.DrawsLike
    :param locs: Component means, ``(n_draws, n_classes)``
    :type locs: custom_types.DrawsLike
    :param scales: Component standard deviations, ``(n_draws, n_classes)``
    :type scales: custom_types.DrawsLike

    :returns: Tensor of shape ``[draw, observation, class]``
    :rtype: npt.NDArray[np.float64]

    :raises InvalidDimensionError: If the parameter arrays disagree in shape
    :raises EmptyDrawSetError: If there are no draws
    """
    joint = _joint_log_density(y, weights, locs, scales)
    return np.exp(joint - logsumexp(joint, axis=-1, keepdims=True))
