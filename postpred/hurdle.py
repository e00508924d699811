# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


r"""Predictive distributions of the hurdle Poisson count model.

In a hurdle model a zero count and a positive count come from separate
processes: a zero occurs with probability ``theta``, and otherwise the count
follows a Poisson distribution truncated to exclude zero:

.. math::

    p(k \mid \theta, \lambda) =
    \begin{cases}
        \theta & k = 0 \\
        (1 - \theta) \frac{\text{Poisson}(k \mid \lambda)}{1 - e^{-\lambda}} & k > 0
    \end{cases}

This matches the parameterization of the bundled Stan program
(:py:func:`postpred.stan.programs.hurdle_poisson_spec`).
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from scipy import stats

import postpred

from postpred import utils
from postpred.exceptions import EmptyDrawSetError, InvalidDimensionError

if TYPE_CHECKING:
    from postpred import custom_types


def _check_parameters(theta: npt.NDArray, lam: npt.NDArray) -> None:
    if np.any((theta < 0) | (theta > 1)):
        raise ValueError("`theta` must lie in [0, 1].")
    if np.any(lam <= 0):
        raise ValueError("`lam` must be positive.")


def hurdle_poisson_logpmf(k, theta, lam) -> npt.NDArray[np.float64]:
    """Log probability of counts under the hurdle Poisson distribution.

    Arguments broadcast against each other. Negative counts have log probability
    ``-inf``.

    :param k: Counts
    :param theta: Probability of a zero count
    :param lam: Rate of the untruncated Poisson

    :returns: Log probabilities with the broadcast shape of the inputs
    :rtype: npt.NDArray[np.float64]

    :raises ValueError: If `theta` is outside [0, 1] or `lam` is not positive
    """
    k = np.asarray(k)
    theta = np.asarray(theta, dtype=np.float64)
    lam = np.asarray(lam, dtype=np.float64)
    _check_parameters(theta, lam)

    with np.errstate(divide="ignore"):
        # log(1 - theta) + log Poisson(k | lam) - log(1 - exp(-lam))
        log_positive = (
            np.log1p(-theta) + stats.poisson.logpmf(k, lam) - np.log(-np.expm1(-lam))
        )
        log_zero = np.log(theta)

    return np.where(
        k == 0, log_zero, np.where(k > 0, log_positive, -np.inf)
    ).astype(np.float64)


def hurdle_poisson_pmf(k, theta, lam) -> npt.NDArray[np.float64]:
    """Probability of counts under the hurdle Poisson distribution.

    See :py:func:`hurdle_poisson_logpmf` for arguments.
    """
    return np.asarray(np.exp(hurdle_poisson_logpmf(k, theta, lam)))


def _parameter_draws(theta_draws, lam_draws) -> tuple[npt.NDArray, npt.NDArray]:
    """Validate aligned 1-D draws of `theta` and `lam`."""
    theta = utils.as_float_array(theta_draws, "theta_draws", 1)
    lam = utils.as_float_array(lam_draws, "lam_draws", 1)
    if len(theta) != len(lam):
        raise InvalidDimensionError(
            f"Got {len(theta)} draws of theta but {len(lam)} draws of lam."
        )
    if len(theta) == 0:
        raise EmptyDrawSetError("No hurdle parameter draws were provided.")
    _check_parameters(theta, lam)
    return theta, lam


def count_predictive_distribution(
    theta_draws: "custom_types.VectorLike",
    lam_draws: "custom_types.VectorLike",
    max_count: "custom_types.Integer",
) -> npt.NDArray[np.float64]:
    """Posterior predictive probability of each count from 0 to `max_count`.

    The pmf of every draw is evaluated and averaged over draws.

    :param theta_draws: Draws of the zero probability
    :type theta_draws: custom_types.VectorLike
    :param lam_draws: Draws of the Poisson rate, aligned with `theta_draws`
    :type lam_draws: custom_types.VectorLike
    :param max_count: Largest count evaluated
    :type max_count: custom_types.Integer

    :returns: Array of length ``max_count + 1``. Sums to less than one by the
        probability of counts above `max_count`.
    :rtype: npt.NDArray[np.float64]
    """
    if max_count < 0:
        raise ValueError("`max_count` must be non-negative.")
    theta, lam = _parameter_draws(theta_draws, lam_draws)

    counts = np.arange(int(max_count) + 1)
    return hurdle_poisson_pmf(counts[None], theta[:, None], lam[:, None]).mean(axis=0)


def simulate_hurdle_poisson(
    theta_draws: "custom_types.VectorLike",
    lam_draws: "custom_types.VectorLike",
    size: "custom_types.Integer",
    rng: Optional[np.random.Generator] = None,
) -> npt.NDArray[np.int64]:
    """Simulate replicated datasets from the hurdle Poisson posterior.

    Positive counts are drawn from the zero-truncated Poisson by inverting its
    CDF: a uniform variate is mapped into ``(P(0), 1)`` and passed through the
    Poisson quantile function.

    :param theta_draws: Draws of the zero probability
    :type theta_draws: custom_types.VectorLike
    :param lam_draws: Draws of the Poisson rate, aligned with `theta_draws`
    :type lam_draws: custom_types.VectorLike
    :param size: Number of observations per replicated dataset
    :type size: custom_types.Integer
    :param rng: Random number generator. Defaults to the global RNG.
    :type rng: Optional[np.random.Generator]

    :returns: Counts of shape ``(n_draws, size)``, one dataset per draw
    :rtype: npt.NDArray[np.int64]
    """
    if size < 0:
        raise ValueError("`size` must be non-negative.")
    theta, lam = _parameter_draws(theta_draws, lam_draws)
    rng = postpred.RNG if rng is None else rng
    shape = (len(theta), int(size))

    # Which observations clear the hurdle
    positive = rng.uniform(size=shape) >= theta[:, None]

    # Zero-truncated Poisson by inverse CDF
    p_zero = np.exp(-lam)[:, None]
    u = p_zero + rng.uniform(size=shape) * (1 - p_zero)

    # `u` rounds to one when `lam` is tiny, where the quantile is infinite
    u = np.minimum(u, np.nextafter(1.0, 0.0))
    counts = np.maximum(stats.poisson.ppf(u, lam[:, None]), 1)

    return np.where(positive, counts, 0).astype(np.int64)
