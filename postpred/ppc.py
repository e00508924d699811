# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior predictive checks.

A posterior predictive check compares the observed data with datasets simulated
from the fitted model, one per posterior draw. Two comparisons are provided:

    - A test statistic (the mean by default) of the observed data against its
      distribution over replicated datasets, summarized by the posterior
      predictive p-value ``P(T(y_rep) >= T(y))``.
    - The quantile of every observation within its replicated values. A
      well-calibrated model gives quantiles that are roughly uniform.

Replicated datasets are arrays of shape ``(n_draws, n_observations)``; use
:py:func:`simulate_bernoulli` for logistic regressions and
:py:func:`postpred.hurdle.simulate_hurdle_poisson` for count models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

import postpred

from postpred import utils
from postpred.exceptions import EmptyDrawSetError, InvalidDimensionError

if TYPE_CHECKING:
    from postpred import custom_types


@dataclass(frozen=True, eq=False)
class PPCResult:
    """Outcome of a posterior predictive check on one test statistic.

    :ivar observed: Statistic of the observed data
    :ivar replicated: Statistic of every replicated dataset, in draw order
    :ivar p_value: Fraction of replicated statistics at or above the observed one
    """

    observed: float
    replicated: npt.NDArray[np.float64]
    p_value: float


def simulate_bernoulli(
    probabilities: "custom_types.DrawsLike",
    rng: Optional[np.random.Generator] = None,
) -> npt.NDArray[np.int64]:
    """Simulate binary outcomes with the given success probabilities.

    :param probabilities: Success probabilities of any shape, typically
        ``(n_draws, n_observations)``
    :type probabilities: custom_types.DrawsLike
    :param rng: Random number generator. Defaults to the global RNG.
    :type rng: Optional[np.random.Generator]

    :returns: Zeros and ones with the shape of `probabilities`
    :rtype: npt.NDArray[np.int64]

    :raises ValueError: If any probability is outside [0, 1]
    """
    probabilities = np.asarray(probabilities, dtype=np.float64)
    if np.any((probabilities < 0) | (probabilities > 1)) or np.any(
        np.isnan(probabilities)
    ):
        raise ValueError("Probabilities must lie in [0, 1].")

    rng = postpred.RNG if rng is None else rng
    return (rng.uniform(size=probabilities.shape) < probabilities).astype(np.int64)


def _check_replicated(
    observed, replicated
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Observed data is 1-D; replicated data stacks one dataset per draw."""
    observed = utils.as_float_array(observed, "observed", 1)
    replicated = utils.as_float_array(replicated, "replicated", 2)
    if replicated.shape[0] == 0:
        raise EmptyDrawSetError("No replicated datasets were provided.")
    if replicated.shape[1] != len(observed):
        raise InvalidDimensionError(
            f"Replicated datasets have {replicated.shape[1]} observations but the "
            f"observed data has {len(observed)}."
        )
    return observed, replicated


def posterior_predictive_check(
    observed: "custom_types.VectorLike",
    replicated: "custom_types.DrawsLike",
    statistic: Callable[..., "custom_types.Float"] = np.mean,
) -> PPCResult:
    """Compare a statistic of the observed data with its replicated distribution.

    :param observed: Observed data, one value per observation
    :type observed: custom_types.VectorLike
    :param replicated: Replicated datasets, shape ``(n_draws, n_observations)``
    :type replicated: custom_types.DrawsLike
    :param statistic: Function mapping a 1-D dataset to a number. Defaults to
        the mean.
    :type statistic: Callable[[npt.NDArray], custom_types.Float]

    :returns: Observed statistic, replicated statistics, and the p-value
    :rtype: PPCResult

    :raises InvalidDimensionError: If observed and replicated data disagree in length
    :raises EmptyDrawSetError: If there are no replicated datasets

    Example:
        >>> rep = simulate_bernoulli(np.tile(probs, (1000, 1)))
        >>> result = posterior_predictive_check(y, rep)
        >>> result.p_value  # Near 0 or 1 signals misfit
    """
    observed, replicated = _check_replicated(observed, replicated)

    observed_stat = float(statistic(observed))
    replicated_stats = np.array([float(statistic(rep)) for rep in replicated])
    return PPCResult(
        observed=observed_stat,
        replicated=replicated_stats,
        p_value=float(np.mean(replicated_stats >= observed_stat)),
    )


def calculate_relative_quantiles(
    reference: "custom_types.DrawsLike", observed: "custom_types.VectorLike"
) -> npt.NDArray[np.float64]:
    """Quantile of each observation within its replicated values.

    For observation ``j`` this is the fraction of replicated values ``R[:, j]``
    at or below ``y_j``.

    :param reference: Replicated datasets, shape ``(n_draws, n_observations)``
    :type reference: custom_types.DrawsLike
    :param observed: Observed data, one value per observation
    :type observed: custom_types.VectorLike

    :returns: One quantile in [0, 1] per observation
    :rtype: npt.NDArray[np.float64]
    """
    observed, reference = _check_replicated(observed, reference)
    return (reference <= observed[None]).mean(axis=0)
