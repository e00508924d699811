# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Bundled Stan programs and the model specifications that wrap them.

A :py:class:`ModelSpec` is everything the sampler needs to fit a model to a
dataset: the Stan program, the names of the parameters to pull out of the fit,
the generated quantities to keep as arrays, and a function that turns a dataset
of named columns into the Stan data dictionary.

Three models are bundled:

    - :py:func:`logistic_regression_spec`: a binary outcome regressed on named
      covariates through the logistic link
    - :py:func:`hurdle_poisson_spec`: counts with a separate zero process
    - :py:func:`gaussian_mixture_spec`: a Gaussian mixture with the class labels
      marginalized out of the likelihood. Stan has no discrete parameters, so the
      labels are recovered afterwards as per-draw class probabilities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from postpred.covariates import CovariateLayout, dataset_columns

if TYPE_CHECKING:
    from postpred import custom_types

LOGISTIC_REGRESSION_CODE = """
data {
  int<lower=0> N;
  int<lower=1> K;
  matrix[N, K] X;
  array[N] int<lower=0, upper=1> y;
}
parameters {
  real alpha;
  vector[K] beta;
}
model {
  alpha ~ normal(0, 5);
  beta ~ normal(0, 2.5);
  y ~ bernoulli_logit_glm(X, alpha, beta);
}
generated quantities {
  array[N] int y_rep = bernoulli_logit_rng(alpha + X * beta);
}
"""

HURDLE_POISSON_CODE = """
data {
  int<lower=0> N;
  array[N] int<lower=0> y;
}
parameters {
  real<lower=0, upper=1> theta;
  real<lower=0> lam;
}
model {
  theta ~ beta(1, 1);
  lam ~ gamma(2, 0.5);
  for (n in 1:N) {
    if (y[n] == 0) {
      target += log(theta);
    } else {
      target += log1m(theta) + poisson_lpmf(y[n] | lam) - log1m_exp(-lam);
    }
  }
}
"""

GAUSSIAN_MIXTURE_CODE = """
data {
  int<lower=2> N;
  int<lower=1> K;
  vector[N] y;
}
transformed data {
  real y_mean = mean(y);
  real y_sd = sd(y);
}
parameters {
  simplex[K] weights;
  ordered[K] locs;
  vector<lower=0>[K] scales;
}
model {
  weights ~ dirichlet(rep_vector(2, K));
  locs ~ normal(y_mean, 2 * y_sd);
  scales ~ lognormal(log(y_sd), 1);
  for (n in 1:N) {
    vector[K] lps = log(weights);
    for (k in 1:K) {
      lps[k] += normal_lpdf(y[n] | locs[k], scales[k]);
    }
    target += log_sum_exp(lps);
  }
}
generated quantities {
  matrix[N, K] class_probs;
  for (n in 1:N) {
    vector[K] lps = log(weights);
    for (k in 1:K) {
      lps[k] += normal_lpdf(y[n] | locs[k], scales[k]);
    }
    class_probs[n] = softmax(lps)';
  }
}
"""


@dataclass(frozen=True)
class ModelSpec:
    """A Stan program together with how to feed it and read it back.

    :ivar name: Model name, used for the Stan file and executable
    :ivar code: Stan program
    :ivar parameters: Stan variables flattened into posterior draw columns
    :ivar build_data: Maps a dataset of named columns to the Stan data dictionary
    :ivar quantities: Generated quantities kept whole as named outputs
    :ivar layout: Covariate layout of regression models, else None
    """

    name: str
    code: str
    parameters: tuple[str, ...]
    build_data: Callable[["custom_types.Dataset"], dict[str, Any]] = field(repr=False)
    quantities: tuple[str, ...] = ()
    layout: Optional[CovariateLayout] = None


def _as_counts(values: npt.NDArray[np.float64], name: str) -> npt.NDArray[np.int64]:
    """Counts must be non-negative integers."""
    if np.any(values < 0) or np.any(values != np.round(values)):
        raise ValueError(f"Column '{name}' must contain non-negative integers.")
    return values.astype(np.int64)


def logistic_regression_spec(
    covariates: Sequence[str],
    outcome: str,
    name: str = "logistic_regression",
) -> ModelSpec:
    """Logistic regression of a binary outcome on named covariates.

    The fitted coefficients are ``alpha`` (intercept) and ``beta[1..K]``, and the
    returned spec carries the matching
    :py:meth:`CovariateLayout.for_stan <postpred.covariates.CovariateLayout.for_stan>`
    layout. Replicated outcomes are kept as the ``y_rep`` quantity.

    :param covariates: Names of the covariate columns, in coefficient order
    :type covariates: Sequence[str]
    :param outcome: Name of the 0/1 outcome column
    :type outcome: str
    :param name: Model name. Defaults to "logistic_regression".
    :type name: str

    :returns: The model specification
    :rtype: ModelSpec

    :raises ValueError: If no covariates are given or the outcome is also a covariate
    """
    covariates = tuple(covariates)
    if len(covariates) == 0:
        raise ValueError("At least one covariate is required.")
    if outcome in covariates:
        raise ValueError(f"Outcome '{outcome}' cannot also be a covariate.")
    layout = CovariateLayout.for_stan(covariates)

    def build_data(dataset: "custom_types.Dataset") -> dict[str, Any]:
        # Checks that every column is present and all lengths agree
        columns = dataset_columns(dataset, (*covariates, outcome))

        y = columns[outcome]
        if not np.all(np.isin(y, (0, 1))):
            raise ValueError(f"Outcome column '{outcome}' must contain only 0 and 1.")

        return {
            "N": len(y),
            "K": len(covariates),
            "X": np.stack([columns[cov] for cov in covariates], axis=1),
            "y": y.astype(np.int64),
        }

    return ModelSpec(
        name=name,
        code=LOGISTIC_REGRESSION_CODE,
        parameters=("alpha", "beta"),
        build_data=build_data,
        quantities=("y_rep",),
        layout=layout,
    )


def hurdle_poisson_spec(outcome: str, name: str = "hurdle_poisson") -> ModelSpec:
    """Hurdle Poisson model of a count column.

    The fitted parameters are ``theta`` (probability of a zero) and ``lam``
    (rate of the zero-truncated Poisson). See :py:mod:`postpred.hurdle`.

    :param outcome: Name of the count column
    :type outcome: str
    :param name: Model name. Defaults to "hurdle_poisson".
    :type name: str

    :returns: The model specification
    :rtype: ModelSpec
    """

    def build_data(dataset: "custom_types.Dataset") -> dict[str, Any]:
        y = _as_counts(dataset_columns(dataset, (outcome,))[outcome], outcome)
        return {"N": len(y), "y": y}

    return ModelSpec(
        name=name,
        code=HURDLE_POISSON_CODE,
        parameters=("theta", "lam"),
        build_data=build_data,
    )


def gaussian_mixture_spec(
    column: str,
    n_classes: "custom_types.Integer",
    name: str = "gaussian_mixture",
) -> ModelSpec:
    """Marginalized Gaussian mixture of one continuous column.

    The fitted parameters are ``weights``, ``locs`` (ordered, to remove label
    switching), and ``scales``, each of length `n_classes`. Class-membership
    probabilities are kept as the ``class_probs`` quantity of shape
    ``[draw, observation, class]``.

    :param column: Name of the continuous column
    :type column: str
    :param n_classes: Number of mixture components
    :type n_classes: custom_types.Integer
    :param name: Model name. Defaults to "gaussian_mixture".
    :type name: str

    :returns: The model specification
    :rtype: ModelSpec

    :raises ValueError: If `n_classes` is below 1
    """
    if n_classes < 1:
        raise ValueError("`n_classes` must be at least 1.")

    def build_data(dataset: "custom_types.Dataset") -> dict[str, Any]:
        y = dataset_columns(dataset, (column,))[column]
        if len(y) < 2:
            raise ValueError("The mixture model needs at least two observations.")
        return {"N": len(y), "K": int(n_classes), "y": y}

    return ModelSpec(
        name=name,
        code=GAUSSIAN_MIXTURE_CODE,
        parameters=("weights", "locs", "scales"),
        build_data=build_data,
        quantities=("class_probs",),
    )
