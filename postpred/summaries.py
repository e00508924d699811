# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior summaries and convergence diagnostics.

Summaries are computed with ArviZ and returned as an `xarray.Dataset` with a
``metric`` dimension (mean, sd, HDI bounds, MCSE, ESS, R-hat). Convergence is
then judged variable by variable:

    - **R-hat**: Split R-hat at or above the threshold flags poor mixing
    - **ESS Bulk**: Bulk effective sample size at or below the threshold per chain
    - **ESS Tail**: Tail effective sample size at or below the threshold per chain

R-hat is undefined for a single chain and never fails in that case.
"""

from __future__ import annotations

import warnings

from typing import Optional, TYPE_CHECKING

import arviz as az
import numpy as np
import xarray as xr

from postpred import utils
from postpred.defaults import DEFAULT_ESS_THRESH, DEFAULT_HDI_PROB, DEFAULT_RHAT_THRESH
from postpred.draws import PosteriorDraws

if TYPE_CHECKING:
    from postpred import custom_types

DIAGNOSTIC_METRICS = ("r_hat", "ess_bulk", "ess_tail")
"""Metrics checked by :py:func:`failed_diagnostics`."""


def summarize(
    draws: PosteriorDraws, hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB
) -> xr.Dataset:
    """Summary statistics and diagnostics of the posterior parameters.

    Array-valued generated quantities of `draws` are left out.

    :param draws: Posterior draws
    :type draws: PosteriorDraws
    :param hdi_prob: Probability mass of the highest density interval. Defaults
        to 0.94.
    :type hdi_prob: custom_types.Float

    :returns: Dataset with one variable per parameter and a ``metric`` dimension
    :rtype: xr.Dataset
    """
    if not 0 < hdi_prob < 1:
        raise ValueError("`hdi_prob` must lie strictly between 0 and 1.")

    inference_obj = draws.to_inference_data()
    var_names = [
        name
        for name in inference_obj.posterior.data_vars
        if name not in draws.quantity_names
    ]
    return az.summary(
        inference_obj, var_names=var_names, hdi_prob=hdi_prob, fmt="xarray"
    )


def evaluate_diagnostic_stats(
    summary: xr.Dataset,
    r_hat_thresh: "custom_types.Float" = DEFAULT_RHAT_THRESH,
    ess_thresh: "custom_types.Integer" = DEFAULT_ESS_THRESH,
    n_chains: "custom_types.Integer" = 1,
) -> xr.Dataset:
    """Evaluate every variable of a summary against the convergence thresholds.

    :param summary: Output of :py:func:`summarize`
    :type summary: xr.Dataset
    :param r_hat_thresh: R-hat threshold. Defaults to 1.01.
    :type r_hat_thresh: custom_types.Float
    :param ess_thresh: ESS threshold per chain. Defaults to 100.
    :type ess_thresh: custom_types.Integer
    :param n_chains: Number of chains the summary was computed from. Defaults to 1.
    :type n_chains: custom_types.Integer

    :returns: Boolean dataset with a ``metric`` dimension, True where a test fails
    :rtype: xr.Dataset

    :raises ValueError: If a required metric is missing from the summary
    """
    if missing_metrics := set(DIAGNOSTIC_METRICS) - set(
        summary.metric.values.tolist()
    ):
        raise ValueError(
            f"The following metrics are missing from the summary: {missing_metrics}."
        )

    # Scale the ESS threshold by the number of chains
    ess_thresh = ess_thresh * n_chains

    return xr.concat(
        [
            summary.sel(metric="r_hat") >= r_hat_thresh,
            summary.sel(metric="ess_bulk") <= ess_thresh,
            summary.sel(metric="ess_tail") <= ess_thresh,
        ],
        dim="metric",
    ).assign_coords(metric=list(DIAGNOSTIC_METRICS))


def failed_diagnostics(
    summary: xr.Dataset,
    r_hat_thresh: "custom_types.Float" = DEFAULT_RHAT_THRESH,
    ess_thresh: "custom_types.Integer" = DEFAULT_ESS_THRESH,
    n_chains: "custom_types.Integer" = 1,
) -> dict[str, list[str]]:
    """Names of the parameters failing each convergence test.

    Array-valued parameters are reported element by element using Stan names
    (``beta[2]``). A warning is emitted when any test fails.

    :param summary: Output of :py:func:`summarize`
    :type summary: xr.Dataset
    :param r_hat_thresh: R-hat threshold. Defaults to 1.01.
    :type r_hat_thresh: custom_types.Float
    :param ess_thresh: ESS threshold per chain. Defaults to 100.
    :type ess_thresh: custom_types.Integer
    :param n_chains: Number of chains the summary was computed from. Defaults to 1.
    :type n_chains: custom_types.Integer

    :returns: Mapping from metric name to the failing parameter names
    :rtype: dict[str, list[str]]

    Example:
        >>> failures = failed_diagnostics(summarize(draws), n_chains=4)
        >>> failures["r_hat"]
        ['beta[3]']
    """
    tests = evaluate_diagnostic_stats(
        summary, r_hat_thresh=r_hat_thresh, ess_thresh=ess_thresh, n_chains=n_chains
    )

    failures: dict[str, list[str]] = {}
    for metric in DIAGNOSTIC_METRICS:
        failures[metric] = []
        for varname, test in tests.sel(metric=metric).data_vars.items():
            for index in np.argwhere(np.asarray(test.values, dtype=bool)):
                failures[metric].append(
                    utils.stan_column_name(str(varname), tuple(int(i) for i in index))
                )

    if n_failed := sum(len(names) for names in failures.values()):
        report = "; ".join(
            f"{metric}: {', '.join(names)}" for metric, names in failures.items() if names
        )
        warnings.warn(f"{n_failed} convergence test(s) failed. {report}")

    return failures


def diagnose(
    draws: PosteriorDraws,
    r_hat_thresh: "custom_types.Float" = DEFAULT_RHAT_THRESH,
    ess_thresh: "custom_types.Integer" = DEFAULT_ESS_THRESH,
    n_chains: Optional["custom_types.Integer"] = None,
) -> dict[str, list[str]]:
    """Summarize draws and report the parameters failing convergence tests.

    The number of chains is read from the draws' ArviZ object unless given.
    """
    if n_chains is None:
        n_chains = draws.to_inference_data().posterior.sizes["chain"]
    return failed_diagnostics(
        summarize(draws),
        r_hat_thresh=r_hat_thresh,
        ess_thresh=ess_thresh,
        n_chains=n_chains,
    )
