"""
Tests for the summaries module.
"""

import arviz as az
import numpy as np
import pytest
import xarray as xr

from postpred.draws import PosteriorDraws
from postpred.summaries import (
    diagnose,
    evaluate_diagnostic_stats,
    failed_diagnostics,
    summarize,
)


@pytest.fixture
def mixed_draws():
    """Four well-mixed chains of a scalar and a vector parameter."""
    rng = np.random.default_rng(0)
    idata = az.from_dict(
        posterior={
            "alpha": rng.normal(size=(4, 500)),
            "beta": rng.normal(size=(4, 500, 2)),
            "y_rep": rng.integers(0, 2, size=(4, 500, 3)),
        }
    )
    return PosteriorDraws.from_inference_data(idata, quantities=["y_rep"])


@pytest.fixture
def stuck_draws():
    """Four chains of `alpha` stuck at different values."""
    rng = np.random.default_rng(1)
    offsets = np.array([0.0, 5.0, 10.0, 15.0])[:, None]
    idata = az.from_dict(
        posterior={
            "alpha": rng.normal(size=(4, 200)) * 0.1 + offsets,
            "beta": rng.normal(size=(4, 200)),
        }
    )
    return PosteriorDraws.from_inference_data(idata)


@pytest.fixture
def manual_summary():
    """Summary with one R-hat failure and one ESS failure."""
    return xr.Dataset(
        {
            "alpha": ("metric", [1.2, 500.0, 500.0]),
            "beta": (("metric", "beta_dim_0"), [[1.0, 1.0], [500.0, 50.0], [500.0, 500.0]]),
        },
        coords={"metric": ["r_hat", "ess_bulk", "ess_tail"]},
    )


class TestSummarize:
    """Test the summarize function."""

    def test_parameters_only(self, mixed_draws):
        summary = summarize(mixed_draws)
        assert set(summary.data_vars) == {"alpha", "beta"}
        metrics = set(summary.metric.values.tolist())
        assert {"mean", "sd", "r_hat", "ess_bulk", "ess_tail"} <= metrics
        assert float(summary["alpha"].sel(metric="mean")) == pytest.approx(0.0, abs=0.1)

    def test_bad_hdi_prob(self, mixed_draws):
        with pytest.raises(ValueError):
            summarize(mixed_draws, hdi_prob=1.0)


class TestFailedDiagnostics:
    """Test the failed_diagnostics and evaluate_diagnostic_stats functions."""

    def test_manual_summary(self, manual_summary):
        with pytest.warns(UserWarning, match="2 convergence test"):
            failures = failed_diagnostics(manual_summary)
        assert failures == {"r_hat": ["alpha"], "ess_bulk": ["beta[2]"], "ess_tail": []}

    def test_ess_scales_with_chains(self, manual_summary):
        tests = evaluate_diagnostic_stats(manual_summary, n_chains=5)
        assert bool(tests["alpha"].sel(metric="ess_bulk"))
        tests = evaluate_diagnostic_stats(manual_summary, n_chains=1)
        assert not bool(tests["alpha"].sel(metric="ess_bulk"))

    def test_missing_metric(self, manual_summary):
        with pytest.raises(ValueError, match="missing"):
            failed_diagnostics(manual_summary.sel(metric=["r_hat", "ess_bulk"]))

    def test_mixed_chains_pass(self, mixed_draws):
        failures = diagnose(mixed_draws, r_hat_thresh=1.05, ess_thresh=50)
        assert not any(failures.values())

    def test_stuck_chains_fail(self, stuck_draws):
        with pytest.warns(UserWarning, match="convergence"):
            failures = diagnose(stuck_draws)
        assert "alpha" in failures["r_hat"]
