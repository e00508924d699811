"""
Tests for the stan subpackage. CmdStan itself is never invoked.
"""

import os.path

import numpy as np
import pandas as pd
import pytest

from postpred.draws import PosteriorDraws
from postpred.prediction import PosteriorPredictor
from postpred.stan import (
    CmdStanSampler,
    ModelSpec,
    gaussian_mixture_spec,
    hurdle_poisson_spec,
    logistic_regression_spec,
)


class TestLogisticRegressionSpec:
    """Test the logistic_regression_spec function."""

    def test_spec(self):
        spec = logistic_regression_spec(["x1", "x2"], "y")
        assert isinstance(spec, ModelSpec)
        assert spec.parameters == ("alpha", "beta")
        assert spec.quantities == ("y_rep",)
        assert spec.layout.coefficient_names == ("alpha", "beta[1]", "beta[2]")
        assert "bernoulli_logit_glm" in spec.code

    def test_build_data(self, logistic_dataset):
        spec = logistic_regression_spec(["x2", "x1"], "y")
        data = spec.build_data(logistic_dataset)
        assert data["N"] == 40
        assert data["K"] == 2
        assert data["X"].shape == (40, 2)
        np.testing.assert_array_equal(data["X"][:, 0], logistic_dataset["x2"])
        np.testing.assert_array_equal(data["y"], logistic_dataset["y"])

    def test_bad_data(self):
        spec = logistic_regression_spec(["x"], "y")
        with pytest.raises(ValueError, match="missing columns"):
            spec.build_data({"x": [1.0, 2.0]})
        with pytest.raises(ValueError, match="equal lengths"):
            spec.build_data({"x": [1.0, 2.0], "y": [1.0]})
        with pytest.raises(ValueError, match="only 0 and 1"):
            spec.build_data({"x": [1.0, 2.0], "y": [0.0, 2.0]})

    def test_bad_arguments(self):
        with pytest.raises(ValueError):
            logistic_regression_spec([], "y")
        with pytest.raises(ValueError):
            logistic_regression_spec(["y"], "y")


class TestHurdlePoissonSpec:
    """Test the hurdle_poisson_spec function."""

    def test_build_data(self):
        spec = hurdle_poisson_spec("count")
        assert spec.parameters == ("theta", "lam")
        data = spec.build_data({"count": [0, 0, 3, 1]})
        assert data["N"] == 4
        assert data["y"].dtype == np.int64

    def test_counts_only(self):
        spec = hurdle_poisson_spec("count")
        with pytest.raises(ValueError, match="non-negative integers"):
            spec.build_data({"count": [0, -1]})
        with pytest.raises(ValueError, match="non-negative integers"):
            spec.build_data({"count": [0.5, 1.0]})


class TestGaussianMixtureSpec:
    """Test the gaussian_mixture_spec function."""

    def test_marginalized_program(self):
        spec = gaussian_mixture_spec("y", 3)
        assert spec.parameters == ("weights", "locs", "scales")
        assert spec.quantities == ("class_probs",)
        assert "log_sum_exp" in spec.code
        assert "simplex[K] weights" in spec.code
        assert spec.layout is None

    def test_build_data(self):
        data = gaussian_mixture_spec("y", 2).build_data({"y": [0.1, 3.2, -1.0]})
        assert data["K"] == 2
        assert data["N"] == 3

    def test_errors(self):
        with pytest.raises(ValueError):
            gaussian_mixture_spec("y", 0)
        with pytest.raises(ValueError, match="at least two"):
            gaussian_mixture_spec("y", 2).build_data({"y": [1.0]})


class TestCmdStanSampler:
    """Test CmdStanSampler setup without compiling."""

    def test_temporary_output_dir(self):
        sampler = CmdStanSampler()
        assert os.path.isdir(sampler.output_dir)

    def test_missing_output_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CmdStanSampler(output_dir=str(tmp_path / "missing"))

    def test_bad_settings(self):
        with pytest.raises(ValueError):
            CmdStanSampler(chains=0)
        with pytest.raises(ValueError):
            CmdStanSampler(iter_sampling=0)

    def test_write_stan_program(self, tmp_path):
        sampler = CmdStanSampler(output_dir=str(tmp_path))
        spec = hurdle_poisson_spec("count")
        path = sampler.write_stan_program(spec)
        assert path == str(tmp_path / "hurdle_poisson.stan")
        with open(path, encoding="utf-8") as f:
            assert f.read() == spec.code

        # Unchanged programs are not rewritten
        mtime = os.path.getmtime(path)
        sampler.write_stan_program(spec)
        assert os.path.getmtime(path) == mtime


class TestSamplerProtocol:
    """Test that prediction only depends on the draws a sampler returns."""

    def test_fake_sampler_feeds_predictor(self, logistic_dataset, fake_sampler):
        spec = logistic_regression_spec(["x1", "x2"], "y")
        draws = PosteriorDraws(
            [[-5.0, 1.0, 0.0], [-4.0, 0.8, 0.1]], ["alpha", "beta[1]", "beta[2]"]
        )
        sampler = fake_sampler(draws)

        fitted = sampler.fit(logistic_dataset, spec)
        predictor = PosteriorPredictor(fitted, spec.layout)

        assert predictor.tail_probability("x1", direction=">=") == 1.0
        probs = predictor.probability(predictor.reference(logistic_dataset))
        assert probs.shape == (2,)
        assert sampler.calls[0][1]["N"] == len(pd.DataFrame(logistic_dataset))
