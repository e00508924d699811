"""
Shared fixtures for the PostPred tests.
"""

import numpy as np
import pandas as pd
import pytest

import postpred
from postpred.covariates import CovariateLayout
from postpred.draws import PosteriorDraws


class FakeSampler:
    """Stands in for CmdStan: returns fixed draws for any model."""

    def __init__(self, draws):
        self.draws = draws
        self.calls = []

    def fit(self, dataset, model_spec):
        # Build the Stan data like the real sampler would, so bad input still fails
        self.calls.append((model_spec, model_spec.build_data(dataset)))
        return self.draws


@pytest.fixture(autouse=True)
def seeded_rng():
    """Every test starts from the same global RNG state."""
    postpred.manual_seed(1025)


@pytest.fixture
def dating_layout():
    """Layout of a regression on four rated attributes."""
    return CovariateLayout(["attractiveness", "sincerity", "intelligence", "fun"])


@pytest.fixture
def dating_coefficients():
    """One coefficient draw aligned with `dating_layout`."""
    return np.array([-0.2, 0.5, 0.1, 0.05, -0.05])


@pytest.fixture
def dating_draws(dating_layout):
    """Four draws of the `dating_layout` coefficients."""
    values = np.array(
        [
            [-0.2, 0.5, 0.1, 0.05, -0.05],
            [-0.1, -0.1, 0.2, 0.00, 0.05],
            [-0.3, 0.2, 0.0, 0.10, -0.10],
            [0.0, -0.3, 0.1, 0.05, 0.00],
        ]
    )
    return PosteriorDraws(values, dating_layout.names)


@pytest.fixture
def logistic_dataset():
    """Small binary-outcome dataset with two covariates."""
    rng = np.random.default_rng(0)
    x1 = rng.normal(5, 1, size=40)
    x2 = rng.normal(3, 1, size=40)
    y = (rng.uniform(size=40) < 1 / (1 + np.exp(-(x1 - 5)))).astype(int)
    return pd.DataFrame({"x1": x1, "x2": x2, "y": y})


@pytest.fixture
def fake_sampler():
    """Factory for samplers that return fixed draws."""
    return FakeSampler
