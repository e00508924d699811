"""
Tests for the prediction module.
"""

import numpy as np
import pandas as pd
import pytest

from postpred.covariates import CovariateLayout, CovariateTemplate
from postpred.draws import PosteriorDraws
from postpred.exceptions import EmptyDrawSetError, InvalidDimensionError
from postpred.prediction import (
    PosteriorPredictor,
    PredictiveCurves,
    contrast_statistic,
    linear_predictor,
    posterior_tail_probability,
    predictive_curve,
    sweep_grid,
    to_probability,
)

DATING_TEMPLATE = [1.0, 5.0, 3.0, 4.0, 3.5]


class TestLinearPredictor:
    """Test the linear_predictor function."""

    def test_worked_example(self, dating_coefficients):
        """Test the dot product of a dating template with one draw."""
        value = linear_predictor(DATING_TEMPLATE, dating_coefficients)
        assert isinstance(value, float)
        assert value == pytest.approx(2.625)

    def test_one_value_per_draw(self, dating_draws, dating_layout):
        values = linear_predictor(DATING_TEMPLATE, dating_draws, dating_layout)
        expected = dating_draws.values @ np.array(DATING_TEMPLATE)
        np.testing.assert_allclose(values, expected)

    def test_length_mismatch(self, dating_coefficients):
        with pytest.raises(InvalidDimensionError):
            linear_predictor([1.0, 5.0], dating_coefficients)

    def test_posterior_draws_need_layout(self, dating_draws):
        with pytest.raises(ValueError, match="CovariateLayout"):
            linear_predictor(DATING_TEMPLATE, dating_draws)

    def test_empty_draws(self):
        with pytest.raises(EmptyDrawSetError):
            linear_predictor([1.0, 2.0], np.empty((0, 2)))


class TestToProbability:
    """Test the to_probability function."""

    def test_worked_example(self):
        assert to_probability(2.625) == pytest.approx(0.9325, abs=5e-5)
        assert to_probability(0.0) == 0.5

    @pytest.mark.parametrize("value", [-1000.0, -40.0, 0.0, 40.0, 1000.0])
    def test_open_interval(self, value):
        """Test that even extreme inputs stay strictly inside (0, 1)."""
        prob = to_probability(value)
        assert 0.0 < prob < 1.0

    def test_array_shape_preserved(self):
        probs = to_probability(np.array([[-1.0, 0.0], [1.0, 2.0]]))
        assert probs.shape == (2, 2)
        assert np.all(np.diff(probs.ravel()) > 0)

    def test_composition_in_unit_interval(self, dating_draws, dating_layout):
        rng = np.random.default_rng(1)
        for _ in range(20):
            template = np.concatenate([[1.0], rng.uniform(-50, 50, size=4)])
            probs = to_probability(linear_predictor(template, dating_draws, dating_layout))
            assert np.all((probs > 0) & (probs < 1))

    def test_non_finite(self):
        with pytest.raises(ValueError):
            to_probability(np.nan)


class TestSweepGrid:
    """Test the sweep_grid function."""

    @pytest.mark.parametrize("low,high,n", [(1.0, 10.0, 10), (-2.0, 2.0, 5), (0, 1, 2)])
    def test_properties(self, low, high, n):
        grid = sweep_grid(low, high, n)
        assert len(grid) == n
        assert grid[0] == low
        assert grid[-1] == pytest.approx(high)
        np.testing.assert_allclose(np.diff(grid), (high - low) / (n - 1))

    def test_single_point(self):
        np.testing.assert_array_equal(sweep_grid(3.0, 7.0, 1), [3.0])

    def test_degenerate_range(self):
        np.testing.assert_array_equal(sweep_grid(2.0, 2.0, 3), [2.0, 2.0, 2.0])

    def test_errors(self):
        with pytest.raises(ValueError):
            sweep_grid(0.0, 1.0, 0)
        with pytest.raises(ValueError):
            sweep_grid(1.0, 0.0, 5)
        with pytest.raises(ValueError):
            sweep_grid(0.0, np.inf, 5)


class TestPredictiveCurve:
    """Test the predictive_curve function."""

    def test_single_draw(self, dating_coefficients):
        grid = sweep_grid(1.0, 10.0, 10)
        curve = predictive_curve(DATING_TEMPLATE, 1, grid, dating_coefficients)
        assert curve.shape == (10,)

        # Attractiveness has a positive coefficient
        assert np.all(np.diff(curve) > 0)

        # Matches pointwise prediction
        for value, prob in zip(grid, curve):
            template = CovariateTemplate(DATING_TEMPLATE).with_value(1, value)
            assert prob == pytest.approx(
                to_probability(linear_predictor(template, dating_coefficients))
            )

    def test_template_unchanged(self, dating_coefficients):
        template = CovariateTemplate(DATING_TEMPLATE)
        predictive_curve(template, 1, sweep_grid(1.0, 10.0), dating_coefficients)
        np.testing.assert_array_equal(template.values, DATING_TEMPLATE)

    def test_many_draws(self, dating_draws, dating_layout):
        template = CovariateTemplate(DATING_TEMPLATE, layout=dating_layout)
        curves = predictive_curve(
            template, "attractiveness", sweep_grid(1.0, 10.0, 7), dating_draws, dating_layout
        )
        assert isinstance(curves, PredictiveCurves)
        assert len(curves) == 7
        assert curves.per_draw.shape == (4, 7)

        mean_coefficients = dating_draws.mean()
        np.testing.assert_allclose(
            curves.mean_curve,
            predictive_curve(template, 1, curves.grid, mean_coefficients),
        )

    def test_interval_and_dataframe(self, dating_draws, dating_layout):
        curves = predictive_curve(
            DATING_TEMPLATE, 1, sweep_grid(1.0, 10.0, 5), dating_draws, dating_layout
        )
        lower, upper = curves.interval(0.5)
        assert np.all(lower <= upper)
        df = curves.to_dataframe()
        assert list(df.columns) == ["grid", "mean", "lower", "upper"]
        with pytest.raises(ValueError):
            curves.interval(1.0)

    def test_bad_index(self, dating_coefficients):
        with pytest.raises(InvalidDimensionError):
            predictive_curve(DATING_TEMPLATE, 5, [1.0], dating_coefficients)


class TestContrastStatistic:
    """Test the contrast_statistic function."""

    def test_positive_effect(self, dating_coefficients):
        """Test that raising attractiveness from 4.5 to 5.5 increases probability."""
        base = CovariateTemplate(DATING_TEMPLATE)
        contrast = contrast_statistic(
            base.with_value(1, 4.5), base.with_value(1, 5.5), dating_coefficients
        )
        assert contrast.shape == (1,)
        assert contrast[0] > 0

    def test_antisymmetric(self, dating_draws, dating_layout):
        base = CovariateTemplate(DATING_TEMPLATE)
        low, high = base.with_value(2, 1.0), base.with_value(2, 6.0)
        np.testing.assert_allclose(
            contrast_statistic(low, high, dating_draws, dating_layout),
            -contrast_statistic(high, low, dating_draws, dating_layout),
        )

    def test_template_lengths(self, dating_coefficients):
        with pytest.raises(InvalidDimensionError):
            contrast_statistic([1.0, 2.0], DATING_TEMPLATE, dating_coefficients)


class TestPosteriorTailProbability:
    """Test the posterior_tail_probability function."""

    def test_worked_example(self):
        draws = {"attractiveness": [0.5, -0.1, 0.2, -0.3]}
        assert posterior_tail_probability("attractiveness", draws) == 0.5

    def test_inclusive_threshold(self):
        draws = pd.DataFrame({"b": [0.0, 1.0]})
        assert posterior_tail_probability("b", draws, 0.0, "<=") == 0.5
        assert posterior_tail_probability("b", draws, 0.0, ">=") == 1.0

    def test_monotone_in_threshold(self, dating_draws):
        thresholds = np.linspace(-1, 1, 21)
        probs = [posterior_tail_probability("sincerity", dating_draws, t) for t in thresholds]
        assert np.all(np.diff(probs) >= 0)

    def test_errors(self, dating_draws):
        with pytest.raises(ValueError, match="direction"):
            posterior_tail_probability("fun", dating_draws, direction="<")
        with pytest.raises(KeyError):
            posterior_tail_probability("ambition", dating_draws)
        with pytest.raises(KeyError):
            posterior_tail_probability("ambition", {"fun": [1.0]})
        with pytest.raises(EmptyDrawSetError):
            posterior_tail_probability("fun", {"fun": []})


class TestPosteriorPredictor:
    """Test the PosteriorPredictor class."""

    @pytest.fixture
    def predictor(self, dating_draws, dating_layout):
        return PosteriorPredictor(dating_draws, dating_layout)

    def test_reference(self, predictor):
        dataset = {
            "attractiveness": [4.0, 6.0],
            "sincerity": [3.0, 3.0],
            "intelligence": [4.0, 4.0],
            "fun": [3.0, 4.0],
        }
        reference = predictor.reference(dataset, fun=1.0)
        np.testing.assert_array_equal(reference.values, [1.0, 5.0, 3.0, 4.0, 1.0])

        explicit = predictor.reference(
            attractiveness=5.0, sincerity=3.0, intelligence=4.0, fun=3.5
        )
        np.testing.assert_array_equal(explicit.values, DATING_TEMPLATE)

    def test_probability_matches_functions(self, predictor, dating_draws, dating_layout):
        np.testing.assert_allclose(
            predictor.probability(DATING_TEMPLATE),
            to_probability(linear_predictor(DATING_TEMPLATE, dating_draws, dating_layout)),
        )

    def test_curve_and_contrast(self, predictor):
        curves = predictor.curve("attractiveness", sweep_grid(1, 10, 4), DATING_TEMPLATE)
        assert curves.per_draw.shape == (4, 4)

        contrast = predictor.contrast("attractiveness", 4.5, 5.5, DATING_TEMPLATE)
        np.testing.assert_allclose(
            contrast,
            to_probability(predictor.coefficients @ [1, 5.5, 3, 4, 3.5])
            - to_probability(predictor.coefficients @ [1, 4.5, 3, 4, 3.5]),
        )

    def test_tail_probabilities(self, predictor):
        probs = predictor.tail_probabilities()
        assert list(probs) == list(predictor.layout.names)
        assert probs["attractiveness"] == 0.5
        assert predictor.tail_probability("fun", direction=">=") == 0.5

    def test_stan_layout(self):
        layout = CovariateLayout.for_stan(["x"])
        draws = PosteriorDraws([[0.0, 1.0], [0.0, -1.0]], ["alpha", "beta[1]"])
        predictor = PosteriorPredictor(draws, layout)
        np.testing.assert_allclose(predictor.probability([1.0, 0.0]), [0.5, 0.5])
        assert predictor.tail_probability("x") == 0.5

    def test_missing_coefficient(self, dating_layout):
        draws = PosteriorDraws([[0.0]], ["intercept"])
        with pytest.raises(KeyError):
            PosteriorPredictor(draws, dating_layout)
