"""
Tests for the draws module.
"""

import arviz as az
import numpy as np
import pandas as pd
import pytest

from postpred.draws import PosteriorDraws
from postpred.exceptions import EmptyDrawSetError, InvalidDimensionError


class TestPosteriorDrawsConstruction:
    """Test building PosteriorDraws objects."""

    def test_from_array(self):
        draws = PosteriorDraws([[0.5, -0.2], [0.4, 0.1]], ["slope", "intercept"])
        assert len(draws) == 2
        assert draws.parameter_names == ("slope", "intercept")
        np.testing.assert_array_equal(draws["slope"], [0.5, 0.4])

    def test_zero_draws(self):
        with pytest.raises(EmptyDrawSetError):
            PosteriorDraws(np.empty((0, 2)), ["a", "b"])

    def test_name_count_mismatch(self):
        with pytest.raises(InvalidDimensionError):
            PosteriorDraws([[1.0, 2.0]], ["a"])

    def test_duplicate_names(self):
        with pytest.raises(ValueError, match="unique"):
            PosteriorDraws([[1.0, 2.0]], ["a", "a"])

    def test_quantity_draw_axis_must_match(self):
        with pytest.raises(InvalidDimensionError, match="leading axis"):
            PosteriorDraws([[1.0], [2.0]], ["a"], quantities={"q": np.zeros((3, 2))})

    def test_from_records(self):
        draws = PosteriorDraws.from_records([{"a": 1.0, "b": 2.0}, {"b": 4.0, "a": 3.0}])
        np.testing.assert_array_equal(draws.values, [[1.0, 2.0], [3.0, 4.0]])

    def test_from_records_differing_keys(self):
        """Test that every draw must share the same parameter names."""
        with pytest.raises(InvalidDimensionError):
            PosteriorDraws.from_records([{"a": 1.0}, {"b": 2.0}])

    def test_from_records_empty(self):
        with pytest.raises(EmptyDrawSetError):
            PosteriorDraws.from_records([])

    def test_from_dataframe_drops_sampler_columns(self):
        df = pd.DataFrame({"lp__": [-1.0, -2.0], "alpha": [0.1, 0.2], "beta[1]": [1, 2]})
        draws = PosteriorDraws.from_dataframe(df)
        assert draws.parameter_names == ("alpha", "beta[1]")

    def test_from_inference_data(self):
        """Test stacking chains and flattening vectors into Stan-named columns."""
        rng = np.random.default_rng(0)
        idata = az.from_dict(
            posterior={
                "alpha": rng.normal(size=(2, 5)),
                "beta": rng.normal(size=(2, 5, 3)),
                "class_probs": np.full((2, 5, 4, 2), 0.5),
            }
        )
        draws = PosteriorDraws.from_inference_data(idata, quantities=["class_probs"])

        assert len(draws) == 10
        assert draws.parameter_names == ("alpha", "beta[1]", "beta[2]", "beta[3]")
        assert draws.quantity("class_probs").shape == (10, 4, 2)
        np.testing.assert_array_equal(
            draws["beta[2]"], idata.posterior["beta"].values[..., 1].ravel()
        )
        assert draws.to_inference_data() is idata

    def test_from_inference_data_missing_quantity(self):
        idata = az.from_dict(posterior={"alpha": np.zeros((1, 3))})
        with pytest.raises(KeyError):
            PosteriorDraws.from_inference_data(idata, quantities=["missing"])


class TestPosteriorDrawsAccess:
    """Test the accessors of PosteriorDraws."""

    def test_immutable(self, dating_draws):
        with pytest.raises(ValueError):
            dating_draws.values[0, 0] = 10.0
        with pytest.raises(ValueError):
            dating_draws["sincerity"][0] = 10.0

    def test_input_not_aliased(self):
        values = np.array([[1.0, 2.0]])
        draws = PosteriorDraws(values, ["a", "b"])
        values[0, 0] = 100.0
        assert draws["a"][0] == 1.0

    def test_unknown_parameter(self, dating_draws):
        assert "fun" in dating_draws
        assert "ambition" not in dating_draws
        with pytest.raises(KeyError):
            dating_draws["ambition"]
        with pytest.raises(KeyError):
            dating_draws.coefficients(["fun", "ambition"])

    def test_coefficients_order(self, dating_draws):
        matrix = dating_draws.coefficients(["fun", "intercept"])
        np.testing.assert_array_equal(matrix[:, 0], dating_draws["fun"])
        np.testing.assert_array_equal(matrix[:, 1], dating_draws["intercept"])

    def test_mean(self, dating_draws):
        np.testing.assert_allclose(dating_draws.mean(["intercept"]), [-0.15])
        assert dating_draws.mean().shape == (5,)

    def test_thin(self, dating_draws):
        thinned = dating_draws.thin(2, seed=3)
        assert len(thinned) == 2
        assert thinned.parameter_names == dating_draws.parameter_names
        np.testing.assert_array_equal(thinned.values, dating_draws.thin(2, seed=3).values)
        assert dating_draws.thin(10) is dating_draws
        with pytest.raises(ValueError):
            dating_draws.thin(0)

    def test_thin_keeps_quantities_aligned(self):
        draws = PosteriorDraws(
            np.arange(6.0)[:, None], ["a"], quantities={"q": np.arange(6.0) * 10}
        )
        thinned = draws.thin(3, seed=0)
        np.testing.assert_array_equal(thinned.quantity("q"), thinned["a"] * 10)

    def test_to_dataframe(self, dating_draws):
        df = dating_draws.to_dataframe()
        assert list(df.columns) == list(dating_draws.parameter_names)
        assert len(df) == 4

    def test_to_inference_data_single_chain(self, dating_draws):
        idata = dating_draws.to_inference_data()
        assert idata.posterior.sizes["chain"] == 1
        assert idata.posterior.sizes["draw"] == 4
