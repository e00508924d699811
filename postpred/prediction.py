# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior predictions for logistic regression models.

This module converts the coefficient draws of a fitted logistic regression into
predicted probabilities. It covers the computations a Bayesian regression write-up
relies on once sampling is finished:

    - Linear predictors and their logistic transform
    - Predictive curves along one swept covariate, per draw and for the
      draw-averaged coefficients
    - Posterior distributions of marginal effects between two covariate settings
    - One-sided posterior probabilities of a parameter

Every function accepts draws in one of three forms: a single coefficient vector,
a ``(n_draws, K)`` coefficient matrix, or a
:py:class:`~postpred.draws.PosteriorDraws` object together with the
:py:class:`~postpred.covariates.CovariateLayout` that selects its coefficient
columns. Lengths are never truncated or broadcast to make inputs agree: a
covariate vector of length K must meet exactly K coefficients.

:py:class:`PosteriorPredictor` binds one draw matrix and one layout, resolving
coefficient columns once, and exposes the same computations by covariate name.

Example:
    >>> from postpred.prediction import linear_predictor, to_probability
    >>> eta = linear_predictor(
    ...     [1, 5.0, 3.0, 4.0, 3.5], [-0.2, 0.5, 0.1, 0.05, -0.05]
    ... )
    >>> round(eta, 3), round(to_probability(eta), 4)
    (2.625, 0.9325)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import pandas as pd

from postpred import utils
from postpred.covariates import CovariateLayout, CovariateTemplate
from postpred.defaults import (
    DEFAULT_GRID_POINTS,
    DEFAULT_HDI_PROB,
    DEFAULT_TAIL_DIRECTION,
    DEFAULT_TAIL_THRESHOLD,
)
from postpred.draws import PosteriorDraws
from postpred.exceptions import EmptyDrawSetError, InvalidDimensionError

if TYPE_CHECKING:
    from postpred import custom_types

# Probabilities are clipped into the open unit interval
_SMALLEST_PROB = np.nextafter(0.0, 1.0)
_LARGEST_PROB = np.nextafter(1.0, 0.0)


def _coefficient_matrix(
    draws: "custom_types.DrawsLike", layout: Optional[CovariateLayout] = None
) -> tuple[npt.NDArray[np.float64], bool]:
    """Convert any accepted draw format into a ``(n_draws, K)`` matrix.

    :returns: The coefficient matrix and whether a single draw vector was given
    :rtype: tuple[npt.NDArray[np.float64], bool]

    :raises ValueError: If `draws` is a PosteriorDraws object and no layout is given
    :raises EmptyDrawSetError: If there are no draws
    """
    # PosteriorDraws need a layout to pick out and order the coefficients
    if isinstance(draws, PosteriorDraws):
        if layout is None:
            raise ValueError(
                "A CovariateLayout is required to select coefficients from "
                "PosteriorDraws."
            )
        return draws.coefficients(layout.coefficient_names), False

    # Otherwise, we have a single vector or a matrix
    coefficients = utils.as_float_array(draws, "draws", (1, 2))
    if coefficients.ndim == 1:
        return coefficients[None], True
    if coefficients.shape[0] == 0:
        raise EmptyDrawSetError("No posterior draws were provided.")
    return coefficients, False


def _check_aligned(
    covariates: npt.NDArray[np.float64], coefficients: npt.NDArray[np.float64]
) -> None:
    """Covariates and coefficient draws must have the same length."""
    if covariates.shape[-1] != coefficients.shape[-1]:
        raise InvalidDimensionError(
            f"Covariate vector has length {covariates.shape[-1]} but each draw has "
            f"{coefficients.shape[-1]} coefficients."
        )


def linear_predictor(
    covariates: "custom_types.VectorLike",
    draw: "custom_types.DrawsLike",
    layout: Optional[CovariateLayout] = None,
) -> Union[float, npt.NDArray[np.float64]]:
    """Dot product of a covariate vector with one or more coefficient draws.

    :param covariates: Covariate vector of length K, intercept coordinate first
    :type covariates: custom_types.VectorLike
    :param draw: A coefficient vector of length K, a ``(n_draws, K)`` matrix, or a
        PosteriorDraws object
    :type draw: custom_types.DrawsLike
    :param layout: Layout selecting coefficients from PosteriorDraws. Defaults to None.
    :type layout: Optional[CovariateLayout]

    :returns: A float for a single coefficient vector, one value per draw otherwise
    :rtype: Union[float, npt.NDArray[np.float64]]

    :raises InvalidDimensionError: If the lengths disagree
    :raises EmptyDrawSetError: If there are no draws
    """
    x = utils.as_float_array(covariates, "covariates", 1)
    coefficients, single = _coefficient_matrix(draw, layout)
    _check_aligned(x, coefficients)

    values = coefficients @ x
    return float(values[0]) if single else values


def to_probability(
    linear_value: Union["custom_types.Float", "custom_types.VectorLike"],
) -> Union[float, npt.NDArray[np.float64]]:
    """Apply the logistic link, ``1 / (1 + exp(-x))``.

    Computed with :py:func:`postpred.utils.stable_sigmoid`, so large magnitudes
    never overflow. Results are additionally clipped to the open interval (0, 1):
    in double precision, inputs beyond roughly +-37 would otherwise round to
    exactly 1 or 0.

    :param linear_value: Value(s) on the logit scale
    :type linear_value: Union[custom_types.Float, custom_types.VectorLike]

    :returns: A float for scalar input, otherwise an array of the input's shape
    :rtype: Union[float, npt.NDArray[np.float64]]

    :raises ValueError: If the input contains non-finite values
    """
    values = np.asarray(linear_value, dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise ValueError("`linear_value` contains non-finite values.")

    probabilities = np.clip(
        utils.stable_sigmoid(np.atleast_1d(values)).reshape(values.shape),
        _SMALLEST_PROB,
        _LARGEST_PROB,
    )
    return float(probabilities) if values.ndim == 0 else probabilities


def sweep_grid(
    low_value: "custom_types.Float",
    high_value: "custom_types.Float",
    num_points: "custom_types.Integer" = DEFAULT_GRID_POINTS,
) -> npt.NDArray[np.float64]:
    """Evenly spaced ascending grid from `low_value` to `high_value` inclusive.

    :param low_value: First grid value
    :type low_value: custom_types.Float
    :param high_value: Last grid value. Must not be below `low_value`.
    :type high_value: custom_types.Float
    :param num_points: Number of grid values. A single point returns just
        `low_value`. Defaults to 100.
    :type num_points: custom_types.Integer

    :returns: The grid, spaced by ``(high_value - low_value) / (num_points - 1)``
    :rtype: npt.NDArray[np.float64]

    :raises ValueError: If `num_points` is below 1, the bounds are not finite, or
        `high_value` is below `low_value`
    """
    if num_points < 1:
        raise ValueError("`num_points` must be at least 1.")
    if not (np.isfinite(low_value) and np.isfinite(high_value)):
        raise ValueError("Grid bounds must be finite.")
    if high_value < low_value:
        raise ValueError(
            f"`high_value` ({high_value}) must not be below `low_value` ({low_value})."
        )

    if num_points == 1:
        return np.array([float(low_value)])
    return np.linspace(float(low_value), float(high_value), int(num_points))


@dataclass(frozen=True, eq=False)
class PredictiveCurves:
    """Predicted probabilities along a swept covariate for many draws.

    :ivar grid: The swept covariate values
    :ivar per_draw: One curve per draw, shape ``(n_draws, n_grid)``, in draw order
    :ivar mean_curve: The curve of the draw-averaged coefficient vector
    """

    grid: npt.NDArray[np.float64]
    per_draw: npt.NDArray[np.float64]
    mean_curve: npt.NDArray[np.float64]

    def __len__(self) -> int:
        return len(self.grid)

    def interval(
        self, prob: "custom_types.Float" = DEFAULT_HDI_PROB
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Pointwise equal-tailed interval of the per-draw curves.

        :param prob: Probability mass inside the interval. Defaults to 0.94.
        :type prob: custom_types.Float

        :returns: Lower and upper bounds at every grid value
        :rtype: tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]
        """
        if not 0 < prob < 1:
            raise ValueError("`prob` must be between 0 and 1.")
        lower, upper = np.quantile(
            self.per_draw, [(1 - prob) / 2, (1 + prob) / 2], axis=0
        )
        return lower, upper

    def to_dataframe(self, prob: "custom_types.Float" = DEFAULT_HDI_PROB) -> pd.DataFrame:
        """Grid, mean curve, and interval bounds as columns."""
        lower, upper = self.interval(prob)
        return pd.DataFrame(
            {"grid": self.grid, "mean": self.mean_curve, "lower": lower, "upper": upper}
        )


def predictive_curve(
    template: "custom_types.VectorLike",
    coordinate_index: Union[str, "custom_types.Integer"],
    grid: "custom_types.VectorLike",
    draws: "custom_types.DrawsLike",
    layout: Optional[CovariateLayout] = None,
) -> Union[npt.NDArray[np.float64], PredictiveCurves]:
    """Predicted probabilities as one covariate sweeps over a grid.

    At every grid value the covariate at `coordinate_index` is replaced while all
    others keep their template values. The template itself is never modified.

    :param template: Covariate vector holding the fixed reference values
    :type template: custom_types.VectorLike
    :param coordinate_index: Position of the swept covariate, or its name when
        `template` is a CovariateTemplate with a layout
    :type coordinate_index: Union[str, custom_types.Integer]
    :param grid: Values of the swept covariate
    :type grid: custom_types.VectorLike
    :param draws: A single coefficient vector, a ``(n_draws, K)`` matrix, or a
        PosteriorDraws object
    :type draws: custom_types.DrawsLike
    :param layout: Layout selecting coefficients from PosteriorDraws. Defaults to None.
    :type layout: Optional[CovariateLayout]

    :returns: For a single coefficient vector, the curve aligned with `grid`.
        Otherwise a :py:class:`PredictiveCurves` with one curve per draw plus the
        curve of the mean coefficients.
    :rtype: Union[npt.NDArray[np.float64], PredictiveCurves]

    :raises InvalidDimensionError: If the template and draws disagree in length, or
        `coordinate_index` is out of range
    :raises EmptyDrawSetError: If there are no draws
    """
    base = (
        template
        if isinstance(template, CovariateTemplate)
        else CovariateTemplate(template)
    )
    index = base.resolve_index(coordinate_index)
    grid = utils.as_float_array(grid, "grid", 1)
    coefficients, single = _coefficient_matrix(draws, layout)
    _check_aligned(base.values, coefficients)

    # One covariate row per grid value, built on a fresh copy of the template
    design = np.tile(base.values, (len(grid), 1))
    design[:, index] = grid

    # Curves for every draw
    curves = to_probability(coefficients @ design.T)
    if single:
        return curves[0]

    return PredictiveCurves(
        grid=grid,
        per_draw=curves,
        mean_curve=to_probability(design @ coefficients.mean(axis=0)),
    )


def contrast_statistic(
    template_low: "custom_types.VectorLike",
    template_high: "custom_types.VectorLike",
    draws: "custom_types.DrawsLike",
    layout: Optional[CovariateLayout] = None,
) -> npt.NDArray[np.float64]:
    """Posterior distribution of the change in probability between two settings.

    Computes ``p(template_high) - p(template_low)`` for every draw.

    :param template_low: Covariate vector of the reference setting
    :type template_low: custom_types.VectorLike
    :param template_high: Covariate vector of the comparison setting
    :type template_high: custom_types.VectorLike
    :param draws: A single coefficient vector, a ``(n_draws, K)`` matrix, or a
        PosteriorDraws object
    :type draws: custom_types.DrawsLike
    :param layout: Layout selecting coefficients from PosteriorDraws. Defaults to None.
    :type layout: Optional[CovariateLayout]

    :returns: One difference per draw
    :rtype: npt.NDArray[np.float64]

    :raises InvalidDimensionError: If the templates and draws disagree in length
    :raises EmptyDrawSetError: If there are no draws
    """
    low = utils.as_float_array(template_low, "template_low", 1)
    high = utils.as_float_array(template_high, "template_high", 1)
    if len(low) != len(high):
        raise InvalidDimensionError(
            f"Templates have different lengths: {len(low)} and {len(high)}."
        )
    coefficients, _ = _coefficient_matrix(draws, layout)
    _check_aligned(low, coefficients)

    return to_probability(coefficients @ high) - to_probability(coefficients @ low)


def posterior_tail_probability(
    parameter_name: str,
    draws: Union[PosteriorDraws, Mapping[str, "custom_types.VectorLike"], pd.DataFrame],
    threshold: "custom_types.Float" = DEFAULT_TAIL_THRESHOLD,
    direction: "custom_types.TailDirection" = DEFAULT_TAIL_DIRECTION,
) -> float:
    """Fraction of draws on one side of a threshold, threshold included.

    :param parameter_name: Parameter to evaluate
    :type parameter_name: str
    :param draws: Draws containing the parameter
    :type draws: Union[PosteriorDraws, Mapping[str, custom_types.VectorLike], pd.DataFrame]
    :param threshold: Threshold value. Defaults to 0.
    :type threshold: custom_types.Float
    :param direction: "<=" counts draws at or below the threshold, ">=" draws at
        or above it. Defaults to "<=".
    :type direction: custom_types.TailDirection

    :returns: Estimated posterior probability in [0, 1]
    :rtype: float

    :raises ValueError: If `direction` is not recognized
    :raises KeyError: If the parameter is not in `draws`
    :raises EmptyDrawSetError: If there are no draws

    Example:
        >>> posterior_tail_probability(
        ...     "attractiveness", {"attractiveness": [0.5, -0.1, 0.2, -0.3]}
        ... )
        0.5
    """
    if direction not in ("<=", ">="):
        raise ValueError(f"`direction` must be '<=' or '>=', got '{direction}'.")

    # Pull out the parameter
    if isinstance(draws, PosteriorDraws):
        values = draws[parameter_name]
    else:
        if parameter_name not in draws:
            raise KeyError(f"Unknown parameter '{parameter_name}'.")
        values = utils.as_float_array(
            np.asarray(draws[parameter_name]), parameter_name, 1
        )
    if len(values) == 0:
        raise EmptyDrawSetError("No posterior draws were provided.")

    # Count the qualifying draws
    hits = values <= threshold if direction == "<=" else values >= threshold
    return float(np.mean(hits))


class PosteriorPredictor:
    """Predictions from one posterior draw matrix, addressed by covariate name.

    The coefficient columns named by the layout are extracted from the draws once,
    at construction.

    :param draws: Posterior draws containing every coefficient of the layout
    :type draws: PosteriorDraws
    :param layout: Layout of the regression
    :type layout: CovariateLayout

    :ivar coefficients: Coefficient matrix of shape ``(n_draws, len(layout))``

    :raises KeyError: If a coefficient of the layout is missing from the draws

    Example:
        >>> predictor = PosteriorPredictor(draws, layout)
        >>> reference = predictor.reference(dataset)
        >>> curves = predictor.curve("attractiveness", sweep_grid(1, 10), reference)
        >>> effect = predictor.contrast("attractiveness", 4.5, 5.5, reference)
    """

    def __init__(self, draws: PosteriorDraws, layout: CovariateLayout):
        self.draws = draws
        self.layout = layout
        self.coefficients = draws.coefficients(layout.coefficient_names)

    def reference(
        self,
        dataset: Optional["custom_types.Dataset"] = None,
        **overrides: "custom_types.Float",
    ) -> CovariateTemplate:
        """Build a reference template.

        Covariates take their dataset means, then any keyword overrides. Without
        a dataset, every covariate must be given as a keyword.
        """
        if dataset is None:
            return self.layout.template(overrides)

        template = self.layout.reference_template(dataset)
        for name, value in overrides.items():
            template = template.with_value(name, value)
        return template

    def _as_template(self, template: "custom_types.VectorLike") -> CovariateTemplate:
        """Attach the layout to plain vectors so covariates resolve by name."""
        if isinstance(template, CovariateTemplate) and template.layout is self.layout:
            return template
        return CovariateTemplate(template, layout=self.layout)

    def linear_predictor(
        self, template: "custom_types.VectorLike"
    ) -> npt.NDArray[np.float64]:
        """Linear predictor at a template, one value per draw."""
        return linear_predictor(self._as_template(template), self.coefficients)

    def probability(
        self, template: "custom_types.VectorLike"
    ) -> npt.NDArray[np.float64]:
        """Predicted probability at a template, one value per draw."""
        return to_probability(self.linear_predictor(template))

    def curve(
        self,
        covariate: str,
        grid: "custom_types.VectorLike",
        template: "custom_types.VectorLike",
    ) -> PredictiveCurves:
        """Predictive curves as the named covariate sweeps over `grid`."""
        template = self._as_template(template)
        return predictive_curve(template, covariate, grid, self.coefficients)

    def contrast(
        self,
        covariate: str,
        low: "custom_types.Float",
        high: "custom_types.Float",
        template: "custom_types.VectorLike",
    ) -> npt.NDArray[np.float64]:
        """Per-draw change in probability as the named covariate goes from `low`
        to `high`, all other covariates held at the template."""
        template = self._as_template(template)
        return contrast_statistic(
            template.with_value(covariate, low),
            template.with_value(covariate, high),
            self.coefficients,
        )

    def tail_probability(
        self,
        covariate: str,
        threshold: "custom_types.Float" = DEFAULT_TAIL_THRESHOLD,
        direction: "custom_types.TailDirection" = DEFAULT_TAIL_DIRECTION,
    ) -> float:
        """Posterior tail probability of the coefficient of a named covariate."""
        return posterior_tail_probability(
            self.layout.coefficient_name(covariate), self.draws, threshold, direction
        )

    def tail_probabilities(
        self,
        threshold: "custom_types.Float" = DEFAULT_TAIL_THRESHOLD,
        direction: "custom_types.TailDirection" = DEFAULT_TAIL_DIRECTION,
    ) -> dict[str, float]:
        """Tail probabilities of every coefficient, keyed by covariate name."""
        return {
            name: self.tail_probability(name, threshold, direction)
            for name in self.layout.names
        }
