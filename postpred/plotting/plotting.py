"""Plot builders for posterior predictions and checks.

Every function takes series already computed elsewhere in PostPred and returns a
HoloViews object; nothing here computes posterior quantities beyond simple
reshaping. Plots are built on HoloViews and hvplot and can be further styled
with ``.opts``.
"""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

import holoviews as hv
import hvplot.pandas  # pylint: disable=unused-import
import numpy as np
import numpy.typing as npt
import pandas as pd

from scipy import stats

import postpred

from postpred import utils
from postpred.defaults import DEFAULT_HDI_PROB, DEFAULT_N_BAND_DRAWS
from postpred.exceptions import InvalidDimensionError
from postpred.ppc import calculate_relative_quantiles

if TYPE_CHECKING:
    from postpred import custom_types
    from postpred.prediction import PredictiveCurves

PLOT_WIDTH = 600
PLOT_HEIGHT = 400


def _set_defaults(
    kwargs: dict[str, Any] | None, default_values: tuple[tuple[str, Any], ...]
) -> dict[str, Any]:
    """Fill in default plot options without overwriting user-provided ones.

    Example:
        >>> _set_defaults({"color": "red"}, (("color", "blue"), ("alpha", 0.5)))
        {'color': 'red', 'alpha': 0.5}
    """
    kwargs = dict(kwargs or {})
    for k, v in default_values:
        kwargs.setdefault(k, v)
    return kwargs


def plot_histogram(
    sample: "custom_types.VectorLike",
    name: str = "value",
    bins: "custom_types.Integer" = 50,
    **kwargs,
) -> hv.Histogram:
    """Histogram of a 1-D sample, such as a contrast statistic.

    :param sample: Values to bin
    :type sample: custom_types.VectorLike
    :param name: Axis label of the values. Defaults to "value".
    :type name: str
    :param bins: Number of bins. Defaults to 50.
    :type bins: custom_types.Integer
    :param kwargs: Additional options passed to `hvplot.hist`

    :returns: The histogram
    :rtype: hv.Histogram
    """
    sample = utils.as_float_array(sample, name, 1)
    kwargs = _set_defaults(
        kwargs, (("width", PLOT_WIDTH), ("height", PLOT_HEIGHT), ("alpha", 0.7))
    )
    return pd.DataFrame({name: sample}).hvplot.hist(y=name, bins=int(bins), **kwargs)


def plot_predictive_curves(
    curves: "PredictiveCurves",
    covariate: str = "x",
    n_draws: "custom_types.Integer" = DEFAULT_N_BAND_DRAWS,
    prob: Optional["custom_types.Float"] = DEFAULT_HDI_PROB,
    draw_kwargs: Optional[dict[str, Any]] = None,
    mean_kwargs: Optional[dict[str, Any]] = None,
    area_kwargs: Optional[dict[str, Any]] = None,
    rng: Optional[np.random.Generator] = None,
) -> hv.Overlay:
    """Overlay of per-draw predictive curves with the mean curve on top.

    :param curves: Curves from :py:func:`postpred.prediction.predictive_curve`
    :type curves: PredictiveCurves
    :param covariate: Label of the swept covariate. Defaults to "x".
    :type covariate: str
    :param n_draws: Maximum number of per-draw curves shown, chosen at random.
        Defaults to 100.
    :type n_draws: custom_types.Integer
    :param prob: Mass of the shaded pointwise interval, or None for no interval.
        Defaults to 0.94.
    :type prob: Optional[custom_types.Float]
    :param draw_kwargs: Options for the per-draw curves. See `hv.opts.Curve`.
    :type draw_kwargs: Optional[dict[str, Any]]
    :param mean_kwargs: Options for the mean curve. See `hv.opts.Curve`.
    :type mean_kwargs: Optional[dict[str, Any]]
    :param area_kwargs: Options for the interval. See `hv.opts.Area`.
    :type area_kwargs: Optional[dict[str, Any]]
    :param rng: Generator used to choose the shown draws. Defaults to the global RNG.
    :type rng: Optional[np.random.Generator]

    :returns: Interval, per-draw curves, and mean curve as one overlay
    :rtype: hv.Overlay
    """
    if n_draws < 0:
        raise ValueError("`n_draws` must be non-negative.")

    draw_kwargs = _set_defaults(
        draw_kwargs, (("color", "steelblue"), ("alpha", 0.1), ("line_width", 1))
    )
    mean_kwargs = _set_defaults(mean_kwargs, (("color", "black"), ("line_width", 2)))
    area_kwargs = _set_defaults(area_kwargs, (("color", "steelblue"), ("alpha", 0.2)))

    # Choose which draws to show
    rng = postpred.RNG if rng is None else rng
    n_shown = min(int(n_draws), curves.per_draw.shape[0])
    shown = np.sort(rng.choice(curves.per_draw.shape[0], size=n_shown, replace=False))

    plots = []
    if prob is not None:
        lower, upper = curves.interval(prob)
        plots.append(
            hv.Area(
                (curves.grid, lower, upper),
                kdims=[covariate],
                vdims=["probability", "upper"],
            ).opts(**area_kwargs)
        )
    plots.extend(
        hv.Curve(
            (curves.grid, curves.per_draw[ind]),
            kdims=[covariate],
            vdims=["probability"],
        ).opts(**draw_kwargs)
        for ind in shown
    )
    plots.append(
        hv.Curve(
            (curves.grid, curves.mean_curve), kdims=[covariate], vdims=["probability"]
        ).opts(**mean_kwargs)
    )

    return hv.Overlay(plots).opts(
        width=PLOT_WIDTH, height=PLOT_HEIGHT, show_legend=False
    )


def plot_class_scatter(
    x: "custom_types.VectorLike",
    y: "custom_types.VectorLike",
    labels: npt.ArrayLike,
    xlabel: str = "x",
    ylabel: str = "y",
    **kwargs,
) -> hv.Scatter:
    """Scatter of observations colored by their assigned mixture class.

    :param x: Horizontal coordinates
    :type x: custom_types.VectorLike
    :param y: Vertical coordinates
    :type y: custom_types.VectorLike
    :param labels: One class label per observation, as from
        :py:func:`postpred.mixture.assign_labels`
    :type labels: npt.ArrayLike
    :param xlabel: Horizontal axis label. Defaults to "x".
    :type xlabel: str
    :param ylabel: Vertical axis label. Defaults to "y".
    :type ylabel: str
    :param kwargs: Additional options passed to `hvplot.scatter`

    :returns: The scatter plot
    :rtype: hv.Scatter

    :raises InvalidDimensionError: If the inputs disagree in length
    """
    x = utils.as_float_array(x, "x", 1)
    y = utils.as_float_array(y, "y", 1)
    labels = np.asarray(labels)
    if not len(x) == len(y) == len(labels):
        raise InvalidDimensionError(
            f"Got {len(x)} x values, {len(y)} y values, and {len(labels)} labels."
        )

    kwargs = _set_defaults(
        kwargs,
        (("width", PLOT_WIDTH), ("height", PLOT_HEIGHT), ("cmap", "Category10")),
    )
    df = pd.DataFrame({xlabel: x, ylabel: y, "label": labels.astype(str)})
    return df.hvplot.scatter(x=xlabel, y=ylabel, c="label", **kwargs)


def plot_count_ppc(
    observed: npt.ArrayLike,
    predictive_pmf: "custom_types.VectorLike",
    bar_kwargs: Optional[dict[str, Any]] = None,
    pmf_kwargs: Optional[dict[str, Any]] = None,
) -> hv.Overlay:
    """Observed count frequencies against the posterior predictive pmf.

    Counts above the last pmf entry are left out of the bars.

    :param observed: Observed counts
    :type observed: npt.ArrayLike
    :param predictive_pmf: Predictive probability of each count from zero, as
        from :py:func:`postpred.hurdle.count_predictive_distribution`
    :type predictive_pmf: custom_types.VectorLike
    :param bar_kwargs: Options for the observed bars. See `hv.opts.Bars`.
    :type bar_kwargs: Optional[dict[str, Any]]
    :param pmf_kwargs: Options for the predicted points. See `hv.opts.Scatter`.
    :type pmf_kwargs: Optional[dict[str, Any]]

    :returns: Bars of observed frequencies overlaid with predicted probabilities
    :rtype: hv.Overlay
    """
    observed = np.asarray(observed, dtype=np.int64)
    predictive_pmf = utils.as_float_array(predictive_pmf, "predictive_pmf", 1)
    counts = np.arange(len(predictive_pmf))
    frequencies = np.bincount(
        observed[(observed >= 0) & (observed < len(counts))], minlength=len(counts)
    ) / max(len(observed), 1)

    bar_kwargs = _set_defaults(bar_kwargs, (("color", "lightgray"),))
    pmf_kwargs = _set_defaults(pmf_kwargs, (("color", "firebrick"), ("size", 6)))

    return hv.Overlay(
        [
            hv.Bars((counts, frequencies), kdims=["count"], vdims=["probability"]).opts(
                **bar_kwargs
            ),
            hv.Scatter(
                (counts, predictive_pmf), kdims=["count"], vdims=["probability"]
            ).opts(**pmf_kwargs),
        ]
    ).opts(width=PLOT_WIDTH, height=PLOT_HEIGHT)


def plot_calibration(
    reference: "custom_types.DrawsLike",
    observed: "custom_types.VectorLike",
    **kwargs,
) -> hv.Overlay:
    """ECDF of the relative quantiles of observations within replicated data.

    A calibrated model gives quantiles that are close to uniform, so the ECDF
    follows the dashed diagonal.

    :param reference: Replicated datasets, shape ``(n_draws, n_observations)``
    :type reference: custom_types.DrawsLike
    :param observed: Observed data, one value per observation
    :type observed: custom_types.VectorLike
    :param kwargs: Options for the ECDF curve. See `hv.opts.Curve`.

    :returns: The ECDF with the ideal diagonal
    :rtype: hv.Overlay
    """
    quantiles = calculate_relative_quantiles(reference, observed)
    ecdf = stats.ecdf(quantiles)

    kwargs = _set_defaults(kwargs, (("color", "steelblue"),))
    return hv.Overlay(
        [
            hv.Curve(
                (ecdf.cdf.quantiles, ecdf.cdf.probabilities),
                kdims=["Quantiles"],
                vdims=["Cumulative Probability"],
            ).opts(interpolation="steps-post", **kwargs),
            hv.Curve(
                ((0, 1), (0, 1)),
                kdims=["Quantiles"],
                vdims=["Cumulative Probability"],
            ).opts(line_color="black", line_dash="dashed", show_legend=False),
        ]
    ).opts(width=PLOT_WIDTH, height=PLOT_HEIGHT)
