# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Plotting utilities for PostPred results.

The builders here consume computed series (predictive curves, contrast samples,
class labels, count distributions, relative quantiles) and return HoloViews
objects with sensible defaults that remain fully customizable.

Key Functionality:

    - Predictive curves with per-draw uncertainty
    - Histograms of posterior samples
    - Mixture class assignments
    - Posterior predictive checks for counts and calibration
"""

from .plotting import (
    plot_calibration,
    plot_class_scatter,
    plot_count_ppc,
    plot_histogram,
    plot_predictive_curves,
)
