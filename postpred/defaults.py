# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for PostPred package components.

This module centralizes default values used across the package, including
prediction grid settings, numerical tolerances, Stan sampler configuration,
and diagnostic thresholds.

The module is organized into logical groups covering:
    - Prediction and summarization defaults
    - Stan model compilation and sampling settings
    - Diagnostic thresholds for convergence checks
    - Plotting defaults

Default values cannot be programmatically altered. The command line pipelines
expose the relevant ones as flags.
"""

from typing import Any, Literal

# Prediction defaults
DEFAULT_GRID_POINTS: int = 100
"""Default number of points in a covariate sweep grid.

:type: int
"""

DEFAULT_SIMPLEX_ATOL: float = 1e-9
"""Absolute tolerance used when checking that class-probability rows sum to one.

:type: float
"""

DEFAULT_TAIL_DIRECTION: Literal["<=", ">="] = "<="
"""Default side for one-sided posterior tail probabilities.

:type: Literal["<=", ">="]
"""

DEFAULT_TAIL_THRESHOLD: float = 0.0
"""Default threshold for one-sided posterior tail probabilities.

:type: float
"""

DEFAULT_HDI_PROB: float = 0.94
"""Default probability mass of highest density intervals in summaries.

:type: float
"""

DEFAULT_INTERCEPT_NAME: str = "intercept"
"""Default name of the intercept coordinate in covariate layouts.

:type: str
"""

# Defaults for the Stan model
DEFAULT_FORCE_COMPILE: bool = False
"""Default setting for forcing Stan model recompilation.

When False, an existing executable in the output directory is reused.

:type: bool
"""

DEFAULT_STANC_OPTIONS: dict[str, Any] = {"warn-pedantic": True, "O1": True}
"""Default options passed to the Stan compiler (stanc).

:type: dict[str, bool]
"""

DEFAULT_CPP_OPTIONS: dict[str, Any] = {}
"""Default C++ compilation options for Stan models.

:type: dict[str, Any]
"""

DEFAULT_CHAINS: int = 4
"""Default number of MCMC chains.

:type: int
"""

DEFAULT_ITER_WARMUP: int = 1000
"""Default number of warmup iterations per chain.

:type: int
"""

DEFAULT_ITER_SAMPLING: int = 1000
"""Default number of post-warmup draws per chain.

:type: int
"""

# Defaults for Stan diagnostics
DEFAULT_ESS_THRESH: int = 100  # Per chain
"""Default threshold for Effective Sample Size (ESS) per chain.

:type: int
"""

DEFAULT_RHAT_THRESH: float = 1.01
"""Default threshold for R-hat convergence diagnostic.

:type: float
"""

# Plotting defaults
DEFAULT_N_BAND_DRAWS: int = 100
"""Default number of per-draw curves drawn in an uncertainty band.

:type: int
"""
