# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
PostPred: Posterior prediction and checking for Stan-fitted Bayesian models.

PostPred turns the posterior draws of a fitted Stan model into the quantities a
Bayesian analysis actually reports: predicted probabilities along a swept
covariate, marginal effects between two covariate settings, one-sided posterior
probabilities, hard class assignments from mixture models, and posterior
predictive checks. Stan (through CmdStanPy) is treated as an external sampler;
everything downstream of the draws is implemented here.

Key Features:
    - Immutable posterior draw matrices built from CmdStanPy, ArviZ, or pandas
    - Named covariate layouts resolved once and reused for every prediction
    - Numerically stable logistic predictions with per-draw uncertainty
    - Mixture class assignment and hurdle count predictive distributions
    - Posterior predictive checks and convergence summaries

Global Variables:
    RNG: Global random number generator for reproducible computations
    __version__: Package version string

Example:
    >>> import postpred as pp
    >>> pp.manual_seed(42)
    >>> grid = pp.prediction.sweep_grid(1.0, 10.0, 50)
"""

from typing import Optional, TYPE_CHECKING

from typeguard import install_import_hook

import numpy as np
import torch

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("postpred")

# Define the global random number generator
RNG: np.random.Generator
"""Global random number generator for PostPred.

Used for seeding the Stan sampler, thinning draws, and simulating replicated
datasets when no explicit generator is passed. Seed it with `manual_seed`.

:type: np.random.Generator
"""

# Get custom types if TYPE_CHECKING is True
if TYPE_CHECKING:
    from postpred import custom_types


def manual_seed(seed: Optional["custom_types.Integer"] = None):
    """Set the seed for global random number generators.

    This function sets the seed for both NumPy and PyTorch random number
    generators so that sampler seeds, draw thinning, and predictive simulations
    are reproducible. It updates the global RNG variable.

    :param seed: Seed value for random number generation. If None, uses
                system entropy to generate a random seed.
    :type seed: Union[custom_types.Integer, None]

    Example:
        >>> import postpred as pp
        >>> pp.manual_seed(42)
        >>> pp.RNG.normal(0, 1, size=3)  # Same values on every run
    """
    global RNG  # pylint: disable=global-statement
    RNG = np.random.default_rng(seed)
    if seed is not None:
        torch.manual_seed(seed)


manual_seed()  # Set the seed for the global random number generator

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from postpred import utils

from postpred.covariates import CovariateLayout, CovariateTemplate
from postpred.draws import PosteriorDraws
from postpred.prediction import PosteriorPredictor

prediction = utils.lazy_import("postpred.prediction")
mixture = utils.lazy_import("postpred.mixture")
hurdle = utils.lazy_import("postpred.hurdle")
ppc = utils.lazy_import("postpred.ppc")
