# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Stan programs and the CmdStan sampler used to fit them.

The sampler is an external collaborator: the rest of PostPred only sees the
:py:class:`~postpred.draws.PosteriorDraws` it returns.
"""

from postpred.stan.programs import (
    ModelSpec,
    gaussian_mixture_spec,
    hurdle_poisson_spec,
    logistic_regression_spec,
)
from postpred.stan.stan_model import CmdStanSampler, Sampler
