# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for PostPred.

This module provides type aliases for the scalar, vector, and draw inputs
accepted throughout the package.

All imports are conditional on TYPE_CHECKING to avoid circular imports while
maintaining proper type hints for development and documentation tools.
"""

from typing import Literal, Mapping, Sequence, TYPE_CHECKING, Union

# Everything in this file is only imported if TYPE_CHECKING is True.
if TYPE_CHECKING:

    import numpy as np
    import numpy.typing as npt
    import pandas as pd

    from postpred.covariates import CovariateTemplate
    from postpred.draws import PosteriorDraws

# Scalar types
Integer = Union[int, "np.integer"]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

Float = Union[float, "np.floating"]
"""Type alias for floating-point values.

Accepts both Python's built-in float and NumPy floating-point types.

:type: Union[float, np.floating]
"""

# Vector types
VectorLike = Union[Sequence[float], "npt.NDArray[np.floating]", "CovariateTemplate"]
"""Type alias for one-dimensional numeric inputs such as covariate templates.

:type: Union[Sequence[float], npt.NDArray[np.floating], CovariateTemplate]
"""

DrawsLike = Union[
    Sequence[float],
    Sequence[Sequence[float]],
    "npt.NDArray[np.floating]",
    "PosteriorDraws",
]
"""Type alias for coefficient draws.

Either a single coefficient vector, a `(n_draws, K)` matrix, or a
`PosteriorDraws` object paired with a covariate layout.

:type: Union[Sequence[float], Sequence[Sequence[float]], npt.NDArray, PosteriorDraws]
"""

Dataset = Union[Mapping[str, Sequence[float]], "pd.DataFrame"]
"""Type alias for a dataset of named, equal-length numeric columns.

:type: Union[Mapping[str, Sequence[float]], pd.DataFrame]
"""

TailDirection = Literal["<=", ">="]
"""Side of a one-sided posterior tail probability.

:type: Literal["<=", ">="]
"""
