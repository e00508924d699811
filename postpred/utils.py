# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the PostPred package.

This module provides the small helpers shared by the rest of the package:

    - Lazy importing of submodules for fast package import
    - Backend selection between NumPy and PyTorch
    - A numerically stable sigmoid used by every logistic prediction
    - Conversion of user input into validated floating point arrays

Users will not typically need to interact with this module directly--it is designed
to be used internally by PostPred.
"""

from __future__ import annotations

import importlib.util
import sys

from types import ModuleType
from typing import overload, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import torch

from postpred.exceptions import InvalidDimensionError

if TYPE_CHECKING:
    from postpred import custom_types


def lazy_import(name: str):
    """Import a module only when it is first needed.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules.
    """
    # Check if the module is already imported
    if name in sys.modules:
        return sys.modules[name]

    # If not, import it lazily (modified from here:
    # https://docs.python.org/3/library/importlib.html#implementing-lazy-imports)
    spec = importlib.util.find_spec(name)
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    # Create the module with a lazy loader
    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def choose_module(values: Union[torch.Tensor, npt.NDArray]) -> ModuleType:
    """Choose the appropriate computational module based on input type.

    :param values: Input data whose type determines the module choice
    :type values: Union[torch.Tensor, npt.NDArray]

    :returns: The appropriate module (torch for tensors, numpy for arrays)
    :rtype: Union[torch, np]

    :raises TypeError: If the input type is not supported
    """
    if isinstance(values, torch.Tensor):
        return torch
    elif isinstance(values, np.ndarray):
        return np
    else:
        raise TypeError(f"Unsupported type for determining module: {type(values)}.")


@overload
def stable_sigmoid(exponent: npt.NDArray[np.floating]) -> npt.NDArray[np.floating]: ...


@overload
def stable_sigmoid(exponent: torch.Tensor) -> torch.Tensor: ...


def stable_sigmoid(exponent):
    r"""Compute sigmoid function in a numerically stable way.

    This function implements a numerically stable version of the sigmoid
    function that avoids overflow issues by using different computational
    approaches for positive and negative inputs.

    :param exponent: Input values for sigmoid computation. Must be floating point.
    :type exponent: Union[torch.Tensor, npt.NDArray[np.floating]]

    :returns: Sigmoid values with the same type and shape as input
    :rtype: Union[torch.Tensor, npt.NDArray[np.floating]]

    The function uses the identity:

    .. math::

        \sigma(x) =
        \begin{cases}
            \frac{1}{1 + e^{-x}} & \text{if } x \geq 0 \\
            \frac{e^{x}}{1 + e^{x}} & \text{if } x < 0
        \end{cases}
    """
    # Are we working with torch or numpy?
    module = choose_module(exponent)

    # Empty array to store the results
    sigma_exponent = module.full_like(exponent, module.nan)

    # Different approach for positive and negative values
    mask = exponent >= 0

    # Calculate the sigmoid function for the positives
    sigma_exponent[mask] = 1 / (1 + module.exp(-exponent[mask]))

    # Calculate the sigmoid function for the negatives
    neg_calc = module.exp(exponent[~mask])
    sigma_exponent[~mask] = neg_calc / (1 + neg_calc)

    # We should have no NaN values in the result
    assert not module.any(module.isnan(sigma_exponent))
    return sigma_exponent


def as_float_array(
    values, name: str, ndim: "custom_types.Integer | tuple[int, ...]"
) -> npt.NDArray[np.float64]:
    """Convert an input to a float64 array with the expected dimensionality.

    :param values: Array-like input. `CovariateTemplate` and `torch.Tensor`
        inputs are converted through their array representations.
    :param name: Name of the argument, used in error messages
    :type name: str
    :param ndim: Allowed number(s) of dimensions
    :type ndim: Union[custom_types.Integer, tuple[int, ...]]

    :returns: The converted array
    :rtype: npt.NDArray[np.float64]

    :raises InvalidDimensionError: If the array has the wrong number of dimensions
    :raises ValueError: If the array contains non-finite values
    """
    if isinstance(values, torch.Tensor):
        values = values.detach().cpu().numpy()
    array = np.asarray(values, dtype=np.float64)

    allowed = (ndim,) if isinstance(ndim, (int, np.integer)) else tuple(ndim)
    if array.ndim not in allowed:
        raise InvalidDimensionError(
            f"`{name}` must have {' or '.join(map(str, allowed))} dimension(s), "
            f"got shape {array.shape}."
        )
    if not np.all(np.isfinite(array)):
        raise ValueError(f"`{name}` contains non-finite values.")

    return array


def stan_column_name(varname: str, index: tuple[int, ...]) -> str:
    """Build the Stan column name of one element of an array-valued variable.

    Stan indices are 1-based: element ``(0, 2)`` of ``theta`` is ``theta[1,3]``.
    """
    if len(index) == 0:
        return varname
    return f"{varname}[{','.join(str(ind + 1) for ind in index)}]"
