# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Immutable posterior draw matrices.

A :py:class:`PosteriorDraws` object is the hand-off point between the external
sampler and every computation in PostPred. It stores one row per posterior draw
and one column per scalar parameter, together with any array-valued generated
quantities (such as the class-membership tensor of a mixture model) whose
leading axis is the draw axis.

Array-valued Stan parameters are flattened into scalar columns using Stan's own
naming convention (``beta[1]``, ``beta[2]``, ...), so column names line up with
what CmdStan writes to its CSV files.

Draw matrices are immutable: the underlying arrays are marked read-only, and
operations that select a subset of draws return new objects.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence, TYPE_CHECKING

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from cmdstanpy import CmdStanMCMC

import postpred

from postpred import utils
from postpred.exceptions import EmptyDrawSetError, InvalidDimensionError

if TYPE_CHECKING:
    from postpred import custom_types


def _read_only(array: npt.NDArray) -> npt.NDArray:
    """Return a read-only copy of an array."""
    array = np.array(array, copy=True)
    array.flags.writeable = False
    return array


class PosteriorDraws:
    """An immutable matrix of posterior draws.

    :param values: Draws with shape ``(n_draws, n_parameters)``
    :type values: Union[Sequence[Sequence[float]], npt.NDArray]
    :param parameter_names: One name per column of `values`
    :type parameter_names: Sequence[str]
    :param quantities: Additional named outputs with a leading draw axis.
        Defaults to None.
    :type quantities: Optional[Mapping[str, npt.NDArray]]
    :param inference_obj: ArviZ object the draws were taken from, if any. Kept
        for summaries and diagnostics. Defaults to None.
    :type inference_obj: Optional[az.InferenceData]

    :raises EmptyDrawSetError: If there are no draws
    :raises InvalidDimensionError: If the number of names does not match the
        number of columns, or a quantity has a different number of draws
    :raises ValueError: If parameter names are duplicated

    Example:
        >>> draws = PosteriorDraws(
        ...     [[0.5, -0.2], [0.4, 0.1]], parameter_names=["slope", "intercept"]
        ... )
        >>> draws["slope"]
        array([0.5, 0.4])
    """

    def __init__(
        self,
        values,
        parameter_names: Sequence[str],
        quantities: Optional[Mapping[str, "custom_types.VectorLike"]] = None,
        inference_obj: Optional[az.InferenceData] = None,
    ):
        # Convert and check the draws
        values = utils.as_float_array(values, "values", 2)
        if values.shape[0] == 0:
            raise EmptyDrawSetError("A posterior draw matrix needs at least one draw.")

        # Check the names
        parameter_names = tuple(parameter_names)
        if len(parameter_names) != values.shape[1]:
            raise InvalidDimensionError(
                f"Got {len(parameter_names)} parameter names for {values.shape[1]} "
                "columns of draws."
            )
        if len(set(parameter_names)) != len(parameter_names):
            raise ValueError("Parameter names must be unique.")

        # Store read-only copies
        self._values = _read_only(values)
        self._parameter_names = parameter_names
        self._column_index = {name: i for i, name in enumerate(parameter_names)}

        # Quantities must share the draw axis
        self._quantities: dict[str, npt.NDArray] = {}
        for name, quantity in (quantities or {}).items():
            quantity = np.asarray(quantity, dtype=np.float64)
            if quantity.ndim == 0 or quantity.shape[0] != values.shape[0]:
                raise InvalidDimensionError(
                    f"Quantity '{name}' has shape {quantity.shape}, but its leading "
                    f"axis must match the {values.shape[0]} draws."
                )
            self._quantities[name] = _read_only(quantity)

        self.inference_obj = inference_obj

    def __len__(self) -> int:
        return self._values.shape[0]

    def __contains__(self, name: str) -> bool:
        return name in self._column_index

    def __getitem__(self, name: str) -> npt.NDArray[np.float64]:
        """Get all draws of a single parameter."""
        if name not in self._column_index:
            raise KeyError(
                f"Unknown parameter '{name}'. Options are: "
                f"{', '.join(self._parameter_names)}."
            )
        return self._values[:, self._column_index[name]]

    def __repr__(self) -> str:
        return (
            f"PosteriorDraws(n_draws={len(self)}, "
            f"parameters={list(self._parameter_names)}, "
            f"quantities={list(self._quantities)})"
        )

    def coefficients(self, names: Iterable[str]) -> npt.NDArray[np.float64]:
        """Get the draws of several parameters as a matrix.

        :param names: Parameter names in the desired column order
        :type names: Iterable[str]

        :returns: Array of shape ``(n_draws, len(names))``
        :rtype: npt.NDArray[np.float64]

        :raises KeyError: If any name is not a parameter
        """
        names = tuple(names)
        if missing := [name for name in names if name not in self._column_index]:
            raise KeyError(f"Unknown parameters: {', '.join(missing)}.")
        return self._values[:, [self._column_index[name] for name in names]]

    def mean(self, names: Optional[Iterable[str]] = None) -> npt.NDArray[np.float64]:
        """Draw-wise mean of the requested parameters (all by default)."""
        if names is None:
            return self._values.mean(axis=0)
        return self.coefficients(names).mean(axis=0)

    def quantity(self, name: str) -> npt.NDArray[np.float64]:
        """Get a named generated quantity. The leading axis is the draw axis."""
        if name not in self._quantities:
            raise KeyError(
                f"Unknown quantity '{name}'. Options are: {', '.join(self._quantities)}."
            )
        return self._quantities[name]

    def thin(
        self,
        n: "custom_types.Integer",
        seed: Optional["custom_types.Integer"] = None,
    ) -> "PosteriorDraws":
        """Select a random subset of draws without replacement.

        :param n: Number of draws to keep. If at least the number of draws, the
            object is returned unchanged.
        :type n: custom_types.Integer
        :param seed: Seed for the selection. Uses the global RNG if None.
        :type seed: Optional[custom_types.Integer]

        :returns: Draw matrix with ``min(n, len(self))`` draws in their original order
        :rtype: PosteriorDraws
        """
        if n <= 0:
            raise ValueError("`n` must be a positive integer.")
        if n >= len(self):
            return self

        rng = postpred.RNG if seed is None else np.random.default_rng(seed)
        keep = np.sort(rng.choice(len(self), size=n, replace=False))
        return PosteriorDraws(
            self._values[keep],
            self._parameter_names,
            quantities={name: q[keep] for name, q in self._quantities.items()},
        )

    def to_dataframe(self) -> pd.DataFrame:
        """The draws as a DataFrame with one column per parameter."""
        return pd.DataFrame(self._values, columns=list(self._parameter_names))

    def to_inference_data(self) -> az.InferenceData:
        """Get an ArviZ representation of the draws.

        Returns the object the draws were built from when there is one. Otherwise
        the draws are treated as a single chain.
        """
        if self.inference_obj is not None:
            return self.inference_obj

        posterior = {
            name: self._values[None, :, i] for i, name in enumerate(self._parameter_names)
        }
        posterior.update({name: q[None] for name, q in self._quantities.items()})
        return az.from_dict(posterior=posterior)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Names of the scalar parameter columns."""
        return self._parameter_names

    @property
    def quantity_names(self) -> tuple[str, ...]:
        """Names of the additional named outputs."""
        return tuple(self._quantities)

    @property
    def values(self) -> npt.NDArray[np.float64]:
        """The read-only draw matrix."""
        return self._values

    @classmethod
    def from_records(
        cls, records: Sequence[Mapping[str, "custom_types.Float"]]
    ) -> "PosteriorDraws":
        """Build a draw matrix from one mapping of parameter values per draw.

        :raises EmptyDrawSetError: If there are no records
        :raises InvalidDimensionError: If records do not share the same parameters
        """
        if len(records) == 0:
            raise EmptyDrawSetError("A posterior draw matrix needs at least one draw.")

        # All draws must share the parameter set of the first
        parameter_names = tuple(records[0])
        expected = set(parameter_names)
        for i, record in enumerate(records):
            if set(record) != expected:
                raise InvalidDimensionError(
                    f"Draw {i} has parameters {sorted(record)}, expected "
                    f"{sorted(expected)}."
                )

        return cls(
            [[record[name] for name in parameter_names] for record in records],
            parameter_names,
        )

    @classmethod
    def from_dataframe(
        cls, df: pd.DataFrame, parameter_names: Optional[Sequence[str]] = None
    ) -> "PosteriorDraws":
        """Build a draw matrix from a DataFrame with one row per draw.

        Columns ending in a double underscore (CmdStan's sampler diagnostics,
        such as ``lp__``) are dropped unless explicitly requested.
        """
        if parameter_names is None:
            parameter_names = [col for col in df.columns if not str(col).endswith("__")]
        return cls(df[list(parameter_names)].to_numpy(), parameter_names)

    @classmethod
    def from_inference_data(
        cls,
        inference_obj: az.InferenceData,
        var_names: Optional[Sequence[str]] = None,
        quantities: Sequence[str] = (),
    ) -> "PosteriorDraws":
        """Build a draw matrix from the posterior group of an ArviZ object.

        Chains and draws are stacked into a single sample axis (chain-major).
        Array-valued variables are flattened into Stan-named scalar columns;
        variables named in `quantities` are kept whole as named outputs.

        :param inference_obj: ArviZ object with a posterior group
        :type inference_obj: az.InferenceData
        :param var_names: Variables to flatten into columns. Defaults to every
            posterior variable not listed in `quantities`.
        :type var_names: Optional[Sequence[str]]
        :param quantities: Variables to keep as array-valued quantities
        :type quantities: Sequence[str]

        :returns: The draw matrix, holding a reference to `inference_obj`
        :rtype: PosteriorDraws
        """
        posterior: xr.Dataset = inference_obj.posterior
        if missing := set(quantities) - set(posterior.data_vars):
            raise KeyError(f"Quantities missing from the posterior: {missing}.")
        if var_names is None:
            var_names = [name for name in posterior.data_vars if name not in quantities]

        # Stack the chain and draw dimensions into one, then move it first
        stacked = posterior.stack(sample=("chain", "draw"), create_index=False)

        def sample_first(varname: str) -> npt.NDArray:
            return stacked[varname].transpose("sample", ...).to_numpy()

        # Flatten the parameters into columns
        columns, names = [], []
        for varname in var_names:
            array = sample_first(varname)
            for index in np.ndindex(array.shape[1:]):
                columns.append(array[(slice(None), *index)])
                names.append(utils.stan_column_name(varname, index))

        return cls(
            np.stack(columns, axis=1) if columns else np.empty((stacked.sizes["sample"], 0)),
            names,
            quantities={name: sample_first(name) for name in quantities},
            inference_obj=inference_obj,
        )

    @classmethod
    def from_cmdstan(
        cls,
        fit: CmdStanMCMC,
        var_names: Optional[Sequence[str]] = None,
        quantities: Sequence[str] = (),
    ) -> "PosteriorDraws":
        """Build a draw matrix from a CmdStanPy MCMC fit.

        The fit is converted with `arviz.from_cmdstanpy`, which moves sampler
        diagnostics into the sample-stats group, and then handled by
        :py:meth:`from_inference_data`.
        """
        return cls.from_inference_data(
            az.from_cmdstanpy(posterior=fit), var_names=var_names, quantities=quantities
        )
