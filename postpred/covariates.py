# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Covariate layouts and immutable covariate templates.

A :py:class:`CovariateLayout` fixes, once, which covariates a regression uses,
where each sits in the coefficient-aligned vector (intercept first), and which
posterior parameter holds the matching coefficient. Every later lookup by name
goes through the resolved positions rather than searching columns again.

A :py:class:`CovariateTemplate` is the covariate vector a prediction is made at.
Templates are immutable: sweeping a covariate over a grid produces a new template
per grid value through :py:meth:`CovariateTemplate.with_value`, so one template
can safely be shared between sweeps.
"""

from __future__ import annotations

from typing import Iterator, Literal, Mapping, Optional, Sequence, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import pandas as pd

from postpred import utils
from postpred.defaults import DEFAULT_INTERCEPT_NAME
from postpred.exceptions import InvalidDimensionError

if TYPE_CHECKING:
    from postpred import custom_types


def dataset_columns(
    dataset: "custom_types.Dataset", names: Sequence[str]
) -> dict[str, npt.NDArray[np.float64]]:
    """Pull named numeric columns out of a dataset.

    :param dataset: Mapping of column name to values, or a DataFrame
    :type dataset: custom_types.Dataset
    :param names: Columns to pull
    :type names: Sequence[str]

    :returns: Columns as float arrays, in the order requested
    :rtype: dict[str, npt.NDArray[np.float64]]

    :raises ValueError: If a column is missing or columns differ in length
    """
    # Every requested column must be present
    available = set(dataset.columns if isinstance(dataset, pd.DataFrame) else dataset)
    if missing := [name for name in names if name not in available]:
        raise ValueError(f"Dataset is missing columns: {', '.join(missing)}.")

    # Convert to arrays
    columns = {
        name: utils.as_float_array(np.asarray(dataset[name]), name, 1) for name in names
    }

    # All columns must have the same length
    if len({len(col) for col in columns.values()}) > 1:
        raise ValueError(
            "Dataset columns must have equal lengths. Got: "
            + ", ".join(f"{name}={len(col)}" for name, col in columns.items())
        )

    return columns


class CovariateLayout:
    """Names and positions of the covariates of a regression.

    :param covariates: Covariate names in coefficient order (excluding intercept)
    :type covariates: Sequence[str]
    :param intercept_name: Name of the intercept coordinate. If None, the layout
        has no intercept. Defaults to "intercept".
    :type intercept_name: Optional[str]
    :param coefficient_names: Posterior parameter name of each coordinate, intercept
        first. Defaults to the coordinate names themselves.
    :type coefficient_names: Optional[Sequence[str]]

    :ivar names: Coordinate names, intercept first
    :ivar coefficient_names: Posterior parameter names aligned with `names`

    :raises ValueError: If names are duplicated or the layout is empty
    :raises InvalidDimensionError: If `coefficient_names` has the wrong length

    Example:
        >>> layout = CovariateLayout(["attractiveness", "sincerity"])
        >>> layout.index("sincerity")
        2
    """

    def __init__(
        self,
        covariates: Sequence[str],
        intercept_name: Optional[str] = DEFAULT_INTERCEPT_NAME,
        coefficient_names: Optional[Sequence[str]] = None,
    ):
        # Build the coordinate names
        self.covariates = tuple(covariates)
        self.intercept_name = intercept_name
        self.names = (
            self.covariates
            if intercept_name is None
            else (intercept_name, *self.covariates)
        )
        if len(self.names) == 0:
            raise ValueError("A covariate layout needs at least one coordinate.")
        if len(set(self.names)) != len(self.names):
            raise ValueError(f"Duplicate covariate names in {self.names}.")

        # Coefficient names default to the coordinate names
        self.coefficient_names = (
            self.names if coefficient_names is None else tuple(coefficient_names)
        )
        if len(self.coefficient_names) != len(self.names):
            raise InvalidDimensionError(
                f"Got {len(self.coefficient_names)} coefficient names for "
                f"{len(self.names)} coordinates."
            )
        if len(set(self.coefficient_names)) != len(self.coefficient_names):
            raise ValueError(f"Duplicate coefficient names in {self.coefficient_names}.")

        # Resolve positions once
        self._positions = {name: i for i, name in enumerate(self.names)}

    def __len__(self) -> int:
        return len(self.names)

    def __repr__(self) -> str:
        return f"CovariateLayout(names={list(self.names)})"

    def index(self, name: str) -> int:
        """Position of a named coordinate in the coefficient-aligned vector."""
        if name not in self._positions:
            raise KeyError(
                f"Unknown covariate '{name}'. Options are: {', '.join(self.names)}."
            )
        return self._positions[name]

    def coefficient_name(self, name: str) -> str:
        """Posterior parameter name of the coefficient of a named coordinate."""
        return self.coefficient_names[self.index(name)]

    def template(
        self, reference: Mapping[str, "custom_types.Float"]
    ) -> "CovariateTemplate":
        """Build a template from reference values of every covariate.

        The intercept coordinate, if any, is set to 1.

        :raises KeyError: If a covariate has no reference value
        """
        if missing := [name for name in self.covariates if name not in reference]:
            raise KeyError(f"No reference values for: {', '.join(missing)}.")

        values = [float(reference[name]) for name in self.covariates]
        if self.intercept_name is not None:
            values.insert(0, 1.0)
        return CovariateTemplate(values, layout=self)

    def reference_template(
        self,
        dataset: "custom_types.Dataset",
        statistic: Literal["mean", "median"] = "mean",
    ) -> "CovariateTemplate":
        """Build a template holding every covariate at a dataset summary.

        :param dataset: Dataset containing every covariate column
        :type dataset: custom_types.Dataset
        :param statistic: Summary used as the reference value. Defaults to "mean".
        :type statistic: Literal["mean", "median"]
        """
        summarize = {"mean": np.mean, "median": np.median}[statistic]
        columns = dataset_columns(dataset, self.covariates)
        return self.template({name: summarize(col) for name, col in columns.items()})

    def design_matrix(
        self, dataset: "custom_types.Dataset", include_intercept: bool = False
    ) -> npt.NDArray[np.float64]:
        """Stack the covariate columns of a dataset into a matrix.

        :param dataset: Dataset containing every covariate column
        :type dataset: custom_types.Dataset
        :param include_intercept: Prepend a column of ones. Defaults to False.
        :type include_intercept: bool

        :returns: Array of shape ``(n_observations, n_columns)``
        :rtype: npt.NDArray[np.float64]
        """
        if len(self.covariates) == 0:
            raise ValueError("The layout has no covariate columns.")

        columns = list(dataset_columns(dataset, self.covariates).values())
        if include_intercept:
            columns.insert(0, np.ones(len(columns[0])))
        return np.stack(columns, axis=1)

    @property
    def size(self) -> int:
        """Number of coordinates, including the intercept."""
        return len(self.names)

    @classmethod
    def for_stan(
        cls,
        covariates: Sequence[str],
        intercept: str = "alpha",
        coefficients: str = "beta",
    ) -> "CovariateLayout":
        """Layout whose coefficients are a scalar intercept and a Stan vector.

        Matches Stan programs of the form ``alpha + X * beta``.

        Example:
            >>> CovariateLayout.for_stan(["x1", "x2"]).coefficient_names
            ('alpha', 'beta[1]', 'beta[2]')
        """
        return cls(
            covariates,
            intercept_name=DEFAULT_INTERCEPT_NAME,
            coefficient_names=(
                intercept,
                *(f"{coefficients}[{i + 1}]" for i in range(len(covariates))),
            ),
        )


class CovariateTemplate:
    """An immutable covariate vector aligned with the coefficient order.

    :param values: Covariate values, intercept coordinate first when the model
        has one
    :type values: custom_types.VectorLike
    :param layout: Layout naming the coordinates. Optional; needed only to
        address coordinates by name. Defaults to None.
    :type layout: Optional[CovariateLayout]

    :raises InvalidDimensionError: If `values` is not 1-D or does not match `layout`

    Example:
        >>> base = CovariateTemplate([1.0, 5.0, 3.0])
        >>> swept = base.with_value(1, 6.0)
        >>> base.values, swept.values
        (array([1., 5., 3.]), array([1., 6., 3.]))
    """

    def __init__(
        self,
        values: "custom_types.VectorLike",
        layout: Optional[CovariateLayout] = None,
    ):
        values = utils.as_float_array(values, "values", 1)
        if layout is not None and len(values) != layout.size:
            raise InvalidDimensionError(
                f"Template has {len(values)} values but the layout has "
                f"{layout.size} coordinates."
            )

        values = values.copy()
        values.flags.writeable = False
        self._values = values
        self.layout = layout

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values.tolist())

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self._values.copy()
        return self._values.astype(dtype)

    def __getitem__(self, key: Union[str, "custom_types.Integer"]) -> float:
        return float(self._values[self.resolve_index(key)])

    def __eq__(self, other):
        if not isinstance(other, CovariateTemplate):
            return NotImplemented
        return bool(np.array_equal(self._values, other._values))

    def __hash__(self) -> int:
        return hash(self._values.tobytes())

    def __repr__(self) -> str:
        if self.layout is None:
            return f"CovariateTemplate({self._values.tolist()})"
        pairs = ", ".join(
            f"{name}={val:g}" for name, val in zip(self.layout.names, self._values)
        )
        return f"CovariateTemplate({pairs})"

    def resolve_index(self, key: Union[str, "custom_types.Integer"]) -> int:
        """Translate a coordinate name or position into a position.

        :raises KeyError: If a name is given but the template has no layout, or
            the name is unknown
        :raises InvalidDimensionError: If a position is out of range
        """
        if isinstance(key, str):
            if self.layout is None:
                raise KeyError(
                    f"Cannot look up covariate '{key}' in a template without a layout."
                )
            return self.layout.index(key)

        if not 0 <= key < len(self._values):
            raise InvalidDimensionError(
                f"Coordinate index {key} is out of range for a template of length "
                f"{len(self._values)}."
            )
        return int(key)

    def with_value(
        self, key: Union[str, "custom_types.Integer"], value: "custom_types.Float"
    ) -> "CovariateTemplate":
        """Return a new template with one coordinate replaced.

        :param key: Coordinate name or position
        :type key: Union[str, custom_types.Integer]
        :param value: New value of the coordinate
        :type value: custom_types.Float

        :returns: A new template. This template is unchanged.
        :rtype: CovariateTemplate
        """
        values = self._values.copy()
        values[self.resolve_index(key)] = value
        return CovariateTemplate(values, layout=self.layout)

    @property
    def values(self) -> npt.NDArray[np.float64]:
        """The read-only covariate vector."""
        return self._values
