# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior sampling of bundled models with CmdStan.

Prediction and evaluation never talk to a sampler directly: they consume
:py:class:`~postpred.draws.PosteriorDraws`. Anything that can turn a dataset
and a :py:class:`~postpred.stan.programs.ModelSpec` into posterior draws
satisfies the :py:class:`Sampler` protocol, and :py:class:`CmdStanSampler` is
the implementation backed by CmdStanPy.

Example:
    >>> spec = logistic_regression_spec(["age", "dose"], "response")
    >>> draws = CmdStanSampler(chains=4).fit(dataset, spec)
    >>> predictor = PosteriorPredictor(draws, spec.layout)
"""

from __future__ import annotations

import os.path
import weakref

from tempfile import TemporaryDirectory
from typing import Any, Optional, Protocol, TYPE_CHECKING

from cmdstanpy import CmdStanMCMC, CmdStanModel

import postpred

from postpred.defaults import (
    DEFAULT_CHAINS,
    DEFAULT_CPP_OPTIONS,
    DEFAULT_FORCE_COMPILE,
    DEFAULT_ITER_SAMPLING,
    DEFAULT_ITER_WARMUP,
    DEFAULT_STANC_OPTIONS,
)
from postpred.draws import PosteriorDraws

if TYPE_CHECKING:
    from postpred import custom_types
    from postpred.stan.programs import ModelSpec


class Sampler(Protocol):
    """Anything that fits a model specification to a dataset."""

    def fit(
        self, dataset: "custom_types.Dataset", model_spec: "ModelSpec"
    ) -> PosteriorDraws: ...


class CmdStanSampler:
    """Compile bundled Stan programs and sample their posteriors with CmdStan.

    Compiled executables are kept in `output_dir` under the model name and reused
    on later fits unless `force_compile` is set. The Stan file is only rewritten
    when the program text changes, so an existing executable stays current.

    :param output_dir: Directory for Stan files, executables, and CSV output.
        Defaults to None (temporary directory removed with the sampler).
    :type output_dir: Optional[str]
    :param chains: Number of chains. Defaults to 4.
    :type chains: custom_types.Integer
    :param iter_warmup: Warmup iterations per chain. Defaults to 1000.
    :type iter_warmup: custom_types.Integer
    :param iter_sampling: Sampling iterations per chain. Defaults to 1000.
    :type iter_sampling: custom_types.Integer
    :param seed: Sampler seed. Defaults to None (drawn from the global RNG on
        every fit).
    :type seed: Optional[custom_types.Integer]
    :param force_compile: Whether to recompile even if an executable exists.
        Defaults to False.
    :type force_compile: bool
    :param stanc_options: Options for the Stan compiler. Defaults to None (uses
        defaults).
    :type stanc_options: Optional[dict[str, Any]]
    :param cpp_options: Options for C++ compilation. Defaults to None (uses
        defaults).
    :type cpp_options: Optional[dict[str, Any]]
    :param show_progress: Whether CmdStan progress bars are shown. Defaults to False.
    :type show_progress: bool
    :param sample_kwargs: Passed through to
        :py:meth:`cmdstanpy.CmdStanModel.sample`

    :raises FileNotFoundError: If `output_dir` does not exist
    :raises ValueError: If `chains` or an iteration count is not positive
    """

    def __init__(
        self,
        output_dir: Optional[str] = None,
        chains: "custom_types.Integer" = DEFAULT_CHAINS,
        iter_warmup: "custom_types.Integer" = DEFAULT_ITER_WARMUP,
        iter_sampling: "custom_types.Integer" = DEFAULT_ITER_SAMPLING,
        seed: Optional["custom_types.Integer"] = None,
        force_compile: bool = DEFAULT_FORCE_COMPILE,
        stanc_options: Optional[dict[str, Any]] = None,
        cpp_options: Optional[dict[str, Any]] = None,
        show_progress: bool = False,
        **sample_kwargs,
    ):
        if chains < 1:
            raise ValueError("`chains` must be at least 1.")
        if iter_sampling < 1 or iter_warmup < 0:
            raise ValueError(
                "`iter_sampling` must be positive and `iter_warmup` non-negative."
            )

        self.chains = int(chains)
        self.iter_warmup = int(iter_warmup)
        self.iter_sampling = int(iter_sampling)
        self.seed = seed
        self.force_compile = force_compile
        self.stanc_options = dict(stanc_options or DEFAULT_STANC_OPTIONS)
        self.cpp_options = dict(cpp_options or DEFAULT_CPP_OPTIONS)
        self.show_progress = show_progress
        self.sample_kwargs = sample_kwargs

        self._set_output_dir(output_dir)

        # Compiled models by model name
        self._models: dict[str, CmdStanModel] = {}

        # The most recent CmdStan fit, kept for diagnostics
        self.last_fit: Optional[CmdStanMCMC] = None

    def _set_output_dir(self, output_dir: Optional[str]) -> None:
        """Use the given directory or a temporary one cleaned up with the sampler."""
        if output_dir is None:
            tempdir = TemporaryDirectory()
            weakref.finalize(self, tempdir.cleanup)
            output_dir = tempdir.name

        if not os.path.exists(output_dir):
            raise FileNotFoundError(f"Output directory {output_dir} does not exist.")

        self.output_dir = output_dir

    def stan_program_path(self, model_spec: "ModelSpec") -> str:
        """Path of the Stan file written for a model."""
        return os.path.join(self.output_dir, f"{model_spec.name}.stan")

    def stan_executable_path(self, model_spec: "ModelSpec") -> str:
        """Path of the compiled executable of a model."""
        return os.path.join(self.output_dir, model_spec.name)

    def write_stan_program(self, model_spec: "ModelSpec") -> str:
        """Write the Stan program of a model to the output directory.

        An existing file with identical contents is left untouched.

        :param model_spec: Model whose program is written
        :type model_spec: ModelSpec

        :returns: Path to the Stan file
        :rtype: str
        """
        path = self.stan_program_path(model_spec)
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                if f.read() == model_spec.code:
                    return path

        with open(path, "w", encoding="utf-8") as f:
            f.write(model_spec.code)

        return path

    def compile(self, model_spec: "ModelSpec") -> CmdStanModel:
        """Compile the Stan program of a model, reusing an existing executable.

        :param model_spec: Model to compile
        :type model_spec: ModelSpec

        :returns: The compiled CmdStan model
        :rtype: CmdStanModel
        """
        if model_spec.name in self._models and not self.force_compile:
            return self._models[model_spec.name]

        stan_file = self.write_stan_program(model_spec)
        exe_file = self.stan_executable_path(model_spec)
        model = CmdStanModel(
            model_name=model_spec.name,
            stan_file=stan_file,
            exe_file=(
                exe_file
                if os.path.exists(exe_file) and not self.force_compile
                else None
            ),
            force_compile=self.force_compile,
            stanc_options=self.stanc_options,
            cpp_options=self.cpp_options,
        )
        self._models[model_spec.name] = model

        return model

    def fit(
        self, dataset: "custom_types.Dataset", model_spec: "ModelSpec"
    ) -> PosteriorDraws:
        """Sample the posterior of a model given a dataset.

        :param dataset: Named columns holding the model's data
        :type dataset: custom_types.Dataset
        :param model_spec: Model to fit
        :type model_spec: ModelSpec

        :returns: Posterior draws of the model's parameters, pooled over chains,
            with its generated quantities attached.
        :rtype: PosteriorDraws

        :raises ValueError: If the dataset does not fit the model's data builder
        """
        # Build the data first so bad input fails before compilation
        data = model_spec.build_data(dataset)
        model = self.compile(model_spec)

        # If a seed is not provided, use the global random number generator
        seed = self.seed
        if seed is None:
            seed = postpred.RNG.integers(0, 2**32 - 1)

        self.last_fit = model.sample(
            data=data,
            chains=self.chains,
            iter_warmup=self.iter_warmup,
            iter_sampling=self.iter_sampling,
            seed=int(seed),
            output_dir=self.output_dir,
            show_progress=self.show_progress,
            **self.sample_kwargs,
        )

        return PosteriorDraws.from_cmdstan(
            self.last_fit,
            var_names=model_spec.parameters,
            quantities=model_spec.quantities,
        )
