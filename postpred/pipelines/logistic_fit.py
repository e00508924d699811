# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Fits a logistic regression to a CSV dataset and reports posterior predictions."""

from __future__ import annotations

import argparse
import os.path

from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd

import postpred

from postpred import summaries
from postpred.defaults import (
    DEFAULT_CHAINS,
    DEFAULT_GRID_POINTS,
    DEFAULT_ITER_SAMPLING,
    DEFAULT_ITER_WARMUP,
    DEFAULT_TAIL_THRESHOLD,
)
from postpred.ppc import posterior_predictive_check, simulate_bernoulli
from postpred.prediction import PosteriorPredictor, sweep_grid, to_probability
from postpred.stan import CmdStanSampler, logistic_regression_spec

if TYPE_CHECKING:
    from postpred.draws import PosteriorDraws
    from postpred.stan import Sampler


def define_base_parser() -> argparse.ArgumentParser:
    """Defines the base parser shared by all pipelines."""
    # Build the base parser
    parser = argparse.ArgumentParser(add_help=False)

    # A few required arguments
    required_group = parser.add_argument_group("required arguments")
    required_group.add_argument(
        "--data",
        type=str,
        required=True,
        help="Path to a CSV file with one row per observation.",
    )
    required_group.add_argument(
        "--outcome",
        type=str,
        required=True,
        help="Name of the column modeled as the outcome.",
    )
    required_group.add_argument(
        "--output_dir",
        type=str,
        required=True,
        help="Path to the folder where the output will be saved.",
    )

    # Now some optionals
    optional_group = parser.add_argument_group("optional arguments")
    optional_group.add_argument(
        "--seed",
        type=int,
        default=1025,
        help="Random seed for reproducibility.",
    )
    optional_group.add_argument(
        "--n_chains",
        type=int,
        default=DEFAULT_CHAINS,
        help=f"Number of chains to run. Default = {DEFAULT_CHAINS}.",
    )
    optional_group.add_argument(
        "--n_warmup",
        type=int,
        default=DEFAULT_ITER_WARMUP,
        help=f"Number of warmup iterations. Default = {DEFAULT_ITER_WARMUP}.",
    )
    optional_group.add_argument(
        "--n_samples",
        type=int,
        default=DEFAULT_ITER_SAMPLING,
        help=(
            "Number of samples to draw after warmup. "
            f"Default = {DEFAULT_ITER_SAMPLING}."
        ),
    )
    optional_group.add_argument(
        "--force_compile",
        action="store_true",
        help="Force compilation of the model even if it is already compiled.",
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    # Build the parser specifically for this pipeline
    parser = argparse.ArgumentParser(
        description="Fit a logistic regression and report posterior predictions.",
        parents=[define_base_parser()],
    )

    # Add arguments specific to this pipeline
    parser.add_argument(
        "--covariates",
        type=str,
        nargs="+",
        required=True,
        help="Names of the covariate columns.",
    )
    parser.add_argument(
        "--sweep",
        type=str,
        default=None,
        help="Covariate swept for the predictive curves. Default = first covariate.",
    )
    parser.add_argument(
        "--num_points",
        type=int,
        default=DEFAULT_GRID_POINTS,
        help=f"Number of points on the sweep grid. Default = {DEFAULT_GRID_POINTS}.",
    )
    parser.add_argument(
        "--contrast",
        type=float,
        nargs=2,
        default=None,
        metavar=("LOW", "HIGH"),
        help=(
            "Values of the swept covariate compared by the contrast statistic. "
            "Default = its 25th and 75th percentiles."
        ),
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_TAIL_THRESHOLD,
        help=(
            "Threshold of the coefficient tail probabilities. "
            f"Default = {DEFAULT_TAIL_THRESHOLD}."
        ),
    )

    return parser.parse_args(argv)


def check_base_args(args: argparse.Namespace) -> None:
    """Checks command line arguments shared by all pipelines"""
    # Data file must exist
    if not os.path.isfile(args.data):
        raise ValueError(f"Data file does not exist: {args.data}.")

    # Output dir must exist
    if not os.path.exists(args.output_dir):
        raise ValueError(f"Output directory does not exist: {args.output_dir}.")

    # Seed must be a positive integer
    if args.seed <= 0:
        raise ValueError("Seed must be a positive integer.")

    # Chains and samples must be positive integers, warmup can be skipped
    for arg in ("n_chains", "n_samples"):
        if getattr(args, arg) <= 0:
            raise ValueError(f"{arg} must be a positive integer.")
    if args.n_warmup < 0:
        raise ValueError("n_warmup must be a non-negative integer.")


def check_args(args: argparse.Namespace) -> None:
    """Checks command line arguments for validity."""
    # Check base arguments
    check_base_args(args)

    # The outcome cannot be a covariate and covariates cannot repeat
    if args.outcome in args.covariates:
        raise ValueError(f"Outcome {args.outcome} cannot also be a covariate.")
    if len(set(args.covariates)) != len(args.covariates):
        raise ValueError("Covariates must be unique.")

    # The swept covariate must be a covariate
    if args.sweep is not None and args.sweep not in args.covariates:
        raise ValueError(f"Swept covariate {args.sweep} is not a covariate.")

    if args.num_points <= 0:
        raise ValueError("num_points must be a positive integer.")


def prep_run(args: argparse.Namespace) -> pd.DataFrame:
    """Seeds the run, loads the data, and prepares the output folder."""
    postpred.manual_seed(args.seed)
    os.makedirs(args.output_dir, exist_ok=True)
    return pd.read_csv(args.data)


def build_sampler(args: argparse.Namespace) -> CmdStanSampler:
    """CmdStan sampler configured from the command line."""
    return CmdStanSampler(
        output_dir=args.output_dir,
        chains=args.n_chains,
        iter_warmup=args.n_warmup,
        iter_sampling=args.n_samples,
        seed=args.seed,
        force_compile=args.force_compile,
    )


def report_diagnostics(draws: "PosteriorDraws") -> None:
    """Print the parameters failing convergence tests of sampler output."""
    # Draws built without a sampler carry no chains to diagnose
    if draws.inference_obj is None:
        return

    print("Running diagnostics...")
    failures = summaries.diagnose(draws)
    if not any(failures.values()):
        print("All convergence tests passed.")


def run_logistic(
    args: argparse.Namespace, sampler: Optional["Sampler"] = None
) -> dict[str, float]:
    """Fit the logistic regression and write its posterior predictions.

    Returns the tail probabilities of the coefficients.
    """
    # Prepare the run
    dataset = prep_run(args)
    spec = logistic_regression_spec(args.covariates, args.outcome)
    sampler = build_sampler(args) if sampler is None else sampler

    # Fit the model
    print("Sampling the posterior...")
    draws = sampler.fit(dataset, spec)
    report_diagnostics(draws)
    predictor = PosteriorPredictor(draws, spec.layout)

    # Report the coefficient tail probabilities
    tail_probs = predictor.tail_probabilities(threshold=args.threshold)
    for name, prob in tail_probs.items():
        print(f"P({name} coefficient <= {args.threshold:g}) = {prob:.4f}")

    # Sweep the chosen covariate with everything else held at its mean
    sweep = args.sweep or args.covariates[0]
    column = dataset[sweep].to_numpy(dtype=float)
    reference = predictor.reference(dataset)
    curves = predictor.curve(
        sweep, sweep_grid(column.min(), column.max(), args.num_points), reference
    )
    curves.to_dataframe().to_csv(
        os.path.join(args.output_dir, f"{spec.name}_{sweep}_curve.csv"), index=False
    )
    pd.DataFrame(curves.per_draw.T, index=pd.Index(curves.grid, name=sweep)).to_csv(
        os.path.join(args.output_dir, f"{spec.name}_{sweep}_curve_draws.csv")
    )

    # Contrast between two values of the swept covariate
    low, high = (
        args.contrast if args.contrast is not None else np.percentile(column, [25, 75])
    )
    contrast = predictor.contrast(sweep, low, high, reference)
    pd.DataFrame({"contrast": contrast}).to_csv(
        os.path.join(args.output_dir, f"{spec.name}_{sweep}_contrast.csv"), index=False
    )
    print(
        f"P(probability increases from {sweep}={low:g} to {sweep}={high:g}) = "
        f"{np.mean(contrast > 0):.4f}"
    )

    # Check the fraction of positive outcomes against replicated datasets
    if "y_rep" in draws.quantity_names:
        replicated = draws.quantity("y_rep")
    else:
        design = spec.layout.design_matrix(dataset, include_intercept=True)
        replicated = simulate_bernoulli(to_probability(predictor.coefficients @ design.T))
    check = posterior_predictive_check(dataset[args.outcome].to_numpy(), replicated)
    print(f"Posterior predictive p-value of the outcome mean = {check.p_value:.4f}")

    return tail_probs


def main():
    """Main function to fit a logistic regression."""
    # Parse command line arguments
    args = parse_args()

    # Check arguments
    check_args(args)

    # Run the pipeline
    run_logistic(args)


if __name__ == "__main__":
    main()
