# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Same layout as `logistic_fit.py` but with the hurdle Poisson count model."""

from __future__ import annotations

import argparse
import os.path

from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd

from postpred.hurdle import count_predictive_distribution, simulate_hurdle_poisson
from postpred.pipelines.logistic_fit import (
    build_sampler,
    check_base_args,
    define_base_parser,
    prep_run,
    report_diagnostics,
)
from postpred.ppc import posterior_predictive_check
from postpred.stan import hurdle_poisson_spec

if TYPE_CHECKING:
    from postpred.ppc import PPCResult
    from postpred.stan import Sampler


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    # Build the parser specifically for this pipeline
    parser = argparse.ArgumentParser(
        description="Fit a hurdle Poisson model to a count column.",
        parents=[define_base_parser()],
    )

    # Add arguments specific to this pipeline
    parser.add_argument(
        "--max_count",
        type=int,
        default=None,
        help=(
            "Largest count in the predictive distribution. "
            "Default = largest observed count."
        ),
    )

    return parser.parse_args(argv)


def check_args(args: argparse.Namespace) -> None:
    """Check the arguments for the pipeline."""
    # Check the base arguments
    check_base_args(args)

    if args.max_count is not None and args.max_count < 0:
        raise ValueError("max_count must be non-negative.")


def zero_fraction(counts: np.ndarray) -> float:
    """Fraction of zero counts."""
    return float(np.mean(counts == 0))


def run_hurdle(
    args: argparse.Namespace, sampler: Optional["Sampler"] = None
) -> "PPCResult":
    """Fit the hurdle model and write the count predictive distribution.

    Returns the posterior predictive check of the fraction of zeros.
    """
    # Prepare the run
    dataset = prep_run(args)
    spec = hurdle_poisson_spec(args.outcome)
    sampler = build_sampler(args) if sampler is None else sampler

    # Fit the model
    print("Sampling the posterior...")
    draws = sampler.fit(dataset, spec)
    report_diagnostics(draws)
    theta, lam = draws["theta"], draws["lam"]

    # Predictive distribution against observed frequencies
    counts = dataset[args.outcome].to_numpy(dtype=np.int64)
    max_count = int(counts.max()) if args.max_count is None else args.max_count
    pmf = count_predictive_distribution(theta, lam, max_count)
    observed = np.bincount(counts[counts <= max_count], minlength=max_count + 1)
    pd.DataFrame(
        {
            "count": np.arange(max_count + 1),
            "observed_frequency": observed / len(counts),
            "predicted_probability": pmf,
        }
    ).to_csv(os.path.join(args.output_dir, f"{spec.name}_pmf.csv"), index=False)

    # Check the fraction of zeros against replicated datasets
    replicated = simulate_hurdle_poisson(theta, lam, len(counts))
    check = posterior_predictive_check(counts, replicated, statistic=zero_fraction)
    print(
        f"Observed zero fraction = {check.observed:.4f}, posterior predictive "
        f"p-value = {check.p_value:.4f}"
    )

    return check


def main():
    """Main function to run the pipeline."""
    # Parse the arguments
    args = parse_args()

    # Check the arguments
    check_args(args)

    # Run the pipeline
    run_hurdle(args)


if __name__ == "__main__":
    main()
