# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Same layout as `logistic_fit.py` but with the marginalized Gaussian mixture."""

from __future__ import annotations

import argparse
import os.path

from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd

from postpred.mixture import (
    assign_labels,
    class_membership_probabilities,
    mean_class_probabilities,
)
from postpred.pipelines.logistic_fit import (
    build_sampler,
    check_base_args,
    define_base_parser,
    prep_run,
    report_diagnostics,
)
from postpred.stan import gaussian_mixture_spec

if TYPE_CHECKING:
    from postpred.stan import Sampler


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    # Build the parser specifically for this pipeline
    parser = argparse.ArgumentParser(
        description="Fit a Gaussian mixture and assign every observation a class.",
        parents=[define_base_parser()],
    )

    # Add arguments specific to this pipeline
    parser.add_argument(
        "--n_classes",
        type=int,
        default=2,
        help="Number of mixture components. Default = 2.",
    )

    return parser.parse_args(argv)


def check_args(args: argparse.Namespace) -> None:
    """Check the arguments for the pipeline."""
    # Check the base arguments
    check_base_args(args)

    if args.n_classes <= 0:
        raise ValueError("n_classes must be a positive integer.")


def run_mixture(
    args: argparse.Namespace, sampler: Optional["Sampler"] = None
) -> np.ndarray:
    """Fit the mixture and write per-observation labels and class probabilities.

    Returns the assigned labels.
    """
    # Prepare the run
    dataset = prep_run(args)
    spec = gaussian_mixture_spec(args.outcome, args.n_classes)
    sampler = build_sampler(args) if sampler is None else sampler

    # Fit the model
    print("Sampling the posterior...")
    draws = sampler.fit(dataset, spec)
    report_diagnostics(draws)

    # Class probabilities come from the sampler when it generated them
    y = dataset[args.outcome].to_numpy(dtype=float)
    if "class_probs" in draws.quantity_names:
        tensor = draws.quantity("class_probs")
    else:
        tensor = class_membership_probabilities(
            y,
            *(
                draws.coefficients(
                    [f"{param}[{k + 1}]" for k in range(args.n_classes)]
                )
                for param in ("weights", "locs", "scales")
            ),
        )

    # Reduce to one label per observation
    mean_probs = mean_class_probabilities(tensor)
    labels = assign_labels(mean_probs)

    output = pd.DataFrame({args.outcome: y, "label": labels})
    for k in range(mean_probs.shape[1]):
        output[f"prob_class_{k}"] = mean_probs[:, k]
    output.to_csv(os.path.join(args.output_dir, f"{spec.name}_labels.csv"), index=False)

    for k, n_members in enumerate(np.bincount(labels, minlength=mean_probs.shape[1])):
        print(f"Class {k}: {n_members} observations")

    return labels


def main():
    """Main function to run the pipeline."""
    # Parse the arguments
    args = parse_args()

    # Check the arguments
    check_args(args)

    # Run the pipeline
    run_mixture(args)


if __name__ == "__main__":
    main()
