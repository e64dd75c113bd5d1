"""
Compare the empirical MAE of simulated observation pairs with its closed
form, then run the validation demo with uncertain test data.

    python -m mae_uncertainty --sigma 1.0 --trials 100000 --seed 42
"""

import argparse
import logging

import numpy as np

from mae_uncertainty.log_config import get_logger, setup_logging
from mae_uncertainty.mae_engine import (
    InvalidParameterError,
    MAEReport,
    UncertaintyModel,
    ValidationConfig,
    analytical_mae,
    run_trials,
    run_validation,
    spread_comparison,
)

logger = get_logger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="mae_uncertainty",
        description="Empirical vs analytical MAE under measurement uncertainty.",
    )
    parser.add_argument("--model", choices=UncertaintyModel.KINDS, default="normal")
    parser.add_argument("--sigma", type=float, default=1.0,
                        help="std of the Gaussian measurement error")
    parser.add_argument("--trials", type=int, default=100_000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--plot", metavar="PATH",
                        help="save a histogram of |x - y| to PATH")
    parser.add_argument("--skip-validation", action="store_true",
                        help="only run the MAE comparison")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, detailed=args.verbose)

    rng = np.random.default_rng(args.seed)
    logger.info("Seed %d, model %s, %d trials", args.seed, args.model, args.trials)
    try:
        if args.model == "none":
            model = UncertaintyModel.none()
        else:
            model = UncertaintyModel.normal(args.sigma)
        result = run_trials(model, args.trials, rng, keep_differences=bool(args.plot))
    except InvalidParameterError as e:
        parser.error(str(e))

    print(MAEReport.comparison(result, analytical_mae(model)))

    if args.plot:
        from mae_uncertainty.plotting import plot_difference_histogram
        plot_difference_histogram(result, args.plot)

    if not args.skip_validation:
        config = ValidationConfig()
        print()
        print(MAEReport.validation(run_validation(config, rng), config))
        print()
        print(MAEReport.spread(spread_comparison(config, rng)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
