"""End-to-end: read features -> learn weights -> cross-validate -> report.

Usage:
    python -m scripts.wa_knn.run_all --sites 100 --instances 90 --open 9000 DATADIR
"""

import argparse

from . import config
from .evaluate_cv import run_full_cv


def build_parser():
    parser = argparse.ArgumentParser(
        description="Wa-kNN website fingerprinting attack with k-fold cross-validation")
    # dataset
    parser.add_argument("--sites", type=int, default=0, help="number of sites")
    parser.add_argument("--instances", type=int, default=0, help="number of instances")
    parser.add_argument("--open", type=int, default=0, help="number of open-world sites")
    parser.add_argument("--roffset", type=int, default=0,
                        help="the offset to read monitored sites from")
    # Wa-kNN
    parser.add_argument("-r", "--rounds", type=int, default=config.DEFAULT_ROUNDS,
                        help="rounds for weight learning in kNN")
    parser.add_argument("--wkmin", type=int, default=config.DEFAULT_K_MIN,
                        help="the smallest k to test for with Wa-kNN")
    parser.add_argument("--wkmax", type=int, default=config.DEFAULT_K_MAX,
                        help="the biggest k to test for with Wa-kNN")
    parser.add_argument("--wkstep", type=int, default=config.DEFAULT_K_STEP,
                        help="the step size between wkmin and wkmax")
    # experiment tweaks
    parser.add_argument("-f", "--worker-factor", type=int, default=config.DEFAULT_WORKER_FACTOR,
                        help="the factor to multiply the CPU count with for creating workers")
    parser.add_argument("--folds", type=int, default=config.DEFAULT_FOLDS,
                        help="we perform k-fold cross-validation")
    parser.add_argument("--verbose", action=argparse.BooleanOptionalAction, default=True,
                        help="print detailed result output")
    parser.add_argument("--quiet", action="store_true",
                        help="don't print detailed progress")
    parser.add_argument("--seed", type=int, default=None,
                        help="seed for weight learning, random if unset")
    parser.add_argument("--out-dir", type=str, default=".",
                        help="folder to write the result files to")
    parser.add_argument("datadir", nargs="?", default=None,
                        help="folder with feature files, or with one subfolder per unit of work")
    return parser


def config_from_args(args):
    return config.ExperimentConfig(
        sites=args.sites,
        instances=args.instances,
        open=args.open,
        roffset=args.roffset,
        folds=args.folds,
        rounds=args.rounds,
        k_min=args.wkmin,
        k_max=args.wkmax,
        k_step=args.wkstep,
        worker_factor=args.worker_factor,
        verbose=args.verbose,
        quiet=args.quiet,
        seed=args.seed,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.sites == 0 or args.instances == 0:
        parser.error("missing sites and/or instances argument")
    if args.datadir is None:
        parser.error("need to specify data dir")

    cfg = config_from_args(args)
    try:
        cfg.validate()
    except ValueError as err:
        parser.error(str(err))

    run_full_cv(args.datadir, cfg, out_dir=args.out_dir)
    return 0


if __name__ == "__main__":
    main()
