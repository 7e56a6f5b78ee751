"""Implementation of `spptest envelope`."""

from __future__ import annotations

import argparse
import sys
from typing import Any

from spptest.core.pipeline import run_test


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("envelope", help="Run a global envelope test")
    parser.add_argument("curves", help="Curve set folder or curve table file")
    parser.add_argument("--out", required=True, help="Output results folder")
    parser.add_argument("--config", default=None, help="Config YAML")
    parser.add_argument("--method", default=None, help="rank|st|qdir|q|unscaled|normal")
    parser.add_argument("--alpha", type=float, default=None, help="Global significance level")
    parser.add_argument("--alternative", default=None, help="two.sided|less|greater")
    parser.add_argument("--ties", default=None, help="conservative|liberal|midrank")
    parser.add_argument("--n-norm", type=int, default=None, help="Gaussian draws for the normal method")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the normal method")
    parser.add_argument("--r-min", type=float, default=None, help="Crop distances below this value")
    parser.add_argument("--r-max", type=float, default=None, help="Crop distances above this value")
    parser.add_argument("--no-figures", action="store_true", help="Skip the envelope figure")
    parser.set_defaults(func=cmd_envelope)


def cmd_envelope(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    env = {
        key: value
        for key, value in {
            "method": args.method,
            "alpha": args.alpha,
            "alternative": args.alternative,
            "ties": args.ties,
            "n_norm": args.n_norm,
            "seed": args.seed,
        }.items()
        if value is not None
    }
    if env:
        overrides["envelope"] = env
    crop = crop_overrides(args)
    if crop:
        overrides["crop"] = crop

    run = run_test(
        curves_path=args.curves,
        out_dir=args.out,
        kind="envelope",
        config_path=args.config,
        overrides=overrides,
        make_figures=not args.no_figures,
        argv=sys.argv,
    )
    res = run.result
    verdict = "OUTSIDE" if res.outside else "inside"
    print(f"{res.method} envelope: p = {res.p:.4g} [{res.p_interval[0]:.4g}, {res.p_interval[1]:.4g}]")
    print(f"Observed curve is {verdict} the {100 * (1 - res.alpha):g}% global envelope")
    print(f"Wrote results to {args.out}/result.json and {args.out}/envelope.parquet")
    return 0


def crop_overrides(args: argparse.Namespace) -> dict[str, float]:
    out: dict[str, float] = {}
    if args.r_min is not None:
        out["r_min"] = args.r_min
    if args.r_max is not None:
        out["r_max"] = args.r_max
    return out
