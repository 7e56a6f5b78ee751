"""Implementation of `spptest deviation`."""

from __future__ import annotations

import argparse
import sys
from typing import Any

from spptest.cli.envelope import crop_overrides
from spptest.core.pipeline import run_test


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("deviation", help="Run a deviation test")
    parser.add_argument("curves", help="Curve set folder or curve table file")
    parser.add_argument("--out", required=True, help="Output results folder")
    parser.add_argument("--config", default=None, help="Config YAML")
    parser.add_argument("--measure", default=None, help="max|int|int2")
    parser.add_argument("--scaling", default=None, help="none|q|qdir|st")
    parser.add_argument("--r-min", type=float, default=None, help="Crop distances below this value")
    parser.add_argument("--r-max", type=float, default=None, help="Crop distances above this value")
    parser.set_defaults(func=cmd_deviation)


def cmd_deviation(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    dev = {key: value for key, value in {"measure": args.measure, "scaling": args.scaling}.items() if value}
    if dev:
        overrides["deviation"] = dev
    crop = crop_overrides(args)
    if crop:
        overrides["crop"] = crop

    run = run_test(
        curves_path=args.curves,
        out_dir=args.out,
        kind="deviation",
        config_path=args.config,
        overrides=overrides,
        argv=sys.argv,
    )
    res = run.result
    print(f"Deviation test ({res.measure}, scaling {res.scaling}): statistic = {res.statistic:.6g}, p = {res.p:.4g}")
    print(f"Wrote results to {args.out}/result.json")
    return 0
