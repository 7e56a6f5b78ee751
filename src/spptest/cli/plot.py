"""Implementation of `spptest plot`."""

from __future__ import annotations

import argparse
from pathlib import Path

from spptest.curves.ops import crop
from spptest.data.io import load_curve_set, load_manifest
from spptest.viz.plots import plot_curve_set


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("plot", help="Plot the observed curve over the simulated curves")
    parser.add_argument("curves", help="Curve set folder or curve table file")
    parser.add_argument("--out", required=True, help="Output image path")
    parser.add_argument("--r-min", type=float, default=None, help="Crop distances below this value")
    parser.add_argument("--r-max", type=float, default=None, help="Crop distances above this value")
    parser.set_defaults(func=cmd_plot)


def cmd_plot(args: argparse.Namespace) -> int:
    manifest = load_manifest(args.curves)
    curve_set = crop(load_curve_set(args.curves, allow_inf_values=True), r_min=args.r_min, r_max=args.r_max)
    out = plot_curve_set(curve_set, Path(args.out), ylabel=str(manifest.get("summary_function", "T(r)")))
    print(f"Figure written to {out}")
    return 0
