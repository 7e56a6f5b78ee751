"""Implementation of `spptest validate`."""

from __future__ import annotations

import argparse
import json

from spptest.data.validators import report_to_dict, validate_curve_set_folder


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("validate", help="Validate a curve set folder")
    parser.add_argument("curves", help="Curve set folder or curve table file")
    parser.add_argument(
        "--allow-inf",
        action="store_true",
        help="Accept non-finite curve values (to be cropped away before testing)",
    )
    parser.add_argument("--json", action="store_true", help="Print report as JSON")
    parser.set_defaults(func=cmd_validate)


def cmd_validate(args: argparse.Namespace) -> int:
    report = validate_curve_set_folder(args.curves, allow_inf_values=args.allow_inf)
    payload = report_to_dict(report)

    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        status = "PASS" if report.valid else "FAIL"
        print(f"Validation: {status}")
        print(f"Distances: {report.n_r}  Simulations: {report.n_sim}")
        if not report.issues:
            print("No issues found")
        for issue in report.issues:
            print(f"- {issue.level.upper()} [{issue.code}] {issue.message}")

    return 0 if report.valid else 2
