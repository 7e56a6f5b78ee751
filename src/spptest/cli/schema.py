"""Implementation of `spptest schema`."""

from __future__ import annotations

import argparse

import yaml

from spptest.data.schema import MANIFEST_TEMPLATE


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("schema", help="Print canonical curve_set.yaml template")
    parser.set_defaults(func=cmd_schema)


def cmd_schema(args: argparse.Namespace) -> int:
    del args
    print(yaml.safe_dump(MANIFEST_TEMPLATE, sort_keys=False))
    return 0
