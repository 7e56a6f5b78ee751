"""Main CLI entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys

from spptest.cli import deviation, envelope, plot, schema, validate
from spptest.core.config import ConfigError
from spptest.core.logging import setup_logging
from spptest.core.pipeline import PipelineError
from spptest.core.registry import RegistryError
from spptest.curves.curve_set import CurveSetError
from spptest.data.io import CurveSetIOError
from spptest.stats.pvalues import PValueError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spptest", description="Global envelope and deviation tests for curves")
    subparsers = parser.add_subparsers(dest="command")

    validate.register(subparsers)
    envelope.register(subparsers)
    deviation.register(subparsers)
    plot.register(subparsers)
    schema.register(subparsers)

    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=getattr(args, "verbose", False))

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return int(args.func(args))
    except (CurveSetError, CurveSetIOError, ConfigError, RegistryError, PValueError, PipelineError) as exc:
        logger.error("%s", exc)
        return 2
    except ValueError as exc:
        logger.error("Invalid input: %s", exc)
        return 2
    except KeyboardInterrupt:
        print("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
