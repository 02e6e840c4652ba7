"""Unified CLI entry-point for nnit.

Usage::

    nnit run -c nnit.integration.suites.symbol_block:SymbolBlockTest [-m NAME] [-r N] [-l]
    nnit stage
    nnit config

Global options ``--config <file>`` and ``-v/--verbose`` go before the command.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from nnit import log
from nnit.config import ConfigError, get_config, load_config, set_config
from nnit.integration.artifacts import prepare_model
from nnit.integration.runner import IntegrationTest
from nnit.integration.types import ArtifactError

logger = logging.getLogger(__name__)


def _cmd_run(args: argparse.Namespace) -> int:
    return IntegrationTest().main(args.runner_args)


def _cmd_stage(_args: argparse.Namespace) -> int:
    try:
        path = prepare_model()
    except ArtifactError as exc:
        logger.error("%s", exc)
        return 2
    print(path)
    return 0


def _cmd_config(_args: argparse.Namespace) -> int:
    print(json.dumps(asdict(get_config()), indent=2))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nnit", description="Neural-network integration tests")
    parser.add_argument("--config", default=None, help="Path to nnit.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # everything after "run" is handed to the runner
    sub.add_parser("run", help="Run @run_as_test scenarios (-c CLASS [-m METHOD] [-r N] [-l])",
                   add_help=False)

    sub.add_parser("stage", help="Download and extract the model artifact")
    sub.add_parser("config", help="Print the effective configuration")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry-point."""
    parser = _build_parser()
    args, extra = parser.parse_known_args(argv)
    if args.command == "run":
        args.runner_args = extra
    elif extra:
        parser.error(f"unrecognized arguments: {' '.join(extra)}")

    log.setup(logging.DEBUG if args.verbose else logging.INFO)
    try:
        set_config(load_config(args.config))
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2

    dispatch = {
        "run": _cmd_run,
        "stage": _cmd_stage,
        "config": _cmd_config,
    }
    handler = dispatch.get(args.command or "")
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
