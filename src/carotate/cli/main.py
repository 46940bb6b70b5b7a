"""carotate command-line entry point.

Usage::

    carotate -c config.yaml chain generate --cn cluster-ca --out ./bundle
    carotate -c config.yaml rotate --cluster my-cluster --cn cluster-ca \\
        --cert-secret my-cluster-cluster-ca-cert --key-secret my-cluster-cluster-ca
    carotate -c config.yaml inspect state --cert-secret N --key-secret N
    carotate -c config.yaml inspect legacy-name --secret N --data-key ca.crt
    carotate -c config.yaml generation bump --secret N --annotation ca-cert-generation
    carotate -c config.yaml --validate-only
    python -m carotate ...
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from carotate.core.errors import TrustMaterialError

log = logging.getLogger(__name__)


def _get_version() -> str:
    from carotate import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="carotate",
        description="carotate -- CA chain construction and rotation",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON). Defaults apply when omitted.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # chain
    chain_parser = subparsers.add_parser("chain", help="CA chain operations")
    chain_sub = chain_parser.add_subparsers(dest="chain_command")
    generate = chain_sub.add_parser("generate", help="Build a chain and export a bundle")
    generate.add_argument("--cn", required=True, help="Common name of the operational CA")
    generate.add_argument("--out", default=None, help="Copy bundle artifacts to this directory")

    # rotate
    rotate = subparsers.add_parser("rotate", help="Replace CA records with a fresh chain")
    rotate.add_argument("--cluster", required=True, help="Cluster the records belong to")
    rotate.add_argument("--cn", required=True, help="Common name of the operational CA")
    rotate.add_argument("--cert-secret", required=True, help="Certificate record name")
    rotate.add_argument("--key-secret", required=True, help="Key record name")
    rotate.add_argument("--namespace", default=None, help="Namespace (default: store.namespace)")
    rotate.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run against an in-memory store instead of the configured one",
    )

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Inspect stored CA records")
    inspect_sub = inspect_parser.add_subparsers(dest="inspect_command")
    state = inspect_sub.add_parser("state", help="Report whether a rotation is complete")
    state.add_argument("--cert-secret", required=True)
    state.add_argument("--key-secret", required=True)
    state.add_argument("--namespace", default=None)
    legacy = inspect_sub.add_parser("legacy-name", help="Archival name of a stored certificate")
    legacy.add_argument("--secret", required=True)
    legacy.add_argument("--namespace", default=None)
    legacy.add_argument("--data-key", default=None, help="Default: rotation.cert_data_key")

    # generation
    generation = subparsers.add_parser("generation", help="Generation counters")
    generation_sub = generation.add_subparsers(dest="generation_command")
    bump = generation_sub.add_parser("bump", help="Increment a generation annotation")
    bump.add_argument("--secret", required=True)
    bump.add_argument("--annotation", required=True)
    bump.add_argument("--namespace", default=None)

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"carotate: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from carotate.config import ConfigValidationError, build_settings, load_config

    try:
        if args.config is None:
            settings = build_settings({})
        else:
            config_path = Path(args.config)
            if not config_path.is_file():
                _print_error(f"configuration file not found: {config_path}")
                sys.exit(1)
            settings = load_config(config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from carotate.logging import configure_logging

    configure_logging(settings.logging)

    if args.validate_only:
        sys.stdout.write("configuration OK\n")
        sys.exit(0)

    command = args.command
    try:
        if command == "chain":
            from carotate.cli.commands.chain import run_chain

            run_chain(settings, args)
        elif command == "rotate":
            from carotate.cli.commands.rotate import run_rotate

            run_rotate(settings, args)
        elif command == "inspect":
            from carotate.cli.commands.inspect import run_inspect

            run_inspect(settings, args)
        elif command == "generation":
            from carotate.cli.commands.generation import run_generation

            run_generation(settings, args)
        else:
            parser.print_help(sys.stderr)
            sys.exit(1)
    except TrustMaterialError as exc:
        if args.debug:
            raise
        _print_error(f"[{exc.kind}] {exc.detail}")
        sys.exit(1)
