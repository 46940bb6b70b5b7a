"""Generation counter subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_generation(settings, args) -> None:
    """Handle generation subcommands."""
    if args.generation_command == "bump":
        _generation_bump(settings, args)
    else:
        sys.stderr.write("usage: carotate generation bump --secret NAME --annotation KEY\n")
        sys.exit(1)


def _generation_bump(settings, args) -> None:
    from carotate.core.errors import ConfigurationError
    from carotate.rotation.generation import GenerationTracker
    from carotate.store.registry import load_secret_store

    namespace = args.namespace or settings.store.namespace
    store = load_secret_store(settings.store)
    record = store.get(args.secret, namespace)
    if record is None:
        msg = f"Record {namespace}/{args.secret} does not exist"
        raise ConfigurationError(msg, field="secret")

    tracker = GenerationTracker(store, guarded=settings.rotation.guard_generation_bumps)
    new_value = tracker.bump_generation(record, args.annotation)
    if new_value is None:
        sys.stdout.write(f"{namespace}/{args.secret} has no '{args.annotation}'; left unchanged\n")
    else:
        sys.stdout.write(f"{namespace}/{args.secret} {args.annotation}={new_value}\n")
