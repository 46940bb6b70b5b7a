"""Inspection subcommands (read-only)."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_inspect(settings, args) -> None:
    """Handle inspect subcommands."""
    if args.inspect_command == "state":
        _inspect_state(settings, args)
    elif args.inspect_command == "legacy-name":
        _inspect_legacy_name(settings, args)
    else:
        sys.stderr.write("usage: carotate inspect {state,legacy-name} ...\n")
        sys.exit(1)


def _inspect_state(settings, args) -> None:
    from carotate.core.types import RotationState
    from carotate.rotation.coordinator import RotationCoordinator
    from carotate.store.registry import load_secret_store

    namespace = args.namespace or settings.store.namespace
    coordinator = RotationCoordinator(load_secret_store(settings.store), settings.rotation)
    inspection = coordinator.inspect(args.cert_secret, args.key_secret, namespace)

    sys.stdout.write(f"state: {inspection.state}\n")
    sys.stdout.write(f"  {args.cert_secret}: {_describe(inspection.cert_record, inspection.cert_generation)}\n")
    sys.stdout.write(f"  {args.key_secret}: {_describe(inspection.key_record, inspection.key_generation)}\n")
    if inspection.state is RotationState.PARTIAL:
        # Non-zero so scripts can re-run the rotation
        sys.exit(2)


def _describe(record, generation: int | None) -> str:
    if record is None:
        return "absent"
    if generation is None:
        return "present, untracked"
    return f"present, generation {generation}"


def _inspect_legacy_name(settings, args) -> None:
    from carotate.core.errors import ConfigurationError
    from carotate.rotation.legacy import legacy_name
    from carotate.store.registry import load_secret_store

    namespace = args.namespace or settings.store.namespace
    data_key = args.data_key or settings.rotation.cert_data_key
    record = load_secret_store(settings.store).get(args.secret, namespace)
    if record is None:
        msg = f"Record {namespace}/{args.secret} does not exist"
        raise ConfigurationError(msg, field="secret")
    sys.stdout.write(f"{legacy_name(record, data_key)}\n")
