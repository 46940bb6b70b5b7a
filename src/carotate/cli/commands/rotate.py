"""Rotation subcommand."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_rotate(settings, args) -> None:
    """Build a fresh chain for ``--cn`` and install it in the store."""
    from carotate.rotation.holder import CertHolder

    if args.dry_run:
        from carotate.store.memory import InMemorySecretStore

        store = InMemorySecretStore(settings.store)
        log.info("Dry run: rotating against an in-memory store")
    else:
        from carotate.store.registry import load_secret_store

        store = load_secret_store(settings.store)

    namespace = args.namespace or settings.store.namespace
    holder = CertHolder(
        settings,
        store,
        args.cn,
        args.cert_secret,
        args.key_secret,
    )
    try:
        result = holder.prepare_secrets(namespace, args.cluster)
    finally:
        holder.cleanup()

    rotation = settings.rotation
    sys.stdout.write(
        f"rotation {result.rotation_id} complete: "
        f"{namespace}/{args.cert_secret} "
        f"{rotation.cert_generation_annotation}="
        f"{result.cert_record.annotations.get(rotation.cert_generation_annotation)}, "
        f"{namespace}/{args.key_secret} "
        f"{rotation.key_generation_annotation}="
        f"{result.key_record.annotations.get(rotation.key_generation_annotation)}\n",
    )
    for name in result.archived:
        sys.stdout.write(f"  retained {name}\n")
