"""Chain management subcommands."""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def run_chain(settings, args) -> None:
    """Handle chain subcommands."""
    if args.chain_command == "generate":
        _chain_generate(settings, args.cn, args.out)
    else:
        sys.stderr.write("usage: carotate chain generate --cn NAME [--out DIR]\n")
        sys.exit(1)


def _chain_generate(settings, common_name: str, out: str | None) -> None:
    """Build a chain, export it, and report (or copy out) the artifacts."""
    from carotate.ca.bundle import BundleExporter
    from carotate.ca.chain import CaChainBuilder

    prefix = settings.chain.operational_subject_prefix
    subject_dn = f"{prefix}, CN={common_name}" if prefix else f"CN={common_name}"

    chain = CaChainBuilder(settings.chain).build(subject_dn)
    chain.verify()

    with BundleExporter(settings.bundle).export(
        chain.operational,
        chain.intermediate,
        chain.root,
    ) as bundle:
        bundle.validate()
        for tier, cert in (
            ("root", chain.root),
            ("intermediate", chain.intermediate),
            ("operational", chain.operational),
        ):
            sys.stdout.write(
                f"{tier:<13} {cert.subject_dn}  serial={cert.serial_number}  "
                f"not_after={cert.not_after.isoformat()}\n",
            )

        if out is None:
            return

        target = Path(out)
        target.mkdir(parents=True, exist_ok=True)
        for artifact in bundle.artifacts:
            shutil.copy2(artifact, target / artifact.name)
        log.info("Copied bundle artifacts to %s", target)
        sys.stdout.write(f"bundle written to {target}\n")
