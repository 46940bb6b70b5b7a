"""Export a CA chain as a bundle of PEM artifacts.

The exporter writes, in trust order:

1. the operational CA certificate,
2. the intermediate CA certificate,
3. the root CA certificate,
4. the concatenated chain (operational, intermediate, root),
5. the operational CA private key (PKCS#8).

Only the last artifact contains key material.  Files are written into a
fresh temporary directory owned by the caller, who must call
:meth:`Bundle.cleanup` (or use the bundle as a context manager).
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from carotate.core.errors import ConfigurationError
from carotate.logging import audit

if TYPE_CHECKING:
    from carotate.ca.base import CertAndKey
    from carotate.config.settings import BundleSettings

log = logging.getLogger(__name__)

_KEY_FILE_MODE = 0o600


@dataclass(frozen=True)
class Bundle:
    """Paths of the exported artifacts.

    Attributes
    ----------
    directory:
        Scoped temporary directory holding every artifact.
    operational_cert, intermediate_cert, root_cert:
        One PEM certificate each.
    chain:
        The three certificates concatenated, operational first.
    private_key:
        The operational CA private key.

    """

    directory: Path
    operational_cert: Path
    intermediate_cert: Path
    root_cert: Path
    chain: Path
    private_key: Path

    @property
    def certificate_artifacts(self) -> tuple[Path, ...]:
        return (self.operational_cert, self.intermediate_cert, self.root_cert, self.chain)

    @property
    def artifacts(self) -> tuple[Path, ...]:
        """All artifacts in trust order, private key last."""
        return (*self.certificate_artifacts, self.private_key)

    def validate(self) -> None:
        """Check every artifact exists and is non-empty.

        Raises
        ------
        ConfigurationError
            Naming the first missing or empty artifact.

        """
        for name, path in self._named_artifacts():
            if not path.is_file():
                msg = f"Bundle artifact '{name}' is missing: {path}"
                raise ConfigurationError(msg, field=name)
            if path.stat().st_size == 0:
                msg = f"Bundle artifact '{name}' is empty: {path}"
                raise ConfigurationError(msg, field=name)

    def read_chain(self) -> bytes:
        return self._read("chain", self.chain)

    def read_private_key(self) -> bytes:
        return self._read("private_key", self.private_key)

    def cleanup(self) -> None:
        """Remove the temporary directory and everything in it."""
        shutil.rmtree(self.directory, ignore_errors=True)
        log.debug("Removed bundle directory %s", self.directory)

    def __enter__(self) -> Bundle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def _named_artifacts(self) -> tuple[tuple[str, Path], ...]:
        return (
            ("operational_cert", self.operational_cert),
            ("intermediate_cert", self.intermediate_cert),
            ("root_cert", self.root_cert),
            ("chain", self.chain),
            ("private_key", self.private_key),
        )

    @staticmethod
    def _read(name: str, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            msg = f"Bundle artifact '{name}' is missing: {path}"
            raise ConfigurationError(msg, field=name) from None


class BundleExporter:
    """Serialise a chain into a :class:`Bundle`.

    Parameters
    ----------
    settings:
        The ``bundle`` configuration section (file names, temp parent).

    """

    def __init__(self, settings: BundleSettings) -> None:
        self._settings = settings

    def export(
        self,
        operational: CertAndKey,
        intermediate: CertAndKey,
        root: CertAndKey,
    ) -> Bundle:
        """Write the chain to a new temporary directory.

        No certificate is re-derived here: the output is a pure function
        of the inputs.
        """
        names = self._settings
        directory = Path(
            tempfile.mkdtemp(prefix="carotate-bundle-", dir=names.temp_dir),
        )

        operational_pem = operational.cert_pem.strip()
        intermediate_pem = intermediate.cert_pem.strip()
        root_pem = root.cert_pem.strip()
        chain_pem = b"\n".join((operational_pem, intermediate_pem, root_pem)) + b"\n"

        bundle = Bundle(
            directory=directory,
            operational_cert=directory / names.operational_cert,
            intermediate_cert=directory / names.intermediate_cert,
            root_cert=directory / names.root_cert,
            chain=directory / names.chain,
            private_key=directory / names.private_key,
        )

        try:
            bundle.operational_cert.write_bytes(operational_pem + b"\n")
            bundle.intermediate_cert.write_bytes(intermediate_pem + b"\n")
            bundle.root_cert.write_bytes(root_pem + b"\n")
            bundle.chain.write_bytes(chain_pem)
            _write_private(bundle.private_key, operational.key_pem)
        except OSError:
            bundle.cleanup()
            raise

        log.info("Exported CA bundle for '%s' to %s", operational.subject_dn, directory)
        audit.bundle_exported(
            operational_subject=operational.subject_dn,
            directory=str(directory),
            artifacts=[p.name for p in bundle.artifacts],
        )
        return bundle


def _write_private(path: Path, data: bytes) -> None:
    """Create *path* with owner-only permissions before writing key bytes."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _KEY_FILE_MODE)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
