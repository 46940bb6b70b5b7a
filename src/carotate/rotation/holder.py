"""One logical CA (cluster CA or clients CA) and its pair of records.

:class:`CertHolder` ties together chain construction, bundle export and
rotation for a single operational CA: it builds the chain and bundle on
construction, and :meth:`prepare_secrets` installs them in the store.
Two holders can share a root/intermediate pair by passing the first
holder's chain tiers to the second.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from carotate.ca.bundle import BundleExporter
from carotate.ca.chain import CaChainBuilder
from carotate.rotation.coordinator import RotationCoordinator

if TYPE_CHECKING:
    from carotate.ca.base import CaChain, CertAndKey
    from carotate.ca.bundle import Bundle
    from carotate.config.settings import CarotateSettings
    from carotate.rotation.coordinator import RotationResult
    from carotate.store.base import SecretRecord, SecretStore

log = logging.getLogger(__name__)


class CertHolder:
    """Chain, bundle and record names for one operational CA.

    Parameters
    ----------
    settings:
        Full settings tree.
    store:
        Store the records live in.
    common_name:
        CN of the operational CA; appended to
        ``chain.operational_subject_prefix`` to form its subject DN.
    cert_secret_name, key_secret_name:
        Names of the certificate and key records.
    root, intermediate:
        Existing tiers to issue under instead of generating new ones.

    """

    def __init__(  # noqa: PLR0913
        self,
        settings: CarotateSettings,
        store: SecretStore,
        common_name: str,
        cert_secret_name: str,
        key_secret_name: str,
        *,
        root: CertAndKey | None = None,
        intermediate: CertAndKey | None = None,
    ) -> None:
        self.cert_secret_name = cert_secret_name
        self.key_secret_name = key_secret_name
        prefix = settings.chain.operational_subject_prefix
        self.subject_dn = f"{prefix}, CN={common_name}" if prefix else f"CN={common_name}"

        self._builder = CaChainBuilder(settings.chain)
        self._exporter = BundleExporter(settings.bundle)
        self._coordinator = RotationCoordinator(store, settings.rotation)

        self.chain: CaChain = self._builder.build(
            self.subject_dn,
            root=root,
            intermediate=intermediate,
        )
        self.bundle: Bundle = self._export()

    def prepare_secrets(self, namespace: str, cluster_name: str) -> RotationResult:
        """Replace the store's records for this CA with the held material."""
        log.info(
            "Deploying CA (%s, %s) for cluster %s/%s",
            self.cert_secret_name,
            self.key_secret_name,
            namespace,
            cluster_name,
        )
        return self._coordinator.rotate(
            self.cert_secret_name,
            self.key_secret_name,
            namespace,
            self.bundle,
            self._coordinator.association_labels(cluster_name),
        )

    def renew_certificate(self, namespace: str, cluster_name: str) -> SecretRecord:
        """Re-issue the operational certificate for the same key and install it."""
        self.chain = self._builder.renew_operational(self.chain)
        self.bundle.cleanup()
        self.bundle = self._export()
        return self._coordinator.renew_certificate(
            self.cert_secret_name,
            namespace,
            self.bundle,
            self._coordinator.association_labels(cluster_name),
        )

    def cleanup(self) -> None:
        self.bundle.cleanup()

    def _export(self) -> Bundle:
        return self._exporter.export(
            self.chain.operational,
            self.chain.intermediate,
            self.chain.root,
        )
