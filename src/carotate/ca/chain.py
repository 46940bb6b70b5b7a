"""Three-tier CA chain construction.

Builds root -> intermediate -> operational, each tier signed by its
parent.  Root and intermediate subjects come from configuration and are
fixed per rotation generation; the operational subject is supplied by the
caller and must differ between logical CAs (cluster CA vs. clients CA)
that share one root/intermediate pair.

Usage::

    builder = CaChainBuilder(settings.chain)
    chain = builder.build("C=CZ, L=Prague, O=Test, CN=cluster-ca")
    chain.verify()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from carotate.ca.base import CaChain, CertAndKey
from carotate.ca.cert_utils import parse_subject_dn
from carotate.ca.keys import KeyPairFactory
from carotate.core.errors import ConfigurationError
from carotate.core.types import CaTier
from carotate.logging import audit

if TYPE_CHECKING:
    from carotate.config.settings import ChainSettings

log = logging.getLogger(__name__)

# Root may sign an intermediate which may sign the operational CA
_INTERMEDIATE_PATH_LENGTH = 1
# The operational CA signs only end-entity certificates
_OPERATIONAL_PATH_LENGTH = 0


class CaChainBuilder:
    """Compose a root, intermediate and operational CA.

    Parameters
    ----------
    settings:
        The ``chain`` configuration section.
    factory:
        Optional :class:`KeyPairFactory`; one is built from *settings*
        when omitted.

    """

    def __init__(
        self,
        settings: ChainSettings,
        factory: KeyPairFactory | None = None,
    ) -> None:
        self._settings = settings
        self._factory = factory or KeyPairFactory(settings)

    def generate_root(self, subject_dn: str | None = None) -> CertAndKey:
        """Issue a self-signed root CA."""
        subject_dn = subject_dn or self._settings.root_subject
        root = self._factory.issue(
            parse_subject_dn(subject_dn),
            validity_days=self._settings.root_validity_days,
        )
        self._log_issued(CaTier.ROOT, root)
        return root

    def generate_intermediate(
        self,
        parent: CertAndKey,
        subject_dn: str | None = None,
    ) -> CertAndKey:
        """Issue an intermediate CA signed by *parent* (the root)."""
        subject_dn = subject_dn or self._settings.intermediate_subject
        intermediate = self._factory.issue(
            parse_subject_dn(subject_dn),
            validity_days=self._settings.intermediate_validity_days,
            signer=parent,
            path_length=_INTERMEDIATE_PATH_LENGTH,
        )
        self._log_issued(CaTier.INTERMEDIATE, intermediate)
        return intermediate

    def generate_operational(self, parent: CertAndKey, subject_dn: str) -> CertAndKey:
        """Issue the operational CA signed by *parent* (the intermediate)."""
        operational = self._factory.issue(
            parse_subject_dn(subject_dn),
            validity_days=self._settings.operational_validity_days,
            signer=parent,
            path_length=_OPERATIONAL_PATH_LENGTH,
        )
        self._log_issued(CaTier.OPERATIONAL, operational)
        return operational

    def build(
        self,
        operational_dn: str,
        *,
        root: CertAndKey | None = None,
        intermediate: CertAndKey | None = None,
    ) -> CaChain:
        """Build a complete chain for *operational_dn*.

        Passing an existing *root* and *intermediate* issues a second
        operational CA (e.g. the clients CA) under the same pair.  The
        DN is parsed before any key is generated so a malformed DN fails
        without doing cryptographic work.
        """
        parse_subject_dn(operational_dn)
        if intermediate is not None and root is None:
            msg = "An existing intermediate requires its root"
            raise ConfigurationError(msg, field="root")

        root = root or self.generate_root()
        intermediate = intermediate or self.generate_intermediate(root)
        operational = self.generate_operational(intermediate, operational_dn)

        chain = CaChain(root=root, intermediate=intermediate, operational=operational)
        audit.chain_generated(
            operational_subject=operational.subject_dn,
            root_fingerprint=root.fingerprint,
            intermediate_fingerprint=intermediate.fingerprint,
            operational_fingerprint=operational.fingerprint,
        )
        return chain

    def renew_operational(self, chain: CaChain) -> CaChain:
        """Re-issue the operational certificate for its existing key.

        The new certificate keeps subject and key, gets a new serial and
        validity window, and is signed by the same intermediate.  Used
        for certificate-only renewal where the key generation must not
        change.
        """
        renewed = self._factory.issue(
            chain.operational.certificate.subject,
            validity_days=self._settings.operational_validity_days,
            signer=chain.intermediate,
            path_length=_OPERATIONAL_PATH_LENGTH,
            private_key=chain.operational.private_key,
        )
        log.info(
            "Renewed operational CA certificate: subject=%s, serial=%s -> %s",
            renewed.subject_dn,
            chain.operational.serial_number,
            renewed.serial_number,
        )
        return CaChain(
            root=chain.root,
            intermediate=chain.intermediate,
            operational=renewed,
        )

    @staticmethod
    def _log_issued(tier: CaTier, cert_and_key: CertAndKey) -> None:
        log.info(
            "Issued %s CA: subject=%s, issuer=%s, serial=%s, not_after=%s",
            tier,
            cert_and_key.subject_dn,
            cert_and_key.issuer_dn,
            cert_and_key.serial_number,
            cert_and_key.not_after.isoformat(),
        )
