"""Certificate/key pairs and the fixed three-tier CA chain.

A :class:`CertAndKey` pairs exactly one certificate with the private key
it was issued for.  A :class:`CaChain` holds the three tiers that make up
one delegation chain -- root, intermediate and operational -- and can
verify that each tier is signed by its parent.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization

from carotate.ca.cert_utils import format_subject_dn
from carotate.core.errors import CryptoError

if TYPE_CHECKING:
    from datetime import datetime

    from cryptography import x509
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertAndKey:
    """One issued certificate and its matching private key.

    Attributes
    ----------
    certificate:
        The signed X.509 certificate.
    private_key:
        Private key whose public half is embedded in *certificate*.

    """

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes

    @property
    def subject_dn(self) -> str:
        return format_subject_dn(self.certificate.subject)

    @property
    def issuer_dn(self) -> str:
        return format_subject_dn(self.certificate.issuer)

    @property
    def not_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    @property
    def serial_number(self) -> str:
        return format(self.certificate.serial_number, "x")

    @property
    def fingerprint(self) -> str:
        """SHA-256 hex digest of the certificate's DER encoding."""
        der = self.certificate.public_bytes(serialization.Encoding.DER)
        return hashlib.sha256(der).hexdigest()

    @property
    def cert_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    @property
    def key_pem(self) -> bytes:
        """Private key as unencrypted PKCS#8 PEM."""
        return self.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    def verify_issued_by(self, issuer: CertAndKey) -> None:
        """Check that this certificate was signed by *issuer*'s key.

        Raises
        ------
        CryptoError
            If the issuer name does not match or the signature does not
            verify against *issuer*'s public key.

        """
        if self.certificate.issuer != issuer.certificate.subject:
            msg = (
                f"Issuer mismatch: '{self.subject_dn}' names issuer "
                f"'{self.issuer_dn}', expected '{issuer.subject_dn}'"
            )
            raise CryptoError(msg)
        try:
            self.certificate.verify_directly_issued_by(issuer.certificate)
        except (InvalidSignature, ValueError, TypeError) as exc:
            msg = f"Signature on '{self.subject_dn}' does not verify against '{issuer.subject_dn}': {exc}"
            raise CryptoError(msg) from exc


@dataclass(frozen=True)
class CaChain:
    """Root, intermediate and operational CA -- each signed by the previous.

    The operational tier is the CA actually used to sign cluster and
    client certificates; its subject is chosen by the caller.
    """

    root: CertAndKey
    intermediate: CertAndKey
    operational: CertAndKey

    def verify(self) -> None:
        """Verify the full chain of trust.

        Raises
        ------
        CryptoError
            If any tier is not signed by its parent (root by itself).

        """
        self.root.verify_issued_by(self.root)
        self.intermediate.verify_issued_by(self.root)
        self.operational.verify_issued_by(self.intermediate)
        log.debug(
            "Verified CA chain: %s -> %s -> %s",
            self.root.subject_dn,
            self.intermediate.subject_dn,
            self.operational.subject_dn,
        )
