"""Key pair generation and CA certificate issuance.

:class:`KeyPairFactory` produces a fresh private key for every tier and
issues CA certificates either self-signed (root) or signed by a parent
:class:`~carotate.ca.base.CertAndKey`.  Every failure inside the
cryptographic primitive surfaces as :class:`CryptoError`.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from carotate.ca.base import CertAndKey
from carotate.ca.cert_utils import build_ca_key_usage, hash_algorithm
from carotate.core.errors import ConfigurationError, CryptoError
from carotate.core.types import KeyType

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

    from carotate.config.settings import ChainSettings

log = logging.getLogger(__name__)

_EC_CURVES = {
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
}

# Backdate notBefore to tolerate clock skew between issuer and verifiers
_CLOCK_SKEW = timedelta(minutes=5)


class KeyPairFactory:
    """Generate key pairs and sign CA certificates.

    Parameters
    ----------
    settings:
        The ``chain`` configuration section (key type, size, curve, hash).

    """

    def __init__(self, settings: ChainSettings) -> None:
        self._settings = settings
        self._hash = hash_algorithm(settings.hash_algorithm)

    def generate_key_pair(self) -> CertificateIssuerPrivateKeyTypes:
        """Return a fresh private key per the configured algorithm."""
        key_type = self._settings.key_type
        try:
            if key_type == KeyType.RSA:
                return rsa.generate_private_key(
                    public_exponent=65537,
                    key_size=self._settings.rsa_key_size,
                )
            if key_type == KeyType.EC:
                curve = _EC_CURVES.get(self._settings.ec_curve)
                if curve is None:
                    msg = (
                        f"Unknown EC curve '{self._settings.ec_curve}'; "
                        f"supported: {sorted(_EC_CURVES)}"
                    )
                    raise ConfigurationError(msg, field="chain.ec_curve")
                return ec.generate_private_key(curve())
        except ConfigurationError:
            raise
        except (ValueError, UnsupportedAlgorithm) as exc:
            msg = f"Key generation failed ({key_type}): {exc}"
            raise CryptoError(msg) from exc

        msg = f"Unknown key type '{key_type}'; supported: {[k.value for k in KeyType]}"
        raise ConfigurationError(msg, field="chain.key_type")

    def issue(  # noqa: PLR0913
        self,
        subject: x509.Name,
        *,
        validity_days: int,
        signer: CertAndKey | None = None,
        path_length: int | None = None,
        private_key: CertificateIssuerPrivateKeyTypes | None = None,
    ) -> CertAndKey:
        """Issue a CA certificate for *subject*.

        Parameters
        ----------
        subject:
            Subject name of the new certificate.
        validity_days:
            Lifetime measured from now.
        signer:
            Parent CA.  ``None`` issues a self-signed root.
        path_length:
            ``BasicConstraints`` path length (``None`` = unlimited).
        private_key:
            Reuse an existing key instead of generating one.  Only used
            for certificate-only renewal.

        Returns
        -------
        CertAndKey
            The new certificate paired with its private key.

        Raises
        ------
        CryptoError
            If signing fails.

        """
        key = private_key if private_key is not None else self.generate_key_pair()
        public_key = key.public_key()

        if signer is None:
            issuer_name = subject
            signing_key = key
            aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key)  # type: ignore[arg-type]
        else:
            issuer_name = signer.certificate.subject
            signing_key = signer.private_key
            aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(
                signer.certificate.public_key(),  # type: ignore[arg-type]
            )

        now = datetime.now(UTC)
        try:
            builder = (
                x509.CertificateBuilder()
                .subject_name(subject)
                .issuer_name(issuer_name)
                .public_key(public_key)
                .serial_number(x509.random_serial_number())
                .not_valid_before(now - _CLOCK_SKEW)
                .not_valid_after(now + timedelta(days=validity_days))
                .add_extension(
                    x509.BasicConstraints(ca=True, path_length=path_length),
                    critical=True,
                )
                .add_extension(build_ca_key_usage(), critical=True)
                .add_extension(
                    x509.SubjectKeyIdentifier.from_public_key(public_key),  # type: ignore[arg-type]
                    critical=False,
                )
                .add_extension(aki, critical=False)
            )
            cert = builder.sign(signing_key, self._hash)  # type: ignore[arg-type]
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            msg = f"Failed to sign certificate for '{subject.rfc4514_string()}': {exc}"
            raise CryptoError(msg) from exc

        return CertAndKey(certificate=cert, private_key=key)
