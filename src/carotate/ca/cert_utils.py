"""Shared certificate-building helpers for the chain builder.

Provides subject-DN parsing/rendering, the CA key-usage extension, hash
algorithm lookup, and PEM load helpers used by the chain builder, the
bundle exporter and the legacy namer.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from carotate.core.errors import ConfigurationError

if TYPE_CHECKING:
    from cryptography.x509.oid import ObjectIdentifier

# ---------------------------------------------------------------------------
# Subject DN
# ---------------------------------------------------------------------------

_DN_ATTRIBUTES: dict[str, ObjectIdentifier] = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
    "DC": NameOID.DOMAIN_COMPONENT,
    "E": NameOID.EMAIL_ADDRESS,
    "EMAILADDRESS": NameOID.EMAIL_ADDRESS,
    "SERIALNUMBER": NameOID.SERIAL_NUMBER,
}

# Preferred short name when rendering an OID back to text
_DN_SHORT_NAMES: dict[ObjectIdentifier, str] = {}
for _short, _oid in _DN_ATTRIBUTES.items():
    _DN_SHORT_NAMES.setdefault(_oid, _short)

# Split on commas not preceded by a backslash
_RDN_SPLIT_RE = re.compile(r"(?<!\\),")


def parse_subject_dn(subject_dn: str) -> x509.Name:
    """Parse ``"C=CZ, L=Prague, O=Test, CN=cluster-ca"`` into an x509 Name.

    Attributes are kept in the order written.  ``\\,`` escapes a literal
    comma inside a value.

    Raises
    ------
    ConfigurationError
        If the DN is empty, a component is not ``ATTR=value``, the
        attribute is unknown, or a value is rejected by the x509 layer
        (e.g. a country code that is not two letters).

    """
    if not subject_dn or not subject_dn.strip():
        msg = "Subject DN must not be empty"
        raise ConfigurationError(msg, field="subject_dn")

    attributes = []
    for raw in _RDN_SPLIT_RE.split(subject_dn):
        component = raw.strip()
        attr, sep, value = component.partition("=")
        attr = attr.strip().upper()
        value = value.strip().replace("\\,", ",")
        if not sep or not attr or not value:
            msg = f"Malformed subject DN component '{component}' in '{subject_dn}'"
            raise ConfigurationError(msg, field="subject_dn")
        oid = _DN_ATTRIBUTES.get(attr)
        if oid is None:
            msg = (
                f"Unknown subject DN attribute '{attr}' in '{subject_dn}'; "
                f"supported: {sorted(_DN_ATTRIBUTES)}"
            )
            raise ConfigurationError(msg, field="subject_dn")
        try:
            attributes.append(x509.NameAttribute(oid, value))
        except ValueError as exc:
            msg = f"Invalid value for '{attr}' in subject DN '{subject_dn}': {exc}"
            raise ConfigurationError(msg, field="subject_dn") from exc

    return x509.Name(attributes)


def format_subject_dn(name: x509.Name) -> str:
    """Render *name* in the same forward ``ATTR=value, ...`` form parsed above."""
    parts = []
    for attribute in name:
        short = _DN_SHORT_NAMES.get(attribute.oid, attribute.oid.dotted_string)
        value = str(attribute.value).replace(",", "\\,")
        parts.append(f"{short}={value}")
    return ", ".join(parts)


# ---------------------------------------------------------------------------
# Extensions / algorithms
# ---------------------------------------------------------------------------

_HASH_ALGORITHMS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """Return a fresh hash instance for *name* (``sha256``/``sha384``/``sha512``)."""
    cls = _HASH_ALGORITHMS.get(name.lower())
    if cls is None:
        msg = f"Unknown hash algorithm '{name}'; supported: {sorted(_HASH_ALGORITHMS)}"
        raise ConfigurationError(msg, field="hash_algorithm")
    return cls()


def build_ca_key_usage() -> x509.KeyUsage:
    """Key usage for every tier of the chain: sign certs and CRLs."""
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=True,
        crl_sign=True,
        encipher_only=False,
        decipher_only=False,
    )


# ---------------------------------------------------------------------------
# PEM helpers
# ---------------------------------------------------------------------------


def load_certificates(pem_data: bytes, *, source: str) -> list[x509.Certificate]:
    """Load every certificate in a PEM blob, leaf first.

    *source* names the origin (data key, file) for error messages.
    """
    try:
        certs = x509.load_pem_x509_certificates(pem_data)
    except ValueError as exc:
        msg = f"Could not parse certificate data from '{source}': {exc}"
        raise ConfigurationError(msg, field=source) from exc
    if not certs:
        msg = f"No certificate found in '{source}'"
        raise ConfigurationError(msg, field=source)
    return certs


def not_after_utc(cert: x509.Certificate) -> datetime:
    """Return the certificate expiry as a naive UTC datetime."""
    return cert.not_valid_after_utc.astimezone(UTC).replace(tzinfo=None)
