"""Archival names for superseded CA certificates.

During a rotation overlap window the previous certificate is kept under a
name derived purely from its own expiry, so a party mid-rollover can find
it without any separate index::

    ca.crt expiring 2024-01-15T10:00:00Z  ->  ca-2024-01-15T10-00-00.crt
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from carotate.ca.cert_utils import load_certificates, not_after_utc
from carotate.core.errors import ConfigurationError

if TYPE_CHECKING:
    from carotate.store.base import SecretRecord


def legacy_name(record: SecretRecord, data_key: str) -> str:
    """Return the archival name of the certificate stored at *data_key*.

    The timestamp is the certificate's ``notAfter`` in UTC with ``:``
    replaced by ``-``.  The extension is the segment following the first
    ``.`` of *data_key* (``ca.crt`` -> ``crt``).  When *data_key* holds a
    chain, the first (leaf-most) certificate is used.

    Raises
    ------
    ConfigurationError
        If *data_key* has no extension, is absent from the record, or
        does not hold a parseable certificate.

    """
    parts = data_key.split(".")
    if len(parts) < 2 or not parts[1]:  # noqa: PLR2004
        msg = f"Data key '{data_key}' has no extension to carry over"
        raise ConfigurationError(msg, field=data_key)

    raw = record.data.get(data_key)
    if raw is None:
        msg = f"Record {record.namespace}/{record.name} has no data key '{data_key}'"
        raise ConfigurationError(msg, field=data_key)

    cert = load_certificates(raw, source=data_key)[0]
    timestamp = not_after_utc(cert).isoformat(timespec="seconds")
    return f"ca-{timestamp.replace(':', '-')}.{parts[1]}"
