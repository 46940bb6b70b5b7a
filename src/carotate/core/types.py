"""Enumerated types shared across carotate.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain string
that serialises naturally into log records and CLI output.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class CaTier(StrEnum):
    ROOT = "root"
    INTERMEDIATE = "intermediate"
    OPERATIONAL = "operational"


class KeyType(StrEnum):
    RSA = "rsa"
    EC = "ec"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorKind(StrEnum):
    """Coarse classification used by callers to pick a retry policy."""

    CONFIGURATION = "configuration"
    CRYPTO = "crypto"
    INFRASTRUCTURE = "infrastructure"


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


class RotationStep(StrEnum):
    VALIDATE_BUNDLE = "validate_bundle"
    DELETE_CERT_RECORD = "delete_cert_record"
    CREATE_CERT_RECORD = "create_cert_record"
    DELETE_KEY_RECORD = "delete_key_record"
    CREATE_KEY_RECORD = "create_key_record"
    ANNOTATE_GENERATIONS = "annotate_generations"


class RotationState(StrEnum):
    """Observed state of a cert/key record pair in the store."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    ABSENT = "absent"
