"""Pluggable secret store system.

Exports the abstract base class, the record snapshot type, and the
registry loader.
"""

from carotate.store.base import SecretRecord, SecretStore
from carotate.store.registry import load_secret_store

__all__ = [
    "SecretRecord",
    "SecretStore",
    "load_secret_store",
]
