"""In-process secret store.

Keeps records in a dictionary guarded by a lock.  Used for tests and for
``rotate --dry-run``, where the full protocol runs without touching a
cluster.  ``event_log`` records every mutation in order so callers can
assert on sequencing.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from carotate.core.errors import StoreConflictError, StoreError
from carotate.store.base import SecretRecord, SecretStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from carotate.config.settings import StoreSettings

log = logging.getLogger(__name__)


class InMemorySecretStore(SecretStore):
    """Dictionary-backed :class:`SecretStore`."""

    def __init__(self, settings: StoreSettings) -> None:
        super().__init__(settings)
        self._records: dict[tuple[str, str], SecretRecord] = {}
        self._lock = threading.Lock()
        self.event_log: list[tuple[str, str, str]] = []

    def get(self, name: str, namespace: str) -> SecretRecord | None:
        with self._lock:
            return self._records.get((namespace, name))

    def create(
        self,
        name: str,
        namespace: str,
        data: Mapping[str, bytes],
        labels: Mapping[str, str],
        annotations: Mapping[str, str] | None = None,
    ) -> SecretRecord:
        record = SecretRecord(
            name=name,
            namespace=namespace,
            data=data,
            labels=labels,
            annotations=annotations or {},
        )
        with self._lock:
            if (namespace, name) in self._records:
                msg = f"Record {namespace}/{name} already exists"
                raise StoreError(msg, retryable=False)
            self._records[(namespace, name)] = record
            self.event_log.append(("create", namespace, name))
        log.debug("Created record %s/%s", namespace, name)
        return record

    def delete(self, name: str, namespace: str) -> None:
        with self._lock:
            if self._records.pop((namespace, name), None) is None:
                return
            self.event_log.append(("delete", namespace, name))
        log.debug("Deleted record %s/%s", namespace, name)

    def patch_annotations(
        self,
        name: str,
        namespace: str,
        annotations: Mapping[str, str],
        *,
        expected: Mapping[str, str | None] | None = None,
    ) -> SecretRecord:
        with self._lock:
            current = self._records.get((namespace, name))
            if current is None:
                msg = f"Cannot annotate {namespace}/{name}: record does not exist"
                raise StoreError(msg, retryable=False)
            for key, value in (expected or {}).items():
                if current.annotations.get(key) != value:
                    msg = (
                        f"Annotation '{key}' on {namespace}/{name} is "
                        f"{current.annotations.get(key)!r}, expected {value!r}"
                    )
                    raise StoreConflictError(msg)
            patched = SecretRecord(
                name=name,
                namespace=namespace,
                data=current.data,
                labels=current.labels,
                annotations={**current.annotations, **annotations},
            )
            self._records[(namespace, name)] = patched
            self.event_log.append(("annotate", namespace, name))
        return patched
