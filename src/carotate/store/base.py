"""Abstract base class for secret stores.

The rotation protocol only needs five operations from the store that
holds CA material: ``get``, ``create``, ``delete``, ``patch_annotations``
and ``wait_until_ready``.  Built-in stores (``memory``, ``kubernetes``)
and custom ones loaded through ``ext:`` must inherit from
:class:`SecretStore`.

Store implementations translate their client library's failures into
:class:`~carotate.core.errors.StoreError` at this boundary so callers
only ever deal with the carotate error hierarchy.
"""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from carotate.core.errors import StoreTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from carotate.config.settings import StoreSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecretRecord:
    """Snapshot of one named record in the store.

    Attributes
    ----------
    name, namespace:
        Identity of the record.
    data:
        Raw bytes keyed by file name (``ca.crt``, ``ca.key``, ...).
    labels:
        Association labels (cluster, component).
    annotations:
        Metadata including the generation counters.

    """

    name: str
    namespace: str
    data: Mapping[str, bytes] = field(default_factory=dict)
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Snapshots are read-only; mutation goes through the store
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
        object.__setattr__(self, "annotations", MappingProxyType(dict(self.annotations)))


def record_exists(record: SecretRecord) -> bool:  # noqa: ARG001
    """Default readiness: the store returned the record at all."""
    return True


class SecretStore(abc.ABC):
    """Base class for secret store implementations.

    Parameters
    ----------
    settings:
        The ``store`` configuration section.

    """

    def __init__(self, settings: StoreSettings) -> None:
        self._settings = settings

    @abc.abstractmethod
    def get(self, name: str, namespace: str) -> SecretRecord | None:
        """Return the record, or ``None`` if it does not exist."""

    @abc.abstractmethod
    def create(
        self,
        name: str,
        namespace: str,
        data: Mapping[str, bytes],
        labels: Mapping[str, str],
        annotations: Mapping[str, str] | None = None,
    ) -> SecretRecord:
        """Create a new record and return it.

        Raises
        ------
        StoreError
            If the record already exists or the store is unreachable.

        """

    @abc.abstractmethod
    def delete(self, name: str, namespace: str) -> None:
        """Delete the record if present.

        Idempotent: no error when the record is absent.  Returns only
        once the deletion is observable through :meth:`get`.
        """

    @abc.abstractmethod
    def patch_annotations(
        self,
        name: str,
        namespace: str,
        annotations: Mapping[str, str],
        *,
        expected: Mapping[str, str | None] | None = None,
    ) -> SecretRecord:
        """Merge *annotations* into the record's annotation map.

        Parameters
        ----------
        expected:
            Optional precondition: each key must currently hold the given
            value (``None`` = must be absent).  A mismatch raises
            :class:`~carotate.core.errors.StoreConflictError` and leaves
            the record untouched.

        Raises
        ------
        StoreError
            If the record does not exist or the store is unreachable.

        """

    def wait_until_ready(
        self,
        name: str,
        namespace: str,
        predicate: Callable[[SecretRecord], bool] = record_exists,
    ) -> SecretRecord:
        """Block until the record exists and *predicate* holds.

        Raises
        ------
        StoreTimeoutError
            If ``wait_timeout_seconds`` elapses first.

        """
        found: list[SecretRecord] = []

        def _ready() -> bool:
            record = self.get(name, namespace)
            if record is not None and predicate(record):
                found.append(record)
                return True
            return False

        self._poll(_ready, f"record {namespace}/{name} to become ready")
        return found[0]

    def _poll(self, condition: Callable[[], bool], description: str) -> None:
        """Evaluate *condition* until true or the configured timeout elapses."""
        timeout = self._settings.wait_timeout_seconds
        interval = self._settings.poll_interval_seconds
        deadline = time.monotonic() + timeout
        while True:
            if condition():
                return
            if time.monotonic() >= deadline:
                msg = f"Timed out after {timeout}s waiting for {description}"
                raise StoreTimeoutError(msg)
            log.debug("Waiting for %s", description)
            time.sleep(interval)
