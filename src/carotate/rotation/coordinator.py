"""Replace live CA material in the secret store.

A rotation swaps the certificate record and the key record of one
operational CA for the contents of a freshly exported
:class:`~carotate.ca.bundle.Bundle`:

1. delete the certificate record (returns once the deletion is visible),
2. create it again from the bundle's chain, with association labels,
3. delete the key record,
4. create it again from the PKCS#8-encoded private key and wait for the
   store to report it ready,
5. annotate both records with the baseline generation.

Records are deleted and recreated rather than updated in place so that a
watcher keyed on existence sees a clean absent -> present edge.  Every
step is absent-tolerant, so re-running a rotation with the same bundle
converges on the same final state; that is also the recovery path after
a failure part-way through, since nothing is rolled back.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import serialization

from carotate.core.errors import (
    ConfigurationError,
    RotationError,
    StoreError,
    TrustMaterialError,
)
from carotate.core.types import RotationState, RotationStep
from carotate.logging import audit
from carotate.logging.setup import rotation_context
from carotate.rotation.generation import GenerationTracker, parse_generation
from carotate.rotation.legacy import legacy_name

if TYPE_CHECKING:
    from collections.abc import Mapping

    from carotate.ca.bundle import Bundle
    from carotate.config.settings import RotationSettings
    from carotate.store.base import SecretRecord, SecretStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationResult:
    """Records as they stand after a successful rotation."""

    rotation_id: str
    cert_record: SecretRecord
    key_record: SecretRecord
    archived: tuple[str, ...] = ()


@dataclass(frozen=True)
class RotationInspection:
    """What the store currently holds for a cert/key record pair."""

    state: RotationState
    cert_record: SecretRecord | None
    key_record: SecretRecord | None
    cert_generation: int | None
    key_generation: int | None


class RotationCoordinator:
    """Run the rotation protocol against a :class:`SecretStore`.

    Parameters
    ----------
    store:
        Store holding the CA records.
    settings:
        The ``rotation`` configuration section (data keys, annotation
        keys, baseline, label names).

    """

    def __init__(self, store: SecretStore, settings: RotationSettings) -> None:
        self._store = store
        self._settings = settings
        self._tracker = GenerationTracker(store, guarded=settings.guard_generation_bumps)

    def association_labels(self, cluster_name: str) -> dict[str, str]:
        """Labels tying a record to *cluster_name*, plus configured extras."""
        return {**self._settings.extra_labels, self._settings.cluster_label: cluster_name}

    def rotate(  # noqa: PLR0913
        self,
        cert_secret_name: str,
        key_secret_name: str,
        namespace: str,
        bundle: Bundle,
        labels: Mapping[str, str],
    ) -> RotationResult:
        """Replace both records with the material in *bundle*.

        Raises
        ------
        RotationError
            Wrapping the first failure.  ``step`` names where it happened
            and ``completed`` what was already done; the store is left as
            those steps left it.

        """
        settings = self._settings
        rotation_id = uuid.uuid4().hex[:12]
        completed: list[RotationStep] = []
        step = RotationStep.VALIDATE_BUNDLE

        with rotation_context(rotation_id):
            log.info(
                "Rotating CA records %s/%s and %s/%s",
                namespace,
                cert_secret_name,
                namespace,
                key_secret_name,
            )
            try:
                # Nothing touches the store until the bundle is known good
                bundle.validate()
                chain_pem = bundle.read_chain()
                key_pem = _encode_private_key(bundle.read_private_key())
                archived = self._superseded_entries(cert_secret_name, namespace, chain_pem)
                completed.append(step)

                step = RotationStep.DELETE_CERT_RECORD
                self._store.delete(cert_secret_name, namespace)
                completed.append(step)

                step = RotationStep.CREATE_CERT_RECORD
                self._store.create(
                    cert_secret_name,
                    namespace,
                    {**archived, settings.cert_data_key: chain_pem},
                    labels,
                )
                _record_replaced(
                    namespace,
                    cert_secret_name,
                    [*archived, settings.cert_data_key],
                    labels,
                )
                completed.append(step)

                step = RotationStep.DELETE_KEY_RECORD
                self._store.delete(key_secret_name, namespace)
                completed.append(step)

                step = RotationStep.CREATE_KEY_RECORD
                self._store.create(
                    key_secret_name,
                    namespace,
                    {settings.key_data_key: key_pem},
                    labels,
                )
                self._store.wait_until_ready(key_secret_name, namespace)
                _record_replaced(namespace, key_secret_name, [settings.key_data_key], labels)
                completed.append(step)

                step = RotationStep.ANNOTATE_GENERATIONS
                cert_record = self._store.patch_annotations(
                    cert_secret_name,
                    namespace,
                    {settings.cert_generation_annotation: settings.baseline_generation},
                )
                key_record = self._store.patch_annotations(
                    key_secret_name,
                    namespace,
                    {settings.key_generation_annotation: settings.baseline_generation},
                )
                completed.append(step)
            except TrustMaterialError as exc:
                log.error(  # noqa: TRY400
                    "Rotation of %s/%s aborted at step %s: %s",
                    namespace,
                    cert_secret_name,
                    step,
                    exc.detail,
                )
                audit.rotation_failed(
                    cert_record=f"{namespace}/{cert_secret_name}",
                    key_record=f"{namespace}/{key_secret_name}",
                    step=str(step),
                    completed=[str(s) for s in completed],
                    error_kind=str(exc.kind),
                    detail=exc.detail,
                )
                raise RotationError(exc, step=step, completed=tuple(completed)) from exc

            log.info(
                "Rotation complete for %s/%s and %s/%s (generation=%s)",
                namespace,
                cert_secret_name,
                namespace,
                key_secret_name,
                settings.baseline_generation,
            )
            audit.rotation_completed(
                cert_record=f"{namespace}/{cert_secret_name}",
                key_record=f"{namespace}/{key_secret_name}",
                generation=settings.baseline_generation,
                archived=sorted(archived),
            )

        return RotationResult(
            rotation_id=rotation_id,
            cert_record=cert_record,
            key_record=key_record,
            archived=tuple(sorted(archived)),
        )

    def renew_certificate(
        self,
        cert_secret_name: str,
        namespace: str,
        bundle: Bundle,
        labels: Mapping[str, str],
    ) -> SecretRecord:
        """Install a renewed certificate without touching the key record.

        The certificate record must already be tracked.  It is recreated
        with the new chain, the superseded certificate archived under its
        legacy name, and its certificate generation bumped by one.  The
        key generation is left alone because the key did not change.

        Raises
        ------
        ConfigurationError
            If the record is absent or carries no generation annotation,
            or the superseded chain would overwrite a different archived
            entry of the same name.

        """
        settings = self._settings
        annotation = settings.cert_generation_annotation
        current = self._store.get(cert_secret_name, namespace)
        generation = parse_generation(current, annotation) if current is not None else None
        if current is None or generation is None:
            msg = (
                f"Record {namespace}/{cert_secret_name} is not tracked by "
                f"'{annotation}'; run a full rotation first"
            )
            raise ConfigurationError(msg, field=annotation)

        bundle.validate()
        chain_pem = bundle.read_chain()
        data_key = settings.cert_data_key
        data = {key: value for key, value in current.data.items() if key != data_key}
        if current.data.get(data_key, chain_pem) != chain_pem:
            archive_name = legacy_name(current, data_key)
            if data.get(archive_name, current.data[data_key]) != current.data[data_key]:
                msg = (
                    f"Record {namespace}/{cert_secret_name} already holds a different "
                    f"'{archive_name}'; refusing to overwrite it"
                )
                raise ConfigurationError(msg, field=archive_name)
            data[archive_name] = current.data[data_key]
        data[data_key] = chain_pem

        self._store.delete(cert_secret_name, namespace)
        created = self._store.create(
            cert_secret_name,
            namespace,
            data,
            labels,
            {**current.annotations, annotation: str(generation)},
        )
        _record_replaced(namespace, cert_secret_name, list(data), labels)
        self._tracker.bump_generation(created, annotation)
        renewed = self._store.get(cert_secret_name, namespace)
        if renewed is None:
            msg = f"Record {namespace}/{cert_secret_name} vanished after renewal"
            raise StoreError(msg)
        return renewed

    def inspect(
        self,
        cert_secret_name: str,
        key_secret_name: str,
        namespace: str,
    ) -> RotationInspection:
        """Classify the record pair as complete, partial or absent.

        A pair is *complete* only when both records exist and both carry
        their generation annotation; any other mix is *partial* and calls
        for the rotation to be re-run.
        """
        settings = self._settings
        cert_record = self._store.get(cert_secret_name, namespace)
        key_record = self._store.get(key_secret_name, namespace)

        cert_generation = (
            parse_generation(cert_record, settings.cert_generation_annotation)
            if cert_record is not None
            else None
        )
        key_generation = (
            parse_generation(key_record, settings.key_generation_annotation)
            if key_record is not None
            else None
        )

        if cert_record is None and key_record is None:
            state = RotationState.ABSENT
        elif cert_generation is not None and key_generation is not None:
            state = RotationState.COMPLETE
        else:
            state = RotationState.PARTIAL

        return RotationInspection(
            state=state,
            cert_record=cert_record,
            key_record=key_record,
            cert_generation=cert_generation,
            key_generation=key_generation,
        )

    def _superseded_entries(
        self,
        cert_secret_name: str,
        namespace: str,
        new_chain: bytes,
    ) -> dict[str, bytes]:
        """Entries to carry into the new certificate record.

        Empty unless ``retain_superseded`` is on.  The current certificate
        is archived under its legacy name (unless it is the material being
        installed) and previously archived ``.crt`` entries are kept.
        """
        if not self._settings.retain_superseded:
            return {}

        data_key = self._settings.cert_data_key
        current = self._store.get(cert_secret_name, namespace)
        if current is None:
            return {}

        extension = data_key.split(".")[1]
        archived = {
            key: value
            for key, value in current.data.items()
            if key != data_key and key.startswith("ca-") and key.endswith(f".{extension}")
        }
        existing = current.data.get(data_key)
        if existing is None or existing == new_chain:
            return archived
        try:
            name = legacy_name(current, data_key)
        except ConfigurationError as exc:
            # Unreadable material cannot be archived; rotation still proceeds
            log.warning(
                "Not retaining superseded %s of %s/%s: %s",
                data_key,
                namespace,
                cert_secret_name,
                exc.detail,
            )
            return archived
        if archived.get(name, existing) != existing:
            log.warning(
                "Superseded entry %s on %s/%s already holds other material; keeping it",
                name,
                namespace,
                cert_secret_name,
            )
            return archived
        archived[name] = existing
        return archived


def _encode_private_key(key_pem: bytes) -> bytes:
    """Re-encode the operational key as unencrypted PKCS#8 PEM for storage."""
    try:
        key = serialization.load_pem_private_key(key_pem, password=None)
    except (ValueError, TypeError) as exc:
        msg = f"Bundle private key could not be parsed: {exc}"
        raise ConfigurationError(msg, field="private_key") from exc
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def _record_replaced(
    namespace: str,
    name: str,
    data_keys: list[str],
    labels: Mapping[str, str],
) -> None:
    log.info("Recreated record %s/%s with keys %s", namespace, name, sorted(data_keys))
    audit.record_replaced(
        record=f"{namespace}/{name}",
        data_keys=sorted(data_keys),
        labels=dict(labels),
    )
