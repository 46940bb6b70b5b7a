"""Structured audit event logger.

Emits standardized trust-material events.  All events are logged to the
``carotate.audit`` logger with a consistent ``event_id`` field for
filtering and alerting.

Sensitive material (PEM bodies, raw record data) is automatically
redacted via :func:`~carotate.logging.sanitize.sanitize_for_logs`
before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from carotate.logging.sanitize import sanitize_for_logs

audit_log = logging.getLogger("carotate.audit")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured audit event."""
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    audit_log.log(level, message, *args, extra=data)


def chain_generated(
    operational_subject: str,
    root_fingerprint: str,
    intermediate_fingerprint: str,
    operational_fingerprint: str,
) -> None:
    _emit(
        "carotate.audit.chain_generated",
        "CA chain generated for %s",
        operational_subject,
        operational_subject=operational_subject,
        root_fingerprint=root_fingerprint,
        intermediate_fingerprint=intermediate_fingerprint,
        operational_fingerprint=operational_fingerprint,
    )


def bundle_exported(operational_subject: str, directory: str, artifacts: list[str]) -> None:
    _emit(
        "carotate.audit.bundle_exported",
        "CA bundle exported for %s",
        operational_subject,
        directory=directory,
        artifacts=artifacts,
    )


def record_replaced(record: str, data_keys: list[str], labels: dict[str, str]) -> None:
    _emit(
        "carotate.audit.record_replaced",
        "Record %s recreated",
        record,
        record=record,
        data_keys=data_keys,
        labels=labels,
    )


def rotation_completed(
    cert_record: str,
    key_record: str,
    generation: str,
    archived: list[str],
) -> None:
    """Log a finished rotation of a cert/key record pair."""
    _emit(
        "carotate.audit.rotation_completed",
        "CA rotation completed: %s, %s",
        cert_record,
        key_record,
        cert_record=cert_record,
        key_record=key_record,
        generation=generation,
        archived=archived,
        severity="WARNING",
    )


def rotation_failed(  # noqa: PLR0913
    cert_record: str,
    key_record: str,
    step: str,
    completed: list[str],
    error_kind: str,
    detail: str,
) -> None:
    """Log an aborted rotation and the steps that had already run."""
    _emit(
        "carotate.audit.rotation_failed",
        "CA rotation failed at %s: %s",
        step,
        detail,
        cert_record=cert_record,
        key_record=key_record,
        step=step,
        completed=completed,
        error_kind=error_kind,
        severity="ERROR",
    )


def generation_bumped(record: str, annotation: str, previous: int, current: int) -> None:
    _emit(
        "carotate.audit.generation_bumped",
        "Generation %s on %s bumped to %d",
        annotation,
        record,
        current,
        record=record,
        annotation=annotation,
        previous=previous,
        current=current,
    )


def generation_bump_skipped(record: str, annotation: str) -> None:
    _emit(
        "carotate.audit.generation_bump_skipped",
        "Generation %s absent on %s; bump skipped",
        annotation,
        record,
        record=record,
        annotation=annotation,
        severity="WARNING",
    )
