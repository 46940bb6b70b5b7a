"""Per-record generation counters.

A generation annotation is the only externally visible signal that trust
material changed.  Consumers compare the value they last saw with the
current one: changed means re-fetch and re-validate, unchanged means the
material can be trusted as-is.

Bumps are read-modify-write.  Unless ``guarded`` is enabled, two callers
bumping the same record at the same time can lose one increment; guarded
bumps pass the value read as a precondition so the store rejects the
second writer with :class:`~carotate.core.errors.StoreConflictError`.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from carotate.core.errors import ConfigurationError
from carotate.logging import audit

if TYPE_CHECKING:
    from carotate.store.base import SecretRecord, SecretStore

log = logging.getLogger(__name__)


def parse_generation(record: SecretRecord, annotation_key: str) -> int | None:
    """Return the integer generation at *annotation_key*, or ``None`` if absent."""
    raw = record.annotations.get(annotation_key)
    if raw is None:
        return None
    if not re.fullmatch(r"[0-9]+", raw):
        msg = (
            f"Annotation '{annotation_key}' on {record.namespace}/{record.name} "
            f"is not a non-negative integer: {raw!r}"
        )
        raise ConfigurationError(msg, field=annotation_key)
    return int(raw)


class GenerationTracker:
    """Increment generation annotations through a :class:`SecretStore`.

    Parameters
    ----------
    store:
        Store holding the tracked records.
    guarded:
        Make each bump conditional on the value it read.

    """

    def __init__(self, store: SecretStore, *, guarded: bool = False) -> None:
        self._store = store
        self._guarded = guarded

    def bump_generation(self, record: SecretRecord, annotation_key: str) -> int | None:
        """Increment the generation at *annotation_key* by exactly one.

        Only already-tracked records are bumped: when the annotation is
        absent the record is left untouched and ``None`` is returned.

        Returns
        -------
        int | None
            The new generation, or ``None`` if the record is untracked.

        """
        current = parse_generation(record, annotation_key)
        if current is None:
            log.debug(
                "Record %s/%s has no '%s' annotation; not bumping",
                record.namespace,
                record.name,
                annotation_key,
            )
            audit.generation_bump_skipped(
                record=f"{record.namespace}/{record.name}",
                annotation=annotation_key,
            )
            return None

        new_value = current + 1
        expected = {annotation_key: str(current)} if self._guarded else None
        self._store.patch_annotations(
            record.name,
            record.namespace,
            {annotation_key: str(new_value)},
            expected=expected,
        )
        log.info(
            "Bumped %s on %s/%s: %d -> %d",
            annotation_key,
            record.namespace,
            record.name,
            current,
            new_value,
        )
        audit.generation_bumped(
            record=f"{record.namespace}/{record.name}",
            annotation=annotation_key,
            previous=current,
            current=new_value,
        )
        return new_value

    @staticmethod
    def current_generation(record: SecretRecord, annotation_key: str) -> int | None:
        return parse_generation(record, annotation_key)

    @staticmethod
    def has_changed(
        before: SecretRecord | None,
        after: SecretRecord | None,
        annotation_key: str,
    ) -> bool:
        """Tell a consumer whether it must re-fetch trust material.

        A record appearing or disappearing counts as a change, as does
        any difference in the generation value.
        """
        if before is None or after is None:
            return before is not after
        return parse_generation(before, annotation_key) != parse_generation(
            after,
            annotation_key,
        )
