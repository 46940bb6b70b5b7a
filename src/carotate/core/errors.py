"""Error hierarchy for trust-material operations.

Every failure raised by carotate is a :class:`TrustMaterialError` tagged
with an :class:`~carotate.core.types.ErrorKind`:

- ``configuration`` -- malformed input (subject DN, bundle, config file).
  Never retried.
- ``crypto`` -- key generation, signing or verification failure from the
  underlying primitive.  Never retried.
- ``infrastructure`` -- the secret store is unreachable or a bounded wait
  timed out.  Callers may apply their own retry/backoff.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from carotate.core.types import ErrorKind

if TYPE_CHECKING:
    from carotate.core.types import RotationStep


class TrustMaterialError(Exception):
    """Base class for all carotate failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    kind:
        Error classification.
    retryable:
        Whether the failure is transient and the operation may be retried.

    """

    def __init__(
        self,
        detail: str,
        *,
        kind: ErrorKind,
        retryable: bool = False,
    ) -> None:
        self.detail = detail
        self.kind = kind
        self.retryable = retryable
        super().__init__(detail)


class ConfigurationError(TrustMaterialError):
    """Malformed caller input; *field* names the offending artifact or field."""

    def __init__(self, detail: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(detail, kind=ErrorKind.CONFIGURATION)


class CryptoError(TrustMaterialError):
    """Key generation, signing or chain verification failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail, kind=ErrorKind.CRYPTO)


class StoreError(TrustMaterialError):
    """The secret store could not complete a request."""

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(
            detail,
            kind=ErrorKind.INFRASTRUCTURE,
            retryable=retryable,
        )


class StoreTimeoutError(StoreError):
    """A bounded wait on the store elapsed before its condition held."""


class StoreConflictError(StoreError):
    """A guarded patch found a value other than the one it expected."""


class RotationError(TrustMaterialError):
    """A rotation aborted part-way through.

    Attributes
    ----------
    step:
        The step that failed.
    completed:
        Steps that finished before the failure.  Anything after the first
        delete may have left the store with a missing record; re-invoking
        the rotation is the recovery path.
    cause:
        The underlying :class:`TrustMaterialError`.

    """

    def __init__(
        self,
        cause: TrustMaterialError,
        *,
        step: RotationStep,
        completed: tuple[RotationStep, ...],
    ) -> None:
        self.cause = cause
        self.step = step
        self.completed = completed
        super().__init__(
            f"Rotation failed at step '{step}': {cause.detail}",
            kind=cause.kind,
            retryable=cause.retryable,
        )
