"""Kubernetes secret store.

Maps the :class:`SecretStore` operations onto ``CoreV1Api`` secret
calls from the official ``kubernetes`` client:

- ``get``               -> ``read_namespaced_secret`` (404 = absent)
- ``create``            -> ``create_namespaced_secret`` (Opaque, base64 data)
- ``delete``            -> ``delete_namespaced_secret`` then poll until 404
- ``patch_annotations`` -> merge patch on ``metadata.annotations``, or a
  JSON patch with ``test`` operations when a precondition is given

Client configuration is loaded from the in-cluster service account when
available, falling back to a kubeconfig file.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from carotate.core.errors import StoreConflictError, StoreError
from carotate.store.base import SecretRecord, SecretStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from carotate.config.settings import StoreSettings

log = logging.getLogger(__name__)

_NOT_FOUND = 404
_CONFLICT = 409
_UNPROCESSABLE = 422
_SERVER_ERROR = 500


class KubernetesSecretStore(SecretStore):
    """:class:`SecretStore` backed by Kubernetes ``Secret`` objects.

    Parameters
    ----------
    settings:
        The ``store`` configuration section.
    api:
        Pre-built ``CoreV1Api``; when omitted, client configuration is
        loaded from the environment.

    """

    def __init__(
        self,
        settings: StoreSettings,
        api: client.CoreV1Api | None = None,
    ) -> None:
        super().__init__(settings)
        self._api = api if api is not None else self._build_api()

    def _build_api(self) -> client.CoreV1Api:
        k8s = self._settings.kubernetes
        try:
            if k8s.in_cluster:
                config.load_incluster_config()
            else:
                config.load_kube_config(
                    config_file=k8s.kubeconfig,
                    context=k8s.context,
                )
        except (ConfigException, OSError) as exc:
            msg = f"Could not load Kubernetes client configuration: {exc}"
            raise StoreError(msg, retryable=False) from exc
        return client.CoreV1Api()

    # -- reads --------------------------------------------------------------

    def get(self, name: str, namespace: str) -> SecretRecord | None:
        try:
            secret = self._api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return None
            raise _store_error("read", namespace, name, exc) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise _store_error("read", namespace, name, exc) from exc
        return _to_record(secret)

    # -- writes -------------------------------------------------------------

    def create(
        self,
        name: str,
        namespace: str,
        data: Mapping[str, bytes],
        labels: Mapping[str, str],
        annotations: Mapping[str, str] | None = None,
    ) -> SecretRecord:
        body = client.V1Secret(
            api_version="v1",
            kind="Secret",
            type="Opaque",
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                labels=dict(labels),
                annotations=dict(annotations) if annotations else None,
            ),
            data={key: base64.b64encode(value).decode("ascii") for key, value in data.items()},
        )
        try:
            created = self._api.create_namespaced_secret(namespace=namespace, body=body)
        except ApiException as exc:
            raise _store_error("create", namespace, name, exc) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise _store_error("create", namespace, name, exc) from exc
        log.info("Created secret %s/%s", namespace, name)
        return _to_record(created)

    def delete(self, name: str, namespace: str) -> None:
        try:
            self._api.delete_namespaced_secret(name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                log.debug("Secret %s/%s already absent", namespace, name)
                return
            raise _store_error("delete", namespace, name, exc) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise _store_error("delete", namespace, name, exc) from exc

        self._poll(
            lambda: self.get(name, namespace) is None,
            f"secret {namespace}/{name} to be deleted",
        )
        log.info("Deleted secret %s/%s", namespace, name)

    def patch_annotations(
        self,
        name: str,
        namespace: str,
        annotations: Mapping[str, str],
        *,
        expected: Mapping[str, str | None] | None = None,
    ) -> SecretRecord:
        body: Any
        if expected:
            resource_version = None
            if any(value is None for value in expected.values()):
                resource_version = self._check_absent(name, namespace, expected)
            body = _guarded_patch(annotations, expected, resource_version)
        else:
            body = {"metadata": {"annotations": dict(annotations)}}

        try:
            patched = self._api.patch_namespaced_secret(
                name=name,
                namespace=namespace,
                body=body,
            )
        except ApiException as exc:
            if expected and exc.status in (_CONFLICT, _UNPROCESSABLE):
                msg = (
                    f"Annotations on secret {namespace}/{name} changed "
                    f"concurrently (expected {dict(expected)})"
                )
                raise StoreConflictError(msg) from exc
            raise _store_error("patch", namespace, name, exc) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise _store_error("patch", namespace, name, exc) from exc
        return _to_record(patched)

    def _check_absent(
        self,
        name: str,
        namespace: str,
        expected: Mapping[str, str | None],
    ) -> str:
        """Verify that keys expected absent are absent; return the resourceVersion read."""
        try:
            secret = self._api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as exc:
            raise _store_error("read", namespace, name, exc) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise _store_error("read", namespace, name, exc) from exc
        current = secret.metadata.annotations or {}
        for key, value in expected.items():
            if value is None and key in current:
                msg = (
                    f"Annotation '{key}' on secret {namespace}/{name} is "
                    f"{current[key]!r}, expected it to be absent"
                )
                raise StoreConflictError(msg)
        return secret.metadata.resource_version


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_record(secret: client.V1Secret) -> SecretRecord:
    metadata = secret.metadata
    return SecretRecord(
        name=metadata.name,
        namespace=metadata.namespace,
        data={key: base64.b64decode(value) for key, value in (secret.data or {}).items()},
        labels=metadata.labels or {},
        annotations=metadata.annotations or {},
    )


def _pointer(key: str) -> str:
    """JSON pointer (RFC 6901) to an annotation key."""
    escaped = key.replace("~", "~0").replace("/", "~1")
    return f"/metadata/annotations/{escaped}"


def _guarded_patch(
    annotations: Mapping[str, str],
    expected: Mapping[str, str | None],
    resource_version: str | None = None,
) -> list[dict[str, Any]]:
    """Build a JSON patch that applies only if *expected* still holds.

    A JSON patch cannot test for absence, so keys expected absent are
    checked by the caller against a read, and *resource_version* from
    that read is tested to reject any change made since.
    """
    ops: list[dict[str, Any]] = []
    if resource_version is not None:
        ops.append(
            {"op": "test", "path": "/metadata/resourceVersion", "value": resource_version}
        )
    ops += [
        {"op": "test", "path": _pointer(key), "value": value}
        for key, value in expected.items()
        if value is not None
    ]
    ops.extend(
        {"op": "add", "path": _pointer(key), "value": value}
        for key, value in annotations.items()
    )
    return ops


def _store_error(
    action: str,
    namespace: str,
    name: str,
    exc: Exception,
) -> StoreError:
    status = getattr(exc, "status", None)
    retryable = status is None or status >= _SERVER_ERROR
    reason = getattr(exc, "reason", None) or str(exc)
    log.error(
        "Failed to %s secret %s/%s (status=%s): %s",
        action,
        namespace,
        name,
        status,
        reason,
    )
    msg = f"Failed to {action} secret {namespace}/{name}: {reason}"
    return StoreError(msg, retryable=retryable)
