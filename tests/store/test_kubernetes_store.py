"""Tests for carotate.store.kubernetes.KubernetesSecretStore.

``CoreV1Api`` is replaced by a MagicMock; no cluster is contacted.
"""

from __future__ import annotations

import base64
from unittest.mock import MagicMock, patch

import pytest
import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from carotate.config.settings import build_settings
from carotate.core.errors import StoreConflictError, StoreError, StoreTimeoutError
from carotate.store.kubernetes import KubernetesSecretStore


def _secret(
    name="s", namespace="ns1", data=None, labels=None, annotations=None, resource_version=None
):
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels,
            annotations=annotations,
            resource_version=resource_version,
        ),
        data={k: base64.b64encode(v).decode("ascii") for k, v in (data or {}).items()},
    )


@pytest.fixture()
def store_settings():
    return build_settings(
        {"store": {"wait_timeout_seconds": 0.2, "poll_interval_seconds": 0.01}},
    ).store


@pytest.fixture()
def api():
    return MagicMock(spec=client.CoreV1Api)


@pytest.fixture()
def store(store_settings, api):
    return KubernetesSecretStore(store_settings, api=api)


class TestGet:
    def test_decodes_secret(self, store, api):
        api.read_namespaced_secret.return_value = _secret(
            data={"ca.crt": b"PEM"},
            labels={"cluster": "c"},
            annotations={"ca-cert-generation": "0"},
        )
        record = store.get("s", "ns1")
        api.read_namespaced_secret.assert_called_once_with(name="s", namespace="ns1")
        assert record.data == {"ca.crt": b"PEM"}
        assert record.labels == {"cluster": "c"}
        assert record.annotations == {"ca-cert-generation": "0"}

    def test_not_found_is_none(self, store, api):
        api.read_namespaced_secret.side_effect = ApiException(status=404)
        assert store.get("s", "ns1") is None

    def test_forbidden_not_retryable(self, store, api):
        api.read_namespaced_secret.side_effect = ApiException(status=403, reason="Forbidden")
        with pytest.raises(StoreError) as exc_info:
            store.get("s", "ns1")
        assert not exc_info.value.retryable

    def test_server_error_retryable(self, store, api):
        api.read_namespaced_secret.side_effect = ApiException(status=503)
        with pytest.raises(StoreError) as exc_info:
            store.get("s", "ns1")
        assert exc_info.value.retryable

    def test_connection_error_retryable(self, store, api):
        api.read_namespaced_secret.side_effect = urllib3.exceptions.MaxRetryError(None, "/")
        with pytest.raises(StoreError) as exc_info:
            store.get("s", "ns1")
        assert exc_info.value.retryable


class TestCreate:
    def test_builds_opaque_secret(self, store, api):
        api.create_namespaced_secret.side_effect = lambda namespace, body: body
        record = store.create("s", "ns1", {"ca.key": b"KEY"}, {"cluster": "c"})

        body = api.create_namespaced_secret.call_args.kwargs["body"]
        assert body.type == "Opaque"
        assert body.metadata.labels == {"cluster": "c"}
        assert body.metadata.annotations is None
        assert body.data == {"ca.key": base64.b64encode(b"KEY").decode("ascii")}
        assert record.data == {"ca.key": b"KEY"}

    def test_conflict(self, store, api):
        api.create_namespaced_secret.side_effect = ApiException(status=409, reason="AlreadyExists")
        with pytest.raises(StoreError, match="AlreadyExists"):
            store.create("s", "ns1", {}, {})


class TestDelete:
    def test_waits_until_gone(self, store, api):
        api.read_namespaced_secret.side_effect = [_secret(), ApiException(status=404)]
        store.delete("s", "ns1")
        api.delete_namespaced_secret.assert_called_once_with(name="s", namespace="ns1")
        assert api.read_namespaced_secret.call_count == 2

    def test_absent_is_noop(self, store, api):
        api.delete_namespaced_secret.side_effect = ApiException(status=404)
        store.delete("s", "ns1")
        api.read_namespaced_secret.assert_not_called()

    def test_never_disappears(self, store, api):
        api.read_namespaced_secret.return_value = _secret()
        with pytest.raises(StoreTimeoutError):
            store.delete("s", "ns1")


class TestPatchAnnotations:
    def test_merge_patch(self, store, api):
        api.patch_namespaced_secret.return_value = _secret(annotations={"gen": "1"})
        record = store.patch_annotations("s", "ns1", {"gen": "1"})
        body = api.patch_namespaced_secret.call_args.kwargs["body"]
        assert body == {"metadata": {"annotations": {"gen": "1"}}}
        assert record.annotations == {"gen": "1"}

    def test_guarded_patch_ops(self, store, api):
        api.patch_namespaced_secret.return_value = _secret(annotations={"a/b": "4"})
        store.patch_annotations("s", "ns1", {"a/b": "4"}, expected={"a/b": "3"})
        body = api.patch_namespaced_secret.call_args.kwargs["body"]
        assert body == [
            {"op": "test", "path": "/metadata/annotations/a~1b", "value": "3"},
            {"op": "add", "path": "/metadata/annotations/a~1b", "value": "4"},
        ]

    def test_guarded_conflict(self, store, api):
        api.patch_namespaced_secret.side_effect = ApiException(status=422)
        with pytest.raises(StoreConflictError):
            store.patch_annotations("s", "ns1", {"gen": "4"}, expected={"gen": "3"})

    def test_absent_precondition_pins_resource_version(self, store, api):
        api.read_namespaced_secret.return_value = _secret(
            annotations={"other": "x"}, resource_version="817"
        )
        api.patch_namespaced_secret.return_value = _secret(annotations={"gen": "0"})
        store.patch_annotations("s", "ns1", {"gen": "0"}, expected={"gen": None})
        body = api.patch_namespaced_secret.call_args.kwargs["body"]
        assert body == [
            {"op": "test", "path": "/metadata/resourceVersion", "value": "817"},
            {"op": "add", "path": "/metadata/annotations/gen", "value": "0"},
        ]

    def test_absent_precondition_violated(self, store, api):
        api.read_namespaced_secret.return_value = _secret(annotations={"gen": "2"})
        with pytest.raises(StoreConflictError):
            store.patch_annotations("s", "ns1", {"gen": "0"}, expected={"gen": None})
        api.patch_namespaced_secret.assert_not_called()

    def test_absent_precondition_on_missing_secret(self, store, api):
        api.read_namespaced_secret.side_effect = ApiException(status=404)
        with pytest.raises(StoreError) as exc_info:
            store.patch_annotations("s", "ns1", {"gen": "0"}, expected={"gen": None})
        assert not exc_info.value.retryable
        api.patch_namespaced_secret.assert_not_called()

    def test_unguarded_422_is_plain_error(self, store, api):
        api.patch_namespaced_secret.side_effect = ApiException(status=422)
        with pytest.raises(StoreError) as exc_info:
            store.patch_annotations("s", "ns1", {"gen": "4"})
        assert not isinstance(exc_info.value, StoreConflictError)


class TestClientConfiguration:
    def test_in_cluster(self):
        settings = build_settings({"store": {"kubernetes": {"in_cluster": True}}}).store
        with patch("carotate.store.kubernetes.config") as k8s_config, \
                patch("carotate.store.kubernetes.client.CoreV1Api") as core:
            store = KubernetesSecretStore(settings)
        k8s_config.load_incluster_config.assert_called_once_with()
        k8s_config.load_kube_config.assert_not_called()
        assert store._api is core.return_value

    def test_kubeconfig_and_context(self):
        settings = build_settings(
            {"store": {"kubernetes": {"kubeconfig": "/tmp/kc", "context": "dev"}}},
        ).store
        with patch("carotate.store.kubernetes.config") as k8s_config, \
                patch("carotate.store.kubernetes.client.CoreV1Api"):
            KubernetesSecretStore(settings)
        k8s_config.load_kube_config.assert_called_once_with(config_file="/tmp/kc", context="dev")

    def test_unloadable_config(self):
        settings = build_settings({}).store
        with patch(
            "carotate.store.kubernetes.config.load_kube_config",
            side_effect=ConfigException("no config"),
        ), pytest.raises(StoreError) as exc_info:
            KubernetesSecretStore(settings)
        assert not exc_info.value.retryable
