"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation -- these builders
are what the application actually reads.

Access pattern::

    from carotate.config import load_config

    settings = load_config("carotate.yaml")
    print(settings.chain.root_validity_days)   # typed, IDE-autocompleted
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainSettings:
    """Subjects, lifetimes and key algorithm for the three CA tiers."""

    root_subject: str
    intermediate_subject: str
    operational_subject_prefix: str
    root_validity_days: int
    intermediate_validity_days: int
    operational_validity_days: int
    key_type: str
    rsa_key_size: int
    ec_curve: str
    hash_algorithm: str


def _build_chain(data: dict | None) -> ChainSettings:
    d = data or {}
    return ChainSettings(
        root_subject=d.get("root_subject", "O=carotate, CN=carotate-root-ca"),
        intermediate_subject=d.get(
            "intermediate_subject",
            "O=carotate, CN=carotate-intermediate-ca",
        ),
        operational_subject_prefix=d.get("operational_subject_prefix", "O=carotate"),
        root_validity_days=d.get("root_validity_days", 3650),
        intermediate_validity_days=d.get("intermediate_validity_days", 1825),
        operational_validity_days=d.get("operational_validity_days", 365),
        key_type=d.get("key_type", "rsa"),
        rsa_key_size=d.get("rsa_key_size", 4096),
        ec_curve=d.get("ec_curve", "secp384r1"),
        hash_algorithm=d.get("hash_algorithm", "sha256"),
    )


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BundleSettings:
    """Where and under which file names bundle artifacts are written."""

    temp_dir: str | None
    operational_cert: str
    intermediate_cert: str
    root_cert: str
    chain: str
    private_key: str


def _build_bundle(data: dict | None) -> BundleSettings:
    d = data or {}
    return BundleSettings(
        temp_dir=d.get("temp_dir"),
        operational_cert=d.get("operational_cert", "ca.crt"),
        intermediate_cert=d.get("intermediate_cert", "intermediate-ca.crt"),
        root_cert=d.get("root_cert", "root-ca.crt"),
        chain=d.get("chain", "ca-chain.crt"),
        private_key=d.get("private_key", "ca.key"),
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KubernetesStoreSettings:
    kubeconfig: str | None
    context: str | None
    in_cluster: bool


@dataclass(frozen=True)
class StoreSettings:
    """Secret store backend and its bounded wait policy."""

    backend: str
    namespace: str
    wait_timeout_seconds: float
    poll_interval_seconds: float
    kubernetes: KubernetesStoreSettings


def _build_store(data: dict | None) -> StoreSettings:
    d = data or {}
    k = d.get("kubernetes") or {}
    return StoreSettings(
        backend=d.get("backend", "kubernetes"),
        namespace=d.get("namespace", "default"),
        wait_timeout_seconds=d.get("wait_timeout_seconds", 60.0),
        poll_interval_seconds=d.get("poll_interval_seconds", 1.0),
        kubernetes=KubernetesStoreSettings(
            kubeconfig=k.get("kubeconfig"),
            context=k.get("context"),
            in_cluster=k.get("in_cluster", False),
        ),
    )


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RotationSettings:
    """Data keys, generation annotations and labels written by a rotation."""

    cert_data_key: str
    key_data_key: str
    cert_generation_annotation: str
    key_generation_annotation: str
    baseline_generation: str
    cluster_label: str
    extra_labels: Mapping[str, str]
    retain_superseded: bool
    guard_generation_bumps: bool


def _build_rotation(data: dict | None) -> RotationSettings:
    d = data or {}
    return RotationSettings(
        cert_data_key=d.get("cert_data_key", "ca.crt"),
        key_data_key=d.get("key_data_key", "ca.key"),
        cert_generation_annotation=d.get("cert_generation_annotation", "ca-cert-generation"),
        key_generation_annotation=d.get("key_generation_annotation", "ca-key-generation"),
        baseline_generation=str(d.get("baseline_generation", "0")),
        cluster_label=d.get("cluster_label", "cluster"),
        extra_labels=MappingProxyType(dict(d.get("extra_labels") or {})),
        retain_superseded=d.get("retain_superseded", False),
        guard_generation_bumps=d.get("guard_generation_bumps", False),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, audit)."""

    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", True),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 10485760),
            backup_count=a.get("backup_count", 5),
        ),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CarotateSettings:
    chain: ChainSettings
    bundle: BundleSettings
    store: StoreSettings
    rotation: RotationSettings
    logging: LoggingSettings


def build_settings(data: dict | None) -> CarotateSettings:
    """Build the full typed settings tree from raw config data.

    Called once by :func:`~carotate.config.loader.load_config` after
    schema validation and environment-variable resolution.  An empty
    document yields all defaults.
    """
    d = data or {}
    return CarotateSettings(
        chain=_build_chain(d.get("chain")),
        bundle=_build_bundle(d.get("bundle")),
        store=_build_store(d.get("store")),
        rotation=_build_rotation(d.get("rotation")),
        logging=_build_logging(d.get("logging")),
    )
