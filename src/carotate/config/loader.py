"""carotate configuration loader.

Lifecycle::

    # The CLI loads the file once at startup ...
    settings = load_config("/etc/carotate/config.yaml")

    # ... and passes the frozen tree to whatever needs it
    builder = CaChainBuilder(settings.chain)

There is no module-level singleton: every consumer receives its settings
section explicitly.

Loading runs in four stages: parse (YAML or JSON), resolve
``${VAR}``/``${VAR:-default}`` references, validate against the bundled
JSON Schema, then collect cross-field problems.  Stages 3 and 4 gather
every problem before failing, so one :class:`ConfigValidationError`
reports them all.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from carotate.config.settings import CarotateSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _load_schema() -> dict:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def schema_errors(data: dict) -> list[str]:
    """Return every JSON Schema violation in *data* as ``path: message``."""
    validator = jsonschema.Draft202012Validator(_load_schema())
    errors = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = ".".join(str(p) for p in error.absolute_path) or "<root>"
        errors.append(f"{location}: {error.message}")
    return errors


def collect_config_errors(data: dict) -> list[str]:  # noqa: C901
    """Semantic and cross-field validation.

    Pure: returns the list of problems (empty when valid) instead of
    raising, so callers can report everything at once.
    """
    errors: list[str] = []

    chain = data.get("chain") or {}
    rotation = data.get("rotation") or {}
    store = data.get("store") or {}

    # -- chain --
    root_days = chain.get("root_validity_days", 3650)
    intermediate_days = chain.get("intermediate_validity_days", 1825)
    operational_days = chain.get("operational_validity_days", 365)
    if intermediate_days > root_days:
        errors.append(
            f"chain.intermediate_validity_days ({intermediate_days}) must be <= "
            f"chain.root_validity_days ({root_days})",
        )
    if operational_days > intermediate_days:
        errors.append(
            f"chain.operational_validity_days ({operational_days}) must be <= "
            f"chain.intermediate_validity_days ({intermediate_days})",
        )

    # -- rotation --
    cert_key = rotation.get("cert_data_key", "ca.crt")
    key_key = rotation.get("key_data_key", "ca.key")
    for field, value in (("cert_data_key", cert_key), ("key_data_key", key_key)):
        parts = value.split(".")
        if len(parts) < 2 or not parts[1]:  # noqa: PLR2004
            errors.append(
                f"rotation.{field} must carry an extension after '.' (got '{value}')",
            )
    if cert_key == key_key:
        errors.append(
            f"rotation.cert_data_key and rotation.key_data_key must differ (both '{cert_key}')",
        )

    cert_anno = rotation.get("cert_generation_annotation", "ca-cert-generation")
    key_anno = rotation.get("key_generation_annotation", "ca-key-generation")
    if cert_anno == key_anno:
        errors.append(
            "rotation.cert_generation_annotation and "
            f"rotation.key_generation_annotation must differ (both '{cert_anno}')",
        )

    baseline = str(rotation.get("baseline_generation", "0"))
    if not re.fullmatch(r"[0-9]+", baseline):
        errors.append(
            f"rotation.baseline_generation must be a non-negative integer (got '{baseline}')",
        )

    if rotation.get("cluster_label", "cluster") in (rotation.get("extra_labels") or {}):
        errors.append(
            "rotation.extra_labels must not redefine rotation.cluster_label",
        )

    # -- store --
    timeout = store.get("wait_timeout_seconds", 60.0)
    interval = store.get("poll_interval_seconds", 1.0)
    if interval >= timeout:
        errors.append(
            f"store.poll_interval_seconds ({interval}) must be < "
            f"store.wait_timeout_seconds ({timeout})",
        )
    k8s = store.get("kubernetes") or {}
    if k8s.get("in_cluster") and k8s.get("kubeconfig"):
        errors.append(
            "store.kubernetes.kubeconfig must not be set when store.kubernetes.in_cluster is true",
        )

    return errors


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def read_config_file(config_file: str | Path) -> dict:
    """Parse a YAML (``.yaml``/``.yml``) or JSON config file."""
    path = Path(config_file)
    try:
        with path.open(encoding="utf-8") as fh:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(fh)
            else:
                data = json.load(fh)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        msg = f"Could not parse {path}: {exc}"
        raise ConfigValidationError([msg]) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path}: top level must be a mapping, got {type(data).__name__}"
        raise ConfigValidationError([msg])
    return data


def load_config_data(data: dict) -> CarotateSettings:
    """Validate an already-parsed document and build settings from it."""
    resolve_env_vars(data)

    errors = schema_errors(data)
    if not errors:
        errors = collect_config_errors(data)
    if errors:
        raise ConfigValidationError(errors)

    return build_settings(data)


def load_config(config_file: str | Path) -> CarotateSettings:
    """Load, validate and return the settings tree for *config_file*.

    Raises
    ------
    ConfigValidationError
        Listing every problem found.
    FileNotFoundError
        If *config_file* does not exist.

    """
    settings = load_config_data(read_config_file(config_file))
    log.debug("Loaded configuration from %s", config_file)
    return settings
