"""Root conftest for the carotate test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from carotate.ca.chain import CaChainBuilder  # noqa: E402
from carotate.config.settings import build_settings  # noqa: E402
from carotate.store.memory import InMemorySecretStore  # noqa: E402

# EC keys keep chain generation fast; RSA paths are covered explicitly
_FAST_CHAIN = {"key_type": "ec", "ec_curve": "secp256r1"}


# ---------------------------------------------------------------------------
# Config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_data(tmp_path: Path) -> dict:
    """Return a small, valid config document using the memory store."""
    return {
        "chain": dict(_FAST_CHAIN),
        "bundle": {"temp_dir": str(tmp_path)},
        "store": {
            "backend": "memory",
            "namespace": "ns1",
            "wait_timeout_seconds": 1,
            "poll_interval_seconds": 0.01,
        },
        "logging": {"level": "DEBUG"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, config_data: dict) -> Path:
    """Write *config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture()
def settings(config_data: dict):
    return build_settings(config_data)


@pytest.fixture()
def memory_store(settings) -> InMemorySecretStore:
    return InMemorySecretStore(settings.store)


# ---------------------------------------------------------------------------
# Crypto material: built once per session
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def ca_chain():
    """A verified root -> intermediate -> operational chain."""
    builder = CaChainBuilder(build_settings({"chain": _FAST_CHAIN}).chain)
    return builder.build("C=CZ, L=Prague, O=Test, CN=cluster-ca")


# ---------------------------------------------------------------------------
# Logging cleanup -- autouse so configure_logging() in one test does not
# hide records from caplog in the next
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_logging():
    yield
    root = logging.getLogger("carotate")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
    audit = logging.getLogger("carotate.audit")
    for handler in audit.handlers:
        handler.close()
    audit.handlers.clear()
    audit.disabled = False
    audit.setLevel(logging.NOTSET)
