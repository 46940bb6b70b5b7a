"""Configuration subsystem for carotate.

Public API::

    from carotate.config import load_config

    settings = load_config("config.yaml")
    days = settings.chain.root_validity_days     # typed access
"""

from carotate.config.loader import (
    ConfigValidationError,
    collect_config_errors,
    load_config,
    load_config_data,
)
from carotate.config.settings import (
    AuditLogSettings,
    BundleSettings,
    CarotateSettings,
    ChainSettings,
    KubernetesStoreSettings,
    LoggingSettings,
    RotationSettings,
    StoreSettings,
    build_settings,
)

__all__ = [
    "AuditLogSettings",
    "BundleSettings",
    "CarotateSettings",
    "ChainSettings",
    "ConfigValidationError",
    "KubernetesStoreSettings",
    "LoggingSettings",
    "RotationSettings",
    "StoreSettings",
    "build_settings",
    "collect_config_errors",
    "load_config",
    "load_config_data",
]
