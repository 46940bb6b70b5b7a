"""Secret store registry.

Loads the configured store by name and returns an initialised
:class:`SecretStore`.  Supports built-in stores (``memory``,
``kubernetes``) and custom stores via the ``ext:`` prefix.

Usage::

    from carotate.store.registry import load_secret_store

    store = load_secret_store(settings.store)
    record = store.get("cluster-ca-cert", "kafka")
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from carotate.core.errors import ConfigurationError
from carotate.store.base import SecretStore

if TYPE_CHECKING:
    from carotate.config.settings import StoreSettings

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_STORES: dict[str, tuple[str, str]] = {
    "memory": ("carotate.store.memory", "InMemorySecretStore"),
    "kubernetes": ("carotate.store.kubernetes", "KubernetesSecretStore"),
}

_REQUIRED_METHODS = ("get", "create", "delete", "patch_annotations")


def load_secret_store(store_settings: StoreSettings) -> SecretStore:
    """Load and return the configured secret store.

    Raises
    ------
    ConfigurationError
        If the store cannot be loaded.

    """
    backend_name = store_settings.backend

    if backend_name in _BUILTIN_STORES:
        mod_path, cls_name = _BUILTIN_STORES[backend_name]
        cls = _import_class(mod_path, cls_name, backend_name)
    elif backend_name.startswith("ext:"):
        fqn = backend_name[4:]
        module_path, _, cls_name = fqn.rpartition(".")
        if not module_path:
            msg = (
                f"Invalid external store '{fqn}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise ConfigurationError(msg, field="store.backend")
        cls = _import_class(module_path, cls_name, backend_name)
    else:
        msg = (
            f"Unknown secret store '{backend_name}'; "
            f"built-in options: {sorted(_BUILTIN_STORES)}. "
            f"Use 'ext:mypackage.module.ClassName' for custom stores."
        )
        raise ConfigurationError(msg, field="store.backend")

    _validate_class(cls, backend_name)
    store = cls(store_settings)
    log.info("Loaded secret store: %s", backend_name)
    return store


def _import_class(module_path: str, cls_name: str, label: str) -> type:
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load secret store '{label}': {exc}"
        raise ConfigurationError(msg, field="store.backend") from exc


def _validate_class(cls: type, label: str) -> None:
    """Verify that a store class has the required methods."""
    if not (isinstance(cls, type) and issubclass(cls, SecretStore)):
        msg = f"Secret store '{label}' is not a subclass of SecretStore"
        raise ConfigurationError(msg, field="store.backend")

    for method_name in _REQUIRED_METHODS:
        method = getattr(cls, method_name, None)
        if method is None or getattr(method, "__isabstractmethod__", False):
            msg = f"Secret store '{label}' does not implement '{method_name}()'"
            raise ConfigurationError(msg, field="store.backend")
