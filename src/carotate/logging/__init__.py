"""Logging subsystem for carotate.

Public API::

    from carotate.logging import configure_logging

    configure_logging(settings.logging)
"""

from carotate.logging.setup import configure_logging, rotation_context

__all__ = ["configure_logging", "rotation_context"]
