"""Rotation of CA material held in a secret store.

Exports the rotation coordinator, the generation tracker, the legacy
namer, and the per-CA holder.
"""

from carotate.rotation.coordinator import (
    RotationCoordinator,
    RotationInspection,
    RotationResult,
)
from carotate.rotation.generation import GenerationTracker
from carotate.rotation.holder import CertHolder
from carotate.rotation.legacy import legacy_name

__all__ = [
    "CertHolder",
    "GenerationTracker",
    "RotationCoordinator",
    "RotationInspection",
    "RotationResult",
    "legacy_name",
]
