"""
Camera preset system.

Presets are pure data loaded from JSON files in defaults/ and presets/,
kept in an in-memory registry and written into the live store by the
applier.
"""

from .applier import LinkResolution, LinkStatus, PresetApplier, effective_offsets, merge_offsets
from .errors import (
    DefaultsIncompleteError,
    PresetError,
    PresetFileError,
    PresetValidationError,
)
from .files import SaveOutcome
from .models import CameraPreset, OffsetData, PresetOverrides, is_preset_valid, preset_token
from .registry import LoadReport, PresetStore

__all__ = [
    "PresetError",
    "PresetValidationError",
    "PresetFileError",
    "DefaultsIncompleteError",
    "CameraPreset",
    "OffsetData",
    "PresetOverrides",
    "is_preset_valid",
    "preset_token",
    "SaveOutcome",
    "LoadReport",
    "PresetStore",
    "LinkResolution",
    "LinkStatus",
    "PresetApplier",
    "effective_offsets",
    "merge_offsets",
]
