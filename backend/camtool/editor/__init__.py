"""
Preset editor: versioned per-entity edit state with derived task flags.
"""

from .machine import FIELD_RANGES, Editor, PresetFileInfo, clamp_field, validate_preset_key
from .models import EditorBundle, EditorPreset, EditorTasks

__all__ = [
    "FIELD_RANGES",
    "Editor",
    "PresetFileInfo",
    "clamp_field",
    "validate_preset_key",
    "EditorBundle",
    "EditorPreset",
    "EditorTasks",
]
