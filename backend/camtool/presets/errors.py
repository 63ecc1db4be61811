"""
Preset-specific error types.

All errors inherit from PresetError for easy catching.
They are raised by the loader and file helpers and caught at the
session boundary; nothing here escapes to the host.
"""

from pathlib import Path
from typing import Union


class PresetError(Exception):
    """Base exception for all preset failures."""
    pass


class PresetValidationError(PresetError):
    """Raised when a preset record is malformed or structurally invalid."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid preset '{key}': {reason}")


class PresetFileError(PresetError):
    """Raised when a preset file cannot be read, written or removed."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Preset file error ({self.path}): {reason}")


class DefaultsIncompleteError(PresetError):
    """Raised when fewer default presets were loaded than the shipped baseline."""

    def __init__(self, loaded: int, required: int):
        self.loaded = loaded
        self.required = required
        super().__init__(
            f"Default presets incomplete: loaded {loaded}, need at least {required}"
        )
