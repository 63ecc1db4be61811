"""
Preset file I/O.

Each preset is one JSON object in its own file under defaults/ or presets/.
Files are pure data: parsed with json and validated by the pydantic models,
never executed.

Saving writes only the offsets that differ from the resolved default, so
an override file stays minimal and keeps inheriting everything it does not
change.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..checksum import values_equal
from ..levels import OFFSET_FIELDS, PRESET_LEVELS
from .errors import PresetFileError, PresetValidationError
from .models import CameraPreset

logger = logging.getLogger(__name__)

PRESET_EXT = ".json"


class SaveOutcome(str, Enum):
    """Result of saving a preset file."""

    WRITTEN = "written"
    DELETED = "deleted"      # nothing differed from the default, file removed
    UNCHANGED = "unchanged"  # nothing to write and nothing to delete
    EXISTS = "exists"        # target exists and overwriting was not allowed
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self in (SaveOutcome.WRITTEN, SaveOutcome.DELETED)


def has_preset_ext(name: str) -> bool:
    return name.lower().endswith(PRESET_EXT)


def ensure_preset_ext(name: str) -> str:
    return name if has_preset_ext(name) else name + PRESET_EXT


def trim_preset_ext(name: str) -> str:
    return name[:-len(PRESET_EXT)] if has_preset_ext(name) else name


def preset_file_path(directory: Path, name: str) -> Path:
    return Path(directory) / ensure_preset_ext(name)


def read_preset_file(path: Path) -> CameraPreset:
    """
    Parse one preset file.

    Raises:
        PresetFileError: If the file cannot be read or is not valid JSON
        PresetValidationError: If the content is not a preset record
    """
    key = trim_preset_ext(Path(path).name)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PresetFileError(path, str(e)) from e

    if not isinstance(data, dict):
        raise PresetValidationError(key, f"expected an object, got {type(data).__name__}")

    try:
        return CameraPreset.from_file_dict(data)
    except ValidationError as e:
        raise PresetValidationError(key, str(e)) from e


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Write JSON via a temp file and rename.

    Raises:
        PresetFileError: If writing fails
    """
    path = Path(path)
    temp_path = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        temp_path.replace(path)
    except OSError as e:
        raise PresetFileError(path, str(e)) from e


def build_file_payload(
    preset: CameraPreset,
    default: Optional[CameraPreset],
    write_all: bool = False,
    as_default: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Build the JSON object for a preset file.

    Only offsets that differ from `default` are emitted unless `write_all`
    is set (custom content, or saving as a default).

    Returns:
        The file object, or None if no offset differs
    """
    payload: Dict[str, Any] = {"ID": preset.id}
    changed = False

    for level in PRESET_LEVELS:
        data = preset.level(level)
        if data is None:
            continue
        reference = default.level(level) if default is not None else None

        fields: Dict[str, float] = {}
        for name in OFFSET_FIELDS:
            value = data.get(name)
            if value is None:
                continue
            fallback = reference.get(name) if reference is not None else None
            if write_all or not values_equal(value, fallback):
                fields[name] = value

        if fields:
            payload[level] = fields
            changed = True

    if not changed:
        return None

    if as_default:
        payload["IsDefault"] = True
    elif preset.overrides is not None:
        payload["Overrides"] = preset.overrides.model_dump(by_alias=True)

    return payload


def list_preset_files(directory: Path) -> List[str]:
    """Preset keys (file names without extension) in `directory`, sorted."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        trim_preset_ext(p.name)
        for p in directory.iterdir()
        if p.is_file() and has_preset_ext(p.name)
    )
