"""
Core data models for camera presets.

A preset carries up to three OffsetData records (Close, Medium, Far); each
camera level of the profile reads the record of its preset level. File
field names are the PascalCase aliases; Python code uses snake_case.

All models use Pydantic for strict validation.
Unknown fields are rejected.
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..checksum import checksum
from ..levels import OFFSET_FIELDS, PRESET_LEVELS


class OffsetData(BaseModel):
    """
    Offsets for one preset level. Absent fields inherit from the fallback.

    Older files spell the pitch field "a"; both spellings are accepted.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    angle: Optional[float] = Field(default=None, validation_alias=AliasChoices("angle", "a"))
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    distance: Optional[float] = None

    @field_validator("angle", "x", "y", "z", "distance", mode="before")
    @classmethod
    def validate_number(cls, v: Any) -> Any:
        """Numbers only; no bool or string coercion."""
        if v is None:
            return v
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"Offset must be a number, got {type(v).__name__}")
        return v

    def has_numeric(self) -> bool:
        return any(getattr(self, name) is not None for name in OFFSET_FIELDS)

    def get(self, name: str) -> Optional[float]:
        return getattr(self, name)


class PresetOverrides(BaseModel):
    """
    Extra records written alongside the canonical path.

    Key is the record prefix, Levels the level suffixes; each level is
    written to "<Key>_<level>".
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    key: str = Field(alias="Key")
    levels: List[str] = Field(default_factory=list, alias="Levels")
    # Transient, never persisted
    due: bool = Field(default=False, alias="Due", exclude=True)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Overrides key cannot be empty")
        return v


class CameraPreset(BaseModel):
    """
    One preset record.

    Valid iff it has a non-empty ID and at least one numeric offset, or
    consists of nothing but a Link (see is_preset_valid).
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="ID")
    close: Optional[OffsetData] = Field(default=None, alias="Close")
    medium: Optional[OffsetData] = Field(default=None, alias="Medium")
    far: Optional[OffsetData] = Field(default=None, alias="Far")
    link: Optional[str] = Field(default=None, alias="Link")
    overrides: Optional[PresetOverrides] = Field(default=None, alias="Overrides")
    is_default: Optional[bool] = Field(default=None, alias="IsDefault")
    is_joined: Optional[bool] = Field(default=None, alias="IsJoined")

    def level(self, preset_level: str) -> Optional[OffsetData]:
        """OffsetData for "Close", "Medium" or "Far"."""
        if preset_level not in PRESET_LEVELS:
            raise KeyError(preset_level)
        return getattr(self, preset_level.lower())

    def set_level(self, preset_level: str, data: Optional[OffsetData]) -> None:
        if preset_level not in PRESET_LEVELS:
            raise KeyError(preset_level)
        setattr(self, preset_level.lower(), data)

    @property
    def is_link_only(self) -> bool:
        return bool(self.link) and all(
            getattr(self, name) is None for name in type(self).model_fields if name != "link"
        )

    def to_file_dict(self) -> Dict[str, Any]:
        """Serialize with file field names, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_file_dict(cls, data: Dict[str, Any]) -> "CameraPreset":
        return cls.model_validate(data)


def is_preset_valid(preset: Optional[CameraPreset]) -> bool:
    """
    Check the structural invariant of a preset.

    A preset is valid if it either:
    1. Has a non-empty ID and at least one numeric offset in Close, Medium or Far
    2. Or has only a non-empty Link and nothing else
    """
    if preset is None:
        return False

    if preset.id and preset.id.strip():
        for name in PRESET_LEVELS:
            data = preset.level(name)
            if data is not None and data.has_numeric():
                return True

    return preset.is_link_only


def preset_token(preset: Optional[CameraPreset]) -> int:
    """
    Change-detection token over ID and the three level records.

    Flags and overrides do not participate: toggling IsDefault does not make
    a preset "different" for the editor.
    """
    if preset is None:
        return -1
    return checksum(preset.id, preset.close, preset.medium, preset.far)
