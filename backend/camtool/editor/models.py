"""
Editor state: four versions of one preset plus derived task flags.

- Nexus: the resolved default; never edited
- Flux: the live, user-edited copy
- Pivot: Flux as it was last applied
- Finale: Flux as it was last saved
"""

from dataclasses import dataclass, field
from typing import Tuple

from ..presets.models import CameraPreset, preset_token


@dataclass
class EditorPreset:
    preset: CameraPreset
    key: str
    name: str
    token: int
    is_present: bool = False

    @classmethod
    def create(cls, preset: CameraPreset, key: str, snapshot: bool = False, is_present: bool = False) -> "EditorPreset":
        """Wrap a preset; `snapshot` stores a deep copy instead of the caller's object."""
        obj = preset.model_copy(deep=True) if snapshot else preset
        return cls(preset=obj, key=key, name=key, token=preset_token(obj), is_present=is_present)

    def copy_from(self, src: "EditorPreset", is_present: bool = False) -> None:
        """Overwrite this slot with a deep copy of `src`."""
        self.preset = src.preset.model_copy(deep=True)
        self.key = src.key
        self.name = src.name
        self.token = preset_token(self.preset)
        self.is_present = is_present


@dataclass
class EditorTasks:
    """
    Pending actions. All but `rename` and `validate` are derived by recompute().
    """

    rename: bool = False
    validate: bool = False
    apply: bool = False
    save: bool = False
    restore: bool = False

    @property
    def pending(self) -> bool:
        return self.apply or self.save or self.restore


@dataclass
class EditorBundle:
    """Editor state of one (entity name, appearance) pair."""

    name: str
    appearance: str
    profile_id: str
    nexus: EditorPreset
    flux: EditorPreset
    pivot: EditorPreset
    finale: EditorPreset
    tasks: EditorTasks = field(default_factory=EditorTasks)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.name, self.appearance)
