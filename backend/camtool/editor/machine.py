"""
Editor state machine.

One EditorBundle per (entity name, appearance). Task flags are derived from
checksum tokens of the four slots:

    apply   = Flux != Pivot
    save    = Flux != Finale
    restore = save and Flux == Nexus

restore means the edit returned to the default, so saving deletes the
override file instead of writing a no-op copy of the default.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..keys.resolver import KeyResolver
from ..levels import OFFSET_FIELDS, PRESET_LEVELS
from ..presets.applier import PresetApplier
from ..presets.files import SaveOutcome, trim_preset_ext
from ..presets.models import OffsetData, PresetOverrides, preset_token
from ..presets.registry import PresetStore
from .models import EditorBundle, EditorPreset, EditorTasks

logger = logging.getLogger(__name__)

# Editable range per offset field (inclusive)
FIELD_RANGES: Dict[str, Tuple[float, float]] = {
    "angle": (-45.0, 90.0),
    "x": (-5.0, 5.0),
    "y": (-10.0, 10.0),
    "z": (0.0, 32.0),
    "distance": (0.0, 64.0),
}


@dataclass
class PresetFileInfo:
    """A user preset file and its usage counters."""

    key: str
    first: Optional[datetime] = None
    last: Optional[datetime] = None
    total: int = 0


def clamp_field(field_name: str, value: float) -> float:
    low, high = FIELD_RANGES[field_name]
    return min(max(float(value), low), high)


def validate_preset_key(vehicle_name: str, appearance_name: str, current_key: str, new_key: Optional[str]) -> str:
    """
    Validate a preset file name for an entity.

    The name must be a prefix of the vehicle or the appearance name, so the
    preset is found again by find_key(). Returns the new name (extension
    trimmed) or `current_key` if it is rejected.
    """
    if not new_key:
        return current_key

    name = trim_preset_ext(new_key.strip())
    if not name:
        logger.warning("Preset name is blank")
        return current_key

    if vehicle_name.startswith(name) or appearance_name.startswith(name):
        return name

    if vehicle_name != appearance_name:
        logger.warning(f"Preset name '{name}' must prefix '{vehicle_name}' or '{appearance_name}'")
    else:
        logger.warning(f"Preset name '{name}' must prefix '{vehicle_name}'")
    return current_key


class Editor:
    """
    Owns all editor bundles of a session.

    Args:
        presets: Preset registry and files
        applier: Writes presets into the live store
        resolver: Key resolver of the active entity
    """

    def __init__(self, presets: PresetStore, applier: PresetApplier, resolver: KeyResolver):
        self.presets = presets
        self.applier = applier
        self.resolver = resolver
        self.bundles: Dict[Tuple[str, str], EditorBundle] = {}
        self.last_bundle: Optional[EditorBundle] = None

    def clear(self) -> None:
        self.bundles.clear()
        self.last_bundle = None

    # ------------------------------------------------------------------
    # Bundles
    # ------------------------------------------------------------------

    def get_bundle(
        self,
        name: str,
        appearance: str,
        profile_id: str,
        key: Optional[str] = None,
    ) -> Optional[EditorBundle]:
        """
        Return the bundle of an entity, creating it on first access.

        Flux starts from the values currently in the store; Nexus is the
        resolved (or synthesized) default of the profile.
        """
        bundle = self.bundles.get((name, appearance))
        if bundle is not None:
            self.last_bundle = bundle
            return bundle

        flux_preset = self.applier.read_preset(profile_id)
        if flux_preset is None:
            logger.warning(f"No preset found for camera id '{profile_id}'")
            return None

        overrides = self.resolver.resolve_override_keys()
        if overrides:
            prefix, levels = overrides.value
            flux_preset.overrides = PresetOverrides(key=prefix, levels=levels)

        nexus_preset = self.applier.get_default_preset(flux_preset)
        if nexus_preset is None:
            logger.warning(f"No default preset for camera id '{profile_id}'")
            return None

        if key is None:
            key = self.presets.find_key(appearance, name) or name

        bundle = EditorBundle(
            name=name,
            appearance=appearance,
            profile_id=profile_id,
            nexus=EditorPreset.create(nexus_preset, key, snapshot=True, is_present=self.presets.file_exists(key)),
            flux=EditorPreset.create(flux_preset, key),
            pivot=EditorPreset.create(flux_preset, key, snapshot=True),
            finale=EditorPreset.create(flux_preset, key, snapshot=True, is_present=self.presets.file_exists(key)),
        )
        self.bundles[bundle.key] = bundle
        self.last_bundle = bundle
        logger.debug(f"Created editor bundle for '{name}' / '{appearance}'")
        return bundle

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def edit_field(self, bundle: EditorBundle, preset_level: str, field_name: str, value: float) -> float:
        """
        Set one offset of Flux, clamped to its range.

        Raises:
            ValueError: If the level or field is unknown

        Returns:
            The stored (clamped) value
        """
        if preset_level not in PRESET_LEVELS:
            raise ValueError(f"Unknown level: {preset_level}")
        if field_name not in OFFSET_FIELDS:
            raise ValueError(f"Unknown field: {field_name}")

        clamped = clamp_field(field_name, value)
        preset = bundle.flux.preset
        data = preset.level(preset_level)
        if data is None:
            data = OffsetData()
            preset.set_level(preset_level, data)
        setattr(data, field_name, clamped)
        bundle.tasks.validate = True
        return clamped

    def recompute(self, bundle: EditorBundle) -> EditorTasks:
        """Refresh Flux's token and derive apply/save/restore."""
        tasks = bundle.tasks
        flux = bundle.flux
        flux.token = preset_token(flux.preset)
        tasks.apply = flux.token != bundle.pivot.token
        tasks.save = flux.token != bundle.finale.token
        tasks.restore = tasks.save and flux.token == bundle.nexus.token
        tasks.validate = False
        return tasks

    def rename(self, bundle: EditorBundle, new_name: Optional[str]) -> bool:
        """
        Rename the target file of Flux.

        A blank name (or the bare camera id) reverts to the last saved name.
        Names that do not prefix the entity names are rejected and leave the
        bundle unchanged. The old file is only removed by the next save.
        """
        flux = bundle.flux
        finale = bundle.finale
        name = trim_preset_ext(new_name.strip()) if new_name else ""

        if not name or name == bundle.profile_id:
            flux.name = finale.name
            flux.key = finale.key
            bundle.tasks.rename = False
            return True

        validated = validate_preset_key(bundle.name, bundle.appearance, flux.key, name)
        if validated != name:
            return False

        flux.name = name
        flux.key = name
        bundle.tasks.rename = finale.is_present and flux.name != finale.name
        return True

    def apply_action(self, bundle: EditorBundle) -> bool:
        """
        Push Flux into the registry and the live store.

        On restore the registry entry is dropped instead, so the default
        takes over again.
        """
        tasks = bundle.tasks
        if tasks.validate:
            self.recompute(bundle)

        flux = bundle.flux
        pivot = bundle.pivot
        tasks.apply = False

        if pivot.key != flux.key or tasks.restore:
            self.presets.discard(pivot.key)
        if not tasks.restore:
            self.presets.set(flux.key, flux.preset.model_copy(deep=True))

        applied = self.applier.apply(flux.preset, bundle.profile_id)
        if applied and not tasks.restore and self.applier.usage is not None:
            self.applier.usage.bump(flux.key)

        pivot.copy_from(flux)
        logger.info(f"Updated preset '{flux.key}'")
        return applied

    def save_action(self, bundle: EditorBundle) -> SaveOutcome:
        """
        Write Flux to disk under its name.

        An edit equal to the default deletes the file instead. A pending
        rename removes the previous file and registry entry.
        """
        tasks = bundle.tasks
        if tasks.validate:
            self.recompute(bundle)

        flux = bundle.flux
        finale = bundle.finale

        default = self.applier.get_default_preset(flux.preset)
        custom_id = self.resolver.custom_id()
        write_all = custom_id is not None and flux.preset.id == custom_id

        outcome = self.presets.save_file(
            flux.key,
            flux.preset,
            default,
            allow_overwrite=True,
            write_all=write_all,
        )
        if not outcome.ok:
            logger.warning(f"Preset '{flux.key}' not saved ({outcome.value})")
            return outcome

        tasks.restore = False
        tasks.save = False

        if tasks.rename:
            tasks.rename = False
            if finale.name != flux.name:
                if not self.presets.delete_file(finale.name):
                    logger.error(f"Failed to move '{finale.name}' to '{flux.name}'")
                self.presets.remove(finale.key)

        finale.copy_from(flux, is_present=self.presets.file_exists(flux.key))
        return outcome

    def needs_overwrite_confirmation(self, bundle: EditorBundle) -> bool:
        """True if saving would replace an existing file."""
        return self.presets.file_exists(bundle.finale.name)

    # ------------------------------------------------------------------
    # Eviction and files
    # ------------------------------------------------------------------

    def close(self, bundle: Optional[EditorBundle] = None) -> bool:
        """
        Evict a bundle (default: the last one used) if nothing is pending.

        A Flux equal to the default with no backing file also drops its
        registry entry, returning the entity to the no-override baseline.

        Returns:
            True if the bundle was evicted
        """
        bundle = bundle or self.last_bundle
        if bundle is None:
            return False

        if bundle.tasks.validate:
            self.recompute(bundle)
        if bundle.tasks.pending:
            return False

        flux = bundle.flux
        if flux.token == bundle.nexus.token and not self.presets.file_exists(flux.key):
            if self.presets.discard(flux.key):
                logger.info(f"Dropped preset '{flux.key}' (equal to default)")

        self.bundles.pop(bundle.key, None)
        if self.last_bundle is bundle:
            self.last_bundle = None
        logger.info(f"Closed editor bundle for '{bundle.name}'")
        return True

    def evict_matching(self, key: str) -> int:
        """Drop bundles whose entity or appearance name starts with `key`."""
        doomed = [
            k for k, b in self.bundles.items()
            if b.name.startswith(key) or b.appearance.startswith(key)
        ]
        for k in doomed:
            bundle = self.bundles.pop(k)
            if self.last_bundle is bundle:
                self.last_bundle = None
        return len(doomed)

    def delete_file(self, key: str) -> bool:
        """Delete a user preset file; bundles of matching entities are evicted."""
        key = trim_preset_ext(key)
        if not self.presets.delete_file(key):
            return False
        self.evict_matching(key)
        return True

    def list_files_with_usage(self) -> List[PresetFileInfo]:
        """Registered user preset files with their usage counters."""
        usage = self.applier.usage
        entries = []
        for key in self.presets.list_files():
            if key not in self.presets:
                continue
            record = usage.get(key) if usage is not None else None
            if record is None:
                entries.append(PresetFileInfo(key=key))
            else:
                entries.append(PresetFileInfo(key=key, first=record.first, last=record.last, total=record.total))
        return entries
