"""
Preset application: merge a preset with its default and write it into the live store.

For each of the twelve camera levels the effective offsets are the preset's
explicit value, else the default preset's value, else a per-level constant.
DriverCombat levels get a fixed bias on z and distance. Low levels store
their pitch LOW_ANGLE_OFFSET degrees below the preset angle.

Writes that would not change the stored value are skipped, which makes
apply() idempotent. The first write to a path owned by a custom binding
backs up the previous value so it can be put back on shutdown.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..checksum import checksum, values_equal
from ..keys.resolver import KeyResolver
from ..levels import (
    CAMERA_LEVELS,
    CAMERA_PARAMS_SUFFIX,
    COMBAT_BIAS,
    CUSTOM_PARAM_VARS,
    DEFAULT_PARAMS_RECORD,
    FALLBACK_ANGLE,
    FALLBACK_X,
    FALLBACK_Y,
    FALLBACK_Z,
    LOW_ANGLE_OFFSET,
    PRESET_LEVELS,
    VAR_DISTANCE,
    VAR_OFFSET,
    VAR_PITCH,
    canonical_path,
    default_angle,
    is_combat_level,
    is_low_level,
    preset_level_at,
)
from ..store.live import LiveStore, Vector3
from .models import CameraPreset, OffsetData
from .registry import PresetStore

if TYPE_CHECKING:
    from ..persistence.usage import UsageTracker

logger = logging.getLogger(__name__)

# Stored Low pitches of 11/12 are High values that were never lowered
_UNLOWERED_PITCHES = (11.0, 12.0)


class LinkStatus(str, Enum):
    OK = "ok"
    CYCLE = "cycle"
    MISSING = "missing"
    TOO_DEEP = "too_deep"


@dataclass
class LinkResolution:
    """Outcome of following a preset's Link chain."""

    status: LinkStatus
    preset: Optional[CameraPreset] = None
    key: Optional[str] = None
    chain: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == LinkStatus.OK

    @property
    def hops(self) -> int:
        return len(self.chain)


def merge_offsets(
    preset: CameraPreset,
    fallback: Optional[CameraPreset],
    preset_level: str,
) -> OffsetData:
    """
    Effective offsets of one preset level: explicit, then fallback, then constant.

    distance has no constant and stays None when neither preset defines it.
    """
    explicit = preset.level(preset_level)
    inherited = fallback.level(preset_level) if fallback is not None else None

    def pick(name: str) -> Optional[float]:
        if explicit is not None and explicit.get(name) is not None:
            return explicit.get(name)
        if inherited is not None:
            return inherited.get(name)
        return None

    angle = pick("angle")
    x = pick("x")
    y = pick("y")
    z = pick("z")
    return OffsetData(
        angle=FALLBACK_ANGLE if angle is None else angle,
        x=FALLBACK_X if x is None else x,
        y=FALLBACK_Y if y is None else y,
        z=FALLBACK_Z[preset_level] if z is None else z,
        distance=pick("distance"),
    )


def apply_level_bias(offsets: OffsetData, camera_level: str) -> OffsetData:
    """Add the DriverCombat bias to z and distance."""
    if not is_combat_level(camera_level):
        return offsets
    biased = offsets.model_copy()
    biased.z = offsets.z + COMBAT_BIAS["z"]
    if offsets.distance is not None:
        biased.distance = offsets.distance + COMBAT_BIAS["distance"]
    return biased


def effective_offsets(
    preset: CameraPreset,
    fallback: Optional[CameraPreset] = None,
    levels: Sequence[str] = CAMERA_LEVELS,
) -> Dict[str, OffsetData]:
    """Effective offsets per camera level, as apply() would write them."""
    return {
        level: apply_level_bias(merge_offsets(preset, fallback, preset_level_at(i)), level)
        for i, level in enumerate(levels)
    }


class PresetApplier:
    """
    Writes presets into the live store.

    Args:
        store: Live key-value store
        presets: Preset registry
        resolver: Key resolver bound to the active entity
        usage: Optional usage tracker bumped by apply_auto()
        max_link_depth: Maximum number of Link hops
    """

    def __init__(
        self,
        store: LiveStore,
        presets: PresetStore,
        resolver: KeyResolver,
        usage: Optional["UsageTracker"] = None,
        max_link_depth: int = 8,
    ):
        self.store = store
        self.presets = presets
        self.resolver = resolver
        self.usage = usage
        self.max_link_depth = max_link_depth
        # Profile ids applied since the last restore
        self.recent: List[str] = []
        # Store path -> value before the first custom write
        self.custom_backups: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def resolve_link(self, preset: CameraPreset, key: Optional[str] = None) -> LinkResolution:
        """
        Follow Link fields to a terminal preset.

        Each followed Link is one hop; more than max_link_depth hops aborts
        with TOO_DEEP, revisiting a key with CYCLE.
        """
        visited = {key} if key else set()
        chain: List[str] = []
        current = preset
        current_key = key

        while current.link:
            target = current.link
            if target in visited:
                logger.error(f"Link cycle at '{target}' (chain: {' -> '.join(chain)})")
                return LinkResolution(LinkStatus.CYCLE, chain=chain)
            if len(chain) >= self.max_link_depth:
                logger.error(f"Link chain exceeds {self.max_link_depth} hops at '{target}'")
                return LinkResolution(LinkStatus.TOO_DEEP, chain=chain)

            visited.add(target)
            chain.append(target)
            logger.debug(f"Following link #{len(chain)} to '{target}'")

            linked = self.presets.get(target)
            if linked is None:
                logger.error(f"Link target '{target}' does not exist")
                return LinkResolution(LinkStatus.MISSING, chain=chain)
            current = linked
            current_key = target

        return LinkResolution(LinkStatus.OK, preset=current, key=current_key, chain=chain)

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def read_pitch(self, profile_id: str, level: str, override_key: Optional[str] = None) -> float:
        """Stored pitch of a level, or the profile's default angle."""
        fallback = default_angle(profile_id, level)
        path = self.resolver.path_for(profile_id, level, VAR_PITCH, override_key)
        if path is None:
            return fallback

        value = self.store.get(path)
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return fallback
        value = float(value)
        if is_low_level(level) and value in _UNLOWERED_PITCHES:
            value -= LOW_ANGLE_OFFSET
        return value

    def _backup(self, path: str, previous: Any) -> None:
        if path not in self.custom_backups:
            self.custom_backups[path] = previous
            logger.info(f"Backed up custom value of {path}: {previous!r}")

    def _is_custom(self, profile_id: str, level: str, var: str, path: str, override_key: Optional[str]) -> bool:
        return override_key is not None or path != canonical_path(profile_id, level, var)

    def _write(self, profile_id: str, level: str, var: str, value: Any, override_key: Optional[str]) -> bool:
        path = self.resolver.path_for(profile_id, level, var, override_key)
        if path is None:
            return False

        current = self.store.get(path)
        if current is None:
            logger.debug(f"No stored value at {path}; skipped")
            return False
        if values_equal(value, current):
            return False

        if self._is_custom(profile_id, level, var, path, override_key):
            self._backup(path, current)
        self.store.set(path, value)
        return True

    def _write_level(
        self,
        profile_id: str,
        level: str,
        offsets: OffsetData,
        override_key: Optional[str],
    ) -> None:
        self._write(profile_id, level, VAR_OFFSET, Vector3(offsets.x, offsets.y, offsets.z), override_key)

        angle = offsets.angle
        if is_low_level(level):
            angle -= LOW_ANGLE_OFFSET
        self._write(profile_id, level, VAR_PITCH, angle, override_key)

        if offsets.distance is not None:
            self._write(profile_id, level, VAR_DISTANCE, offsets.distance, override_key)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, preset: CameraPreset, expected_id: Optional[str] = None, key: Optional[str] = None) -> bool:
        """
        Apply a preset to every camera level of its profile.

        Args:
            preset: Preset to apply; Link chains are followed
            expected_id: Profile id of the mounted entity; a mismatch aborts
            key: Registry key of `preset`, for cycle detection

        Returns:
            True if the preset was written
        """
        resolution = self.resolve_link(preset, key)
        if not resolution.ok:
            logger.error(f"Failed to apply preset: link {resolution.status.value}")
            return False

        target = resolution.preset
        if not target.id:
            logger.error("Failed to apply preset: no ID")
            return False
        if expected_id is not None and expected_id != target.id:
            logger.warning(f"Preset ID '{target.id}' does not match camera ID '{expected_id}'")
            return False

        fallback = self.get_default_preset(target)
        for level, offsets in effective_offsets(target, fallback).items():
            self._write_level(target.id, level, offsets, None)

        overrides = target.overrides
        if overrides is not None and overrides.levels:
            overrides.due = True
            try:
                for level, offsets in effective_offsets(target, fallback, overrides.levels).items():
                    self._write_level(target.id, level, offsets, overrides.key)
            finally:
                overrides.due = False

        self.recent.append(target.id)
        return True

    def apply_auto(self) -> bool:
        """
        Find and apply the preset of the mounted entity.

        Key lookup prefers the appearance name, then the entity name, then
        the longest registered prefix of either.
        """
        entity = self.resolver.entity
        if entity is None:
            logger.debug("No mounted entity; nothing to apply")
            return False

        names = (entity.name,) if entity.name == entity.appearance else (entity.appearance, entity.name)
        key = self.presets.find_key(*names)
        if key is None:
            return False

        profile = self.resolver.resolve_profile_id()
        if not profile:
            logger.debug(f"No camera id for '{entity.name}' ({profile.failure.value})")
            return False

        preset = self.presets.get(key)
        logger.info(f"Applying camera preset '{key}'")
        if preset.overrides is not None:
            self.reset_custom_params()

        if not self.apply(preset, profile.value, key):
            return False
        if self.usage is not None:
            self.usage.bump(key)
        return True

    def restore_all(self) -> int:
        """Apply every default preset and clear the recent list."""
        count = 0
        for key, preset in self.presets.items():
            if preset.is_default and self.apply(preset, key=key):
                count += 1
        self.recent = []
        logger.info(f"Restored all {count} default presets")
        return count

    def restore_modified(self) -> int:
        """Apply the defaults of recently applied profiles only, then clear the list."""
        changed = self.recent
        if not changed:
            return 0

        amount = len(changed)
        restored = 0
        for key, preset in self.presets.items():
            if restored >= amount:
                break
            if preset.is_default and preset.id in changed:
                self.apply(preset, key=key)
                restored += 1
                logger.info(f"Restored default preset '{preset.id}'")
        self.recent = []
        logger.info(f"Restored {restored} of {amount} modified presets")
        return restored

    # ------------------------------------------------------------------
    # Reading and defaults
    # ------------------------------------------------------------------

    def read_preset(self, profile_id: Optional[str]) -> Optional[CameraPreset]:
        """
        Synthesize a preset from the values currently in the store.

        The first camera level of each preset level that has a stored offset
        provides its record. Only angle and x/y/z are read; boomLength is
        left out so a fresh read compares equal to a default that does not
        define distance.
        """
        if not profile_id:
            return None

        preset = CameraPreset(id=profile_id)
        for i, level in enumerate(CAMERA_LEVELS):
            preset_level = preset_level_at(i)
            if preset.level(preset_level) is not None:
                continue

            path = self.resolver.path_for(profile_id, level, VAR_OFFSET)
            vector = self.store.get(path) if path else None
            if not isinstance(vector, Vector3):
                continue

            preset.set_level(preset_level, OffsetData(
                angle=self.read_pitch(profile_id, level),
                x=vector.x,
                y=vector.y,
                z=vector.z,
            ))

            if all(preset.level(name) is not None for name in PRESET_LEVELS):
                logger.info(f"Read camera offsets of '{profile_id}'")
                return preset

        logger.error(f"No complete camera offsets found for '{profile_id}'")
        return None

    def default_key(self, profile_id: str) -> str:
        """Registry key of a synthesized default; unique per profile id."""
        return f"{profile_id}_{checksum(profile_id):08x}"

    def get_default_preset(self, preset: Optional[CameraPreset]) -> Optional[CameraPreset]:
        """
        Default preset of the same profile.

        If none is registered, one is synthesized from the store, flagged
        IsDefault/IsJoined and registered so later lookups find it.
        """
        if preset is None or not preset.id:
            return None

        found = self.presets.find_default(preset.id)
        if found is not None:
            return found[1]

        logger.warning(f"No default preset for '{preset.id}'; reading it from the store")
        synthesized = self.read_preset(preset.id)
        if synthesized is None:
            return None

        synthesized.is_default = True
        synthesized.is_joined = True
        self.presets.set(self.default_key(preset.id), synthesized)
        return synthesized

    # ------------------------------------------------------------------
    # Custom camera params
    # ------------------------------------------------------------------

    def reset_custom_params(self) -> int:
        """
        Reset fov/lockedCamera of the mounted entity's params record to the global defaults.

        Previous values are backed up for restore_custom_params().

        Returns:
            Number of values changed
        """
        entity = self.resolver.entity
        if entity is None or not entity.record_id:
            return 0

        record = self.store.get(entity.record_id + CAMERA_PARAMS_SUFFIX)
        if not record or not isinstance(record, str):
            return 0

        changed = 0
        for var in CUSTOM_PARAM_VARS:
            path = record + var
            value = self.store.get(path)
            if value is None:
                continue

            reference = self.store.get(DEFAULT_PARAMS_RECORD + var)
            if reference is None:
                if not isinstance(value, bool):
                    continue
                reference = False

            if not values_equal(value, reference):
                self._backup(path, value)
                self.store.set(path, reference)
                changed += 1
                logger.info(f"Reset {path} from {value!r} to {reference!r}")
        return changed

    def restore_custom_params(self) -> int:
        """Write back every backed-up custom value that differs from the store, then forget them."""
        restored = 0
        for path, value in self.custom_backups.items():
            current = self.store.get(path)
            if not values_equal(current, value):
                self.store.set(path, value)
                restored += 1
                logger.info(f"Restored {path}: {current!r} -> {value!r}")
        self.custom_backups = {}
        return restored
