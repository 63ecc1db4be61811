"""
In-memory preset registry backed by the two-tier file hierarchy.

Load order is fixed: defaults/ first, then presets/. A key that is already
registered is skipped (and counted), so a user preset never shadows a
default of the same name within one load. A forced refresh clears the
registry first.

defaults/ must yield at least `min_default_presets` entries; anything less
means the installation is damaged and the tool must disable itself.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Set, Tuple

from ..config import ToolConfig
from .errors import DefaultsIncompleteError, PresetError, PresetFileError, PresetValidationError
from .files import (
    SaveOutcome,
    build_file_payload,
    has_preset_ext,
    list_preset_files,
    preset_file_path,
    read_preset_file,
    trim_preset_ext,
    write_json_atomic,
)
from .models import CameraPreset, is_preset_valid

if TYPE_CHECKING:
    from ..persistence.usage import UsageTracker

logger = logging.getLogger(__name__)


@dataclass
class LoadReport:
    """Per-directory outcome of PresetStore.load()."""

    defaults_loaded: int = 0
    presets_loaded: int = 0
    skipped: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)


class PresetStore:
    """
    Registry of presets keyed by file name (without extension).

    Args:
        config: Directory layout and thresholds
        usage: Optional usage tracker; remove() drops the key's record
    """

    def __init__(self, config: ToolConfig, usage: Optional["UsageTracker"] = None):
        self.config = config
        self.usage = usage
        self._presets: Dict[str, CameraPreset] = {}

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[CameraPreset]:
        return self._presets.get(key)

    def set(self, key: str, preset: CameraPreset) -> bool:
        """
        Add or replace a preset.

        Returns:
            False if the key is empty or the preset is invalid
        """
        if not key or not is_preset_valid(preset):
            return False
        self._presets[key] = preset
        return True

    def remove(self, key: str) -> bool:
        """Remove a preset and its usage record. Returns True if it existed."""
        existed = self._presets.pop(key, None) is not None
        if self.usage is not None:
            self.usage.remove(key)
        return existed

    def discard(self, key: str) -> bool:
        """Remove a registry entry only; usage is kept. Returns True if it existed."""
        return self._presets.pop(key, None) is not None

    def purge(self, prefix: Optional[str] = None) -> int:
        """
        Clear all presets, or all keys starting with `prefix`.

        Returns:
            Number of removed entries
        """
        if prefix is None:
            count = len(self._presets)
            self._presets.clear()
            logger.warning(f"Cleared all {count} presets")
            return count

        doomed = [k for k in self._presets if k.startswith(prefix)]
        for key in doomed:
            del self._presets[key]
        logger.warning(f"Cleared {len(doomed)} presets with prefix '{prefix}'")
        return len(doomed)

    def keys(self) -> List[str]:
        return list(self._presets)

    def items(self) -> List[Tuple[str, CameraPreset]]:
        return list(self._presets.items())

    def __contains__(self, key: str) -> bool:
        return key in self._presets

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._presets))

    def __len__(self) -> int:
        return len(self._presets)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def exists(self, key: str, profile_id: str) -> bool:
        """True if `key` is registered and belongs to `profile_id`."""
        preset = self._presets.get(key)
        return preset is not None and preset.id == profile_id

    def find_key(self, *names: str) -> Optional[str]:
        """
        Find the best registered key for one or more entity names.

        An exact match of any name (in argument order) wins; otherwise the
        longest registered key that is a prefix of a name is returned, so
        "car_red_v2" resolves to "car_red" when no exact key exists.
        """
        candidates = [n for n in names if n]
        for name in candidates:
            if name in self._presets:
                return name

        for name in candidates:
            matches = [k for k in self._presets if name.startswith(k)]
            if matches:
                return max(matches, key=len)
        return None

    def find_default(self, profile_id: Optional[str]) -> Optional[Tuple[str, CameraPreset]]:
        """First (key, preset) flagged IsDefault with the given ID."""
        if not profile_id:
            return None
        for key, preset in self._presets.items():
            if preset.is_default and preset.id == profile_id:
                return key, preset
        return None

    def default_ids(self) -> Set[str]:
        """Keys and IDs of every registered default."""
        ids: Set[str] = set()
        for key, preset in self._presets.items():
            if preset.is_default:
                ids.add(key)
                if preset.id:
                    ids.add(preset.id)
        return ids

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, refresh: bool = False) -> LoadReport:
        """
        Load defaults/ then presets/.

        Invalid files are skipped with a logged reason; loading continues.

        Args:
            refresh: Clear the registry first

        Returns:
            LoadReport with per-directory counts

        Raises:
            DefaultsIncompleteError: If defaults/ yielded fewer than
                config.min_default_presets entries
        """
        if refresh:
            self.purge()

        report = LoadReport()
        report.defaults_loaded = self._load_dir(self.config.defaults_path, True, report)
        logger.info(f"Loaded {report.defaults_loaded} default presets from {self.config.defaults_path}")

        if report.defaults_loaded < self.config.min_default_presets:
            logger.error(
                f"Default presets incomplete ({report.defaults_loaded} < "
                f"{self.config.min_default_presets})"
            )
            raise DefaultsIncompleteError(report.defaults_loaded, self.config.min_default_presets)

        presets_dir = self.config.presets_path
        if not presets_dir.is_dir():
            try:
                presets_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Cannot create presets directory {presets_dir}: {e}")
        report.presets_loaded = self._load_dir(presets_dir, False, report)
        logger.info(f"Loaded {report.presets_loaded} presets from {presets_dir}")
        return report

    def _load_dir(self, directory: Path, is_default_dir: bool, report: LoadReport) -> int:
        if not directory.is_dir():
            logger.error(f"Preset directory does not exist: {directory}")
            return 0

        count = 0
        for path in sorted(directory.iterdir()):
            if not path.is_file() or not has_preset_ext(path.name):
                continue

            key = trim_preset_ext(path.name)
            if key in self._presets:
                count += 1
                report.skipped.append(key)
                logger.warning(f"Skipped preset '{key}' from {directory}: already loaded")
                continue

            try:
                preset = read_preset_file(path)
                if is_default_dir and not preset.is_default:
                    raise PresetValidationError(key, "default preset lacks IsDefault=true")
                if not is_preset_valid(preset):
                    raise PresetValidationError(key, "needs an ID with at least one offset, or only a Link")
            except PresetError as e:
                report.invalid.append(key)
                logger.error(f"Skipped preset file {path.name}: {e}")
                continue

            self._presets[key] = preset
            count += 1
            logger.debug(f"Loaded preset '{key}' from {path}")
        return count

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_path(self, name: str, is_default: bool = False) -> Path:
        directory = self.config.defaults_path if is_default else self.config.presets_path
        return preset_file_path(directory, name)

    def file_exists(self, name: str, is_default: bool = False) -> bool:
        if not name:
            return False
        return self.file_path(name, is_default).is_file()

    def list_files(self) -> List[str]:
        """Keys of all user preset files on disk."""
        return list_preset_files(self.config.presets_path)

    def delete_file(self, name: str) -> bool:
        """
        Delete a user preset file and drop its registry entry.

        Returns:
            True if the file was removed
        """
        path = self.file_path(name)
        try:
            os.remove(path)
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            return False

        self.remove(trim_preset_ext(name))
        logger.info(f"Deleted preset file {path}")
        return True

    def save_file(
        self,
        name: str,
        preset: CameraPreset,
        default: Optional[CameraPreset],
        allow_overwrite: bool = False,
        save_as_default: bool = False,
        write_all: bool = False,
    ) -> SaveOutcome:
        """
        Save a preset to disk.

        Writes only offsets that differ from `default` unless `write_all` or
        `save_as_default`. If nothing differs the override is redundant: the
        file is deleted and the registry entry removed (restore-by-delete).

        Args:
            name: File name, with or without extension
            preset: Preset to save
            default: Resolved default of the same profile
            allow_overwrite: Replace an existing file
            save_as_default: Write into defaults/ with IsDefault=true
            write_all: Emit all populated offsets (custom content)
        """
        if not name or not preset.id:
            return SaveOutcome.FAILED

        path = self.file_path(name, save_as_default)
        if not allow_overwrite and not write_all and path.exists():
            logger.warning(f"Preset file already exists: {path}")
            return SaveOutcome.EXISTS

        payload = build_file_payload(
            preset,
            default,
            write_all=write_all or save_as_default,
            as_default=save_as_default,
        )

        if payload is None:
            default_id = default.id if default is not None else None
            logger.warning(f"Preset '{name}' does not differ from default '{default_id}'")
            if save_as_default:
                return SaveOutcome.UNCHANGED

            if path.exists():
                try:
                    os.remove(path)
                except OSError as e:
                    logger.error(f"Failed to delete {path}: {e}")
                    return SaveOutcome.FAILED
                logger.warning(f"Deleted redundant preset file {path}")
            self.remove(trim_preset_ext(name))
            return SaveOutcome.DELETED

        try:
            write_json_atomic(path, payload)
        except PresetFileError as e:
            logger.error(f"Failed to save preset '{name}': {e}")
            return SaveOutcome.FAILED

        logger.info(f"Saved preset '{name}' to {path}")
        return SaveOutcome.WRITTEN
