"""
Session: the single owner of all camtool state.

The host drives a Session through discrete callbacks (start, mount,
unmount, take control, per-frame tick, shutdown). The UI layer calls the
remaining public methods. None of them raises: each returns a result or a
boolean/outcome, and failures are logged.

When the default preset set is incomplete the session disables itself;
every operation that would touch the store is then a no-op until the
installation is repaired and the tool re-enabled.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .config import ToolConfig
from .editor.machine import Editor, PresetFileInfo
from .editor.models import EditorBundle
from .keys.models import EntityContext
from .keys.resolver import KeyResolver
from .logs import configure_logging
from .persistence.options import Options, OptionsStore
from .persistence.usage import UsageTracker
from .presets.applier import PresetApplier
from .presets.errors import DefaultsIncompleteError, PresetError
from .presets.files import SaveOutcome
from .presets.models import CameraPreset
from .presets.registry import LoadReport, PresetStore
from .store.live import LiveStore
from .timers import TimerScheduler

logger = logging.getLogger(__name__)


class Session:
    """
    Wires the components together and implements the host/UI operations.

    Args:
        store: The host's live key-value store
        config: Directory layout and thresholds (default: from environment)
        clock: Time source for usage records
        configure_logs: Install the package log handler on start()
    """

    def __init__(
        self,
        store: LiveStore,
        config: Optional[ToolConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        configure_logs: bool = True,
    ):
        self.config = config or ToolConfig.from_env()
        self.store = store
        self.configure_logs = configure_logs

        self.options_store = OptionsStore(self.config.options_path)
        self.usage = UsageTracker(self.config.usage_path, clock=clock)
        self.presets = PresetStore(self.config, usage=self.usage)
        self.resolver = KeyResolver(store, default_ids=self.presets.default_ids)
        self.applier = PresetApplier(
            store,
            self.presets,
            self.resolver,
            usage=self.usage,
            max_link_depth=self.config.max_link_depth,
        )
        self.editor = Editor(self.presets, self.applier, self.resolver)
        self.timers = TimerScheduler()

        self.enabled = False
        self.last_load: Optional[LoadReport] = None
        self._mounted: Optional[EntityContext] = None
        self._flush_timer: Optional[int] = None

    @property
    def options(self) -> Options:
        return self.options_store.options

    @property
    def entity(self) -> Optional[EntityContext]:
        return self.resolver.entity

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Load options, usage and presets; apply the preset of an already mounted entity.

        Returns:
            True if the session is enabled afterwards
        """
        options = self.options_store.load()
        self._configure_logging()
        self.usage.load()

        if self._flush_timer is None:
            self._flush_timer = self.timers.register(self.config.usage_flush_interval, self.usage.flush)

        self.enabled = options.enabled and self._load_presets(refresh=True)
        if self.enabled and self.entity is not None:
            self.applier.apply_auto()
        logger.info(f"Session started (enabled={self.enabled})")
        return self.enabled

    def on_mount(self, entity: EntityContext) -> bool:
        """
        Entity mounted: resolve and apply its preset.

        The host may deliver the event repeatedly for the same entity; only
        the first delivery is processed.
        """
        if not self.enabled:
            return False
        if self._mounted is not None and self._mounted == entity:
            logger.debug(f"Mount of '{entity.name}' already processed")
            return False

        self._mounted = entity
        self.resolver.bind(entity)
        return self.applier.apply_auto()

    def on_unmount(self) -> int:
        """
        Entity unmounted: restore the profiles touched this session.

        Returns:
            Number of restored defaults
        """
        if not self.enabled:
            return 0

        restored = self.applier.restore_modified()
        self.editor.close()
        self.resolver.bind(None)
        self._mounted = None
        return restored

    def on_take_control(self, entity: Optional[EntityContext] = None) -> bool:
        """Player took control (e.g. after loading a save): drop caches and re-apply."""
        if not self.enabled:
            return False

        self.resolver.reset()
        if entity is not None:
            self.resolver.bind(entity)
        self._mounted = self.resolver.entity
        return self.applier.apply_auto()

    def tick(self, elapsed: float) -> List[int]:
        """Per-frame callback; advances the cooperative timers."""
        return self.timers.tick(elapsed)

    def shutdown(self) -> None:
        """Put every custom value and default back and flush usage."""
        if self.enabled:
            self.applier.restore_custom_params()
            self.applier.restore_all()
        self.usage.save()
        self.timers.clear()
        self._flush_timer = None
        logger.info("Session shut down")

    # ------------------------------------------------------------------
    # Global operations
    # ------------------------------------------------------------------

    def _configure_logging(self) -> None:
        if self.configure_logs:
            configure_logging(self.options.dev_mode, self.options.log_cooldown)

    def _load_presets(self, refresh: bool = False) -> bool:
        try:
            self.last_load = self.presets.load(refresh=refresh)
        except DefaultsIncompleteError as e:
            logger.error(f"Disabled: {e}")
            return False
        except PresetError as e:
            logger.error(f"Preset load failed: {e}")
            return False
        except OSError as e:
            logger.error(f"Preset directories unreadable: {e}")
            return False
        return True

    def set_enabled(self, enabled: bool) -> bool:
        """
        Toggle the tool.

        Enabling reloads presets (and may fail the integrity check again);
        disabling restores every default and drops all state.

        Returns:
            The resulting enabled state
        """
        if enabled == self.enabled:
            return self.enabled

        if enabled:
            self.enabled = self._load_presets()
            if self.enabled:
                self.applier.apply_auto()
                logger.info("Enabled")
        else:
            self.applier.restore_custom_params()
            self.applier.restore_all()
            self.presets.purge()
            self.editor.clear()
            self.resolver.reset()
            self.enabled = False
            self.options_store.set("DevMode", 0)
            self._configure_logging()
            logger.info("Disabled")

        self.options_store.set("Enabled", self.enabled)
        return self.enabled

    def reload_all(self) -> bool:
        """Forget editor state and caches, reload all files, restore defaults and re-apply."""
        if not self.enabled:
            return False

        self.editor.clear()
        self.resolver.reset()
        if not self._load_presets(refresh=True):
            self.enabled = False
            return False
        self.applier.restore_all()
        self.applier.apply_auto()
        logger.info("Reloaded all presets")
        return True

    def set_dev_mode(self, level: int) -> bool:
        if not self.options_store.set("DevMode", level):
            return False
        self._configure_logging()
        return True

    def apply(self, preset: CameraPreset, expected_id: Optional[str] = None) -> bool:
        """Apply a preset; a no-op while disabled."""
        if not self.enabled:
            return False
        return self.applier.apply(preset, expected_id)

    def apply_auto(self) -> bool:
        if not self.enabled:
            return False
        return self.applier.apply_auto()

    def status(self) -> Dict[str, Any]:
        entity = self.entity
        return {
            "enabled": self.enabled,
            "dev_mode": self.options.dev_mode,
            "entity": entity.name if entity else None,
            "appearance": entity.appearance if entity else None,
            "presets": len(self.presets),
            "recent": list(self.applier.recent),
        }

    # ------------------------------------------------------------------
    # Editor operations
    # ------------------------------------------------------------------

    def open_editor(self) -> Optional[EditorBundle]:
        """Bundle of the mounted entity, or None if there is nothing to edit."""
        if not self.enabled:
            return None

        entity = self.entity
        if entity is None:
            logger.debug("No mounted entity; editor unavailable")
            return None

        profile = self.resolver.resolve_profile_id()
        if not profile:
            logger.debug(f"No camera id for '{entity.name}' ({profile.failure.value})")
            return None

        return self.editor.get_bundle(entity.name, entity.appearance, profile.value)

    def edit_field(self, preset_level: str, field_name: str, value: float) -> Optional[float]:
        """Edit one Flux offset and recompute tasks. Returns the stored value."""
        bundle = self.open_editor()
        if bundle is None:
            return None
        try:
            stored = self.editor.edit_field(bundle, preset_level, field_name, value)
        except (ValueError, TypeError) as e:
            logger.warning(f"Edit rejected: {e}")
            return None
        self.editor.recompute(bundle)
        return stored

    def rename(self, name: str) -> bool:
        bundle = self.open_editor()
        if bundle is None:
            return False
        return self.editor.rename(bundle, name)

    def apply_edit(self) -> bool:
        bundle = self.open_editor()
        if bundle is None:
            return False
        return self.editor.apply_action(bundle)

    def save_edit(self, overwrite: bool = False) -> SaveOutcome:
        """
        Apply then save the edited preset.

        Replacing an existing file requires `overwrite`; otherwise EXISTS is
        returned and nothing changes.
        """
        bundle = self.open_editor()
        if bundle is None:
            return SaveOutcome.FAILED
        if not overwrite and self.editor.needs_overwrite_confirmation(bundle):
            return SaveOutcome.EXISTS

        self.editor.apply_action(bundle)
        return self.editor.save_action(bundle)

    def close_editor(self) -> bool:
        return self.editor.close()

    def delete_file(self, key: str) -> bool:
        if not self.enabled:
            return False
        return self.editor.delete_file(key)

    def list_files(self) -> List[PresetFileInfo]:
        if not self.enabled:
            return []
        return self.editor.list_files_with_usage()
