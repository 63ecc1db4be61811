"""
Tests for the editor state machine.

Verifies that:
1. A new bundle starts with Flux == Pivot == Finale == Nexus for stock values
2. Edits derive apply/save/restore from the slot tokens
3. Returning to the default and saving deletes the override file
4. Renames are validated and move the file on save
5. Bundles are only evicted when nothing is pending
"""

import json
from datetime import datetime

import pytest

from camtool.editor import Editor, validate_preset_key
from camtool.keys import KeyResolver
from camtool.levels import CAMERA_LEVELS
from camtool.persistence import UsageTracker
from camtool.presets import PresetApplier, PresetStore, SaveOutcome
from conftest import APPEARANCE, PROFILE_ID, STOCK_Z

VEHICLE_NAME = "v_sport2_porsche_911turbo_player"
SHORT_KEY = "porsche_911turbo"


def _offset_z(store, level="High_Close"):
    return store.get(f"Camera.VehicleTPP_{PROFILE_ID}_{level}.lookAtOffset").z


@pytest.fixture
def presets(config, defaults_dir):
    registry = PresetStore(config, usage=UsageTracker(config.usage_path, clock=lambda: datetime(2024, 1, 1)))
    registry.load()
    return registry


@pytest.fixture
def editor(store, entity, presets):
    resolver = KeyResolver(store, default_ids=presets.default_ids)
    resolver.bind(entity)
    applier = PresetApplier(store, presets, resolver, usage=presets.usage)
    return Editor(presets, applier, resolver)


@pytest.fixture
def bundle(editor):
    return editor.get_bundle(VEHICLE_NAME, APPEARANCE, PROFILE_ID)


class TestValidatePresetKey:
    """File name rules."""

    def test_prefix_of_appearance(self):
        assert validate_preset_key(VEHICLE_NAME, APPEARANCE, "old", SHORT_KEY) == SHORT_KEY

    def test_prefix_of_vehicle(self):
        assert validate_preset_key(VEHICLE_NAME, APPEARANCE, "old", "v_sport2") == "v_sport2"

    def test_extension_trimmed(self):
        assert validate_preset_key(VEHICLE_NAME, APPEARANCE, "old", SHORT_KEY + ".json") == SHORT_KEY

    def test_rejected_keeps_current(self):
        assert validate_preset_key(VEHICLE_NAME, APPEARANCE, "old", "ferrari") == "old"
        assert validate_preset_key(VEHICLE_NAME, APPEARANCE, "old", "   ") == "old"
        assert validate_preset_key(VEHICLE_NAME, APPEARANCE, "old", None) == "old"


class TestBundle:
    """Bundle creation."""

    def test_initial_slots_match_default(self, bundle):
        assert bundle.flux.token == bundle.pivot.token == bundle.finale.token == bundle.nexus.token
        assert bundle.flux.key == VEHICLE_NAME
        assert not bundle.finale.is_present
        assert not bundle.tasks.pending

    def test_bundle_reused(self, editor, bundle):
        assert editor.get_bundle(VEHICLE_NAME, APPEARANCE, PROFILE_ID) is bundle
        assert editor.last_bundle is bundle

    def test_snapshots_are_independent(self, editor, bundle):
        editor.edit_field(bundle, "Close", "z", 1.4)
        assert bundle.pivot.preset.close.z == STOCK_Z["Close"]
        assert bundle.nexus.preset.close.z == STOCK_Z["Close"]

    def test_unknown_profile(self, editor):
        assert editor.get_bundle("v_nothing", "nothing", "4w_missing") is None

    def test_existing_key_used(self, editor, presets, config):
        (config.presets_path / f"{SHORT_KEY}.json").write_text(json.dumps({"ID": PROFILE_ID, "Close": {"z": 1.3}}))
        presets.load(refresh=True)
        bundle = editor.get_bundle(VEHICLE_NAME, APPEARANCE, PROFILE_ID)
        assert bundle.flux.key == SHORT_KEY
        assert bundle.finale.is_present


class TestTasks:
    """Task derivation."""

    def test_edit_sets_apply_and_save(self, editor, bundle):
        stored = editor.edit_field(bundle, "Close", "z", 1.4)
        assert stored == 1.4
        assert bundle.tasks.validate
        tasks = editor.recompute(bundle)
        assert tasks.apply and tasks.save and not tasks.restore
        assert not tasks.validate

    def test_edit_clamps(self, editor, bundle):
        assert editor.edit_field(bundle, "Far", "z", 100.0) == 32.0
        assert editor.edit_field(bundle, "Far", "angle", -90.0) == -45.0

    def test_edit_rejects_unknown(self, editor, bundle):
        with pytest.raises(ValueError):
            editor.edit_field(bundle, "Huge", "z", 1.0)
        with pytest.raises(ValueError):
            editor.edit_field(bundle, "Close", "roll", 1.0)

    def test_edit_below_tolerance_is_no_change(self, editor, bundle):
        editor.edit_field(bundle, "Close", "z", STOCK_Z["Close"] + 0.00001)
        assert not editor.recompute(bundle).pending

    def test_apply_writes_store(self, editor, bundle, store, presets):
        editor.edit_field(bundle, "Close", "z", 1.4)
        assert editor.apply_action(bundle)
        assert _offset_z(store) == 1.4
        assert presets.get(VEHICLE_NAME).close.z == 1.4
        assert presets.get(VEHICLE_NAME) is not bundle.flux.preset
        assert presets.usage.get(VEHICLE_NAME).total == 1
        assert not bundle.tasks.apply
        assert bundle.tasks.save


class TestSaveAndRestore:
    """Saving and restore-by-delete."""

    def test_save_writes_diff(self, editor, bundle, config):
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        assert editor.save_action(bundle) == SaveOutcome.WRITTEN

        data = json.loads((config.presets_path / f"{VEHICLE_NAME}.json").read_text())
        assert data == {"ID": PROFILE_ID, "Close": {"z": 1.4}}
        assert bundle.finale.is_present
        assert not bundle.tasks.pending

    def test_return_to_default_deletes_file(self, editor, bundle, config, store, presets):
        path = config.presets_path / f"{VEHICLE_NAME}.json"
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        editor.save_action(bundle)
        assert path.exists()

        editor.edit_field(bundle, "Close", "z", STOCK_Z["Close"])
        tasks = editor.recompute(bundle)
        assert tasks.restore and tasks.save

        editor.apply_action(bundle)
        assert VEHICLE_NAME not in presets
        assert _offset_z(store) == STOCK_Z["Close"]

        assert editor.save_action(bundle) == SaveOutcome.DELETED
        assert not path.exists()
        assert not bundle.finale.is_present
        assert not bundle.tasks.pending

    def test_stored_boom_length_does_not_block_restore(self, editor, store, config):
        for level in CAMERA_LEVELS:
            store.set(f"Camera.VehicleTPP_{PROFILE_ID}_{level}.boomLength", 4.0)
        bundle = editor.get_bundle(VEHICLE_NAME, APPEARANCE, PROFILE_ID)
        assert bundle.flux.preset.close.distance is None
        assert bundle.flux.token == bundle.nexus.token

        path = config.presets_path / f"{VEHICLE_NAME}.json"
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        assert editor.save_action(bundle) == SaveOutcome.WRITTEN
        assert json.loads(path.read_text()) == {"ID": PROFILE_ID, "Close": {"z": 1.4}}
        assert store.get(f"Camera.VehicleTPP_{PROFILE_ID}_High_Close.boomLength") == 4.0

        editor.edit_field(bundle, "Close", "z", STOCK_Z["Close"])
        assert editor.recompute(bundle).restore
        editor.apply_action(bundle)
        assert editor.save_action(bundle) == SaveOutcome.DELETED
        assert not path.exists()

    def test_overwrite_confirmation(self, editor, bundle):
        assert not editor.needs_overwrite_confirmation(bundle)
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        editor.save_action(bundle)
        assert editor.needs_overwrite_confirmation(bundle)


class TestRename:
    """Target file names."""

    def test_invalid_name_rejected(self, editor, bundle):
        assert not editor.rename(bundle, "ferrari")
        assert bundle.flux.key == VEHICLE_NAME

    def test_blank_reverts(self, editor, bundle):
        editor.rename(bundle, SHORT_KEY)
        assert editor.rename(bundle, "")
        assert bundle.flux.key == VEHICLE_NAME
        assert not bundle.tasks.rename

    def test_profile_id_reverts(self, editor, bundle):
        editor.rename(bundle, SHORT_KEY)
        assert editor.rename(bundle, PROFILE_ID)
        assert bundle.flux.key == VEHICLE_NAME

    def test_rename_without_file_is_not_a_move(self, editor, bundle):
        assert editor.rename(bundle, SHORT_KEY)
        assert bundle.flux.key == SHORT_KEY
        assert not bundle.tasks.rename

    def test_rename_moves_file_on_save(self, editor, bundle, config, presets):
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        editor.save_action(bundle)

        assert editor.rename(bundle, SHORT_KEY)
        assert bundle.tasks.rename
        editor.apply_action(bundle)
        assert editor.save_action(bundle) == SaveOutcome.WRITTEN

        assert (config.presets_path / f"{SHORT_KEY}.json").exists()
        assert not (config.presets_path / f"{VEHICLE_NAME}.json").exists()
        assert VEHICLE_NAME not in presets
        assert SHORT_KEY in presets
        assert bundle.finale.name == SHORT_KEY


class TestClose:
    """Bundle eviction."""

    def test_pending_blocks_close(self, editor, bundle):
        editor.edit_field(bundle, "Close", "z", 1.4)
        assert not editor.close(bundle)
        assert bundle.key in editor.bundles

    def test_close_after_save(self, editor, bundle):
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        editor.save_action(bundle)
        assert editor.close()
        assert editor.bundles == {}
        assert editor.last_bundle is None

    def test_close_drops_unsaved_default_entry(self, editor, bundle, presets):
        presets.set(VEHICLE_NAME, bundle.flux.preset.model_copy(deep=True))
        assert editor.close(bundle)
        assert VEHICLE_NAME not in presets

    def test_close_nothing(self, editor):
        assert not editor.close()


class TestFiles:
    """File manager operations."""

    def test_list_with_usage(self, editor, bundle):
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        editor.save_action(bundle)

        entries = editor.list_files_with_usage()
        assert [e.key for e in entries] == [VEHICLE_NAME]
        assert entries[0].total == 1
        assert entries[0].first == datetime(2024, 1, 1)

    def test_delete_evicts_bundle(self, editor, bundle, presets):
        editor.edit_field(bundle, "Close", "z", 1.4)
        editor.apply_action(bundle)
        editor.save_action(bundle)

        assert editor.delete_file(VEHICLE_NAME + ".json")
        assert VEHICLE_NAME not in presets
        assert editor.bundles == {}

    def test_delete_missing(self, editor):
        assert not editor.delete_file("nothing")
