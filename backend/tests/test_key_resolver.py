"""
Tests for key resolution.

Verifies that:
1. Binding keys are read per entity and failures are distinct
2. The canonical pattern yields the profile id
3. The obfuscated fallback strips namespaces, prefixes and level suffixes
4. The level map is built from markers and corrects contradicting height markers once
5. Results are cached per entity and dropped on entity change
"""

from camtool.keys import EntityContext, KeyResolver, ResolveFailure, extract_obfuscated_id, obfuscated_candidate
from camtool.levels import CAMERA_LEVELS
from camtool.store.live import MemoryStore


RECORD = "Vehicle.v_custom_lotus_player"


def _custom_store(keys, markers=None):
    store = MemoryStore()
    store.set(RECORD + ".tppCameraPresets", keys)
    for path, value in (markers or {}).items():
        store.set(path, value)
    return store


class TestBindingKeys:
    """Binding key lookup."""

    def test_no_entity(self, store):
        resolver = KeyResolver(store)
        result = resolver.resolve_binding_keys()
        assert not result
        assert result.failure == ResolveFailure.NO_ENTITY

    def test_no_record(self, store):
        resolver = KeyResolver(store)
        resolver.bind(EntityContext(record_id="", appearance="x"))
        assert resolver.resolve_binding_keys().failure == ResolveFailure.NO_RECORD

    def test_no_bindings(self):
        resolver = KeyResolver(MemoryStore())
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))
        assert resolver.resolve_binding_keys().failure == ResolveFailure.NO_BINDINGS

    def test_keys_found(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        result = resolver.resolve_binding_keys()
        assert result.found
        assert len(result.value) == 12


class TestCanonicalId:
    """Structural pattern match."""

    def test_canonical_id(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        assert resolver.resolve_canonical_id().value == "4w_911"

    def test_first_match_wins(self):
        resolver = KeyResolver(MemoryStore())
        keys = ["garbage", "Camera.VehicleTPP_2w_bike_High_Far", "Camera.VehicleTPP_4w_car_Low_Close"]
        assert resolver.resolve_canonical_id(keys).value == "2w_bike"

    def test_no_match(self):
        resolver = KeyResolver(MemoryStore())
        result = resolver.resolve_canonical_id(["Camera.a1b2c3"])
        assert result.failure == ResolveFailure.NO_MATCH

    def test_profile_id_prefers_canonical(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        assert resolver.resolve_profile_id().value == "4w_911"


class TestObfuscatedId:
    """Structural fallback as a pure function."""

    def test_candidate_strips_everything(self):
        key = "Vehicle.VehicleTPP_lotus_camera_High_Close.tppCameraPresets$1f"
        assert obfuscated_candidate(key) == "lotus_camera"

    def test_candidate_case_insensitive_prefixes(self):
        assert obfuscated_candidate("camera._vehicletpp_mod_cam_low_far") == "mod_cam"

    def test_extract_dedups_and_returns_first(self):
        keys = [f"Camera.lotus_camera_{level}" for level in CAMERA_LEVELS]
        assert extract_obfuscated_id(keys, []) == "lotus_camera"

    def test_known_defaults_filtered(self):
        keys = ["Camera.4w_9_High_Close", "Camera.modcam_High_Far"]
        # "4w_9" is a prefix of the shipped "4w_911"
        assert extract_obfuscated_id(keys, ["4w_911"]) == "modcam"

    def test_nothing_survives(self):
        assert extract_obfuscated_id(["Camera.4w_911_High_Close"], ["4w_911"]) is None
        assert extract_obfuscated_id(["Camera.High_Close"], []) is None

    def test_negative_result_cached(self):
        store = _custom_store(["Camera.4w_911_High_Close"])
        calls = []

        def defaults():
            calls.append(1)
            return ["4w_911"]

        resolver = KeyResolver(store, default_ids=defaults)
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))
        assert resolver.resolve_obfuscated_id().failure == ResolveFailure.NO_MATCH
        assert resolver.resolve_obfuscated_id().failure == ResolveFailure.NO_MATCH
        assert len(calls) == 1

    def test_profile_id_falls_back_to_obfuscated(self):
        store = _custom_store(["Camera.lotus_cam_High_Close", "Camera.lotus_cam_Low_Far"])
        resolver = KeyResolver(store)
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))
        assert resolver.resolve_profile_id().value == "lotus_cam"


class TestLevelKeyMap:
    """Marker-based level map."""

    def test_map_from_markers(self):
        keys = ["Camera.a1", "Camera.a2"]
        store = _custom_store(keys, {
            "Camera.a1.height": "CameraHeight.High",
            "Camera.a1.distance": "CameraDistance.Close",
            "Camera.a2.height": "CameraHeight.Low",
            "Camera.a2.distance": "CameraDistance.Far",
        })
        resolver = KeyResolver(store)
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))
        result = resolver.resolve_level_key_map()
        assert result.value == {"High_Close": "Camera.a1", "Low_Far": "Camera.a2"}

    def test_keys_without_markers_skipped(self):
        store = _custom_store(["Camera.a1"])
        resolver = KeyResolver(store)
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))
        assert resolver.resolve_level_key_map().failure == ResolveFailure.NO_MATCH

    def test_contradicting_height_marker_corrected_once(self):
        key = "Camera.mod_cam_Low_Close"
        store = _custom_store([key], {
            f"{key}.height": "CameraHeight.High",
            f"{key}.distance": "CameraDistance.Close",
        })
        store.write_count = 0
        resolver = KeyResolver(store)
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))

        result = resolver.resolve_level_key_map()
        assert result.value == {"Low_Close": key}
        assert store.get(f"{key}.height") == "CameraHeight.Low"
        assert store.write_count == 1

        # Fresh resolution must not write again
        resolver.reset()
        resolver.resolve_level_key_map()
        other = KeyResolver(store)
        other.bind(EntityContext(record_id=RECORD, appearance="x"))
        other.resolve_level_key_map()
        assert store.write_count == 1


class TestOverrideKeys:
    """Override record discovery."""

    def test_override_keys(self):
        keys = [
            "Camera.VehicleTPP_4w_911_High_Close",
            "Camera.my_mod_cam_High_Close",
            "Camera.my_mod_cam_Low_Far",
        ]
        resolver = KeyResolver(MemoryStore())
        result = resolver.resolve_override_keys(keys, "4w_911")
        assert result.value == ("Camera.my_mod_cam", ["High_Close", "Low_Far"])

    def test_no_override_keys(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        assert not resolver.resolve_override_keys()


class TestCaching:
    """Per-entity memoization."""

    def test_cache_survives_store_change(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        assert resolver.resolve_binding_keys().found
        store.set(entity.record_id + ".tppCameraPresets", [])
        assert resolver.resolve_binding_keys().found

    def test_rebinding_other_entity_clears_cache(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        assert resolver.resolve_profile_id().value == "4w_911"
        resolver.bind(EntityContext(record_id="Vehicle.unknown", appearance="y"))
        assert resolver.resolve_profile_id().failure == ResolveFailure.NO_BINDINGS

    def test_rebinding_same_entity_keeps_cache(self, store, entity):
        resolver = KeyResolver(store)
        resolver.bind(entity)
        resolver.resolve_binding_keys()
        store.set(entity.record_id + ".tppCameraPresets", [])
        resolver.bind(EntityContext(record_id=entity.record_id, appearance=entity.appearance))
        assert resolver.resolve_binding_keys().found


class TestPathRouting:
    """Store path selection."""

    def test_canonical_path(self, store, entity):
        resolver = KeyResolver(store, default_ids=lambda: ["4w_911"])
        resolver.bind(entity)
        path = resolver.path_for("4w_911", "High_Close", "lookAtOffset")
        assert path == "Camera.VehicleTPP_4w_911_High_Close.lookAtOffset"

    def test_override_path(self, store, entity):
        resolver = KeyResolver(store, default_ids=lambda: ["4w_911"])
        resolver.bind(entity)
        path = resolver.path_for("4w_911", "High_Close", "lookAtOffset", "Camera.mod")
        assert path == "Camera.mod_High_Close.lookAtOffset"

    def test_custom_id_uses_level_map(self):
        keys = ["Camera.lotus_cam_High_Close"]
        store = _custom_store(keys, {
            "Camera.lotus_cam_High_Close.height": "CameraHeight.High",
            "Camera.lotus_cam_High_Close.distance": "CameraDistance.Close",
        })
        resolver = KeyResolver(store)
        resolver.bind(EntityContext(record_id=RECORD, appearance="x"))
        assert resolver.custom_id() == "lotus_cam"
        assert resolver.path_for("lotus_cam", "High_Close", "lookAtOffset") == "Camera.lotus_cam_High_Close.lookAtOffset"
        assert resolver.is_custom_path("lotus_cam", "High_Close", "lookAtOffset")

    def test_basilisk(self):
        resolver = KeyResolver(MemoryStore())
        basilisk = "v_militech_basilisk_CameraPreset"
        assert resolver.path_for(basilisk, "High_Far", "lookAtOffset") == (
            "Vehicle.VehicleTPP_v_militech_basilisk_CameraPreset_High_Far.lookAtOffset"
        )
        assert resolver.path_for(basilisk, "Low_Far", "lookAtOffset") is None
        assert resolver.path_for(basilisk, "High_DriverCombatFar", "lookAtOffset") is None
