"""
Pytest configuration for camtool tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from camtool.config import ToolConfig  # noqa: E402
from camtool.keys.models import EntityContext  # noqa: E402
from camtool.levels import CAMERA_LEVELS, is_low_level, preset_level_for  # noqa: E402
from camtool.store.live import MemoryStore, Vector3  # noqa: E402

PROFILE_ID = "4w_911"
RECORD_ID = "Vehicle.v_sport2_porsche_911turbo_player"
APPEARANCE = "porsche_911turbo__basic_johnny"

# Stored z per preset level of a freshly started game
STOCK_Z = {"Close": 1.1, "Medium": 1.6, "Far": 2.2}
STOCK_PITCH_HIGH = 11.0
STOCK_PITCH_LOW = 4.0


def seed_profile(store: MemoryStore, profile_id: str = PROFILE_ID, record_id: str = RECORD_ID) -> None:
    """Populate a store with the canonical bindings and stock values of one profile."""
    store.set(
        record_id + ".tppCameraPresets",
        [f"Camera.VehicleTPP_{profile_id}_{level}" for level in CAMERA_LEVELS],
    )
    for level in CAMERA_LEVELS:
        base = f"Camera.VehicleTPP_{profile_id}_{level}"
        store.set(f"{base}.lookAtOffset", Vector3(0.0, 0.0, STOCK_Z[preset_level_for(level)]))
        store.set(f"{base}.defaultRotationPitch", STOCK_PITCH_LOW if is_low_level(level) else STOCK_PITCH_HIGH)
    store.write_count = 0


def write_preset(directory: Path, key: str, data: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{key}.json"
    path.write_text(json.dumps(data))
    return path


def stock_default(profile_id: str = PROFILE_ID) -> dict:
    return {
        "ID": profile_id,
        "Close": {"angle": STOCK_PITCH_HIGH, "x": 0.0, "y": 0.0, "z": STOCK_Z["Close"]},
        "Medium": {"angle": STOCK_PITCH_HIGH, "x": 0.0, "y": 0.0, "z": STOCK_Z["Medium"]},
        "Far": {"angle": STOCK_PITCH_HIGH, "x": 0.0, "y": 0.0, "z": STOCK_Z["Far"]},
        "IsDefault": True,
    }


@pytest.fixture
def store():
    """Store seeded with the canonical 4w_911 profile."""
    s = MemoryStore()
    seed_profile(s)
    return s


@pytest.fixture
def entity():
    return EntityContext(record_id=RECORD_ID, appearance=APPEARANCE)


@pytest.fixture
def config(tmp_path):
    """Config rooted in tmp_path requiring two defaults."""
    return ToolConfig(root=tmp_path, min_default_presets=2)


@pytest.fixture
def defaults_dir(config):
    """defaults/ with the stock 4w_911 default and one unrelated profile."""
    write_preset(config.defaults_path, PROFILE_ID, stock_default())
    write_preset(config.defaults_path, "v_other_Preset", stock_default("v_other_Preset"))
    return config.defaults_path
