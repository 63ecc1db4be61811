"""
Camera level constants and store path templates.

A profile id (e.g. "4w_911") groups twelve camera levels in the live store.
Presets only carry three of them (Close, Medium, Far); every camera level
maps onto one preset level by its position in CAMERA_LEVELS.
"""

from typing import Dict, Optional, Tuple

CAMERA_LEVELS: Tuple[str, ...] = (
    "High_Close",
    "High_Medium",
    "High_Far",
    "High_DriverCombatClose",
    "High_DriverCombatMedium",
    "High_DriverCombatFar",
    "Low_Close",
    "Low_Medium",
    "Low_Far",
    "Low_DriverCombatClose",
    "Low_DriverCombatMedium",
    "Low_DriverCombatFar",
)

PRESET_LEVELS: Tuple[str, ...] = ("Close", "Medium", "Far")

OFFSET_FIELDS: Tuple[str, ...] = ("angle", "x", "y", "z", "distance")

# Store variable names per offset concern
VAR_OFFSET = "lookAtOffset"
VAR_PITCH = "defaultRotationPitch"
VAR_DISTANCE = "boomLength"

CAMERA_PATH_TEMPLATE = "{section}.VehicleTPP_{id}_{level}.{var}"
BINDING_LIST_SUFFIX = ".tppCameraPresets"
CAMERA_PARAMS_SUFFIX = ".tppCameraParams"
DEFAULT_PARAMS_RECORD = "Camera.VehicleTPP_DefaultParams"
CUSTOM_PARAM_VARS: Tuple[str, ...] = (".fov", ".lockedCamera")

# Fallback values when neither the preset nor its default defines a field
FALLBACK_ANGLE = 11.0
FALLBACK_X = 0.0
FALLBACK_Y = 0.0
FALLBACK_Z: Dict[str, float] = {"Close": 1.115, "Medium": 1.65, "Far": 2.25}

# Low levels store the pitch 7 degrees below the preset angle
LOW_ANGLE_OFFSET = 7.0

# Driver combat uses a narrower field of view; push the camera up and back
COMBAT_BIAS: Dict[str, float] = {"z": 0.15, "distance": 0.5}

# Per-profile default pitch (low, high)
DEFAULT_ANGLES: Dict[str, Tuple[float, float]] = {
    "v_militech_basilisk_CameraPreset": (5.0, 5.0),
    "v_utility4_militech_behemoth_Preset": (5.0, 12.0),
}
DEFAULT_ANGLE_PAIR: Tuple[float, float] = (4.0, 11.0)

# Profiles stored outside the "Camera" section with a reduced level set
BASILISK_ID = "v_militech_basilisk_CameraPreset"


def preset_level_for(camera_level: str) -> str:
    """Map a camera level (e.g. "Low_DriverCombatFar") to its preset level ("Far")."""
    index = CAMERA_LEVELS.index(camera_level)
    return PRESET_LEVELS[index % 3]


def preset_level_at(index: int) -> str:
    """Preset level for the n-th entry of an arbitrary level list."""
    return PRESET_LEVELS[index % 3]


def is_low_level(level: str) -> bool:
    return level.lower().startswith("low")


def is_combat_level(level: str) -> bool:
    return "drivercombat" in level.lower()


def default_angle(profile_id: Optional[str], level: str) -> float:
    low, high = DEFAULT_ANGLES.get(profile_id or "", DEFAULT_ANGLE_PAIR)
    return low if is_low_level(level) else high


def canonical_path(profile_id: str, level: str, var: str) -> Optional[str]:
    """
    Format the canonical store path for a profile level variable.

    Returns None for levels the profile does not have.
    """
    if profile_id == BASILISK_ID:
        if is_low_level(level) or is_combat_level(level):
            return None
        section = "Vehicle"
    else:
        section = "Camera"
    return CAMERA_PATH_TEMPLATE.format(section=section, id=profile_id, level=level, var=var)
