"""
Static tool configuration.

Runtime-toggleable options (Enabled, DevMode, LogCooldown) live in
persistence.options; this model covers what is fixed for the lifetime of a
session: where files are and the integrity thresholds.
"""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator


class ToolConfig(BaseModel):
    """Directory layout and thresholds for one session."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    root: Path = Path(".")
    defaults_dir: str = "defaults"
    presets_dir: str = "presets"
    usage_file: str = "usage.json"
    options_file: str = "options.json"

    # Number of first-party baseline profiles shipped in defaults/
    min_default_presets: int = 39
    max_link_depth: int = 8
    usage_flush_interval: float = 30.0

    @field_validator("min_default_presets", "max_link_depth")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must be >= 0")
        return v

    @property
    def defaults_path(self) -> Path:
        return self.root / self.defaults_dir

    @property
    def presets_path(self) -> Path:
        return self.root / self.presets_dir

    @property
    def usage_path(self) -> Path:
        return self.root / self.usage_file

    @property
    def options_path(self) -> Path:
        return self.root / self.options_file

    @classmethod
    def from_env(cls, **overrides) -> "ToolConfig":
        """
        Build a config from CAMTOOL_ROOT / CAMTOOL_MIN_DEFAULTS.

        Explicit keyword overrides win over the environment.
        """
        values = {}
        root = os.environ.get("CAMTOOL_ROOT")
        if root:
            values["root"] = Path(root)
        min_defaults = os.environ.get("CAMTOOL_MIN_DEFAULTS")
        if min_defaults:
            values["min_default_presets"] = int(min_defaults)
        values.update(overrides)
        return cls(**values)
