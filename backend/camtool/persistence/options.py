"""
Global tool options persisted in options.json.

File format: {"<Name>": {"Value": <value>}, ...}. Entries are merged over
the built-in defaults, so a partial or older file still yields a complete
Options object. Unknown names are ignored with a warning.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import LoadError, SaveError
from .json_files import backup_path, load_json, save_json

logger = logging.getLogger(__name__)


class Options(BaseModel):
    """Runtime-toggleable options."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, validate_assignment=True)

    enabled: bool = Field(default=True, alias="Enabled")
    dev_mode: int = Field(default=0, alias="DevMode", ge=0, le=3)
    log_cooldown: float = Field(default=2.0, alias="LogCooldown", ge=0)


class OptionsStore:
    """
    Loads and saves Options.

    Args:
        path: Location of options.json
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.options = Options()

    def load(self) -> Options:
        """Merge the file into defaults. Failures keep the defaults."""
        if not self.path.exists() and not backup_path(self.path).exists():
            return self.options

        try:
            data = load_json(self.path)
        except LoadError as e:
            logger.error(f"Options not loaded: {e}")
            return self.options

        if not isinstance(data, dict):
            logger.error(f"Options not loaded: expected an object in {self.path}")
            return self.options

        merged: Dict[str, Any] = self.options.model_dump(by_alias=True)
        for name, entry in data.items():
            if name not in merged:
                logger.warning(f"Ignored unknown option '{name}'")
                continue
            if not isinstance(entry, dict) or "Value" not in entry:
                logger.warning(f"Ignored malformed option '{name}'")
                continue
            merged[name] = entry["Value"]

        try:
            self.options = Options.model_validate(merged)
        except ValidationError as e:
            logger.error(f"Options not loaded: {e}")
        return self.options

    def save(self) -> bool:
        data = {name: {"Value": value} for name, value in self.options.model_dump(by_alias=True).items()}
        try:
            save_json(self.path, data)
        except SaveError as e:
            logger.error(f"Options not saved: {e}")
            return False
        return True

    def set(self, name: str, value: Any) -> bool:
        """
        Set one option by file name (e.g. "DevMode") and save.

        Returns:
            False if the name is unknown or the value invalid
        """
        field_name = next(
            (n for n, f in Options.model_fields.items() if f.alias == name or n == name),
            None,
        )
        if field_name is None:
            logger.warning(f"Unknown option '{name}'")
            return False
        try:
            setattr(self.options, field_name, value)
        except ValidationError as e:
            logger.warning(f"Invalid value for option '{name}': {e}")
            return False
        return self.save()
