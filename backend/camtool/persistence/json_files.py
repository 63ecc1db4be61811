"""
JSON state files with a one-generation backup.

Saving rotates the previous file to "<name>.bak" before the new content is
moved into place. Loading falls back to the backup once if the primary
file is missing or unreadable.
"""

import json
import logging
from pathlib import Path
from typing import Any

from .errors import LoadError, SaveError

logger = logging.getLogger(__name__)


def backup_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + ".bak")


def _read(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_json(path: Path) -> Any:
    """
    Load a JSON file, trying the .bak copy once on failure.

    Raises:
        LoadError: If neither file can be read
    """
    path = Path(path)
    try:
        return _read(path)
    except (OSError, json.JSONDecodeError) as e:
        backup = backup_path(path)
        if not backup.exists():
            raise LoadError(f"Failed to load {path}: {e}") from e
        logger.warning(f"Failed to load {path} ({e}); trying {backup.name}")

    try:
        return _read(backup)
    except (OSError, json.JSONDecodeError) as e:
        raise LoadError(f"Failed to load {path} and its backup: {e}") from e


def save_json(path: Path, data: Any) -> None:
    """
    Write JSON atomically, keeping the previous file as .bak.

    Raises:
        SaveError: If writing fails
    """
    path = Path(path)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        if path.exists():
            path.replace(backup_path(path))
        temp_path.replace(path)
    except (OSError, TypeError, ValueError) as e:
        raise SaveError(f"Failed to save {path}: {e}") from e
