"""
camtool: third-person vehicle camera presets.

Resolves which live-store paths belong to the mounted vehicle, merges
preset files with their defaults and writes the result into the store.
An editor tracks default/edited/applied/saved versions so that edits are
never lost or persisted by mistake.
"""

from .config import ToolConfig
from .keys.models import EntityContext
from .session import Session
from .store.live import LiveStore, MemoryStore, Vector3

__version__ = "0.1.0"

__all__ = [
    "ToolConfig",
    "EntityContext",
    "Session",
    "LiveStore",
    "MemoryStore",
    "Vector3",
]
