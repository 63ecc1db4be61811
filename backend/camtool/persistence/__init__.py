"""
Persistence for usage statistics and global options.

Both are small JSON files with a .bak generation; preset files are handled
by camtool.presets.
"""

from .errors import LoadError, PersistenceError, SaveError
from .options import Options, OptionsStore
from .usage import UsageRecord, UsageTracker

__all__ = [
    "PersistenceError",
    "LoadError",
    "SaveError",
    "Options",
    "OptionsStore",
    "UsageRecord",
    "UsageTracker",
]
