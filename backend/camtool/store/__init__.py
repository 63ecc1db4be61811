"""
Boundary to the host's path-addressed key-value store.

The host owns the real store; the tool only needs get/set by path.
"""

from .live import LiveStore, MemoryStore, Vector3

__all__ = [
    "LiveStore",
    "MemoryStore",
    "Vector3",
]
