"""
Live store protocol and an in-memory implementation.

Values are plain Python values: floats, bools, strings, lists of strings
(record references) and Vector3 for positional offsets.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Vector3:
    """Three-component offset as stored by the host."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@runtime_checkable
class LiveStore(Protocol):
    """Host store interface consumed by the tool."""

    def get(self, path: str) -> Optional[Any]:
        ...

    def set(self, path: str, value: Any) -> None:
        ...


class MemoryStore:
    """
    Dict-backed LiveStore.

    Used as the host adapter in tests and for offline tooling.
    Tracks the number of writes so callers can verify no-op behaviour.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})
        self.write_count = 0

    def get(self, path: str) -> Optional[Any]:
        return self._values.get(path)

    def set(self, path: str, value: Any) -> None:
        self._values[path] = value
        self.write_count += 1

    def snapshot(self) -> Dict[str, Any]:
        """Copy of all values (for comparisons)."""
        return dict(self._values)

    def __contains__(self, path: str) -> bool:
        return path in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)
