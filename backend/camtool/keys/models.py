"""
Data models for key resolution.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

RECORD_NAMESPACE = "Vehicle."


@dataclass(frozen=True)
class EntityContext:
    """
    The entity currently mounted by the host.

    Attributes:
        record_id: Backing record identifier (e.g. "Vehicle.v_sport2_porsche_911turbo_player").
            For hashed content this may be an opaque string.
        appearance: Appearance (variant) name of the entity.
    """

    record_id: str
    appearance: str

    @property
    def name(self) -> str:
        """Record id without the record namespace."""
        if self.record_id.startswith(RECORD_NAMESPACE):
            return self.record_id[len(RECORD_NAMESPACE):]
        return self.record_id

    @property
    def bundle_key(self) -> tuple:
        return (self.name, self.appearance)


class ResolveFailure(str, Enum):
    """Why a resolution step produced no result."""

    NO_ENTITY = "no_entity"
    NO_RECORD = "no_record"
    NO_BINDINGS = "no_bindings"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """
    Outcome of a resolution step.

    Either carries a value or the reason it could not be produced. Callers
    treat any failure as "no custom binding, use the canonical path".
    """

    value: Optional[T] = None
    failure: Optional[ResolveFailure] = None

    @property
    def found(self) -> bool:
        return self.failure is None and self.value is not None

    def __bool__(self) -> bool:
        return self.found

    @classmethod
    def ok(cls, value: T) -> "Resolution[T]":
        return cls(value=value)

    @classmethod
    def missing(cls, failure: ResolveFailure) -> "Resolution[T]":
        return cls(failure=failure)
