"""
Result types shared by the gateway and the analyzers.

Upstream unavailability is never raised across the core boundary. Entry
points return either ``Ok(value)`` or ``SoftFailure(reason)``; only
malformed caller input raises ``HardFailure``.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class HardFailure(ValueError):
    """Malformed caller input (missing coordinates, non-positive area, ...)."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A usable value."""
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class SoftFailure:
    """An external dependency did not produce usable data."""
    reason: str

    @property
    def is_ok(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {"error": self.reason, "is_real": False}


Result = Union[Ok[T], SoftFailure]
