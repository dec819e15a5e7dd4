"""
Success-or-error value returned by every network-facing operation.

Stages are chained by checking ``result.ok`` and returning the failed result
unchanged, so the first failing stage is what the caller sees.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import SyncError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a SyncError, never both."""

    value: T | None = None
    error: SyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value if self.error is None else default


def Ok(value: T = None) -> Result[T]:
    return Result(value=value)


def Err(error: SyncError) -> Result:
    return Result(error=error)
