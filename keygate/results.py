"""Explicit result values for keygate operations.

Services raise typed ``KeygateError`` subclasses. ``capture`` turns one call
into a ``Result`` so callers can branch on ``success`` instead of catching;
anything that is not a ``KeygateError`` (misconfiguration, bugs) still raises.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

from .exceptions import KeygateError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Success value or a single typed failure."""

    success: bool
    value: Optional[T] = None
    error: Optional[KeygateError] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def cause(self) -> Optional[BaseException]:
        return self.error.cause if self.error else None

    def unwrap(self) -> T:
        """Return the value, re-raising the captured error on failure."""
        if not self.success:
            raise self.error
        return self.value

    @classmethod
    def ok(cls, value: Any) -> "Result":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: KeygateError) -> "Result":
        return cls(success=False, error=error)


async def capture(awaitable: Awaitable[T]) -> Result[T]:
    """Await an operation and wrap its outcome in a Result."""
    try:
        return Result.ok(await awaitable)
    except KeygateError as e:
        return Result.fail(e)
