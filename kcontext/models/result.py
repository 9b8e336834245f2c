"""Tagged result values for fallible store reads and row decoding."""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a human-readable reason."""

    reason: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Ok[T] | Err
