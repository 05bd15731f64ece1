"""
Outcome — result type for the lenient pool operations.

add_result() and remove_result() never raise. They return an Outcome
carrying either the value or the exception that stopped the operation, so
callers can branch on success without losing the diagnostic.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success value or typed failure of one pool operation."""
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        """Return the value, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value

    def value_or_false(self) -> T | bool:
        """Collapse to the value on success and False on failure."""
        return self.value if self.ok else False
