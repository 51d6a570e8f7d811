"""
Result type for operations that must never raise.

Cache reads, feed validation and the connectivity probe report failure as a
value; callers map a failed Outcome to that operation's fail-safe default.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Success case:
        success=True, value set, error_message None

    Failure case:
        success=False, value holds the fail-safe default, error_message set
    """
    success: bool
    value: Optional[T] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> 'Outcome[T]':
        return cls(success=True, value=value)

    @classmethod
    def failure(cls, error_message: str, default: Optional[T] = None) -> 'Outcome[T]':
        return cls(success=False, value=default, error_message=error_message)
