"""Tagged result type for best-effort operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    """How an operation finished."""

    OK = "ok"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of an operation that may degrade instead of raising.

    ``ok`` carries the real result. ``fallback`` carries a best-effort result
    and, usually, the error that forced it. ``failed`` carries the error and
    optionally a safe value to show the end user.
    """

    status: OutcomeStatus
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: T) -> Outcome[T]:
        return cls(OutcomeStatus.OK, value)

    @classmethod
    def fallback(cls, value: T, error: Exception | None = None) -> Outcome[T]:
        return cls(OutcomeStatus.FALLBACK, value, error)

    @classmethod
    def failed(cls, error: Exception, value: T | None = None) -> Outcome[T]:
        return cls(OutcomeStatus.FAILED, value, error)

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    @property
    def is_fallback(self) -> bool:
        return self.status is OutcomeStatus.FALLBACK

    @property
    def is_failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED
