"""Result type returned by the resolution engine.

Expected failures (missing content, broken default flags) come back as an
Outcome instead of an exception so callers have to look at them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    ok = "ok"
    not_found = "not_found"
    rejected = "rejected"
    integrity_violation = "integrity_violation"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    status: OutcomeStatus
    value: Optional[T] = None
    detail: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.ok

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(OutcomeStatus.ok, value)

    @classmethod
    def not_found(cls, detail: str) -> "Outcome[T]":
        return cls(OutcomeStatus.not_found, detail=detail)

    @classmethod
    def rejected(cls, detail: str) -> "Outcome[T]":
        return cls(OutcomeStatus.rejected, detail=detail)

    @classmethod
    def integrity_violation(cls, detail: str) -> "Outcome[T]":
        return cls(OutcomeStatus.integrity_violation, detail=detail)


_HTTP_STATUS = {
    OutcomeStatus.not_found: 404,
    OutcomeStatus.rejected: 400,
    # should never happen, so it's on us, not the client
    OutcomeStatus.integrity_violation: 500,
}


def unwrap(outcome: Outcome[T]) -> T:
    """Return the value of a successful outcome, raise HTTPException otherwise."""
    if outcome.is_ok:
        return outcome.value
    raise HTTPException(status_code=_HTTP_STATUS[outcome.status], detail=outcome.detail)
