"""
Tagged results for the two fallback chains.

The AI router (model → keyword scoring) and the synthesizer (model →
concatenation) both return an `Outcome` instead of hiding the fallback in
nested try/except. Callers use `.value`; tests and logs read `.status` and
`.reason` to see why a fallback fired.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, enum.Enum):
    OK = "ok"                # Primary strategy produced the value
    DEGRADED = "degraded"    # Fallback strategy produced the value
    FAILED = "failed"        # Nothing usable; value is a fixed placeholder


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T
    status: OutcomeStatus = OutcomeStatus.OK
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def degraded(cls, value: T, reason: str) -> Outcome[T]:
        return cls(value=value, status=OutcomeStatus.DEGRADED, reason=reason)

    @classmethod
    def failed(cls, value: T, reason: str) -> Outcome[T]:
        return cls(value=value, status=OutcomeStatus.FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.OK
