"""Pydantic v2 models for dependency resolution.

A ``TokenVerdict`` is the tagged per-token result of validating untrusted AI
output, and ``ResolvedDependencySet`` is the ordered, duplicate-free set of
catalog ids that everything downstream of validation works with.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RejectReason(str, Enum):
    """Why a raw token was discarded."""
    UNKNOWN = "unknown"


class RejectedToken(BaseModel):
    """A raw token that did not map to any catalog entry."""

    model_config = ConfigDict(frozen=True)

    original: str = Field(..., description="Token exactly as the AI service emitted it")
    reason: RejectReason = Field(default=RejectReason.UNKNOWN)


class TokenVerdict(BaseModel):
    """Outcome of classifying one raw token: ``Valid(id)`` or ``Rejected(reason)``."""

    model_config = ConfigDict(frozen=True)

    token: str
    dependency_id: Optional[str] = None
    reason: Optional[RejectReason] = None

    @classmethod
    def valid(cls, token: str, dependency_id: str) -> "TokenVerdict":
        return cls(token=token, dependency_id=dependency_id)

    @classmethod
    def rejected(cls, token: str, reason: RejectReason = RejectReason.UNKNOWN) -> "TokenVerdict":
        return cls(token=token, reason=reason)

    @property
    def is_valid(self) -> bool:
        return self.dependency_id is not None

    def as_rejection(self) -> RejectedToken:
        if self.is_valid:
            raise ValueError(f"Token {self.token!r} is valid; it has no rejection")
        return RejectedToken(original=self.token, reason=self.reason or RejectReason.UNKNOWN)


class ResolvedDependencySet(BaseModel):
    """Ordered set of catalog dependency ids.

    Insertion order is display priority; membership is what the generator
    cares about. Duplicates passed to the constructor are dropped, keeping
    the first occurrence.
    """

    model_config = ConfigDict(frozen=True)

    ids: tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("ids", mode="before")
    @classmethod
    def _dedupe(cls, value: Iterable[str]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    @classmethod
    def of(cls, ids: Iterable[str]) -> "ResolvedDependencySet":
        return cls(ids=tuple(ids))

    def union(self, other: Iterable[str]) -> "ResolvedDependencySet":
        """Return a new set with *other*'s ids appended where not already present."""
        return ResolvedDependencySet.of([*self.ids, *other])

    def as_param(self) -> str:
        """Comma-joined ids, as the generator's ``dependencies`` parameter expects."""
        return ",".join(self.ids)

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.ids)

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, item: object) -> bool:
        return item in self.ids

    def __bool__(self) -> bool:
        return bool(self.ids)
