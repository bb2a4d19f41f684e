"""Value types handed across the registry boundary."""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

# Opaque principal supplied by whatever authenticated the caller.
Identity = str

ApprovalKey = tuple[str, Identity]


class ErrorCode(str, Enum):
    """Closed set of precondition failures."""

    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"


@dataclass(frozen=True)
class Design:
    design_id: str
    name: str
    version: str
    specifications: str
    status: str
    verified_by: Identity
    timestamp: int

    def with_status(self, status: str) -> "Design":
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Approval:
    design_id: str
    approver: Identity
    approved: bool
    comments: str
    timestamp: int

    @property
    def key(self) -> ApprovalKey:
        return (self.design_id, self.approver)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Outcome:
    """
    Result of a mutating registry operation.

    Precondition failures are reported here rather than raised, so callers
    branch on `ok` (or the truthiness of the outcome) and read `error`.
    """

    ok: bool
    error: ErrorCode | None = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, code: ErrorCode) -> "Outcome":
        return cls(ok=False, error=code)

    def __bool__(self) -> bool:
        return self.ok

    def as_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"success": True}
        return {"error": self.error.value if self.error else None}
