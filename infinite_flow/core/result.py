"""
Content API — Result type

Every operation that talks to the database, Mux or Supabase Storage returns a
Result instead of raising. Routers translate failures into HTTP errors.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"  # missing credentials, nothing was sent
    VALIDATION = "validation"        # rejected locally, nothing was sent
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    EXTERNAL = "external"            # database / Mux / storage call failed
    PARTIAL = "partial"              # multi-row or multi-step write half applied


class ResultError(Exception):
    """Raised by Result.unwrap() on a failed result."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Result(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    kind: ErrorKind | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, data: T | None = None) -> "Result[T]":
        # data on a failure carries whatever state the caller should resync to
        return cls(success=False, data=data, error=message, kind=kind)

    def unwrap(self) -> T:
        if not self.success:
            raise ResultError(self.kind or ErrorKind.EXTERNAL, self.error or "Operation failed.")
        return self.data  # type: ignore[return-value]
