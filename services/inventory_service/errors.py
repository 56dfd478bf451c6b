"""Error taxonomy and step results for the inventory service.

Transactional steps never raise for expected failures. They return a
StepResult, and the coordinator decides whether to continue or abort.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_REFERENCE = "InvalidReference"
    MISSING_FIELD = "MissingField"
    INVALID_FIELD = "InvalidField"
    NOT_FOUND = "NotFound"
    TRANSACTION_FAILED = "TransactionFailed"


STATUS_CODES = {
    ErrorKind.INVALID_REFERENCE: 400,
    ErrorKind.MISSING_FIELD: 400,
    ErrorKind.INVALID_FIELD: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSACTION_FAILED: 400,
}


class InventoryError(Exception):
    """Structured error carrying a kind, a readable message and its root cause."""

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def wrap(self, context: str) -> "InventoryError":
        """Prefix operation context, keeping the kind and the root cause."""
        root = self.cause if self.cause is not None else self
        return InventoryError(self.kind, f"{context}: {self.message}", cause=root)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        return f"InventoryError({self.kind.value}, {self.message!r})"


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Value of a successful step, or the error that stopped it."""

    value: Optional[T] = None
    error: Optional[InventoryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StepResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, cause: Optional[BaseException] = None) -> "StepResult[T]":
        return cls(error=InventoryError(kind, message, cause=cause))
