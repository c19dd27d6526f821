"""Structured results returned by the session service instead of exceptions."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure categories; the HTTP layer maps each to a status code."""

    INVALID_CREDENTIALS = "InvalidCredentials"
    ACCOUNT_DISABLED = "AccountDisabled"
    NOT_FOUND = "NotFound"
    VALIDATION_FAILURE = "ValidationFailure"
    INTERNAL = "Internal"


@dataclass(frozen=True)
class ServiceResult:
    """
    Discriminated outcome of one service operation.

    success=True carries optional data; success=False carries kind and
    optional errors (e.g. {"server": detail} for Internal).
    """

    success: bool
    message: str
    data: dict[str, Any] | None = None
    errors: dict[str, Any] | None = None
    kind: ErrorKind | None = None

    @classmethod
    def ok(cls, message: str, data: dict[str, Any] | None = None) -> "ServiceResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        errors: dict[str, Any] | None = None,
    ) -> "ServiceResult":
        return cls(success=False, message=message, errors=errors, kind=kind)

    def to_envelope(self) -> dict[str, Any]:
        """Render as {success, message, data?, errors?}; absent keys are omitted."""
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        if self.errors is not None:
            body["errors"] = self.errors
        return body
