"""
Error taxonomy shared by the discovery pipeline and the HTTP layer.

Data-source components return an Outcome instead of raising, so the caller
decides how a failure degrades (empty provider contribution, seed fallback,
cache miss). Only validation problems and logic defects reach the client, as
ApiError or as an unhandled exception mapped to E_INTERNAL.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    PROVIDER = "provider"
    PRIMARY_STORE = "primary_store"
    CACHE = "cache"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


@dataclass(frozen=True)
class PipelineError:
    kind: ErrorKind
    message: str
    source: Optional[str] = None


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a tagged error; never both."""

    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, source: Optional[str] = None) -> "Outcome[T]":
        return cls(error=PipelineError(kind=kind, message=message, source=source))

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value


# Stable codes exposed in the {error: {code, message}} envelope
ERROR_CODES: Dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "E_VALIDATION",
    ErrorKind.NOT_FOUND: "E_NOT_FOUND",
    ErrorKind.INTERNAL: "E_INTERNAL",
}
METHOD_NOT_ALLOWED_CODE = "E_METHOD"


class ApiError(Exception):
    """Raised by route handlers for failures that are reported to the caller."""

    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message

    @classmethod
    def from_kind(cls, kind: ErrorKind, message: str) -> "ApiError":
        status = {ErrorKind.VALIDATION: 400, ErrorKind.NOT_FOUND: 404}.get(kind, 500)
        return cls(status, ERROR_CODES.get(kind, "E_INTERNAL"), message)


def error_body(code: str, message: str) -> Dict[str, Any]:
    return {"error": {"code": code, "message": message}}
