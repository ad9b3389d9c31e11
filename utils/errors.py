from __future__ import annotations

from typing import Any, Optional


class ApiError(Exception):
    """Base class for errors rendered as ``{success: false, ...}`` envelopes."""

    status_code = 500
    code = "Error"

    def __init__(self, message: str, code: Optional[str] = None, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message, "code": self.code}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(ApiError):
    status_code = 400
    code = "ValidationError"


class AuthError(ApiError):
    status_code = 401
    code = "AuthError"


class NotFoundError(ApiError):
    status_code = 404
    code = "NotFound"


class EmptyError(ApiError):
    status_code = 404
    code = "NothingToExport"


class StorageError(ApiError):
    """Storage read/write, render or transport failure. ``error`` holds the cause."""

    status_code = 500
    code = "StorageError"

    @classmethod
    def wrap(cls, message: str, exc: BaseException, code: Optional[str] = None) -> "StorageError":
        return cls(message, code=code, error=str(exc) or exc.__class__.__name__)
