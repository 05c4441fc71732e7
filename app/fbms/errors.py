"""
Error taxonomy shared by the services and the HTTP layer.

Services raise exactly one of these; `create_app()` registers a single
handler that renders them as JSON. Anything else is a 500.
"""
from __future__ import annotations

from enum import Enum


class DenyReason(str, Enum):
    ROLE_MISMATCH = "role-mismatch"
    SCOPE_MISMATCH = "scope-mismatch"
    SELF_ONLY = "self-only"
    INACTIVE = "inactive"


class AppError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]

    def to_dict(self) -> dict:
        out = super().to_dict()
        if len(self.errors) > 1:
            out["errors"] = self.errors
        return out


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class UserNotFound(NotFound):
    code = "user_not_found"

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str, reason: DenyReason = DenyReason.ROLE_MISMATCH):
        super().__init__(message)
        self.reason = reason

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["reason"] = self.reason.value
        return out


class Conflict(AppError):
    status_code = 409
    code = "conflict"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
