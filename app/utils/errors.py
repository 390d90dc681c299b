from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Domain error rendered by the error handlers as `{"success": false, "error": {...}}`."""

    def __init__(self, code: str, message: str, status: int = 400, details: Any | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details

    def __repr__(self) -> str:
        return f"ApiError(code={self.code!r}, message={self.message!r}, status={self.status!r})"


def validation_error(message: str, details: Any | None = None) -> ApiError:
    return ApiError("VALIDATION_ERROR", message, status=400, details=details)


def not_found(message: str, details: Any | None = None) -> ApiError:
    return ApiError("NOT_FOUND", message, status=404, details=details)


def no_scheduled_date(details: Any | None = None) -> ApiError:
    return ApiError("NO_SCHEDULED_DATE", "No scheduled date found for this training item", status=409, details=details)


def read_only(message: str = "Awards are read-only", details: Any | None = None) -> ApiError:
    return ApiError("READ_ONLY", message, status=403, details=details)


def level_locked(message: str, details: Any | None = None) -> ApiError:
    return ApiError("LEVEL_LOCKED", message, status=409, details=details)
