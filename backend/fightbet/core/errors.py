"""Domain errors raised by the services and mapped to HTTP responses in main.py."""
from datetime import datetime, timezone
from math import ceil
from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.extra}


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid request", errors: Optional[list] = None):
        super().__init__(message, errors=errors or [])
        self.errors = errors or []


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientFundsError(AppError):
    status_code = 400
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, message: str = "Insufficient balance"):
        super().__init__(message)


class InvalidStateError(AppError):
    status_code = 409
    code = "INVALID_STATE"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, remaining: int, limit: int, reset_time: datetime):
        self.remaining = remaining
        self.limit = limit
        self.reset_time = reset_time
        super().__init__(message)

    @property
    def retry_after(self) -> int:
        seconds = (self.reset_time - datetime.now(timezone.utc)).total_seconds()
        return max(0, ceil(seconds))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["rate_limit"] = {
            "remaining": self.remaining,
            "limit": self.limit,
            "reset_time": self.reset_time.isoformat(),
            "retry_after": self.retry_after,
        }
        return data
