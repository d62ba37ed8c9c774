"""
Application errors
Services raise these; the handlers in wingside.main turn them into JSON responses
"""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    status_code = 400


class Unauthorized(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Any = None):
        super().__init__(message, details=details)


class Forbidden(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden", details: Any = None):
        super().__init__(message, details=details)


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class RateLimited(AppError):
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later."):
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after


class GatewayError(AppError):
    """Upstream payment provider failed or rejected the request"""
    status_code = 502


class ServiceUnavailable(AppError):
    status_code = 503
