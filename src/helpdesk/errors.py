"""Application error taxonomy.

Each error carries a machine-readable ``code`` and the HTTP status it maps
to. The API layer renders them as::

    {"error": {"code": "not_found", "message": "tenant not found"}}
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that are safe to report to API callers."""

    code: str = "internal"
    status_code: int = 500

    def __init__(self, message: str, *, headers: dict[str, str] | None = None) -> None:
        self.message = message
        self.headers = headers
        super().__init__(message)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"error": {"code": self.code, "message": self.message}}


class InvalidInputError(AppError):
    """Malformed or missing request data (including tenant identification)."""

    code = "invalid_input"
    status_code = 400


class UnauthorizedError(AppError):
    """Bad, expired, revoked, or cross-tenant credentials."""

    code = "unauthorized"
    status_code = 401


class ForbiddenError(AppError):
    """Caller is identified but not allowed (e.g. tenant inactive)."""

    code = "forbidden"
    status_code = 403


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class RateLimitedError(AppError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, message: str, *, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(message, headers={"Retry-After": str(retry_after)})


class InternalError(AppError):
    """Store or infrastructure failure. Always aborts the request."""

    code = "internal"
    status_code = 500


class ExternalServiceError(AppError):
    """The ticketing provider failed or returned an unusable response."""

    code = "external_service"
    status_code = 502
