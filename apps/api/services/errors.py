"""API error taxonomy shared by services and routers."""

from typing import Any, Optional


class ApiError(Exception):
    """Base error rendered into the error envelope by the app exception handler."""

    status_code = 500
    code = "internal"
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[Any]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class InvalidArgument(ApiError):
    status_code = 400
    code = "invalid_argument"
    default_message = "Invalid request"


class Unauthenticated(ApiError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Access denied. No token provided"


class InvalidToken(ApiError):
    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired token"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to perform this action"


class NotFound(ApiError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class NotFoundOrUnauthorized(ApiError):
    """Missing resource and foreign ownership are reported identically."""

    status_code = 404
    code = "not_found_or_unauthorized"
    default_message = "Resource not found or you are not authorized to modify it"


class Conflict(ApiError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class RateLimited(ApiError):
    status_code = 429
    code = "rate_limited"
    default_message = "Rate limit exceeded. Try again later."


class UploadFailed(ApiError):
    status_code = 500
    code = "upload_failed"
    default_message = "Media upload failed"


class Internal(ApiError):
    status_code = 500
    code = "internal"
