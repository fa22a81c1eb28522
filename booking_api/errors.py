"""
Error kinds raised by the booking core.

Each error carries the HTTP status and machine-readable code it is rendered
with, so services raise and the app-level handler turns them into
``jerror`` payloads.
"""


class ApiError(Exception):
    status = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: str | None = None, details=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details


class BookingValidationError(ApiError):
    status = 422
    code = "VALIDATION_ERROR"


class ConflictError(ApiError):
    status = 409
    code = "CONFLICT"


class NotFoundError(ApiError):
    status = 404
    code = "NOT_FOUND"


class AuthorizationError(ApiError):
    status = 403
    code = "FORBIDDEN"


class AuthenticationError(AuthorizationError):
    status = 401
    code = "UNAUTHORIZED"


class InternalError(ApiError):
    status = 500
    code = "INTERNAL_ERROR"
