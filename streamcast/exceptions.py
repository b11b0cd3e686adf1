"""
Error taxonomy for stream resolution and cast dispatch.

Every error carries a stable ``code`` and the HTTP status the API layer maps it to.
"""


class StreamCastError(Exception):
    """Base class for all stream/cast errors"""

    code = "STREAMCAST_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class NotFoundError(StreamCastError):
    """Entity is missing or not owned by the requesting user"""

    code = "NOT_FOUND"
    status_code = 404


class UnauthorizedError(StreamCastError):
    """Provider, server or hub credentials are missing or rejected"""

    code = "UNAUTHORIZED"
    status_code = 401


class UnsupportedCombinationError(StreamCastError):
    """Content type cannot be delivered to the requested target kind"""

    code = "UNSUPPORTED_COMBINATION"
    status_code = 400


class InvalidCastRequestError(StreamCastError):
    """Cast request lacks the content reference its content type needs"""

    code = "INVALID_CAST_REQUEST"
    status_code = 400


class UnavailableError(StreamCastError):
    """External dependency unreachable or timed out"""

    code = "UNAVAILABLE"
    status_code = 503
    retryable = True


class DispatchFailedError(StreamCastError):
    """External dependency was reached but rejected the request"""

    code = "DISPATCH_FAILED"
    status_code = 502

    def __init__(self, message: str, *, body: str | None = None, context: dict | None = None):
        super().__init__(message, context=context)
        self.body = body
        if body:
            self.context.setdefault("body", body[:500])


__all__ = [
    "StreamCastError",
    "NotFoundError",
    "UnauthorizedError",
    "UnsupportedCombinationError",
    "InvalidCastRequestError",
    "UnavailableError",
    "DispatchFailedError",
]
