"""
Linkup Backend - Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions, one per error kind the API reports.
How:   Each exception carries a human-readable message, a machine-readable
       code, the HTTP status and optional details. The API pipeline is the
       single place that turns them into failure envelopes.
Who:   Raised by services, the request context builder and the pipeline.

Exception Hierarchy:
    LinkupError (base)                      INTERNAL_ERROR        500
    ├── ValidationError                     VALIDATION_ERROR      400
    ├── InvalidPayloadError                 INVALID_PAYLOAD       400
    ├── InvalidImageURLError                INVALID_IMAGE_URL     400
    ├── UnauthorizedError                   UNAUTHORIZED          401
    ├── ForbiddenError                      FORBIDDEN             403
    ├── NotFoundError                       NOT_FOUND             404
    ├── DuplicateError                      DUPLICATE_ERROR       409
    ├── RateLimitExceededError              RATE_LIMIT_EXCEEDED   429
    └── DatabaseError                       INTERNAL_ERROR        500

`details` is client-facing context (e.g. per-field validation messages);
`context` is server-side only and ends up in logs, never in a response.
"""

from typing import Any, Dict, List, Optional


class LinkupError(Exception):
    """
    Base exception for all Linkup application errors.

    Attributes:
        message:     User-facing error description (safe to return)
        code:        Stable machine-readable error code
        status_code: HTTP status the pipeline responds with
        details:     Optional client-facing details
        context:     Debug info, logged but never returned
    """

    code = "INTERNAL_ERROR"
    status_code = 500
    # Details the client needs to fix its request; shown in every environment
    expose_details = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Any = None,
        context: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.details = details
        self.context = context or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(LinkupError):
    """
    Raised when client input fails validation rules.

    `errors` is the list of per-field messages; it becomes
    `details = {"errors": [...]}` in the response.
    """

    code = "VALIDATION_ERROR"
    status_code = 400
    expose_details = True

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[List[str]] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.errors = list(errors) if errors else [message]
        self.field = field
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, details={"errors": self.errors}, context=ctx)


class InvalidPayloadError(LinkupError):
    """Request body is not valid JSON, or not a JSON object."""

    code = "INVALID_PAYLOAD"
    status_code = 400

    def __init__(self, message: str = "Invalid payload", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class InvalidImageURLError(LinkupError):
    """An image URL failed the domain or extension allow-list."""

    code = "INVALID_IMAGE_URL"
    status_code = 400
    expose_details = True

    def __init__(self, url: str, reason: str):
        super().__init__(
            message=f"Invalid image URL: {reason}",
            details={"url": url, "reason": reason},
            context={"url": url},
        )
        self.url = url
        self.reason = reason


class UnauthorizedError(LinkupError):
    """Missing or invalid session where one is required, or bad credentials."""

    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Authentication required", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class ForbiddenError(LinkupError):
    """Authenticated, but the caller does not own the resource."""

    code = "FORBIDDEN"
    status_code = 403

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(LinkupError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into this
    exception so the pipeline can answer 404.
    """

    code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class DuplicateError(LinkupError):
    """A uniqueness constraint would be violated (e.g. email)."""

    code = "DUPLICATE_ERROR"
    status_code = 409

    def __init__(
        self,
        message: str = "Duplicate entry",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context, status_code=status_code)


class RateLimitExceededError(LinkupError):
    """
    Raised when a client exceeds the rate limit of a route class.

    Details carry limit, window (ms), remaining and resetTime (epoch ms).
    """

    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429
    expose_details = True

    def __init__(self, limit: int, window: int, remaining: int, reset_time: int, retry_after: int):
        super().__init__(
            message="Rate limit exceeded",
            details={
                "limit": limit,
                "window": window,
                "remaining": remaining,
                "resetTime": reset_time,
            },
        )
        self.limit = limit
        self.window = window
        self.remaining = remaining
        self.reset_time = reset_time
        self.retry_after = retry_after


class DatabaseError(LinkupError):
    """
    Raised when the persistence layer fails (connectivity, driver errors).

    The client only ever sees the generic message; driver details live in
    `context` and are logged server-side.
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
