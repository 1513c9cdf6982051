"""
Greenlight — Custom Exception Hierarchy
========================================

What:  Application-specific exceptions, each bound to one HTTP status.
How:   Services and routes raise these; the global handlers registered in
       ``greenlight.main`` turn them into ``{"error": ..., "request_id": ...}``
       JSON bodies. ``context`` is logged server-side only.

Exception Hierarchy:
    GreenlightError (base)              → 500
    ├── BadRequestError                 → 400 malformed body / bad JSON types
    ├── NotFoundError                   → 404 unknown route or record
    ├── EditConflictError               → 409 optimistic-lock version mismatch
    ├── FailedValidationError           → 422 field → message map
    ├── RateLimitExceededError          → 429
    └── DatabaseError                   → 500 query failed or timed out
"""

from typing import Any, Dict, Optional, Union

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
NOT_FOUND_MESSAGE = "the requested resource could not be found"
EDIT_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"
RATE_LIMIT_MESSAGE = "rate limit exceeded"


def error_payload(error: Union[str, Dict[str, str]], request_id: str = "") -> Dict[str, Any]:
    """The single JSON error body shape shared by handlers and middleware."""
    return {"error": error, "request_id": request_id}


class GreenlightError(Exception):
    """
    Base exception for all Greenlight application errors.

    Attributes:
        message:  Client-safe description, returned in the response body.
        context:  Debug details, logged but never returned.
    """

    status_code = 500

    def __init__(
        self,
        message: str = SERVER_ERROR_MESSAGE,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class BadRequestError(GreenlightError):
    """
    The request body could not be decoded into the expected shape.

    Example response:
        {"error": "body contains unknown key \\"rating\\"", "request_id": "a1b2c3d4"}
    """

    status_code = 400

    def __init__(
        self,
        message: str = "bad request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(GreenlightError):
    """
    A record or route does not exist.

    The message is deliberately identical for both cases; ``resource`` and
    ``resource_id`` only land in the log context.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=NOT_FOUND_MESSAGE, context=ctx)


class EditConflictError(GreenlightError):
    """
    The record changed between read and write.

    Raised when the ``X-Expected-Version`` header does not match the stored
    version, or when ``UPDATE ... WHERE id = :id AND version = :version``
    matches no row.
    """

    status_code = 409

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message=EDIT_CONFLICT_MESSAGE, context=context)


class FailedValidationError(GreenlightError):
    """
    Business-rule validation failed for one or more fields.

    Example response:
        {"error": {"year": "must not be in the future"}, "request_id": "a1b2c3d4"}
    """

    status_code = 422

    def __init__(
        self,
        errors: Dict[str, str],
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message="validation failed", context=context)
        self.errors = dict(errors)


class RateLimitExceededError(GreenlightError):
    """Client exhausted its token bucket; ``retry_after`` is in whole seconds."""

    status_code = 429

    def __init__(
        self,
        retry_after: int = 1,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=RATE_LIMIT_MESSAGE, context=ctx)
        self.retry_after = retry_after


class DatabaseError(GreenlightError):
    """
    A database operation failed unexpectedly or exceeded DB_QUERY_TIMEOUT.

    The client always sees the generic server-error message; the underlying
    exception type and identifiers go to the log.
    """

    status_code = 500

    def __init__(
        self,
        message: str = SERVER_ERROR_MESSAGE,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
