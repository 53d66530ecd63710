"""
API Exception Classes

Custom exceptions that map to standard error responses, and the mapping
from domain errors onto them.
"""

from typing import List, Optional

from ...core import errors as domain
from .error_codes import ErrorCode, get_status_code
from .responses import ErrorDetail


class APIException(Exception):
    """
    Base exception for API errors.

    The error handler middleware will catch these and return
    standardized error responses.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        trace_id: Optional[str] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.trace_id = trace_id
        self.status_code = get_status_code(code)
        super().__init__(message)


class ValidationError(APIException):
    """
    Validation error for invalid request data.

    HTTP Status: 400
    """

    def __init__(
        self,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        trace_id: Optional[str] = None
    ):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
            trace_id=trace_id
        )


class UnauthorizedError(APIException):
    """
    Authentication required error.

    HTTP Status: 401
    """

    def __init__(
        self,
        message: str = "Authentication required",
        trace_id: Optional[str] = None
    ):
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message, trace_id=trace_id)


class ConflictError(APIException):
    """
    Conflict error (e.g., concurrent request with the same idempotency key).

    HTTP Status: 409
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFLICT,
        trace_id: Optional[str] = None
    ):
        super().__init__(code=code, message=message, trace_id=trace_id)


class StorageUnavailableError(APIException):
    """
    The durable store failed; nothing was accepted.

    HTTP Status: 503
    """

    def __init__(
        self,
        message: str = "Storage is unavailable, the request was not accepted",
        trace_id: Optional[str] = None
    ):
        super().__init__(code=ErrorCode.STORAGE_UNAVAILABLE, message=message, trace_id=trace_id)


def from_domain_error(exc: domain.NewsletterError) -> APIException:
    """Translate a domain error into its API counterpart."""
    if isinstance(exc, domain.ValidationError):
        details = [ErrorDetail(**detail) for detail in exc.details] or None
        return ValidationError(exc.message, details=details)
    if isinstance(exc, domain.IdempotencyConflictError):
        return ConflictError(str(exc), code=ErrorCode.IDEMPOTENCY_CONFLICT)
    if isinstance(exc, domain.ConflictError):
        return ConflictError(str(exc))
    if isinstance(exc, domain.StorageError):
        return StorageUnavailableError()
    return APIException(code=ErrorCode.INTERNAL_ERROR, message="An internal error occurred")
