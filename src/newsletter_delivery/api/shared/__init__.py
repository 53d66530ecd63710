"""
Shared API Utilities

Common responses, error codes, exceptions and middleware.
"""

from .responses import (
    ListMeta,
    ListResponse,
    ErrorDetail,
    ErrorBody,
)

from .error_codes import (
    ErrorCode,
    get_status_code,
    is_client_error,
)

from .exceptions import (
    APIException,
    ValidationError,
    UnauthorizedError,
    ConflictError,
    StorageUnavailableError,
    from_domain_error,
)

from .middleware import register_error_handlers

__all__ = [
    "ListMeta",
    "ListResponse",
    "ErrorDetail",
    "ErrorBody",
    "ErrorCode",
    "get_status_code",
    "is_client_error",
    "APIException",
    "ValidationError",
    "UnauthorizedError",
    "ConflictError",
    "StorageUnavailableError",
    "from_domain_error",
    "register_error_handlers",
]
