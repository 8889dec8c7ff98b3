"""
Shared API Utilities

Common responses, errors, and middleware for all portal endpoints.
"""

from .responses import (
    ResponseMeta,
    SuccessResponse,
    ListMeta,
    ListResponse,
    ErrorDetail,
    ErrorBody,
    ErrorResponse,
)

from .error_codes import (
    ErrorCode,
    get_status_code,
)

from .exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ExternalServiceError,
    StageUpdateError,
)

from .middleware import (
    register_error_handlers,
    translate_domain_error,
    TraceMiddleware,
    SessionMiddleware,
    get_session,
    get_trace_id,
    require_admin,
    require_partner,
    require_session,
)

__all__ = [
    # Responses
    "ResponseMeta",
    "SuccessResponse",
    "ListMeta",
    "ListResponse",
    "ErrorDetail",
    "ErrorBody",
    "ErrorResponse",
    # Error codes
    "ErrorCode",
    "get_status_code",
    # Exceptions
    "APIException",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ExternalServiceError",
    "StageUpdateError",
    # Middleware
    "register_error_handlers",
    "translate_domain_error",
    "TraceMiddleware",
    "SessionMiddleware",
    "get_session",
    "get_trace_id",
    "require_admin",
    "require_partner",
    "require_session",
]
