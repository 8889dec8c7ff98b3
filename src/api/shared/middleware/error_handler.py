"""
Global Error Handlers

Catches exceptions and returns standardized error responses. Domain errors
raised by the core services are translated to their API counterparts here,
so routers can let them propagate.
"""

import logging
import traceback

from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ....core.errors import (
    AccessDenied,
    IdentityError,
    NotFound,
    PortalError,
    ProvisioningError,
    StageCommitError,
)
from ....core.observability.logging import current_trace_id
from ..exceptions import (
    APIException,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    StageUpdateError,
    UnauthorizedError,
    ValidationError,
)
from ..responses import ErrorBody, ErrorDetail
from ..error_codes import ErrorCode

logger = logging.getLogger(__name__)


def translate_domain_error(exc: PortalError) -> APIException:
    """Map a core domain error onto the API exception hierarchy."""
    if isinstance(exc, NotFound):
        return NotFoundError(exc.resource, exc.identifier)
    if isinstance(exc, StageCommitError):
        return StageUpdateError(str(exc), reverted_stage=exc.reverted_stage)
    if isinstance(exc, AccessDenied):
        return ForbiddenError(str(exc) or "Permission denied")
    if isinstance(exc, IdentityError):
        if exc.status_code in (401, 403):
            return UnauthorizedError(str(exc))
        if exc.status_code and 400 <= exc.status_code < 500:
            return ValidationError(str(exc))
        return ExternalServiceError("identity", str(exc), code=ErrorCode.IDENTITY_ERROR)
    if isinstance(exc, ProvisioningError):
        if exc.status_code and 400 <= exc.status_code < 500:
            return ValidationError(str(exc))
        return ExternalServiceError("provisioning", str(exc), code=ErrorCode.PROVISIONING_ERROR)
    return APIException(ErrorCode.INTERNAL_ERROR, str(exc))


def _error_response(exc: APIException) -> JSONResponse:
    error_body = ErrorBody(
        code=exc.code.value if isinstance(exc.code, ErrorCode) else str(exc.code),
        message=exc.message,
        details=exc.details,
        trace_id=exc.trace_id or current_trace_id()
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error_body.model_dump(mode="json")}
    )


def register_error_handlers(app: FastAPI):
    """
    Register all error handlers on the FastAPI app.

    This function sets up exception handlers for:
    - APIException (custom API errors)
    - PortalError (core domain errors, translated)
    - ValueError (input rejected by a core service)
    - RequestValidationError (FastAPI validation)
    - Generic Exception (catch-all for unexpected errors)
    """

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        """Handle custom API exceptions."""
        logger.warning(
            f"API Error: {exc.code} - {exc.message}",
            extra={"error_code": str(exc.code), "path": request.url.path}
        )
        return _error_response(exc)

    @app.exception_handler(PortalError)
    async def domain_exception_handler(request: Request, exc: PortalError):
        """Handle domain errors raised by core services."""
        api_exc = translate_domain_error(exc)
        logger.warning(
            f"{type(exc).__name__}: {exc}",
            extra={"error_code": str(api_exc.code), "path": request.url.path}
        )
        return _error_response(api_exc)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle input rejected by a core service."""
        logger.warning(f"Rejected input: {exc}", extra={"path": request.url.path})
        return _error_response(ValidationError(str(exc)))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle FastAPI validation errors."""
        details = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            details.append(ErrorDetail(
                field=field,
                message=error["msg"],
                code=error["type"]
            ))

        logger.warning(
            f"Validation Error: {len(details)} field(s)",
            extra={
                "path": request.url.path,
                "errors": [d.model_dump() for d in details]
            }
        )

        return _error_response(ValidationError("Request validation failed", details=details))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            f"Unhandled Exception: {type(exc).__name__}: {exc}",
            extra={
                "path": request.url.path,
                "traceback": traceback.format_exc()
            }
        )

        # Don't expose internal details
        return _error_response(APIException(ErrorCode.INTERNAL_ERROR, "An internal error occurred"))
