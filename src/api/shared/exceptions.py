"""
API Exception Classes

Raised by routers and middleware, or translated from core domain errors,
and rendered as ``{"error": {...}}`` bodies by the error handlers.
"""

from typing import Optional, List

from .error_codes import ErrorCode, get_status_code
from .responses import ErrorDetail


class APIException(Exception):
    """Base for every error the API renders itself; status follows the code."""

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
    """Rejected input. HTTP 400."""

    def __init__(
        self,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        trace_id: Optional[str] = None
    ):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details=details, trace_id=trace_id)


# Resources with their own not-found code
NOT_FOUND_CODES = {
    "Deal": ErrorCode.DEAL_NOT_FOUND,
    "Course": ErrorCode.COURSE_NOT_FOUND,
    "Lesson": ErrorCode.LESSON_NOT_FOUND,
    "Certificate": ErrorCode.CERTIFICATE_NOT_FOUND,
}


class NotFoundError(APIException):
    """
    Missing (or not visible to the caller) resource. HTTP 404.

    Deals, courses, lessons and certificates get a specific code; anything
    else is plain NOT_FOUND.
    """

    def __init__(
        self,
        resource: str,
        resource_id: Optional[str] = None,
        trace_id: Optional[str] = None
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"
        super().__init__(
            NOT_FOUND_CODES.get(resource, ErrorCode.NOT_FOUND), message, trace_id=trace_id
        )
        self.resource = resource
        self.resource_id = resource_id


class UnauthorizedError(APIException):
    """No valid session. HTTP 401."""

    def __init__(
        self,
        message: str = "Authentication required",
        trace_id: Optional[str] = None
    ):
        super().__init__(ErrorCode.UNAUTHORIZED, message, trace_id=trace_id)


class ForbiddenError(APIException):
    """Signed in, but the wrong kind of account (or a locked lesson). HTTP 403."""

    def __init__(
        self,
        message: str = "Permission denied",
        trace_id: Optional[str] = None
    ):
        super().__init__(ErrorCode.FORBIDDEN, message, trace_id=trace_id)


class ExternalServiceError(APIException):
    """The identity provider or provisioning function failed. HTTP 502."""

    def __init__(
        self,
        service: str,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        trace_id: Optional[str] = None
    ):
        super().__init__(
            code, message or f"External service '{service}' is unavailable", trace_id=trace_id
        )
        self.service = service


class StageUpdateError(APIException):
    """
    A deal stage write failed and the board was reverted. HTTP 409.

    The stage the deal was reverted to is reported as a detail on the
    ``stage`` field so clients can re-render the card in place.
    """

    def __init__(
        self,
        message: str,
        reverted_stage: Optional[str] = None,
        trace_id: Optional[str] = None
    ):
        details = None
        if reverted_stage:
            details = [ErrorDetail(field="stage", message=reverted_stage, code="reverted")]
        super().__init__(ErrorCode.STAGE_UPDATE_FAILED, message, details=details, trace_id=trace_id)
        self.reverted_stage = reverted_stage
