"""
Standard Error Codes

Error codes returned in the ``error.code`` field of every failed portal
response, with their HTTP status.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """API error codes."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Portal resources
    DEAL_NOT_FOUND = "DEAL_NOT_FOUND"
    COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
    LESSON_NOT_FOUND = "LESSON_NOT_FOUND"
    CERTIFICATE_NOT_FOUND = "CERTIFICATE_NOT_FOUND"
    STAGE_UPDATE_FAILED = "STAGE_UPDATE_FAILED"

    # Server and collaborator errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    IDENTITY_ERROR = "IDENTITY_ERROR"
    PROVISIONING_ERROR = "PROVISIONING_ERROR"


ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DEAL_NOT_FOUND: 404,
    ErrorCode.COURSE_NOT_FOUND: 404,
    ErrorCode.LESSON_NOT_FOUND: 404,
    ErrorCode.CERTIFICATE_NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.STAGE_UPDATE_FAILED: 409,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.IDENTITY_ERROR: 502,
    ErrorCode.PROVISIONING_ERROR: 502,
}


def get_status_code(error_code: ErrorCode) -> int:
    """HTTP status for an error code; unmapped codes are 500."""
    return ERROR_STATUS_CODES.get(error_code, 500)
