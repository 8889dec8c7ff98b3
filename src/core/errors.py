"""
Core domain errors.

Raised by the services under src/core and translated to HTTP errors by the
API layer. Plain input problems are raised as ValueError.
"""

from typing import Optional


class PortalError(Exception):
    """Base class for domain errors."""


class NotFound(PortalError):
    """A requested record does not exist (or is not visible to the caller)."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} not found: {identifier}"
        super().__init__(message)


class StageCommitError(PortalError):
    """A stage write failed or touched no rows; local state was reverted."""

    def __init__(self, deal_id: str, message: str, reverted_stage: Optional[str] = None):
        self.deal_id = deal_id
        self.reverted_stage = reverted_stage
        super().__init__(message)


class IdentityError(PortalError):
    """The identity provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ProvisioningError(PortalError):
    """The account provisioning function failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class AccessDenied(PortalError):
    """The caller may not perform this action (e.g. a locked lesson)."""
