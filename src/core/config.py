"""
Service configuration for the remote collaborators (identity provider and
provisioning function), read from environment variables.
"""

import os
from typing import Optional


class ServiceConfig:
    """Endpoints and credentials for the HTTP collaborators."""

    def __init__(
        self,
        identity_url: Optional[str] = None,
        functions_url: Optional[str] = None,
        api_key: Optional[str] = None,
        service_role_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.identity_url = (identity_url or os.getenv("IDENTITY_URL", "http://localhost:54321")).rstrip("/")
        self.functions_url = (
            functions_url or os.getenv("FUNCTIONS_URL", f"{self.identity_url}/functions/v1")
        ).rstrip("/")
        self.api_key = api_key or os.getenv("SERVICE_API_KEY", "")
        self.service_role_key = service_role_key or os.getenv("SERVICE_ROLE_KEY", "")
        self.timeout = timeout or float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    def __repr__(self) -> str:
        return f"ServiceConfig(identity={self.identity_url}, functions={self.functions_url})"


def is_auth_required() -> bool:
    """Check if authentication is required."""
    return os.getenv("AUTH_REQUIRED", "true").lower() == "true"
