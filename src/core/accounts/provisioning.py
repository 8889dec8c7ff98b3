"""
Account Provisioning

Creates partner and admin accounts through the provisioning function. The
function creates the identity, the partner/admin row and (for partners) the
organization, then sends the invitation email.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from ..config import ServiceConfig
from ..errors import ProvisioningError
from ..observability import create_span, inject_trace_context
from .tiers import OrganizationForm

logger = logging.getLogger(__name__)

PROVISIONING_FUNCTION = "create-partner"
_EMAIL = re.compile(r"\S+@\S+\.\S+")


class AccountType(str, Enum):
    PARTNER = "partner"
    ADMIN = "admin"


@dataclass
class AccountRequest:
    email: str
    first_name: str
    last_name: str
    account_type: AccountType = AccountType.PARTNER
    phone: Optional[str] = None
    organization: Optional[OrganizationForm] = None

    def validate(self) -> None:
        """Raise ValueError on the first missing or malformed field."""
        if not self.first_name.strip():
            raise ValueError("First name is required")
        if not self.last_name.strip():
            raise ValueError("Last name is required")
        if not self.email.strip():
            raise ValueError("Email is required")
        if not _EMAIL.fullmatch(self.email.strip()):
            raise ValueError("Invalid email format")
        if AccountType(self.account_type) == AccountType.PARTNER:
            if self.organization is None or not self.organization.name.strip():
                raise ValueError("Organization name is required")

    def to_payload(self) -> Dict[str, Any]:
        account_type = AccountType(self.account_type)
        return {
            "email": self.email.strip(),
            "first_name": self.first_name.strip(),
            "last_name": self.last_name.strip(),
            "phone": (self.phone or "").strip() or None,
            "account_type": account_type.value,
            "organization": (
                self.organization.to_payload()
                if account_type == AccountType.PARTNER and self.organization
                else None
            ),
        }


class ProvisioningClient:
    """Calls the provisioning function over HTTP."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ServiceConfig()
        self._transport = transport

    async def provision_account(
        self, request: AccountRequest, access_token: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Provision an account and send its invitation.

        Args:
            request: Account details
            access_token: Caller's token; falls back to the service role key

        Raises:
            ValueError: Invalid request
            ProvisioningError: Function unreachable or returned an error
        """
        request.validate()
        payload = request.to_payload()
        url = f"{self.config.functions_url}/{PROVISIONING_FUNCTION}"
        headers = inject_trace_context({
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {access_token or self.config.service_role_key}",
        })

        with create_span(
            "provisioning.create_account", {"account_type": payload["account_type"]}, peer="provisioning"
        ):
            try:
                async with httpx.AsyncClient(
                    timeout=self.config.timeout, transport=self._transport
                ) as client:
                    response = await client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as e:
                logger.error(f"Provisioning function unreachable: {e}")
                raise ProvisioningError(f"Provisioning function unreachable: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.error(
                f"Provisioning failed for {payload['email']}: {response.status_code} {message}"
            )
            raise ProvisioningError(message, status_code=response.status_code)

        logger.info(f"Provisioned {payload['account_type']} account for {payload['email']}")
        if not response.content:
            return {}
        return response.json()


def _error_message(response: httpx.Response) -> str:
    default = "Failed to create account. Please try again."
    try:
        body = response.json()
    except ValueError:
        return response.text or default
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or default
    return default


# Singleton instance
_provisioning_client: Optional[ProvisioningClient] = None


def get_provisioning_client() -> ProvisioningClient:
    global _provisioning_client
    if _provisioning_client is None:
        _provisioning_client = ProvisioningClient()
    return _provisioning_client


def set_provisioning_client(client: Optional[ProvisioningClient]) -> None:
    global _provisioning_client
    _provisioning_client = client
