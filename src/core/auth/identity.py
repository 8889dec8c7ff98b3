"""
Identity Provider Client

HTTP client for the hosted identity service: reading the current user,
establishing sessions from invite tokens or authorization codes, password
updates, sign-out, admin user deletion and database procedure calls.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from ..config import ServiceConfig
from ..errors import IdentityError
from ..observability import create_span, inject_trace_context

logger = logging.getLogger(__name__)


@dataclass
class IdentityUser:
    """User record as returned by the identity provider."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def account_type(self) -> Optional[str]:
        return self.user_metadata.get("account_type")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IdentityUser":
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
        )


@dataclass
class AuthSession:
    access_token: str
    refresh_token: Optional[str]
    user: IdentityUser


class IdentityClient:
    """
    Thin async client over the identity provider's REST API.

    A new httpx.AsyncClient is opened per call; pass ``transport`` to route
    requests elsewhere (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ServiceConfig()
        self._transport = transport

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.config.api_key}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return inject_trace_context(headers)

    async def _request(
        self,
        method: str,
        path: str,
        bearer: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.config.identity_url}{path}"
        with create_span(f"identity {method} {path}", peer="identity"):
            try:
                async with httpx.AsyncClient(
                    timeout=self.config.timeout, transport=self._transport
                ) as client:
                    return await client.request(
                        method, url, headers=self._headers(bearer), json=json, params=params
                    )
            except httpx.HTTPError as e:
                logger.error(f"Identity provider unreachable ({method} {path}): {e}")
                raise IdentityError(f"Identity provider unreachable: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        raise IdentityError(_error_message(response, action), status_code=response.status_code)

    async def get_user(self, access_token: str) -> Optional[IdentityUser]:
        """User for an access token, or None when the token is not valid."""
        response = await self._request("GET", "/auth/v1/user", bearer=access_token)
        if response.status_code in (401, 403):
            return None
        self._raise_for_status(response, "Failed to load user")
        return IdentityUser.from_payload(response.json())

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        response = await self._request(
            "POST", "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        self._raise_for_status(response, "Failed to refresh session")
        return self._session_from(response.json())

    async def set_session(self, access_token: str, refresh_token: str) -> AuthSession:
        """
        Establish a session from an invite link's token pair.

        The access token is verified against the provider; an expired one is
        renewed with the refresh token.
        """
        user = await self.get_user(access_token)
        if user is not None:
            return AuthSession(access_token=access_token, refresh_token=refresh_token, user=user)
        logger.info("Access token rejected, refreshing session")
        return await self.refresh_session(refresh_token)

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> AuthSession:
        payload: Dict[str, Any] = {"auth_code": code}
        if code_verifier:
            payload["code_verifier"] = code_verifier
        response = await self._request(
            "POST", "/auth/v1/token", params={"grant_type": "pkce"}, json=payload
        )
        self._raise_for_status(response, "Failed to exchange code for session")
        return self._session_from(response.json())

    async def update_password(self, access_token: str, password: str) -> IdentityUser:
        response = await self._request(
            "PUT", "/auth/v1/user", bearer=access_token, json={"password": password}
        )
        self._raise_for_status(response, "Failed to update password")
        return IdentityUser.from_payload(response.json())

    async def sign_out(self, access_token: str) -> None:
        response = await self._request("POST", "/auth/v1/logout", bearer=access_token)
        if response.status_code == 401:
            return
        self._raise_for_status(response, "Failed to sign out")

    async def delete_user(self, user_id: str) -> None:
        """Admin deletion of an identity; uses the service role key."""
        response = await self._request(
            "DELETE", f"/auth/v1/admin/users/{user_id}", bearer=self.config.service_role_key
        )
        self._raise_for_status(response, "Failed to delete user")

    async def rpc(
        self, function: str, params: Dict[str, Any], access_token: Optional[str] = None
    ) -> Any:
        """Call a database procedure exposed by the provider."""
        response = await self._request(
            "POST", f"/rest/v1/rpc/{function}", bearer=access_token, json=params
        )
        self._raise_for_status(response, f"Procedure {function} failed")
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _session_from(payload: Dict[str, Any]) -> AuthSession:
        try:
            return AuthSession(
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token"),
                user=IdentityUser.from_payload(payload["user"]),
            )
        except (KeyError, TypeError) as e:
            raise IdentityError(f"Malformed session response: {e}") from e


def _error_message(response: httpx.Response, default: str) -> str:
    """Best message from a provider error body."""
    try:
        body = response.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    return body.get("msg") or body.get("error_description") or body.get("message") or default


# Singleton instance
_identity_client: Optional[IdentityClient] = None


def get_identity_client() -> IdentityClient:
    global _identity_client
    if _identity_client is None:
        _identity_client = IdentityClient()
    return _identity_client


def set_identity_client(client: Optional[IdentityClient]) -> None:
    """Replace the global client (used by tests)."""
    global _identity_client
    _identity_client = client
