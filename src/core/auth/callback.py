"""
Invite / sign-in callback handling.

An invitation link lands on the callback with either a token pair in the
URL fragment or an authorization code in the query. Both become a session;
provider errors send the user back to the login page with a message.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qsl, quote, urlsplit

from ..errors import IdentityError
from .identity import AuthSession, IdentityClient
from .session import LOGIN_PATH

logger = logging.getLogger(__name__)

DEFAULT_NEXT = "/auth/set-password"


@dataclass
class CallbackParams:
    query: Dict[str, str] = field(default_factory=dict)
    fragment: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_url(cls, url: str) -> "CallbackParams":
        parts = urlsplit(url)
        return cls(query=dict(parse_qsl(parts.query)), fragment=dict(parse_qsl(parts.fragment)))

    @classmethod
    def from_strings(cls, query: str = "", fragment: str = "") -> "CallbackParams":
        return cls(
            query=dict(parse_qsl(query.lstrip("?"))),
            fragment=dict(parse_qsl(fragment.lstrip("#"))),
        )


@dataclass
class CallbackOutcome:
    redirect_to: str
    session: Optional[AuthSession] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.session is not None and self.error is None


def safe_next(target: Optional[str]) -> str:
    """Only same-site absolute paths are followed."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return DEFAULT_NEXT
    return target


def login_redirect(message: str) -> str:
    return f"{LOGIN_PATH}?error={quote(message)}"


def _failure(message: str) -> CallbackOutcome:
    return CallbackOutcome(redirect_to=login_redirect(message), error=message)


async def handle_callback(params: CallbackParams, identity: IdentityClient) -> CallbackOutcome:
    """
    Turn callback parameters into a session.

    Order: fragment error, query error, fragment token pair, query code.
    Anything else has no authentication data and fails.
    """
    next_path = safe_next(params.query.get("next"))

    for source in (params.fragment, params.query):
        if source.get("error"):
            message = source.get("error_description") or source["error"]
            logger.warning(f"Auth callback returned error: {source['error']} ({message})")
            return _failure(message)

    access_token = params.fragment.get("access_token")
    refresh_token = params.fragment.get("refresh_token")
    if access_token and refresh_token:
        try:
            session = await identity.set_session(access_token, refresh_token)
        except IdentityError as e:
            logger.error(f"Failed to set session from invite tokens: {e}")
            return _failure("Failed to authenticate. Please try again.")
        logger.info(f"Session established from invite tokens for user {session.user.id}")
        return CallbackOutcome(redirect_to=next_path, session=session)

    code = params.query.get("code")
    if code:
        try:
            session = await identity.exchange_code(code, params.query.get("code_verifier"))
        except IdentityError as e:
            logger.error(f"Failed to exchange code for session: {e}")
            return _failure("Failed to authenticate. Please try again.")
        logger.info(f"Session established from code for user {session.user.id}")
        return CallbackOutcome(redirect_to=next_path, session=session)

    return _failure("No authentication data found.")
