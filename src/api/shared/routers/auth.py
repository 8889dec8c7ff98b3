"""
Authentication API Endpoints

Invite callback, password setting, session inspection and logout. Sign-in
itself happens against the identity provider; this service only consumes
the resulting tokens.
"""

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from ....core.auth import (
    AuthSession,
    CallbackParams,
    SessionContext,
    SESSION_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    get_identity_client,
    guard_route,
    handle_callback,
    set_password,
)
from ....core.auth.session import PARTNER_HOME
from ....core.errors import IdentityError
from ..exceptions import UnauthorizedError
from ..middleware.auth import get_session, require_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class CallbackRequest(BaseModel):
    """Callback parameters forwarded by the browser (the fragment never reaches the server)."""
    query: str = ""
    fragment: str = ""


class CallbackResponse(BaseModel):
    ok: bool
    redirect_to: str
    error: Optional[str] = None


class SetPasswordRequest(BaseModel):
    password: str
    confirm_password: str


class SetPasswordResponse(BaseModel):
    message: str
    redirect_to: str


class LogoutResponse(BaseModel):
    message: str


def _set_session_cookies(response: Response, session: AuthSession) -> None:
    secure = os.getenv("COOKIE_SECURE", "false").lower() == "true"
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session.access_token,
        httponly=True,
        secure=secure,
        samesite="lax",
    )
    if session.refresh_token:
        response.set_cookie(
            key=REFRESH_COOKIE_NAME,
            value=session.refresh_token,
            httponly=True,
            secure=secure,
            samesite="lax",
        )


@router.get("/callback")
async def callback_redirect(request: Request):
    """
    Invite/sign-in landing for the code flow.

    Redirects to the ``next`` target on success, or to the login page with
    an error message.
    """
    outcome = await handle_callback(
        CallbackParams.from_strings(query=request.url.query), get_identity_client()
    )
    response = RedirectResponse(outcome.redirect_to, status_code=303)
    if outcome.ok:
        _set_session_cookies(response, outcome.session)
    return response


@router.post("/callback", response_model=CallbackResponse)
async def callback(body: CallbackRequest, response: Response):
    """Same as the GET callback, for token pairs carried in the URL fragment."""
    outcome = await handle_callback(
        CallbackParams.from_strings(query=body.query, fragment=body.fragment),
        get_identity_client()
    )
    if outcome.ok:
        _set_session_cookies(response, outcome.session)
    return CallbackResponse(ok=outcome.ok, redirect_to=outcome.redirect_to, error=outcome.error)


@router.post("/set-password", response_model=SetPasswordResponse)
async def set_password_endpoint(
    body: SetPasswordRequest,
    session: SessionContext = Depends(require_session),
):
    """
    Set the invited user's password.

    Partner accounts are activated afterwards; activation problems are
    logged and do not fail the request.
    """
    if not session.access_token:
        raise UnauthorizedError("A signed-in session is required to set a password")

    await set_password(
        get_identity_client(), session.access_token, body.password, body.confirm_password
    )
    return SetPasswordResponse(message="Password updated", redirect_to=PARTNER_HOME)


@router.get("/me")
async def get_current_user(session: SessionContext = Depends(require_session)):
    """The current session: user, admin flag and partner summary."""
    return session.to_dict()


@router.get("/route-check")
async def route_check(path: str, session: SessionContext = Depends(get_session)):
    """Where the route guard would send this session for a page path (null = allowed)."""
    return {"path": path, "redirect_to": guard_route(path, session)}


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response, session: SessionContext = Depends(get_session)):
    """Sign out with the identity provider and clear the session cookies."""
    if session.access_token:
        try:
            await get_identity_client().sign_out(session.access_token)
        except IdentityError as e:
            logger.warning(f"Identity sign-out failed, clearing cookies anyway: {e}")

    response.delete_cookie(SESSION_COOKIE_NAME)
    response.delete_cookie(REFRESH_COOKIE_NAME)
    return LogoutResponse(message="Logged out successfully")
