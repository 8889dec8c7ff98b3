"""
Session Middleware

Resolves the caller's session once per request (identity user, admin row,
partner row) and stores it on request.state.session. Page requests under
/dashboard and /admin are redirected by the route guard.
"""

import logging
from typing import Callable

from fastapi import Depends, Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ....core.auth.identity import IdentityUser, get_identity_client
from ....core.auth.session import (
    SessionContext,
    extract_access_token,
    guard_route,
    is_guarded_path,
    load_session_context,
)
from ....core.config import is_auth_required
from ....core.database.adapter import get_database
from ....core.errors import IdentityError
from ..exceptions import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

# Paths that never need a session
PUBLIC_PATHS = {
    "/health",
    "/health/live",
    "/health/ready",
    "/docs",
    "/openapi.json",
    "/redoc",
}

PUBLIC_PREFIXES = [
    "/docs",
    "/redoc",
    "/api/auth/callback",
    "/api/certificates/",
]


def is_public_path(path: str) -> bool:
    """Check if a path is public (doesn't require a session)."""
    if path in PUBLIC_PATHS:
        return True
    return any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Skips public paths
    2. Builds a development session when AUTH_REQUIRED=false
    3. Otherwise resolves the bearer token / session cookie
    4. Redirects guarded page requests per the route guard
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.session = SessionContext.anonymous()
        path = request.url.path

        if is_public_path(path):
            return await call_next(request)

        if not is_auth_required():
            request.state.session = _create_dev_session()
        else:
            token = extract_access_token(request.headers, request.cookies)
            if token:
                try:
                    request.state.session = await load_session_context(
                        token, get_identity_client(), await get_database()
                    )
                except IdentityError as e:
                    # Treated as signed out; endpoints answer 401
                    logger.warning(f"Could not resolve session: {e}")

        if is_guarded_path(path):
            target = guard_route(path, request.state.session)
            if target:
                logger.info(f"Route guard: {path} -> {target}")
                return RedirectResponse(target, status_code=303)

        return await call_next(request)


def _create_dev_session() -> SessionContext:
    """Admin session used when authentication is disabled."""
    user = IdentityUser(
        id="00000000-0000-0000-0000-000000000001",
        email="dev@prm.local",
        user_metadata={"account_type": "admin"},
    )
    admin = {
        "id": "00000000-0000-0000-0000-000000000001",
        "auth_user_id": user.id,
        "first_name": "Development",
        "last_name": "User",
        "email": user.email,
    }
    return SessionContext(user=user, admin=admin)


def get_session(request: Request) -> SessionContext:
    """The session resolved by SessionMiddleware (anonymous if absent)."""
    return getattr(request.state, "session", None) or SessionContext.anonymous()


def require_session(session: SessionContext = Depends(get_session)) -> SessionContext:
    """Require an authenticated caller."""
    if not session.is_authenticated:
        raise UnauthorizedError()
    return session


def require_partner(session: SessionContext = Depends(require_session)) -> SessionContext:
    """Require a caller with a partner record."""
    if not session.is_partner:
        raise ForbiddenError("Partner account required")
    return session


def require_admin(session: SessionContext = Depends(require_session)) -> SessionContext:
    """Require a caller with an admin record."""
    if not session.is_admin:
        raise ForbiddenError("Admin access required")
    return session
