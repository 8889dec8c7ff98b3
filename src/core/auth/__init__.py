"""
Authentication Module

Identity provider client, per-request session context, the invite callback
and password setting.

Usage:
    from src.core.auth import get_identity_client, load_session_context

Configuration:
    IDENTITY_URL - Identity provider base URL
    SERVICE_API_KEY - Public API key sent with every request
    SERVICE_ROLE_KEY - Key used for admin operations (user deletion)
    AUTH_REQUIRED=true/false - Enable/disable auth requirement (default: true)
"""

from .identity import (
    AuthSession,
    IdentityClient,
    IdentityUser,
    get_identity_client,
    set_identity_client,
)
from .session import (
    SessionContext,
    SESSION_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    extract_access_token,
    guard_route,
    is_guarded_path,
    load_session_context,
)
from .callback import (
    CallbackOutcome,
    CallbackParams,
    DEFAULT_NEXT,
    handle_callback,
)
from .passwords import (
    change_password,
    password_problem,
    set_password,
    validate_password,
)

__all__ = [
    # Identity
    "AuthSession",
    "IdentityClient",
    "IdentityUser",
    "get_identity_client",
    "set_identity_client",
    # Session
    "SessionContext",
    "SESSION_COOKIE_NAME",
    "REFRESH_COOKIE_NAME",
    "extract_access_token",
    "guard_route",
    "is_guarded_path",
    "load_session_context",
    # Callback
    "CallbackOutcome",
    "CallbackParams",
    "DEFAULT_NEXT",
    "handle_callback",
    # Passwords
    "change_password",
    "password_problem",
    "set_password",
    "validate_password",
]
