"""
Session Context

The authenticated user's identity, admin record and partner record,
resolved once per request at the access boundary and handed to handlers.
Also the route guard for the /dashboard and /admin areas.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..database.adapter import DatabaseAdapter
from .identity import IdentityClient, IdentityUser

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "prm_access_token"
REFRESH_COOKIE_NAME = "prm_refresh_token"

LOGIN_PATH = "/auth/login"
PARTNER_HOME = "/dashboard"
ADMIN_HOME = "/admin"


@dataclass
class SessionContext:
    """Who is calling. Computed once per request."""
    user: Optional[IdentityUser] = None
    admin: Optional[Dict[str, Any]] = None
    partner: Optional[Dict[str, Any]] = None
    access_token: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        # A matching admins row is the only admin signal
        return self.admin is not None

    @property
    def is_partner(self) -> bool:
        return self.partner is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def partner_id(self) -> Optional[str]:
        return self.partner["id"] if self.partner else None

    @property
    def partner_tier(self) -> str:
        if self.partner and self.partner.get("tier"):
            return self.partner["tier"]
        return "bronze"

    @property
    def display_name(self) -> Optional[str]:
        record = self.partner or self.admin
        if record:
            return f"{record.get('first_name') or ''} {record.get('last_name') or ''}".strip()
        return self.user.email if self.user else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authenticated": self.is_authenticated,
            "user_id": self.user_id,
            "email": self.user.email if self.user else None,
            "is_admin": self.is_admin,
            "is_partner": self.is_partner,
            "partner_id": self.partner_id,
            "tier": self.partner_tier if self.is_partner else None,
            "name": self.display_name,
        }


def extract_access_token(
    headers: Mapping[str, str], cookies: Mapping[str, str]
) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    authorization = headers.get("authorization") or ""
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return cookies.get(SESSION_COOKIE_NAME) or None


async def load_session_context(
    access_token: Optional[str],
    identity: IdentityClient,
    db: DatabaseAdapter,
) -> SessionContext:
    """Resolve the user behind a token plus their admin/partner records."""
    if not access_token:
        return SessionContext.anonymous()

    user = await identity.get_user(access_token)
    if user is None:
        return SessionContext.anonymous()

    admin = await db.fetchrow("SELECT * FROM admins WHERE auth_user_id = $1", user.id)
    partner = await db.fetchrow(
        """
        SELECT p.*, o.name AS organization_name, o.tier AS tier, o.type AS organization_type,
               o.discount_percentage, o.mdf_allocation
        FROM partners p
        LEFT JOIN organizations o ON o.id = p.organization_id
        WHERE p.auth_user_id = $1
        """,
        user.id
    )
    return SessionContext(user=user, admin=admin, partner=partner, access_token=access_token)


def _in_area(path: str, root: str) -> bool:
    return path == root or path.startswith(root + "/")


def is_guarded_path(path: str) -> bool:
    return _in_area(path, PARTNER_HOME) or _in_area(path, ADMIN_HOME)


def guard_route(path: str, session: SessionContext) -> Optional[str]:
    """
    Redirect target for a page request, or None to let it through.

    - unauthenticated sessions go to the login page
    - admins asking for exactly /dashboard go to /admin
    - non-admins asking for anything under /admin go to /dashboard
    """
    if not is_guarded_path(path):
        return None
    if not session.is_authenticated:
        return LOGIN_PATH
    if path == PARTNER_HOME and session.is_admin:
        return ADMIN_HOME
    if _in_area(path, ADMIN_HOME) and not session.is_admin:
        return PARTNER_HOME
    return None
