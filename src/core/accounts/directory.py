"""
Partner and admin directories for the admin area.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..database.adapter import DatabaseAdapter, get_database
from ..errors import IdentityError, NotFound
from ..auth.identity import IdentityClient
from .tiers import OrganizationType, Tier, tier_rank

logger = logging.getLogger(__name__)

PARTNER_SORT_FIELDS = ("created_at", "name", "organization", "tier", "email", "status")


@dataclass
class PartnerFilter:
    search: Optional[str] = None
    tier: Optional[str] = None
    type: Optional[str] = None
    sort_by: str = "created_at"
    descending: bool = True


def _partner_sort_key(sort_by: str):
    if sort_by == "name":
        return lambda p: f"{p.get('first_name') or ''} {p.get('last_name') or ''}"
    if sort_by == "organization":
        return lambda p: p.get("organization_name") or ""
    if sort_by == "tier":
        return lambda p: tier_rank(p.get("tier"))
    return lambda p: str(p.get(sort_by) or "")


class DirectoryService:
    """Partner and admin listings; admin removal."""

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def list_partners(self, filters: Optional[PartnerFilter] = None) -> List[Dict[str, Any]]:
        """
        Partners with their organization, filtered and sorted.

        Sorting by tier follows tier order (bronze lowest), not the
        alphabet.
        """
        filters = filters or PartnerFilter()
        if filters.sort_by not in PARTNER_SORT_FIELDS:
            raise ValueError(f"Cannot sort partners by '{filters.sort_by}'")
        if filters.tier:
            Tier(filters.tier)
        if filters.type:
            OrganizationType(filters.type)

        db = await self.database()
        partners = await db.fetch(
            """
            SELECT p.*, o.name AS organization_name, o.type AS organization_type,
                   o.tier AS tier, o.discount_percentage, o.mdf_allocation
            FROM partners p
            LEFT JOIN organizations o ON o.id = p.organization_id
            ORDER BY p.created_at DESC
            """
        )

        if filters.search:
            term = filters.search.lower()
            partners = [
                p for p in partners
                if any(
                    term in (p.get(key) or "").lower()
                    for key in ("first_name", "last_name", "email", "organization_name")
                )
            ]
        if filters.tier:
            partners = [p for p in partners if p.get("tier") == filters.tier]
        if filters.type:
            partners = [p for p in partners if p.get("organization_type") == filters.type]

        return sorted(partners, key=_partner_sort_key(filters.sort_by), reverse=filters.descending)

    async def get_partner(self, partner_id: str) -> Dict[str, Any]:
        db = await self.database()
        row = await db.fetchrow(
            """
            SELECT p.*, o.name AS organization_name, o.type AS organization_type,
                   o.tier AS tier, o.discount_percentage, o.mdf_allocation
            FROM partners p
            LEFT JOIN organizations o ON o.id = p.organization_id
            WHERE p.id = $1
            """,
            partner_id
        )
        if not row:
            raise NotFound("Partner", partner_id)
        return row

    async def list_admins(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        db = await self.database()
        admins = await db.fetch("SELECT * FROM admins ORDER BY created_at DESC")
        if search:
            term = search.lower()
            admins = [
                a for a in admins
                if any(term in (a.get(key) or "").lower() for key in ("first_name", "last_name", "email"))
            ]
        return admins

    async def delete_admin(self, admin_id: str, identity: IdentityClient) -> Dict[str, Any]:
        """
        Remove an admin.

        The admins row is hard-deleted first; deleting the identity behind
        it is best-effort and only logged on failure.
        """
        db = await self.database()
        rows = await db.fetch(
            "DELETE FROM admins WHERE id = $1 RETURNING id, auth_user_id",
            admin_id
        )
        if not rows:
            raise NotFound("Admin", admin_id)

        auth_user_id = rows[0].get("auth_user_id")
        identity_deleted = False
        if auth_user_id:
            try:
                await identity.delete_user(auth_user_id)
                identity_deleted = True
            except IdentityError as e:
                logger.error(f"Admin {admin_id} removed but identity {auth_user_id} was not deleted: {e}")

        logger.info(f"Admin deleted: {admin_id}")
        return {"id": admin_id, "identity_deleted": identity_deleted}
