"""
Profile settings: the signed-in user's own name and phone number.

Partners edit their partners row and admins their admins row. The row is
always the caller's own, taken from the session, never from the request.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..database.adapter import DatabaseAdapter, get_database
from ..errors import NotFound

logger = logging.getLogger(__name__)


class ProfileKind(str, Enum):
    PARTNER = "partner"
    ADMIN = "admin"

    @property
    def table(self) -> str:
        return "partners" if self == ProfileKind.PARTNER else "admins"


@dataclass
class ProfileUpdate:
    first_name: str
    last_name: str
    phone: Optional[str] = None

    def cleaned(self) -> "ProfileUpdate":
        """Trimmed copy; raises ValueError when a name is blank."""
        first_name = self.first_name.strip()
        last_name = self.last_name.strip()
        if not first_name:
            raise ValueError("First name is required")
        if not last_name:
            raise ValueError("Last name is required")
        return ProfileUpdate(first_name, last_name, (self.phone or "").strip() or None)


class ProfileService:
    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def get(self, kind: ProfileKind, record_id: str) -> Dict[str, Any]:
        db = await self.database()
        row = await db.fetchrow(f"SELECT * FROM {kind.table} WHERE id = $1", record_id)
        if not row:
            raise NotFound("Profile", record_id)
        return row

    async def update(self, kind: ProfileKind, record_id: str, update: ProfileUpdate) -> Dict[str, Any]:
        """Save name and phone on the caller's row and return the row."""
        update = update.cleaned()
        db = await self.database()
        rows = await db.fetch(
            f"UPDATE {kind.table} SET first_name = $1, last_name = $2, phone = $3 WHERE id = $4 RETURNING id",
            update.first_name, update.last_name, update.phone, record_id
        )
        if not rows:
            raise NotFound("Profile", record_id)
        logger.info(f"Profile updated: {kind.value} {record_id}")
        return await self.get(kind, record_id)
