"""
Deal Repository

Deal registration, listing, detail with activity feed, notes and deletion.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..database.adapter import DatabaseAdapter, get_database
from ..errors import NotFound
from .stages import (
    BoardContext,
    DEFAULT_ADMIN_STAGE,
    DEFAULT_SALES_STAGE,
    parse_stage,
    stored_values,
)

logger = logging.getLogger(__name__)


class DealPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SupportType(str, Enum):
    SALES = "sales"
    PRESALES = "presales"
    TECHNICAL = "technical"
    ACCOUNTS = "accounts"


class ActivityType(str, Enum):
    CREATED = "created"
    STAGE_UPDATED = "stage_updated"
    NOTE_ADDED = "note_added"


SORTABLE_FIELDS = ("created_at", "updated_at", "deal_value", "customer_name", "stage")


@dataclass
class NewDeal:
    """Input for deal registration."""
    partner_id: str
    customer_name: str
    customer_email: str
    customer_company: str
    customer_phone: Optional[str] = None
    deal_value: Optional[float] = None
    stage: str = DEFAULT_SALES_STAGE.value
    priority: DealPriority = DealPriority.MEDIUM
    support_type_needed: SupportType = SupportType.SALES
    notes: Optional[str] = None
    expected_close_date: Optional[str] = None


@dataclass
class DealFilter:
    search: Optional[str] = None
    stage: Optional[str] = None
    partner_id: Optional[str] = None
    sort_by: str = "created_at"
    descending: bool = True


class DealRepository:
    """Reads and writes deals and their activity feed."""

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def create(self, deal: NewDeal, actor_id: Optional[str] = None,
                     actor_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Register a deal and write its 'created' activity.

        The sales stage comes from the input (default new_deal); the admin
        stage always starts at the first implementation stage.
        """
        if deal.deal_value is not None and deal.deal_value < 0:
            raise ValueError("Please enter a valid deal value")
        stage = parse_stage(BoardContext.PARTNER, deal.stage)

        db = await self.database()
        deal_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()

        await db.execute(
            """
            INSERT INTO deals (
                id, partner_id, customer_name, customer_email, customer_company,
                customer_phone, deal_value, stage, admin_stage, priority,
                support_type_needed, notes, expected_close_date, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
            """,
            deal_id,
            deal.partner_id,
            deal.customer_name.strip(),
            deal.customer_email.strip(),
            deal.customer_company.strip(),
            deal.customer_phone,
            deal.deal_value,
            stage.value,
            DEFAULT_ADMIN_STAGE.value,
            DealPriority(deal.priority).value,
            SupportType(deal.support_type_needed).value,
            (deal.notes or "").strip() or None,
            deal.expected_close_date,
            now,
            now
        )

        description = "Deal registered"
        if actor_name:
            description = f"Deal registered by {actor_name}"
        try:
            await self.add_activity(deal_id, ActivityType.CREATED, description, actor_id)
        except Exception as e:
            logger.warning(f"Failed to record creation activity for deal {deal_id}: {e}")

        logger.info(f"Deal registered: {deal_id} (partner={deal.partner_id})")
        return await self.get(deal_id)

    async def get(self, deal_id: str, partner_id: Optional[str] = None) -> Dict[str, Any]:
        """Fetch one deal; scoped to a partner when partner_id is given."""
        db = await self.database()
        if partner_id:
            row = await db.fetchrow(
                "SELECT * FROM deals WHERE id = $1 AND partner_id = $2",
                deal_id, partner_id
            )
        else:
            row = await db.fetchrow("SELECT * FROM deals WHERE id = $1", deal_id)

        if not row:
            raise NotFound("Deal", deal_id)
        return _with_stage_defaults(row)

    async def get_detail(self, deal_id: str, partner_id: Optional[str] = None) -> Dict[str, Any]:
        """Deal with its activity feed (newest first) and owning partner."""
        deal = await self.get(deal_id, partner_id)
        db = await self.database()

        deal["activities"] = await db.fetch(
            """
            SELECT id, deal_id, user_id, activity_type, description, created_at
            FROM deal_activities
            WHERE deal_id = $1
            ORDER BY created_at DESC
            """,
            deal_id
        )

        deal["partner"] = await db.fetchrow(
            """
            SELECT p.id, p.first_name, p.last_name, p.email, p.phone,
                   o.name AS organization_name, o.tier AS organization_tier,
                   o.type AS organization_type
            FROM partners p
            LEFT JOIN organizations o ON o.id = p.organization_id
            WHERE p.id = $1
            """,
            deal["partner_id"]
        )
        return deal

    async def list(self, filters: Optional[DealFilter] = None) -> List[Dict[str, Any]]:
        filters = filters or DealFilter()
        if filters.sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort deals by '{filters.sort_by}'")

        clauses = []
        args: List[Any] = []

        if filters.partner_id:
            args.append(filters.partner_id)
            clauses.append(f"d.partner_id = ${len(args)}")
        if filters.stage:
            placeholders = []
            for value in stored_values(parse_stage(BoardContext.PARTNER, filters.stage)):
                args.append(value)
                placeholders.append(f"${len(args)}")
            clauses.append(f"d.stage IN ({', '.join(placeholders)})")
        if filters.search:
            term = f"%{filters.search.lower()}%"
            like = []
            for column in ("d.customer_name", "d.customer_company", "d.customer_email",
                           "p.first_name", "p.last_name", "o.name"):
                args.append(term)
                like.append(f"LOWER(COALESCE({column}, '')) LIKE ${len(args)}")
            clauses.append("(" + " OR ".join(like) + ")")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "DESC" if filters.descending else "ASC"
        sort_column = "COALESCE(d.deal_value, 0)" if filters.sort_by == "deal_value" else f"d.{filters.sort_by}"

        db = await self.database()
        rows = await db.fetch(
            f"""
            SELECT d.*,
                   p.first_name AS partner_first_name,
                   p.last_name AS partner_last_name,
                   o.name AS organization_name
            FROM deals d
            LEFT JOIN partners p ON p.id = d.partner_id
            LEFT JOIN organizations o ON o.id = p.organization_id
            {where}
            ORDER BY {sort_column} {order}
            """,
            *args
        )
        return [_with_stage_defaults(r) for r in rows]

    async def add_activity(
        self,
        deal_id: str,
        activity_type: ActivityType,
        description: str,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        db = await self.database()
        activity = {
            "id": str(uuid4()),
            "deal_id": deal_id,
            "user_id": user_id,
            "activity_type": ActivityType(activity_type).value,
            "description": description,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await db.execute(
            """
            INSERT INTO deal_activities (id, deal_id, user_id, activity_type, description, created_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            *activity.values()
        )
        return activity

    async def add_note(
        self,
        deal_id: str,
        note: str,
        user_id: Optional[str] = None,
        partner_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        text = (note or "").strip()
        if not text:
            raise ValueError("Note cannot be empty")
        await self.get(deal_id, partner_id)
        return await self.add_activity(deal_id, ActivityType.NOTE_ADDED, text, user_id)

    async def delete(self, deal_id: str) -> None:
        """Hard delete a deal and its activity feed."""
        db = await self.database()
        async with db.transaction() as tx:
            await tx.execute("DELETE FROM deal_activities WHERE deal_id = $1", deal_id)
            rows = await tx.fetch("DELETE FROM deals WHERE id = $1 RETURNING id", deal_id)
            if not rows:
                raise NotFound("Deal", deal_id)
        logger.info(f"Deal deleted: {deal_id}")


def _with_stage_defaults(row: Dict[str, Any]) -> Dict[str, Any]:
    deal = dict(row)
    deal["stage"] = parse_stage(BoardContext.PARTNER, deal.get("stage")).value
    deal["admin_stage"] = parse_stage(BoardContext.ADMIN, deal.get("admin_stage")).value
    return deal
