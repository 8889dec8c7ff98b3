"""
Dashboard statistics for the partner and admin landing pages.
"""

import logging
from typing import Any, Dict, Optional

from .database.adapter import DatabaseAdapter, get_database

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


class DashboardService:

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def partner_stats(self, partner_id: str) -> Dict[str, Any]:
        """Counts and pipeline value for one partner, plus recent deals and tickets."""
        db = await self.database()

        total_deals = await db.fetchval(
            "SELECT COUNT(*) FROM deals WHERE partner_id = $1", partner_id
        )
        pipeline_value = await db.fetchval(
            "SELECT COALESCE(SUM(deal_value), 0) FROM deals WHERE partner_id = $1", partner_id
        )
        closed_won = await db.fetchval(
            "SELECT COUNT(*) FROM deals WHERE partner_id = $1 AND stage = 'closed_won'", partner_id
        )
        active_tickets = await db.fetchval(
            """
            SELECT COUNT(*) FROM support_tickets
            WHERE partner_id = $1 AND status IN ('open', 'in_progress')
            """,
            partner_id
        )
        recent_deals = await db.fetch(
            """
            SELECT id, customer_name, customer_company, deal_value, stage, created_at
            FROM deals WHERE partner_id = $1
            ORDER BY created_at DESC LIMIT 5
            """,
            partner_id
        )
        recent_tickets = await db.fetch(
            """
            SELECT id, subject, type, priority, status, created_at
            FROM support_tickets WHERE partner_id = $1
            ORDER BY created_at DESC LIMIT 5
            """,
            partner_id
        )

        return {
            "total_deals": total_deals or 0,
            "pipeline_value": float(pipeline_value or 0),
            "closed_won": closed_won or 0,
            "active_tickets": active_tickets or 0,
            "recent_deals": recent_deals,
            "recent_tickets": recent_tickets,
        }

    async def admin_stats(self) -> Dict[str, Any]:
        db = await self.database()

        stats = {
            "total_partners": await db.fetchval("SELECT COUNT(*) FROM partners"),
            "total_deals": await db.fetchval("SELECT COUNT(*) FROM deals"),
            "pipeline_value": float(
                await db.fetchval("SELECT COALESCE(SUM(deal_value), 0) FROM deals") or 0
            ),
            "active_tickets": await db.fetchval(
                "SELECT COUNT(*) FROM support_tickets WHERE status IN ('open', 'in_progress')"
            ),
            "total_articles": await db.fetchval("SELECT COUNT(*) FROM knowledge_articles"),
            "pending_mdf_requests": await db.fetchval(
                "SELECT COUNT(*) FROM mdf_requests WHERE status = 'pending'"
            ),
        }
        stats["recent_deals"] = await db.fetch(
            """
            SELECT d.id, d.customer_name, d.customer_company, d.deal_value, d.stage,
                   d.admin_stage, d.created_at, o.name AS organization_name
            FROM deals d
            LEFT JOIN partners p ON p.id = d.partner_id
            LEFT JOIN organizations o ON o.id = p.organization_id
            ORDER BY d.created_at DESC LIMIT 5
            """
        )
        stats["recent_partners"] = await db.fetch(
            """
            SELECT p.id, p.first_name, p.last_name, p.email, p.status, p.created_at,
                   o.name AS organization_name, o.tier
            FROM partners p
            LEFT JOIN organizations o ON o.id = p.organization_id
            ORDER BY p.created_at DESC LIMIT 5
            """
        )
        logger.debug(f"Admin stats computed: {stats['total_deals']} deals, {stats['total_partners']} partners")
        return stats
