"""
Support tickets raised by partners.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..database.adapter import DatabaseAdapter, get_database
from ..errors import NotFound

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 20


class TicketType(str, Enum):
    TECHNICAL = "technical"
    SALES = "sales"
    PRESALES = "presales"
    ACCOUNTS = "accounts"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


ACTIVE_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)

# Response targets shown to partners, by ticket type
RESPONSE_SLA_HOURS: Dict[TicketType, int] = {
    TicketType.TECHNICAL: 4,
    TicketType.SALES: 2,
    TicketType.PRESALES: 8,
    TicketType.ACCOUNTS: 24,
}


@dataclass
class NewTicket:
    partner_id: str
    type: TicketType
    subject: str
    description: str
    priority: TicketPriority = TicketPriority.MEDIUM
    deal_id: Optional[str] = None

    def validate(self) -> None:
        TicketType(self.type)
        TicketPriority(self.priority)
        if not self.subject.strip():
            raise ValueError("Subject is required")
        if not self.description.strip():
            raise ValueError("Description is required")
        if len(self.description.strip()) < MIN_DESCRIPTION_LENGTH:
            raise ValueError(
                f"Please provide more details (at least {MIN_DESCRIPTION_LENGTH} characters)"
            )


class TicketService:

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def create(self, ticket: NewTicket) -> Dict[str, Any]:
        """Open a ticket. A linked deal must belong to the same partner."""
        ticket.validate()
        db = await self.database()

        if ticket.deal_id:
            owned = await db.fetchval(
                "SELECT COUNT(*) FROM deals WHERE id = $1 AND partner_id = $2",
                ticket.deal_id, ticket.partner_id
            )
            if not owned:
                raise NotFound("Deal", ticket.deal_id)

        ticket_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()
        await db.execute(
            """
            INSERT INTO support_tickets
                (id, partner_id, deal_id, type, subject, description, priority, status, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            """,
            ticket_id,
            ticket.partner_id,
            ticket.deal_id or None,
            TicketType(ticket.type).value,
            ticket.subject.strip(),
            ticket.description.strip(),
            TicketPriority(ticket.priority).value,
            TicketStatus.OPEN.value,
            now,
            now
        )
        logger.info(f"Support ticket opened: {ticket_id} ({ticket.type}) by partner {ticket.partner_id}")
        return await self.get(ticket_id, ticket.partner_id)

    async def list_for_partner(
        self,
        partner_id: str,
        status: Optional[str] = None,
        type: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        args: List[Any] = [partner_id]
        clauses = ["partner_id = $1"]

        if status:
            args.append(TicketStatus(status).value)
            clauses.append(f"status = ${len(args)}")
        if type:
            args.append(TicketType(type).value)
            clauses.append(f"type = ${len(args)}")
        if priority:
            args.append(TicketPriority(priority).value)
            clauses.append(f"priority = ${len(args)}")
        if search:
            args.append(f"%{search.lower()}%")
            subject_arg = len(args)
            args.append(f"%{search.lower()}%")
            clauses.append(
                f"(LOWER(subject) LIKE ${subject_arg} OR LOWER(description) LIKE ${len(args)})"
            )

        db = await self.database()
        return await db.fetch(
            f"SELECT * FROM support_tickets WHERE {' AND '.join(clauses)} ORDER BY created_at DESC",
            *args
        )

    async def get(self, ticket_id: str, partner_id: Optional[str] = None) -> Dict[str, Any]:
        """Ticket with a summary of its linked deal. Scoped to the owner when partner_id is given."""
        db = await self.database()
        if partner_id:
            ticket = await db.fetchrow(
                "SELECT * FROM support_tickets WHERE id = $1 AND partner_id = $2",
                ticket_id, partner_id
            )
        else:
            ticket = await db.fetchrow("SELECT * FROM support_tickets WHERE id = $1", ticket_id)
        if not ticket:
            raise NotFound("Ticket", ticket_id)

        ticket["deal"] = None
        if ticket.get("deal_id"):
            ticket["deal"] = await db.fetchrow(
                "SELECT id, customer_name, customer_company, stage FROM deals WHERE id = $1",
                ticket["deal_id"]
            )
        ticket["response_sla_hours"] = RESPONSE_SLA_HOURS[TicketType(ticket["type"])]
        return ticket

    async def linkable_deals(self, partner_id: str) -> List[Dict[str, Any]]:
        """Partner's deals that are not closed, for linking to a ticket."""
        db = await self.database()
        return await db.fetch(
            """
            SELECT id, customer_name, customer_company, stage
            FROM deals
            WHERE partner_id = $1 AND stage NOT IN ('closed_won', 'closed_lost')
            ORDER BY created_at DESC
            """,
            partner_id
        )
