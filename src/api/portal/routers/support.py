"""
Partner Support API

Support tickets, the knowledge base and MDF requests. Tickets and MDF
requests are scoped to the caller's partner record; articles to the
partner's tier.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ....core.auth.session import SessionContext
from ....core.support import (
    CampaignType,
    KnowledgeService,
    MDFRequestForm,
    MDFService,
    NewTicket,
    TicketPriority,
    TicketService,
    TicketType,
)
from ...shared.middleware.auth import require_partner
from ...shared.responses import ListResponse, SuccessResponse

logger = logging.getLogger(__name__)

tickets_router = APIRouter(prefix="/api/support/tickets", tags=["support"])
knowledge_router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])
mdf_router = APIRouter(prefix="/api/mdf", tags=["mdf"])


class TicketCreateRequest(BaseModel):
    type: TicketType
    subject: str
    description: str
    priority: TicketPriority = TicketPriority.MEDIUM
    deal_id: Optional[str] = None


class MDFCreateRequest(BaseModel):
    campaign_name: str
    campaign_type: CampaignType = CampaignType.EVENT
    requested_amount: float
    start_date: date
    end_date: date
    description: str
    target_audience: str = ""
    expected_leads: Optional[int] = Field(None, ge=0)
    expected_meetings: Optional[int] = Field(None, ge=0)
    expected_deals: Optional[int] = Field(None, ge=0)
    objectives: List[str] = []


# Tickets

@tickets_router.post("", status_code=201)
async def create_ticket(body: TicketCreateRequest, session: SessionContext = Depends(require_partner)):
    ticket = await TicketService().create(NewTicket(
        partner_id=session.partner_id,
        type=body.type,
        subject=body.subject,
        description=body.description,
        priority=body.priority,
        deal_id=body.deal_id,
    ))
    return SuccessResponse.create(ticket)


@tickets_router.get("")
async def list_tickets(
    status: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    session: SessionContext = Depends(require_partner),
):
    tickets = await TicketService().list_for_partner(
        session.partner_id, status=status, type=type, priority=priority, search=search
    )
    return ListResponse.create(tickets)


@tickets_router.get("/linkable-deals")
async def linkable_deals(session: SessionContext = Depends(require_partner)):
    """Open deals a new ticket can reference."""
    return await TicketService().linkable_deals(session.partner_id)


@tickets_router.get("/{ticket_id}")
async def get_ticket(ticket_id: str, session: SessionContext = Depends(require_partner)):
    return SuccessResponse.create(await TicketService().get(ticket_id, session.partner_id))


# Knowledge base

@knowledge_router.get("")
async def list_articles(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort_by: str = "created_at",
    session: SessionContext = Depends(require_partner),
):
    articles = await KnowledgeService().list_for_tier(
        session.partner_tier, search=search, category=category, sort_by=sort_by
    )
    return ListResponse.create(articles)


@knowledge_router.get("/categories")
async def article_categories(session: SessionContext = Depends(require_partner)):
    """Readable article count per category."""
    return await KnowledgeService().category_counts(session.partner_tier)


@knowledge_router.get("/{article_id}")
async def get_article(article_id: str, session: SessionContext = Depends(require_partner)):
    """An article plus up to five related ones from the same category."""
    service = KnowledgeService()
    article = await service.get_for_tier(article_id, session.partner_tier)
    related = await service.related(article, session.partner_tier)
    return SuccessResponse.create({"article": article, "related": related})


# MDF requests

@mdf_router.post("", status_code=201)
async def create_mdf_request(body: MDFCreateRequest, session: SessionContext = Depends(require_partner)):
    request = await MDFService().create(session.partner, MDFRequestForm(
        campaign_name=body.campaign_name,
        requested_amount=body.requested_amount,
        start_date=body.start_date,
        end_date=body.end_date,
        description=body.description,
        campaign_type=body.campaign_type,
        target_audience=body.target_audience,
        expected_leads=body.expected_leads,
        expected_meetings=body.expected_meetings,
        expected_deals=body.expected_deals,
        objectives=body.objectives,
    ))
    return SuccessResponse.create(request)


@mdf_router.get("")
async def list_mdf_requests(
    status: Optional[str] = None,
    session: SessionContext = Depends(require_partner),
):
    return ListResponse.create(await MDFService().list_for_partner(session.partner_id, status))


@mdf_router.get("/summary")
async def mdf_summary(session: SessionContext = Depends(require_partner)):
    """Requested totals by status against the organization's allocation."""
    return {
        "allocation": float(session.partner.get("mdf_allocation") or 0),
        "requested_by_status": await MDFService().summary(session.partner_id),
    }


@mdf_router.get("/{request_id}")
async def get_mdf_request(request_id: str, session: SessionContext = Depends(require_partner)):
    return SuccessResponse.create(await MDFService().get(request_id, session.partner_id))
