"""
Deal Registration API

Partner-facing deal endpoints: registration, pipeline list, detail with
activity feed, stage changes from the detail view and notes. Every query is
scoped to the caller's partner record.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field

from ....core.auth.session import SessionContext
from ....core.deals import (
    BoardContext,
    DealFilter,
    DealPriority,
    DealRepository,
    NewDeal,
    SupportType,
    get_stages,
    get_workflow_engine,
)
from ...shared.middleware.auth import require_partner, require_session
from ...shared.responses import ListResponse, SuccessResponse

router = APIRouter(prefix="/api/deals", tags=["deals"])


class DealCreateRequest(BaseModel):
    """Deal registration form."""
    customer_name: str = Field(..., min_length=1)
    customer_email: EmailStr
    customer_company: str = Field(..., min_length=1)
    customer_phone: Optional[str] = None
    deal_value: Optional[float] = Field(None, ge=0)
    stage: str = "new_deal"
    priority: DealPriority = DealPriority.MEDIUM
    support_type_needed: SupportType = SupportType.SALES
    notes: Optional[str] = None
    expected_close_date: Optional[date] = None


class StageChangeRequest(BaseModel):
    stage: str


class NoteRequest(BaseModel):
    note: str = Field(..., min_length=1)


@router.get("/stages")
async def list_stages(
    context: BoardContext = BoardContext.PARTNER,
    session: SessionContext = Depends(require_session),
):
    """Ordered stage definitions (id + label) for a board context."""
    return [{"id": s.id, "label": s.label} for s in get_stages(context)]


@router.post("", status_code=201)
async def register_deal(body: DealCreateRequest, session: SessionContext = Depends(require_partner)):
    """Register a new deal for the calling partner."""
    repo = DealRepository()
    deal = await repo.create(
        NewDeal(
            partner_id=session.partner_id,
            customer_name=body.customer_name,
            customer_email=str(body.customer_email),
            customer_company=body.customer_company,
            customer_phone=body.customer_phone,
            deal_value=body.deal_value,
            stage=body.stage,
            priority=body.priority,
            support_type_needed=body.support_type_needed,
            notes=body.notes,
            expected_close_date=body.expected_close_date.isoformat() if body.expected_close_date else None,
        ),
        actor_id=session.user_id,
        actor_name=session.display_name,
    )
    return SuccessResponse.create(deal)


@router.get("")
async def list_deals(
    search: Optional[str] = None,
    stage: Optional[str] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: SessionContext = Depends(require_partner),
):
    """The partner's deals with search, stage filter and sorting."""
    deals = await DealRepository().list(DealFilter(
        search=search,
        stage=stage,
        partner_id=session.partner_id,
        sort_by=sort_by,
        descending=order == "desc",
    ))
    return ListResponse.create(deals, limit=limit, offset=offset)


@router.get("/summary")
async def stage_summary(session: SessionContext = Depends(require_partner)):
    """Deal count per sales stage, every stage present."""
    engine = await get_workflow_engine()
    return await engine.get_deal_stages_summary(BoardContext.PARTNER, session.partner_id)


@router.get("/{deal_id}")
async def get_deal(deal_id: str, session: SessionContext = Depends(require_partner)):
    """Deal detail with activity feed."""
    deal = await DealRepository().get_detail(deal_id, session.partner_id)
    return SuccessResponse.create(deal)


@router.patch("/{deal_id}/stage")
async def change_stage(
    deal_id: str,
    body: StageChangeRequest,
    session: SessionContext = Depends(require_partner),
):
    """Move one of the partner's deals to another sales stage."""
    await DealRepository().get(deal_id, session.partner_id)

    engine = await get_workflow_engine()
    transition = await engine.transition_stage(
        deal_id, body.stage, BoardContext.PARTNER, transitioned_by=session.user_id
    )
    return {
        "deal_id": deal_id,
        "from_stage": transition.from_stage,
        "to_stage": transition.to_stage,
        "no_op": transition.no_op,
        "activity_logged": transition.activity_logged,
        "timestamp": transition.timestamp.isoformat(),
    }


@router.get("/{deal_id}/history")
async def stage_history(deal_id: str, session: SessionContext = Depends(require_partner)):
    await DealRepository().get(deal_id, session.partner_id)
    engine = await get_workflow_engine()
    return await engine.get_stage_history(deal_id)


@router.post("/{deal_id}/notes", status_code=201)
async def add_note(deal_id: str, body: NoteRequest, session: SessionContext = Depends(require_partner)):
    """Append a note to the deal's activity feed."""
    activity = await DealRepository().add_note(
        deal_id, body.note, user_id=session.user_id, partner_id=session.partner_id
    )
    return SuccessResponse.create(activity)
