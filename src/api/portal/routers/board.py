"""
Kanban Board API

The partner board (sales stages, own deals only) and the admin board (all
sixteen stages, every deal). A move request replays one drag: the deal is
picked up, hovered over the target column or card, and dropped.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ....core.auth.session import SessionContext
from ....core.deals import (
    BoardContext,
    DealStageStore,
    KanbanBoard,
    UnknownDealError,
    move_deal,
)
from ...shared.exceptions import NotFoundError, StageUpdateError
from ...shared.middleware.auth import require_admin, require_partner

logger = logging.getLogger(__name__)

partner_router = APIRouter(prefix="/api/deals/board", tags=["board"])
admin_router = APIRouter(prefix="/api/admin/board", tags=["admin", "board"])


class MoveRequest(BaseModel):
    """One drag: the card picked up and what it was released over."""
    deal_id: str
    over_id: Optional[str] = Field(
        None,
        description="Stage id or deal id under the pointer at release; null for a drop outside the board."
    )


async def _load(context: BoardContext, partner_id: Optional[str]) -> dict:
    store = DealStageStore()
    board = KanbanBoard(context, await store.load_board(context, partner_id))
    return board.to_dict()


async def _move(
    context: BoardContext,
    body: MoveRequest,
    partner_id: Optional[str],
    actor_id: Optional[str],
) -> dict:
    try:
        board, result = await move_deal(
            DealStageStore(),
            context,
            body.deal_id,
            body.over_id,
            partner_id=partner_id,
            actor_id=actor_id,
        )
    except UnknownDealError:
        raise NotFoundError("Deal", body.deal_id)

    if not result.ok:
        raise StageUpdateError(result.error, reverted_stage=result.from_stage)

    return {
        "deal_id": result.deal_id,
        "from_stage": result.from_stage,
        "to_stage": result.to_stage,
        "committed": result.committed,
        "activity_logged": result.activity_logged,
        "board": board.to_dict(),
    }


@partner_router.get("")
async def get_partner_board(session: SessionContext = Depends(require_partner)):
    """The partner's own deals grouped by sales stage."""
    return await _load(BoardContext.PARTNER, session.partner_id)


@partner_router.post("/moves")
async def move_partner_deal(body: MoveRequest, session: SessionContext = Depends(require_partner)):
    """Drop one of the partner's deals on a sales stage column or card."""
    return await _move(BoardContext.PARTNER, body, session.partner_id, session.user_id)


@admin_router.get("")
async def get_admin_board(session: SessionContext = Depends(require_admin)):
    """Every deal grouped by admin stage."""
    return await _load(BoardContext.ADMIN, None)


@admin_router.post("/moves")
async def move_admin_deal(body: MoveRequest, session: SessionContext = Depends(require_admin)):
    """Drop a deal on an admin stage column or card."""
    return await _move(BoardContext.ADMIN, body, None, session.user_id)
