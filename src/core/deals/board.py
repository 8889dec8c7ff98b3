"""
Kanban Board

Board state and the drag controller for moving deals between stage columns.

Moves are optimistic: hovering a column or card updates the working board
immediately, and the drop commits the new stage to the store. Every drag
runs inside a PendingStageChange (snapshot, apply, commit-or-revert), so a
failed commit restores the whole board to the last authoritative snapshot.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .stages import (
    BoardContext,
    Stage,
    StageDefinition,
    get_stages,
    humanize_stage,
    is_stage_id,
    parse_stage,
    stage_field,
)

logger = logging.getLogger(__name__)


class BoardError(Exception):
    """Invalid drag interaction."""


class UnknownDealError(BoardError):
    """Deal is not on this board."""

    def __init__(self, deal_id: str):
        super().__init__(f"Deal not on board: {deal_id}")
        self.deal_id = deal_id


class StageStore(Protocol):
    """Persistence used by the board. See workflow.DealStageStore."""

    async def load_board(
        self, context: BoardContext, partner_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        ...

    async def update_stage(self, deal_id: str, context: BoardContext, stage: Stage) -> int:
        """Write the stage; return the number of rows affected."""
        ...

    async def append_activity(
        self,
        deal_id: str,
        activity_type: str,
        description: str,
        user_id: Optional[str] = None,
    ) -> None:
        ...


@dataclass
class BoardCard:
    """A deal as shown on the board."""
    id: str
    stage: Stage
    customer_name: Optional[str] = None
    customer_company: Optional[str] = None
    deal_value: float = 0.0
    priority: Optional[str] = None
    record: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, context: BoardContext, record: Dict[str, Any]) -> "BoardCard":
        return cls(
            id=str(record["id"]),
            stage=parse_stage(context, record.get(stage_field(context))),
            customer_name=record.get("customer_name"),
            customer_company=record.get("customer_company"),
            deal_value=float(record.get("deal_value") or 0),
            priority=record.get("priority"),
            record=dict(record),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.record)
        data["id"] = self.id
        data["board_stage"] = self.stage.value
        return data


@dataclass
class BoardColumn:
    definition: StageDefinition
    cards: List[BoardCard]

    @property
    def total_value(self) -> float:
        return sum(card.deal_value for card in self.cards)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.definition.id,
            "label": self.definition.label,
            "count": len(self.cards),
            "total_value": self.total_value,
            "deals": [card.to_dict() for card in self.cards],
        }


class KanbanBoard:
    """
    In-memory board for one context.

    Two views of every card are kept: the authoritative snapshot (last state
    known to be persisted) and the working copy mutated during drags.
    """

    def __init__(self, context: BoardContext, records: List[Dict[str, Any]]):
        self.context = context
        self._snapshot: List[BoardCard] = []
        self._working: List[BoardCard] = []
        self.reset(records)

    def reset(self, records: List[Dict[str, Any]]) -> None:
        """Replace both views with a fresh authoritative load."""
        self._snapshot = [BoardCard.from_record(self.context, r) for r in records]
        self._working = copy.deepcopy(self._snapshot)

    @property
    def cards(self) -> List[BoardCard]:
        return list(self._working)

    def has_deal(self, deal_id: str) -> bool:
        return any(card.id == deal_id for card in self._working)

    def working_stage(self, deal_id: str) -> Stage:
        return self._find(self._working, deal_id).stage

    def persisted_stage(self, deal_id: str) -> Stage:
        return self._find(self._snapshot, deal_id).stage

    def columns(self) -> List[BoardColumn]:
        return [
            BoardColumn(
                definition=definition,
                cards=[c for c in self._working if c.stage == definition.stage],
            )
            for definition in get_stages(self.context)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "context": self.context.value,
            "columns": [column.to_dict() for column in self.columns()],
        }

    # Mutations used by PendingStageChange

    def snapshot_state(self) -> List[BoardCard]:
        return copy.deepcopy(self._snapshot)

    def set_working_stage(self, deal_id: str, stage: Stage) -> None:
        self._find(self._working, deal_id).stage = stage

    def restore(self, snapshot: List[BoardCard]) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self._working = copy.deepcopy(snapshot)

    def mark_persisted(self, deal_id: str, stage: Stage) -> None:
        self._find(self._snapshot, deal_id).stage = stage
        self._find(self._working, deal_id).stage = stage

    @staticmethod
    def _find(cards: List[BoardCard], deal_id: str) -> BoardCard:
        for card in cards:
            if card.id == deal_id:
                return card
        raise UnknownDealError(deal_id)


class PendingStageChange:
    """
    One drag's worth of optimistic change.

    Snapshot is taken when the drag starts; commit() makes the dragged deal's
    working stage authoritative, revert() discards every working change.
    """

    def __init__(self, board: KanbanBoard, deal_id: str):
        self.board = board
        self.deal_id = deal_id
        self.from_stage = board.persisted_stage(deal_id)
        self._snapshot = board.snapshot_state()
        self._closed = False

    @property
    def to_stage(self) -> Stage:
        return self.board.working_stage(self.deal_id)

    @property
    def changed(self) -> bool:
        return self.to_stage != self.from_stage

    def apply(self, stage: Stage) -> None:
        self._ensure_open()
        self.board.set_working_stage(self.deal_id, stage)

    def commit(self) -> None:
        self._ensure_open()
        self.board.mark_persisted(self.deal_id, self.to_stage)
        self._closed = True

    def revert(self) -> None:
        self._ensure_open()
        self.board.restore(self._snapshot)
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise BoardError("Stage change already closed")


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class DropResult:
    """Outcome of a drop."""
    deal_id: str
    from_stage: str
    to_stage: str
    committed: bool = False
    reverted: bool = False
    activity_logged: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DragController:
    """
    Drag state machine: idle -> dragging(deal_id) -> idle.

    Hover events only touch the working board. drop() is the single point
    that talks to the store.
    """

    def __init__(
        self,
        board: KanbanBoard,
        store: StageStore,
        actor_id: Optional[str] = None,
    ):
        self.board = board
        self.store = store
        self.actor_id = actor_id
        self._pending: Optional[PendingStageChange] = None

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self._pending else DragState.IDLE

    @property
    def active_deal_id(self) -> Optional[str]:
        return self._pending.deal_id if self._pending else None

    def pointer_down(self, deal_id: str) -> None:
        if self._pending is not None:
            raise BoardError(f"Already dragging {self._pending.deal_id}")
        if not self.board.has_deal(deal_id):
            raise UnknownDealError(deal_id)
        self._pending = PendingStageChange(self.board, deal_id)

    def hover(self, over_id: str) -> None:
        """Resolve a hover target id: a column id first, then a card id."""
        if self._pending is None:
            return
        if is_stage_id(self.board.context, over_id):
            self.hover_column(over_id)
        elif self.board.has_deal(over_id):
            self.hover_card(over_id)

    def hover_column(self, stage_id: str) -> None:
        if self._pending is None:
            return
        self._pending.apply(parse_stage(self.board.context, stage_id))

    def hover_card(self, other_deal_id: str) -> None:
        if self._pending is None or other_deal_id == self._pending.deal_id:
            return
        self._pending.apply(self.board.working_stage(other_deal_id))

    def drop_outside(self) -> DropResult:
        """Drop with no target: discard the drag, touch nothing remote."""
        pending = self._take_pending()
        result = DropResult(
            deal_id=pending.deal_id,
            from_stage=pending.from_stage.value,
            to_stage=pending.from_stage.value,
        )
        pending.revert()
        return result

    async def drop(self) -> DropResult:
        pending = self._take_pending()
        deal_id = pending.deal_id
        from_stage = pending.from_stage
        to_stage = pending.to_stage

        result = DropResult(
            deal_id=deal_id,
            from_stage=from_stage.value,
            to_stage=to_stage.value,
        )

        if not pending.changed:
            pending.commit()
            return result

        logger.info(
            f"Moving deal {deal_id} on {self.board.context.value} board: "
            f"{from_stage.value} -> {to_stage.value}"
        )

        try:
            affected = await self.store.update_stage(deal_id, self.board.context, to_stage)
        except Exception as e:
            logger.error(f"Stage update failed for deal {deal_id}: {e}")
            pending.revert()
            result.reverted = True
            result.error = "Failed to update deal stage. Please try again."
            return result

        if not affected:
            logger.error(f"Stage update for deal {deal_id} affected no rows")
            pending.revert()
            result.reverted = True
            result.error = "Failed to update deal stage. Please try again."
            return result

        pending.commit()
        result.committed = True
        result.activity_logged = await self._log_stage_change(deal_id, from_stage, to_stage)
        return result

    async def _log_stage_change(self, deal_id: str, from_stage: Stage, to_stage: Stage) -> bool:
        try:
            await self.store.append_activity(
                deal_id=deal_id,
                activity_type="stage_updated",
                description=describe_stage_change(self.board.context, from_stage, to_stage),
                user_id=self.actor_id,
            )
            return True
        except Exception as e:
            logger.warning(f"Failed to record stage activity for deal {deal_id}: {e}")
            return False

    def _take_pending(self) -> PendingStageChange:
        if self._pending is None:
            raise BoardError("No drag in progress")
        pending, self._pending = self._pending, None
        return pending


def describe_stage_change(context: BoardContext, from_stage: Stage, to_stage: Stage) -> str:
    prefix = "Implementation stage" if context == BoardContext.ADMIN else "Stage"
    return (
        f"{prefix} updated from {humanize_stage(from_stage.value)} "
        f"to {humanize_stage(to_stage.value)}"
    )


async def move_deal(
    store: StageStore,
    context: BoardContext,
    deal_id: str,
    over_id: Optional[str],
    partner_id: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> Tuple[KanbanBoard, DropResult]:
    """
    Replay one complete drag against a fresh authoritative board.

    ``over_id`` is the drop target (column or card id); None means the
    pointer was released outside every target.
    """
    board = KanbanBoard(context, await store.load_board(context, partner_id))
    controller = DragController(board, store, actor_id=actor_id)
    controller.pointer_down(deal_id)

    if over_id is None:
        return board, controller.drop_outside()

    controller.hover(over_id)
    result = await controller.drop()
    return board, result
