"""
Deal Workflow Engine

Stage transitions for deals outside the board (deal detail view), the
database-backed stage store used by the kanban board, and stage history.

Any stage may follow any other. A write that touches no rows is treated as
a failure, never as success.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from uuid import uuid4
from dataclasses import dataclass, field
import logging

from ..database.adapter import DatabaseAdapter, get_database
from ..errors import NotFound, StageCommitError
from .board import describe_stage_change
from .stages import (
    BoardContext,
    Stage,
    get_stages,
    parse_stage,
    stage_field,
)

logger = logging.getLogger(__name__)


@dataclass
class StageTransition:
    """Record of a stage transition."""
    deal_id: str
    context: BoardContext
    from_stage: str
    to_stage: str
    transitioned_by: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    no_op: bool = False  # True if the deal was already in the target stage
    activity_logged: bool = False


class DealStageStore:
    """
    Stage persistence against the deals and deal_activities tables.

    Satisfies the board's StageStore protocol.
    """

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def load_board(
        self, context: BoardContext, partner_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Authoritative snapshot of the deals on a board, newest first."""
        db = await self.database()

        if context == BoardContext.PARTNER:
            if not partner_id:
                raise ValueError("partner_id is required for the partner board")
            return await db.fetch(
                """
                SELECT id, customer_name, customer_company, customer_email,
                       deal_value, priority, stage, admin_stage, partner_id,
                       support_type_needed, created_at, updated_at
                FROM deals
                WHERE partner_id = $1
                ORDER BY created_at DESC
                """,
                partner_id
            )

        return await db.fetch(
            """
            SELECT d.id, d.customer_name, d.customer_company, d.customer_email,
                   d.deal_value, d.priority, d.stage, d.admin_stage, d.partner_id,
                   d.support_type_needed, d.created_at, d.updated_at,
                   p.first_name AS partner_first_name,
                   p.last_name AS partner_last_name,
                   o.name AS organization_name
            FROM deals d
            LEFT JOIN partners p ON p.id = d.partner_id
            LEFT JOIN organizations o ON o.id = p.organization_id
            ORDER BY d.created_at DESC
            """
        )

    async def get_stage(self, deal_id: str, context: BoardContext) -> Optional[Stage]:
        db = await self.database()
        row = await db.fetchrow(
            f"SELECT {stage_field(context)} AS stage FROM deals WHERE id = $1",
            deal_id
        )
        if not row:
            return None
        return parse_stage(context, row["stage"])

    async def update_stage(self, deal_id: str, context: BoardContext, stage: Stage) -> int:
        db = await self.database()
        column = stage_field(context)
        rows = await db.fetch(
            f"""
            UPDATE deals
            SET {column} = $1, updated_at = $2
            WHERE id = $3
            RETURNING id
            """,
            stage.value,
            datetime.now(timezone.utc).isoformat(),
            deal_id
        )
        return len(rows)

    async def append_activity(
        self,
        deal_id: str,
        activity_type: str,
        description: str,
        user_id: Optional[str] = None,
    ) -> None:
        db = await self.database()
        await db.execute(
            """
            INSERT INTO deal_activities (id, deal_id, user_id, activity_type, description, created_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            str(uuid4()),
            deal_id,
            user_id,
            activity_type,
            description,
            datetime.now(timezone.utc).isoformat()
        )


class DealWorkflowEngine:
    """
    Manages deal stage changes made from the deal detail view.
    """

    def __init__(self, store: Optional[DealStageStore] = None):
        self.store = store or DealStageStore()

    async def transition_stage(
        self,
        deal_id: str,
        new_stage: str,
        context: BoardContext = BoardContext.PARTNER,
        transitioned_by: Optional[str] = None,
    ) -> StageTransition:
        """
        Move a deal to a new stage.

        Args:
            deal_id: Deal ID
            new_stage: Target stage id for the context
            context: Which stage field to move
            transitioned_by: Acting user id, recorded on the activity

        Returns:
            StageTransition record

        Raises:
            ValueError: Unknown stage for the context
            NotFound: Deal does not exist
            StageCommitError: The write failed or touched no rows
        """
        target = parse_stage(context, new_stage)

        current = await self.store.get_stage(deal_id, context)
        if current is None:
            raise NotFound("Deal", deal_id)

        if current == target:
            logger.info(f"Deal {deal_id} already in stage {target.value} (no-op)")
            return StageTransition(
                deal_id=deal_id,
                context=context,
                from_stage=current.value,
                to_stage=target.value,
                transitioned_by=transitioned_by,
                no_op=True,
            )

        try:
            affected = await self.store.update_stage(deal_id, context, target)
        except Exception as e:
            logger.error(f"Stage update failed for deal {deal_id}: {e}")
            raise StageCommitError(deal_id, "Failed to update deal stage", current.value) from e

        if not affected:
            raise StageCommitError(deal_id, "Deal stage update affected no rows", current.value)

        transition = StageTransition(
            deal_id=deal_id,
            context=context,
            from_stage=current.value,
            to_stage=target.value,
            transitioned_by=transitioned_by,
        )

        try:
            await self.store.append_activity(
                deal_id=deal_id,
                activity_type="stage_updated",
                description=describe_stage_change(context, current, target),
                user_id=transitioned_by,
            )
            transition.activity_logged = True
        except Exception as e:
            logger.warning(f"Failed to record stage activity for deal {deal_id}: {e}")

        logger.info(f"Deal {deal_id} transitioned: {current.value} -> {target.value}")
        return transition

    async def get_stage_history(self, deal_id: str) -> List[Dict[str, Any]]:
        """Stage-change activities for a deal, oldest first."""
        db = await self.store.database()

        history = await db.fetch(
            """
            SELECT user_id, description, created_at
            FROM deal_activities
            WHERE deal_id = $1 AND activity_type = 'stage_updated'
            ORDER BY created_at ASC
            """,
            deal_id
        )

        return [
            {
                "transitioned_by": h.get("user_id"),
                "description": h.get("description"),
                "timestamp": str(h["created_at"]) if h.get("created_at") else None,
            }
            for h in history
        ]

    async def get_deal_stages_summary(
        self,
        context: BoardContext = BoardContext.PARTNER,
        partner_id: Optional[str] = None,
    ) -> Dict[str, int]:
        """Count of deals in each stage, every stage present."""
        db = await self.store.database()
        column = stage_field(context)

        if partner_id:
            results = await db.fetch(
                f"SELECT {column} AS stage, COUNT(*) AS count FROM deals "
                f"WHERE partner_id = $1 GROUP BY {column}",
                partner_id
            )
        else:
            results = await db.fetch(
                f"SELECT {column} AS stage, COUNT(*) AS count FROM deals GROUP BY {column}"
            )

        summary = {definition.id: 0 for definition in get_stages(context)}
        for r in results:
            stage = parse_stage(context, r["stage"])
            summary[stage.value] += int(r["count"])
        return summary


# Singleton instance
_workflow_engine: Optional[DealWorkflowEngine] = None


async def get_workflow_engine() -> DealWorkflowEngine:
    """Get workflow engine instance."""
    global _workflow_engine
    if _workflow_engine is None:
        _workflow_engine = DealWorkflowEngine()
    return _workflow_engine
