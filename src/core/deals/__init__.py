"""
Deal Management

Stage registry, kanban board drag controller, stage workflow and the deal
repository.
"""

from .stages import (
    BoardContext,
    SalesStage,
    AdminStage,
    StageDefinition,
    get_stages,
    parse_stage,
    stage_field,
)
from .board import (
    BoardError,
    UnknownDealError,
    KanbanBoard,
    PendingStageChange,
    DragController,
    DragState,
    DropResult,
    move_deal,
)
from .workflow import (
    StageTransition,
    DealStageStore,
    DealWorkflowEngine,
    get_workflow_engine,
)
from .repository import (
    ActivityType,
    DealFilter,
    DealPriority,
    DealRepository,
    NewDeal,
    SupportType,
)

__all__ = [
    "BoardContext",
    "SalesStage",
    "AdminStage",
    "StageDefinition",
    "get_stages",
    "parse_stage",
    "stage_field",
    "BoardError",
    "UnknownDealError",
    "KanbanBoard",
    "PendingStageChange",
    "DragController",
    "DragState",
    "DropResult",
    "move_deal",
    "StageTransition",
    "DealStageStore",
    "DealWorkflowEngine",
    "get_workflow_engine",
    "ActivityType",
    "DealFilter",
    "DealPriority",
    "DealRepository",
    "NewDeal",
    "SupportType",
]
