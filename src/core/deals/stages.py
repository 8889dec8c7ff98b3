"""
Deal Stage Registry

Ordered stage lists for the two kanban boards. The partner board tracks the
sales pipeline on ``deals.stage``; the admin board tracks the full pipeline,
sales through go-live, on ``deals.admin_stage``.

Any stage may be placed in any column; there are no adjacency rules.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type, Union


class BoardContext(str, Enum):
    """Which account is looking at the pipeline."""
    PARTNER = "partner"
    ADMIN = "admin"


class SalesStage(str, Enum):
    """Partner-facing sales stages."""
    NEW_DEAL = "new_deal"
    NEED_ANALYSIS = "need_analysis"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class AdminStage(str, Enum):
    """Admin-facing stages: the sales stages followed by implementation."""
    NEW_DEAL = "new_deal"
    NEED_ANALYSIS = "need_analysis"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    URS = "urs"
    BASE_DEPLOYMENT = "base_deployment"
    GAP_ASSESSMENT = "gap_assessment"
    DEVELOPMENT = "development"
    UAT = "uat"
    IQ = "iq"
    OQ = "oq"
    DEPLOYMENT = "deployment"
    PQ = "pq"
    LIVE = "live"


Stage = Union[SalesStage, AdminStage]

DEFAULT_SALES_STAGE = SalesStage.NEW_DEAL
# First post-sales stage; an unset admin_stage always reads as this
DEFAULT_ADMIN_STAGE = AdminStage.URS

# Older sales stage ids still found on stored deals and accepted on input.
# Both boards read them as their current stage; writes store the current id.
STAGE_ALIASES: Dict[str, str] = {
    "lead": "new_deal",
    "qualified": "need_analysis",
}


@dataclass(frozen=True)
class StageDefinition:
    """A kanban column."""
    stage: Stage
    label: str

    @property
    def id(self) -> str:
        return self.stage.value


_SALES_LABELS: Dict[SalesStage, str] = {
    SalesStage.NEW_DEAL: "New Deal",
    SalesStage.NEED_ANALYSIS: "Need Analysis",
    SalesStage.PROPOSAL: "Proposal",
    SalesStage.NEGOTIATION: "Negotiation",
    SalesStage.CLOSED_WON: "Closed Won",
    SalesStage.CLOSED_LOST: "Closed Lost",
}

_ADMIN_LABELS: Dict[AdminStage, str] = {
    AdminStage.NEW_DEAL: "New Deal",
    AdminStage.NEED_ANALYSIS: "Need Analysis",
    AdminStage.PROPOSAL: "Proposal",
    AdminStage.NEGOTIATION: "Negotiation",
    AdminStage.CLOSED_WON: "Closed Won",
    AdminStage.CLOSED_LOST: "Closed Lost",
    AdminStage.URS: "URS",
    AdminStage.BASE_DEPLOYMENT: "Base Deployment",
    AdminStage.GAP_ASSESSMENT: "Gap Assessment",
    AdminStage.DEVELOPMENT: "Development",
    AdminStage.UAT: "UAT",
    AdminStage.IQ: "IQ",
    AdminStage.OQ: "OQ",
    AdminStage.DEPLOYMENT: "Deployment",
    AdminStage.PQ: "PQ",
    AdminStage.LIVE: "LIVE",
}

PARTNER_STAGES: Tuple[StageDefinition, ...] = tuple(
    StageDefinition(stage, _SALES_LABELS[stage]) for stage in SalesStage
)
ADMIN_STAGES: Tuple[StageDefinition, ...] = tuple(
    StageDefinition(stage, _ADMIN_LABELS[stage]) for stage in AdminStage
)


def get_stages(context: BoardContext) -> Tuple[StageDefinition, ...]:
    """Ordered, immutable stage list for a board context."""
    if context == BoardContext.PARTNER:
        return PARTNER_STAGES
    if context == BoardContext.ADMIN:
        return ADMIN_STAGES
    raise ValueError(f"Unknown board context: {context}")


def stage_enum(context: BoardContext) -> Type[Enum]:
    if context == BoardContext.PARTNER:
        return SalesStage
    if context == BoardContext.ADMIN:
        return AdminStage
    raise ValueError(f"Unknown board context: {context}")


def stage_field(context: BoardContext) -> str:
    """Column on ``deals`` that the board for this context moves."""
    if context == BoardContext.PARTNER:
        return "stage"
    if context == BoardContext.ADMIN:
        return "admin_stage"
    raise ValueError(f"Unknown board context: {context}")


def default_stage(context: BoardContext) -> Stage:
    if context == BoardContext.PARTNER:
        return DEFAULT_SALES_STAGE
    if context == BoardContext.ADMIN:
        return DEFAULT_ADMIN_STAGE
    raise ValueError(f"Unknown board context: {context}")


def parse_stage(context: BoardContext, value: Optional[str]) -> Stage:
    """
    Parse a stored or requested stage string.

    None and empty strings read as the context's default stage, and the
    older ids in STAGE_ALIASES read as their current stage. Unknown values
    raise ValueError so they never reach persistence.
    """
    if value is None or value == "":
        return default_stage(context)
    enum_cls = stage_enum(context)
    try:
        return enum_cls(STAGE_ALIASES.get(value, value))
    except ValueError:
        valid = [s.value for s in enum_cls]
        raise ValueError(f"Invalid {context.value} stage '{value}'. Valid stages: {valid}")


def is_stage_id(context: BoardContext, value: str) -> bool:
    value = STAGE_ALIASES.get(value, value)
    return any(d.id == value for d in get_stages(context))


def stored_values(stage: Stage) -> List[str]:
    """Every stored string that reads as ``stage``, for equality filters."""
    return [stage.value] + [old for old, new in STAGE_ALIASES.items() if new == stage.value]


def stage_label(context: BoardContext, stage: Stage) -> str:
    for definition in get_stages(context):
        if definition.stage == stage:
            return definition.label
    raise ValueError(f"Stage {stage} is not on the {context.value} board")


def humanize_stage(value: str) -> str:
    """'closed_won' -> 'closed won'."""
    return value.replace("_", " ")


def list_stage_ids(context: BoardContext) -> List[str]:
    return [d.id for d in get_stages(context)]
