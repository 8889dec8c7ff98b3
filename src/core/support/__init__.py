"""
Partner Support

Support tickets, the tier-gated knowledge base and MDF requests.
"""

from .tickets import (
    NewTicket,
    TicketPriority,
    TicketService,
    TicketStatus,
    TicketType,
    ACTIVE_STATUSES,
)
from .knowledge import (
    ArticleCategory,
    KnowledgeService,
    NewArticle,
    RELATED_LIMIT,
)
from .mdf import (
    CampaignType,
    MDFRequestForm,
    MDFService,
    MDFStatus,
)

__all__ = [
    "NewTicket",
    "TicketPriority",
    "TicketService",
    "TicketStatus",
    "TicketType",
    "ACTIVE_STATUSES",
    "ArticleCategory",
    "KnowledgeService",
    "NewArticle",
    "RELATED_LIMIT",
    "CampaignType",
    "MDFRequestForm",
    "MDFService",
    "MDFStatus",
]
