"""Portal API routers."""

from .admin import router as admin_router
from .board import admin_router as admin_board_router
from .board import partner_router as partner_board_router
from .certificates import router as certificates_router
from .dashboard import router as dashboard_router
from .deals import router as deals_router
from .learning import router as learning_router
from .profile import router as profile_router
from .support import knowledge_router, mdf_router, tickets_router

__all__ = [
    "admin_router",
    "admin_board_router",
    "partner_board_router",
    "certificates_router",
    "dashboard_router",
    "deals_router",
    "learning_router",
    "profile_router",
    "knowledge_router",
    "mdf_router",
    "tickets_router",
]
