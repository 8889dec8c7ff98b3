"""
Dashboard API

Landing statistics. /dashboard and /admin are the guarded page paths: the
session middleware redirects before these handlers run when the caller is
in the wrong area.
"""

from fastapi import APIRouter, Depends

from ....core.auth.session import SessionContext
from ....core.dashboard import DashboardService
from ...shared.middleware.auth import require_admin, require_partner

router = APIRouter(tags=["dashboard"])


@router.get("/api/dashboard")
async def partner_dashboard(session: SessionContext = Depends(require_partner)):
    """Deal count, pipeline value, closed-won count and active tickets for the caller."""
    stats = await DashboardService().partner_stats(session.partner_id)
    stats["partner"] = session.to_dict()
    return stats


@router.get("/dashboard")
async def dashboard_page(session: SessionContext = Depends(require_partner)):
    return await partner_dashboard(session)


@router.get("/admin")
async def admin_page(session: SessionContext = Depends(require_admin)):
    return await DashboardService().admin_stats()
