"""
Profile API

Settings page endpoints shared by partners and admins: the caller's own
name and phone, and password changes.
"""

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ....core.accounts import ProfileKind, ProfileService, ProfileUpdate
from ....core.auth import change_password, get_identity_client
from ....core.auth.session import SessionContext
from ...shared.exceptions import ForbiddenError
from ...shared.middleware.auth import require_session
from ...shared.responses import SuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdateRequest(BaseModel):
    first_name: str
    last_name: str
    phone: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    new_password: str
    confirm_password: str


def own_profile(session: SessionContext) -> Tuple[ProfileKind, str]:
    """The caller's own row; admins edit their admins row."""
    if session.admin:
        return ProfileKind.ADMIN, session.admin["id"]
    if session.partner:
        return ProfileKind.PARTNER, session.partner["id"]
    raise ForbiddenError("No partner or admin profile for this account")


@router.get("")
async def get_profile(session: SessionContext = Depends(require_session)):
    kind, record_id = own_profile(session)
    profile = await ProfileService().get(kind, record_id)
    return SuccessResponse.create({**profile, "account_type": kind.value})


@router.patch("")
async def update_profile(body: ProfileUpdateRequest, session: SessionContext = Depends(require_session)):
    kind, record_id = own_profile(session)
    profile = await ProfileService().update(
        kind, record_id, ProfileUpdate(body.first_name, body.last_name, body.phone)
    )
    return SuccessResponse.create({**profile, "account_type": kind.value})


@router.post("/password")
async def update_password(body: PasswordChangeRequest, session: SessionContext = Depends(require_session)):
    await change_password(
        get_identity_client(), session.access_token, body.new_password, body.confirm_password
    )
    return {"message": "Password updated successfully"}
