"""
Password rules and the set-password flow that finishes an invitation.
"""

import logging
import re
from typing import Optional

from ..errors import IdentityError
from .identity import IdentityClient, IdentityUser

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
ACTIVATION_PROCEDURE = "activate_partner_account"


def password_problem(password: str) -> Optional[str]:
    """First rule the password breaks, or None."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    return None


def validate_password(password: str, confirm_password: Optional[str] = None) -> None:
    """Raise ValueError when the password breaks a rule or does not match."""
    problem = password_problem(password)
    if problem:
        raise ValueError(problem)
    if confirm_password is not None and password != confirm_password:
        raise ValueError("Passwords do not match")


async def set_password(
    identity: IdentityClient,
    access_token: str,
    password: str,
    confirm_password: Optional[str] = None,
) -> IdentityUser:
    """
    Set the signed-in user's password.

    Partner accounts are then activated through the activation procedure.
    Activation is best-effort: the password is already set, so a failure
    is logged for an admin to resolve and never raised.
    """
    validate_password(password, confirm_password)

    await identity.update_password(access_token, password)
    user = await identity.get_user(access_token)
    if user is None:
        raise IdentityError("Could not verify user after password update", status_code=401)

    if user.account_type == "partner":
        try:
            await identity.rpc(ACTIVATION_PROCEDURE, {"user_id": user.id}, access_token=access_token)
            logger.info(f"Partner account activated for user {user.id}")
        except IdentityError as e:
            logger.error(
                f"Partner activation failed for user {user.id}; admin can activate manually: {e}"
            )
    return user


async def change_password(
    identity: IdentityClient,
    access_token: str,
    new_password: str,
    confirm_password: str,
) -> IdentityUser:
    """
    Change the signed-in user's password from the settings page.

    Only the length and the confirmation are checked here; the provider
    applies its own policy on top.
    """
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if new_password != confirm_password:
        raise ValueError("Passwords do not match")

    user = await identity.update_password(access_token, new_password)
    logger.info(f"Password changed for user {user.id}")
    return user
