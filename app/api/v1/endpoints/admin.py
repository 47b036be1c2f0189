"""Admin endpoints for moderating identities."""

from typing import Optional

from fastapi import APIRouter, Depends

from app.core.dependencies import get_account_service
from app.core.security import require_admin
from app.models.user import User
from app.schemas.authSchema import BanRequest
from app.schemas.userSchema import AdminUserResponse, serialize_user
from app.services.AccountService import AccountService
from app.utils.responses import api_response

router = APIRouter(
    prefix="/admin",
    tags=["admin"]
)


@router.post("/users/{user_id}/ban")
async def ban_user(
    user_id: str,
    payload: Optional[BanRequest] = None,
    current_user: User = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    """
    Ban an identity and sign it out of every device.

    Access tokens already issued are rejected by the session guard once the
    ban is stored, since it reloads the identity on every request.
    """
    user = await accounts.ban(user_id, payload.reason if payload else None)
    return api_response(
        f"User banned by {current_user.display_name}",
        {"user": serialize_user(user, AdminUserResponse)},
    )


@router.post("/users/{user_id}/unban")
async def unban_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.unban(user_id)
    return api_response(
        f"User unbanned by {current_user.display_name}",
        {"user": serialize_user(user, AdminUserResponse)},
    )
