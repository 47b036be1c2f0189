from fastapi import APIRouter, Depends

from app.core.dependencies import get_account_service
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.userSchema import ProfileUpdateRequest, UserResponse, serialize_user
from app.services.AccountService import AccountService
from app.utils.responses import api_response

router = APIRouter(
    prefix="/users",
    tags=["users"]
)


@router.patch("/me")
async def update_my_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    """Edit display name, location, notification preferences and avatar."""
    user = await accounts.update_profile(
        current_user,
        name=payload.name,
        location=payload.location.model_dump(exclude_unset=True) if payload.location else None,
        notifications=payload.notifications.model_dump(exclude_unset=True) if payload.notifications else None,
        avatar=payload.avatar,
    )
    return api_response("Profile updated successfully", {"user": serialize_user(user, UserResponse)})
