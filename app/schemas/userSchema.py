from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.constants.constants import AuthMethod, UserRole
from app.schemas.authSchema import validate_name


class NotificationPreferences(BaseModel):
    email: bool
    sms: bool
    push: bool


class Location(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class UserSummary(BaseModel):
    """Projection returned with a token pair; never carries credentials or challenges."""

    user_id: str = Field(serialization_alias="id")
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    auth_method: AuthMethod = Field(serialization_alias="authMethod")
    is_verified: bool = Field(serialization_alias="isVerified")
    role: UserRole
    avatar: Optional[dict] = None
    reports_count: int = Field(serialization_alias="reportsCount")
    reputation: int

    class Config:
        from_attributes = True


class UserResponse(UserSummary):
    location: Location
    notifications: NotificationPreferences
    resolved_reports_count: int = Field(serialization_alias="resolvedReportsCount")
    last_login: Optional[datetime] = Field(default=None, serialization_alias="lastLogin")
    created_at: datetime = Field(serialization_alias="createdAt")


class AdminUserResponse(UserResponse):
    is_active: bool = Field(serialization_alias="isActive")
    is_banned: bool = Field(serialization_alias="isBanned")
    ban_reason: Optional[str] = Field(default=None, serialization_alias="banReason")


class NotificationUpdate(BaseModel):
    email: bool = True
    sms: bool = False
    push: bool = True


class LocationUpdate(BaseModel):
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    location: Optional[LocationUpdate] = None
    notifications: Optional[NotificationUpdate] = None
    # base64 or data URL
    avatar: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return validate_name(v) if v is not None else v


def serialize_user(user, schema=UserSummary) -> dict:
    return schema.model_validate(user).model_dump(mode="json", by_alias=True)
