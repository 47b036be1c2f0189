"""User model for Samadhan: one registered citizen or municipal staff identity."""

import uuid
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from app.constants.constants import AuthMethod, DEFAULT_COUNTRY, IdentityStatus, UserRole
from app.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(auth_method = 'email' AND email IS NOT NULL) OR "
            "(auth_method = 'phone' AND phone IS NOT NULL)",
            name="ck_users_login_identifier_present",
        ),
    )

    user_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    # NULLs never collide under a unique index, so both columns are sparse-unique
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String(20), unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=True)
    auth_method = Column(Enum(AuthMethod, native_enum=False, length=10), nullable=False, index=True)
    status = Column(Enum(IdentityStatus, native_enum=False, length=40), nullable=False, index=True)
    role = Column(Enum(UserRole, native_enum=False, length=20), nullable=False, default=UserRole.citizen)

    is_active = Column(Boolean, default=True, nullable=False)
    is_banned = Column(Boolean, default=False, nullable=False)
    ban_reason = Column(String, nullable=True)
    last_login = Column(DateTime, nullable=True)

    reports_count = Column(Integer, default=0, nullable=False)
    resolved_reports_count = Column(Integer, default=0, nullable=False)
    reputation = Column(Integer, default=0, nullable=False)

    notify_email = Column(Boolean, default=True, nullable=False)
    notify_sms = Column(Boolean, default=False, nullable=False)
    notify_push = Column(Boolean, default=True, nullable=False)

    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    country = Column(String, default=DEFAULT_COUNTRY, nullable=True)

    avatar_url = Column(String, nullable=True)
    avatar_public_id = Column(String, nullable=True)

    # Relationships
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    challenges = relationship(
        "VerificationChallenge",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_verified(self) -> bool:
        return self.status == IdentityStatus.verified

    @property
    def can_sign_in(self) -> bool:
        return bool(self.is_active) and not self.is_banned

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.phone

    @property
    def notifications(self) -> dict:
        return {"email": self.notify_email, "sms": self.notify_sms, "push": self.notify_push}

    @property
    def location(self) -> dict:
        return {"city": self.city, "state": self.state, "country": self.country}

    @property
    def avatar(self):
        if not self.avatar_url:
            return None
        return {"url": self.avatar_url, "publicId": self.avatar_public_id}

    def __repr__(self):
        return f"<User {self.user_id} {self.email or self.phone} {self.status.value if self.status else None}>"
