"""Credential store: persistence for identities, password hashes, refresh tokens and challenges."""

import logging
from datetime import datetime
from typing import Optional

import bcrypt
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.constants.constants import (
    AuthMethod,
    ChallengeChannel,
    ChallengePurpose,
    IdentityStatus,
    PENDING_STATUS_FOR_METHOD,
)
from app.core.config import Settings
from app.core.exceptions import DuplicateIdentity
from app.models.refreshtoken import RefreshToken
from app.models.user import User
from app.models.verificationchallenge import VerificationChallenge
from app.utils.clock import utcnow
from app.utils.tokens import token_digest

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72

MUTABLE_FIELDS = {
    "name",
    "email",
    "phone",
    "role",
    "is_active",
    "is_banned",
    "ban_reason",
    "last_login",
    "reports_count",
    "resolved_reports_count",
    "reputation",
    "notify_email",
    "notify_sms",
    "notify_push",
    "city",
    "state",
    "country",
    "avatar_url",
    "avatar_public_id",
}


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash password using bcrypt with a fixed work factor."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def _duplicate_field(error: IntegrityError) -> Optional[str]:
    """Name the identifier behind a unique violation; None for any other integrity error."""
    message = str(getattr(error, "orig", error)).lower()
    if "unique" not in message:
        return None
    for field in ("email", "phone"):
        # sqlite: "users.email", postgres: index name or "key (email)"
        if f"users.{field}" in message or f"ix_users_{field}" in message or f"key ({field})" in message:
            return field
    return None


class CredentialStore:
    """Reads and writes identity records through one AsyncSession."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    # ------------------------------
    # Identities
    # ------------------------------
    async def create_identity(
        self,
        name: str,
        auth_method: AuthMethod,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        password: Optional[str] = None,
        verified: bool = False,
    ) -> User:
        if auth_method == AuthMethod.email and not email:
            raise ValueError("email identities need an email address")
        if auth_method == AuthMethod.phone and not phone:
            raise ValueError("phone identities need a phone number")
        if password is None and auth_method == AuthMethod.email:
            raise ValueError("email identities need a password")

        user = User(
            name=name,
            email=email,
            phone=phone,
            auth_method=auth_method,
            status=IdentityStatus.verified if verified else PENDING_STATUS_FOR_METHOD[auth_method],
        )
        if password is not None:
            user.password_hash = await self._hash(password)

        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as ie:
            await self.db.rollback()
            field = _duplicate_field(ie)
            if field is None:
                raise
            raise DuplicateIdentity(field) from ie
        return user

    async def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        result = await self.db.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def find_by_phone(self, phone: str) -> Optional[User]:
        if not phone:
            return None
        result = await self.db.execute(select(User).where(User.phone == phone.strip()))
        return result.scalar_one_or_none()

    async def find_by_login_key(self, auth_method: AuthMethod, email: Optional[str], phone: Optional[str]) -> Optional[User]:
        if auth_method == AuthMethod.email:
            return await self.find_by_email(email)
        return await self.find_by_phone(phone)

    async def find_claimed_field(self, email: Optional[str], phone: Optional[str]) -> Optional[str]:
        """Name the first identifier already owned by another identity."""
        if email and await self.find_by_email(email):
            return "email"
        if phone and await self.find_by_phone(phone):
            return "phone"
        return None

    async def update(self, user: User, **fields) -> User:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        for key, value in fields.items():
            setattr(user, key, value)
        try:
            await self.db.flush()
        except IntegrityError as ie:
            await self.db.rollback()
            field = _duplicate_field(ie)
            if field is None:
                raise
            raise DuplicateIdentity(field) from ie
        return user

    async def set_password(self, user: User, password: str) -> User:
        user.password_hash = await self._hash(password)
        await self.db.flush()
        return user

    async def verify_password(self, user: User, candidate: str) -> bool:
        """Compare a candidate against the stored hash; False when none is on file."""
        if not user.password_hash:
            return False
        return await run_in_threadpool(check_password, candidate, user.password_hash)

    async def mark_verified(self, user: User) -> User:
        user.status = IdentityStatus.verified
        await self.clear_challenges(user.user_id, ChallengePurpose.verification)
        await self.db.flush()
        return user

    # ------------------------------
    # Refresh tokens
    # ------------------------------
    async def add_refresh_token(self, user_id: str, token: str, expires_at: datetime) -> None:
        await self.db.execute(
            delete(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.expires_at <= utcnow(),
            )
        )
        self.db.add(RefreshToken(user_id=user_id, token_hash=token_digest(token), expires_at=expires_at))
        await self.db.flush()

    async def remove_refresh_token(self, token: str, user_id: Optional[str] = None) -> bool:
        """Delete one stored refresh token; True only if this call removed it."""
        stmt = delete(RefreshToken).where(RefreshToken.token_hash == token_digest(token))
        if user_id is not None:
            stmt = stmt.where(RefreshToken.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def has_refresh_token(self, user_id: str, token: str) -> bool:
        result = await self.db.execute(
            select(RefreshToken.id).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == token_digest(token),
            )
        )
        return result.first() is not None

    async def count_refresh_tokens(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(RefreshToken.id)).where(RefreshToken.user_id == user_id)
        )
        return result.scalar_one()

    async def revoke_all_refresh_tokens(self, user_id: str) -> int:
        result = await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        return result.rowcount

    # ------------------------------
    # Verification challenges
    # ------------------------------
    async def save_challenge(
        self,
        user_id: str,
        channel: ChallengeChannel,
        purpose: ChallengePurpose,
        secret: str,
        expires_at: datetime,
    ) -> VerificationChallenge:
        """Store a challenge, replacing any outstanding one for the same channel and purpose."""
        await self.db.execute(
            delete(VerificationChallenge).where(
                VerificationChallenge.user_id == user_id,
                VerificationChallenge.channel == channel,
                VerificationChallenge.purpose == purpose,
            )
        )
        challenge = VerificationChallenge(
            user_id=user_id,
            channel=channel,
            purpose=purpose,
            secret_hash=token_digest(secret),
            expires_at=expires_at,
        )
        self.db.add(challenge)
        await self.db.flush()
        return challenge

    async def get_challenge(
        self, user_id: str, channel: ChallengeChannel, purpose: ChallengePurpose
    ) -> Optional[VerificationChallenge]:
        result = await self.db.execute(
            select(VerificationChallenge).where(
                VerificationChallenge.user_id == user_id,
                VerificationChallenge.channel == channel,
                VerificationChallenge.purpose == purpose,
            )
        )
        return result.scalar_one_or_none()

    async def find_challenge_by_secret(
        self, channel: ChallengeChannel, purpose: ChallengePurpose, secret: str
    ) -> Optional[VerificationChallenge]:
        result = await self.db.execute(
            select(VerificationChallenge).where(
                VerificationChallenge.channel == channel,
                VerificationChallenge.purpose == purpose,
                VerificationChallenge.secret_hash == token_digest(secret),
            )
        )
        return result.scalar_one_or_none()

    async def delete_challenge(self, challenge: VerificationChallenge) -> None:
        await self.db.delete(challenge)
        await self.db.flush()

    async def clear_challenges(self, user_id: str, purpose: Optional[ChallengePurpose] = None) -> None:
        stmt = delete(VerificationChallenge).where(VerificationChallenge.user_id == user_id)
        if purpose is not None:
            stmt = stmt.where(VerificationChallenge.purpose == purpose)
        await self.db.execute(stmt)

    # ------------------------------
    # Transactions
    # ------------------------------
    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    async def _hash(self, password: str) -> str:
        # bcrypt is CPU bound; keep it off the event loop
        return await run_in_threadpool(hash_password, password, self.settings.BCRYPT_ROUNDS)
