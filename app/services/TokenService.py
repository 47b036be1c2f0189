"""Access/refresh token pairs: issuance, verification and rotation."""

import logging
from datetime import timedelta
from typing import Dict

from app.core.config import Settings
from app.core.exceptions import AppError, InvalidRefreshToken
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_jwt_token,
    decode_access_token,
    decode_jwt_token,
)
from app.services.CredentialStore import CredentialStore
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class TokenService:
    """
    Access tokens are stateless and checked by signature and expiry only.
    Refresh tokens are signed with their own secret and are valid only while
    their digest is stored for the user, which is what makes them revocable.
    """

    def __init__(self, settings: Settings, store: CredentialStore):
        self.settings = settings
        self.store = store

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def issue_pair(self, user_id: str) -> Dict[str, str]:
        access_token = create_jwt_token(
            {"sub": str(user_id), "type": ACCESS_TOKEN_TYPE},
            self.settings.ACCESS_TOKEN_SECRET,
            self.settings.JWT_ALGORITHM,
            self.access_ttl,
        )
        refresh_token = create_jwt_token(
            {"sub": str(user_id), "type": REFRESH_TOKEN_TYPE},
            self.settings.REFRESH_TOKEN_SECRET,
            self.settings.JWT_ALGORITHM,
            self.refresh_ttl,
        )
        return {"accessToken": access_token, "refreshToken": refresh_token}

    async def issue_and_store_pair(self, user_id: str) -> Dict[str, str]:
        """Mint a pair and record its refresh token for the user."""
        tokens = self.issue_pair(user_id)
        await self.store.add_refresh_token(user_id, tokens["refreshToken"], utcnow() + self.refresh_ttl)
        return tokens

    def verify_access_token(self, token: str) -> dict:
        return decode_access_token(token, self.settings)

    def verify_refresh_token(self, token: str) -> dict:
        try:
            return decode_jwt_token(
                token,
                self.settings.REFRESH_TOKEN_SECRET,
                self.settings.JWT_ALGORITHM,
                REFRESH_TOKEN_TYPE,
            )
        except AppError:
            raise InvalidRefreshToken()

    async def rotate_pair(self, refresh_token: str) -> Dict[str, str]:
        """
        Exchange a stored refresh token for a new pair.

        The old token is redeemed with a single conditional delete; only the
        caller whose delete removed the row may continue, so one token value
        can never be rotated twice.
        """
        if not refresh_token:
            raise InvalidRefreshToken("Refresh token required")

        payload = self.verify_refresh_token(refresh_token)
        user_id = payload["sub"]

        redeemed = await self.store.remove_refresh_token(refresh_token, user_id=user_id)
        if not redeemed:
            await self.store.rollback()
            logger.warning(f"Refresh token for user {user_id} is not on file (reused or revoked)")
            raise InvalidRefreshToken()

        user = await self.store.find_by_id(user_id)
        if not user or not user.can_sign_in:
            # the redeemed token stays deleted
            await self.store.commit()
            raise InvalidRefreshToken()

        tokens = await self.issue_and_store_pair(user_id)
        await self.store.commit()
        logger.info(f"🔄 Rotated refresh token for user {user_id}")
        return tokens
