"""Security utilities: JWT signing/verification and the request session guard."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.constants import PRIVILEGED_ROLES
from app.core.config import Settings
from app.core.database import aget_db
from app.core.exceptions import (
    AccountDisabled,
    AppError,
    Forbidden,
    InvalidToken,
    TokenExpired,
    Unauthenticated,
)
from app.models.user import User
from app.services.CredentialStore import CredentialStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

bearer_scheme = HTTPBearer(auto_error=False, description="Access token issued by /auth/login")


def create_jwt_token(data: dict, secret: str, algorithm: str, expires_delta: timedelta) -> str:
    """
    Creates a JWT (JSON Web Token) with the provided data and expiration time.

    Args:
        data (dict): The payload data to be encoded in the JWT.
        secret (str): Signing secret for this token type.
        algorithm (str): JWS algorithm, e.g. HS256.
        expires_delta (timedelta): The time until the token expires.

    Returns:
        str: The encoded JWT string.

    Note:
        The token includes standard JWT claims:
        - exp (expiration time)
        - iat (issued at time)
        - jti (random token id, so two tokens minted in the same second differ)
    """
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "jti": uuid.uuid4().hex,
    })
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_jwt_token(token: str, secret: str, algorithm: str, expected_type: str) -> dict:
    """Decodes and validates a JWT token.

    Raises:
        TokenExpired: The signature is valid but the token is past its exp claim.
        InvalidToken: Bad signature, malformed token, missing claims, or wrong token type.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError as e:
        logger.debug(f"JWT decode error: {e}")
        raise InvalidToken()

    if payload.get("type") != expected_type:
        raise InvalidToken()
    return payload


def decode_access_token(token: str, settings: Settings) -> dict:
    return decode_jwt_token(token, settings.ACCESS_TOKEN_SECRET, settings.JWT_ALGORITHM, ACCESS_TOKEN_TYPE)


async def _authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> User:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()

    settings: Settings = request.app.state.settings
    payload = decode_access_token(credentials.credentials, settings)

    user = await CredentialStore(db, settings).find_by_id(payload.get("sub"))
    if not user:
        raise Unauthenticated("Invalid token. User not found.", code="USER_NOT_FOUND")

    if not user.can_sign_in:
        raise AccountDisabled("Account is disabled or banned.")

    request.state.user = user
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(aget_db),
) -> User:
    """
    Dependency to get current authenticated user from the Bearer access token
    Raises 401 if not authenticated
    """
    return await _authenticate(request, credentials, db)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(aget_db),
) -> Optional[User]:
    """Same checks as get_current_user, but proceeds anonymously on any auth failure."""
    if credentials is None:
        return None
    try:
        return await _authenticate(request, credentials, db)
    except AppError as e:
        logger.debug(f"Optional auth ignored: {e.code}")
        return None


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Reject callers without a privileged role."""
    if current_user.role not in PRIVILEGED_ROLES:
        raise Forbidden()
    return current_user
