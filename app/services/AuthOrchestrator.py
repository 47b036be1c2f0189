"""
Auth lifecycle: register -> verify -> login -> refresh -> logout.

Every operation runs on one request-scoped session and commits its own
writes before returning, so the HTTP response never runs ahead of storage.
"""

import logging
from typing import Optional

from app.constants.constants import AuthMethod, ChallengePurpose
from app.core.config import Settings
from app.core.exceptions import (
    AccountDisabled,
    AlreadyVerified,
    DuplicateIdentity,
    EmailNotVerified,
    InvalidCredentials,
    NotFound,
    ValidationFailed,
)
from app.models.user import User
from app.services.CredentialStore import CredentialStore
from app.services.TokenService import TokenService
from app.services.VerificationIssuer import VerificationIssuer
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for these details, reset instructions have been sent."


class AuthOrchestrator:
    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        tokens: TokenService,
        issuer: VerificationIssuer,
    ):
        self.settings = settings
        self.store = store
        self.tokens = tokens
        self.issuer = issuer

    # ------------------------------
    # Register
    # ------------------------------
    async def register(
        self,
        name: str,
        auth_method: AuthMethod,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        password: Optional[str] = None,
    ) -> dict:
        claimed = await self.store.find_claimed_field(email, phone)
        if claimed:
            raise DuplicateIdentity(claimed)

        auto_verify = self.settings.AUTO_VERIFY
        # a create that loses a race with another registration surfaces as DuplicateIdentity here
        user = await self.store.create_identity(
            name=name,
            auth_method=auth_method,
            email=email,
            phone=phone,
            password=password,
            verified=auto_verify,
        )
        await self.store.commit()
        logger.info(f"📝 Registered user {user.user_id} via {auth_method.value}")

        if auto_verify:
            message = "Registration successful (auto-verified). You can log in now."
        elif auth_method == AuthMethod.email:
            await self.issuer.issue_email_challenge(user)
            message = "Registration successful! Please check your email for verification."
        else:
            await self.issuer.issue_phone_challenge(user)
            message = "Registration successful! Please check your phone for verification code."

        data = {
            "userId": user.user_id,
            "authMethod": auth_method.value,
            "isVerified": user.is_verified,
            "needsVerification": not user.is_verified,
        }
        if auth_method == AuthMethod.email:
            data["email"] = user.email
        else:
            data["phone"] = user.phone
        return {"message": message, "data": data}

    # ------------------------------
    # Verify
    # ------------------------------
    async def verify_phone(self, phone: str, code: str, password: Optional[str] = None) -> dict:
        user = await self.store.find_by_phone(phone)
        if not user:
            raise NotFound()
        if not user.can_sign_in:
            raise AccountDisabled()
        # checked before the code is consumed so the user can retry with the same code
        if not user.password_hash and not password:
            raise ValidationFailed(
                "Password is required to complete phone verification",
                details=[{"field": "password", "message": "Password is required"}],
            )

        await self.issuer.check_phone_code(user, code, ChallengePurpose.verification)
        if password and not user.password_hash:
            await self.store.set_password(user, password)

        tokens = await self.tokens.issue_and_store_pair(user.user_id)
        await self.store.update(user, last_login=utcnow())
        await self.store.commit()
        logger.info(f"✅ Phone verified successfully: {user.user_id}")
        return {"user": user, **tokens}

    async def verify_email(self, token: str) -> User:
        user = await self.issuer.check_email_token(token, ChallengePurpose.verification)
        await self.store.commit()
        logger.info(f"✅ Email verified successfully: {user.user_id}")
        return user

    async def resend_verification(
        self, auth_method: AuthMethod, email: Optional[str] = None, phone: Optional[str] = None
    ) -> str:
        user = await self.store.find_by_login_key(auth_method, email, phone)
        if not user:
            raise NotFound()
        if user.is_verified:
            raise AlreadyVerified()

        if auth_method == AuthMethod.email:
            await self.issuer.issue_email_challenge(user)
            return "Verification email sent successfully"
        await self.issuer.issue_phone_challenge(user)
        return "Verification code sent successfully"

    # ------------------------------
    # Sessions
    # ------------------------------
    async def login(
        self,
        auth_method: AuthMethod,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        password: Optional[str] = None,
    ) -> dict:
        """
        Returns either {"user", "accessToken", "refreshToken"} or, for a phone
        identity that still has to verify, {"needsVerification": True, "userId"}.
        """
        user = await self.store.find_by_login_key(auth_method, email, phone)
        if not user:
            raise InvalidCredentials()
        if not user.can_sign_in:
            raise AccountDisabled()

        if not user.is_verified:
            if auth_method == AuthMethod.phone:
                await self.issuer.issue_phone_challenge(user)
                logger.info(f"📱 Login by unverified phone user {user.user_id}, code re-issued")
                return {"needsVerification": True, "userId": user.user_id}
            raise EmailNotVerified()

        if not await self.store.verify_password(user, password):
            logger.info(f"🔐 Failed login for user {user.user_id}")
            raise InvalidCredentials()

        tokens = await self.tokens.issue_and_store_pair(user.user_id)
        await self.store.update(user, last_login=utcnow())
        await self.store.commit()
        logger.info(f"✅ Login successful: {user.user_id}")
        return {"user": user, **tokens}

    async def refresh(self, refresh_token: str) -> dict:
        return await self.tokens.rotate_pair(refresh_token)

    async def logout(self, user: Optional[User], refresh_token: Optional[str]) -> None:
        """Idempotent: anything other than a known token of this user is a no-op."""
        if not user or not refresh_token:
            return
        removed = await self.store.remove_refresh_token(refresh_token, user_id=user.user_id)
        await self.store.commit()
        if removed:
            logger.info(f"👋 User {user.user_id} logged out one session")

    async def get_current_identity(self, user: User) -> User:
        fresh = await self.store.find_by_id(user.user_id)
        if not fresh:
            raise NotFound()
        return fresh

    # ------------------------------
    # Password reset
    # ------------------------------
    async def forgot_password(
        self, auth_method: AuthMethod, email: Optional[str] = None, phone: Optional[str] = None
    ) -> str:
        user = await self.store.find_by_login_key(auth_method, email, phone)
        if not user or not user.can_sign_in:
            logger.info("Password reset requested for an unknown or disabled account")
            return FORGOT_PASSWORD_MESSAGE

        if auth_method == AuthMethod.email:
            await self.issuer.issue_email_challenge(user, ChallengePurpose.password_reset)
        else:
            await self.issuer.issue_phone_challenge(user, ChallengePurpose.password_reset)
        logger.info(f"🔐 Password reset issued for user {user.user_id}")
        return FORGOT_PASSWORD_MESSAGE

    async def reset_password(
        self,
        new_password: str,
        token: Optional[str] = None,
        phone: Optional[str] = None,
        code: Optional[str] = None,
    ) -> User:
        if token:
            user = await self.issuer.check_email_token(token, ChallengePurpose.password_reset)
        else:
            user = await self.store.find_by_phone(phone)
            if not user:
                raise NotFound()
            await self.issuer.check_phone_code(user, code, ChallengePurpose.password_reset)

        # a redeemed token or code proves control of the address or number
        if not user.is_verified:
            await self.store.mark_verified(user)

        await self.store.set_password(user, new_password)
        revoked = await self.store.revoke_all_refresh_tokens(user.user_id)
        await self.store.commit()
        logger.info(f"🔐 Password reset for user {user.user_id}; {revoked} session(s) revoked")
        return user
