"""Mints and checks proof-of-control challenges for the email and phone channels."""

import logging
import secrets
from datetime import timedelta

from app.constants.constants import ChallengeChannel, ChallengePurpose
from app.core.config import Settings
from app.core.exceptions import InvalidOrExpiredToken
from app.models.user import User
from app.models.verificationchallenge import VerificationChallenge
from app.services.CredentialStore import CredentialStore
from app.utils.clock import utcnow
from app.utils.tokens import secrets_match, token_digest

logger = logging.getLogger(__name__)

EMAIL_TOKEN_BYTES = 32


def generate_email_token() -> str:
    return secrets.token_hex(EMAIL_TOKEN_BYTES)


def generate_phone_code() -> str:
    """Uniform 6-digit code in 100000..999999."""
    return str(secrets.randbelow(900000) + 100000)


class VerificationIssuer:
    def __init__(self, settings: Settings, store: CredentialStore, email_sender, sms_sender):
        self.settings = settings
        self.store = store
        self.email_sender = email_sender
        self.sms_sender = sms_sender

    def _email_ttl(self, purpose: ChallengePurpose) -> timedelta:
        if purpose == ChallengePurpose.password_reset:
            return timedelta(minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES)
        return timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS)

    def _phone_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.PHONE_CODE_EXPIRE_MINUTES)

    # ------------------------------
    # Issue
    # ------------------------------
    async def issue_email_challenge(
        self, user: User, purpose: ChallengePurpose = ChallengePurpose.verification
    ) -> str:
        """Persist a fresh email token (replacing any outstanding one) and dispatch it."""
        token = generate_email_token()
        await self.store.save_challenge(
            user.user_id, ChallengeChannel.email, purpose, token, utcnow() + self._email_ttl(purpose)
        )
        # the challenge must survive a failed delivery
        await self.store.commit()

        if purpose == ChallengePurpose.password_reset:
            send = self.email_sender.send_password_reset_email
        else:
            send = self.email_sender.send_verification_email
        await self._dispatch("email", user.user_id, send, user.email, token, user.display_name)
        return token

    async def issue_phone_challenge(
        self, user: User, purpose: ChallengePurpose = ChallengePurpose.verification
    ) -> str:
        """Persist a fresh 6-digit code (replacing any outstanding one) and dispatch it."""
        code = generate_phone_code()
        await self.store.save_challenge(
            user.user_id, ChallengeChannel.phone, purpose, code, utcnow() + self._phone_ttl()
        )
        await self.store.commit()

        if purpose == ChallengePurpose.password_reset:
            send = self.sms_sender.send_password_reset_sms
        else:
            send = self.sms_sender.send_verification_sms
        await self._dispatch("sms", user.user_id, send, user.phone, code)
        return code

    async def _dispatch(self, channel: str, user_id: str, send, *args) -> None:
        try:
            result = await send(*args)
        except Exception:
            logger.exception(f"❌ Failed to dispatch {channel} challenge for user {user_id}")
            return
        if isinstance(result, dict) and not result.get("success", True):
            logger.error(f"❌ {channel} challenge for user {user_id} was not delivered: {result.get('error')}")

    # ------------------------------
    # Check
    # ------------------------------
    async def check_email_token(
        self, token: str, purpose: ChallengePurpose = ChallengePurpose.verification
    ) -> User:
        """
        Redeem an email token. For verification the identity is marked verified;
        for password reset the caller sets the new password in the same transaction.
        """
        if not token:
            raise InvalidOrExpiredToken()

        challenge = await self.store.find_challenge_by_secret(ChallengeChannel.email, purpose, token)
        if not challenge or not self._is_live(challenge):
            raise InvalidOrExpiredToken(self._invalid_message(purpose))

        user = await self.store.find_by_id(challenge.user_id)
        if not user:
            raise InvalidOrExpiredToken(self._invalid_message(purpose))

        await self.store.delete_challenge(challenge)
        if purpose == ChallengePurpose.verification:
            await self.store.mark_verified(user)
        return user

    async def check_phone_code(
        self, user: User, code: str, purpose: ChallengePurpose = ChallengePurpose.verification
    ) -> User:
        """Accept the code iff it matches the outstanding one and has not expired; single use."""
        challenge = await self.store.get_challenge(user.user_id, ChallengeChannel.phone, purpose)
        if not challenge or not self._is_live(challenge):
            raise InvalidOrExpiredToken(self._invalid_message(purpose, code=True))

        if not code or not secrets_match(token_digest(code), challenge.secret_hash):
            raise InvalidOrExpiredToken(self._invalid_message(purpose, code=True))

        await self.store.delete_challenge(challenge)
        if purpose == ChallengePurpose.verification:
            await self.store.mark_verified(user)
        return user

    @staticmethod
    def _is_live(challenge: VerificationChallenge) -> bool:
        return challenge.expires_at > utcnow()

    @staticmethod
    def _invalid_message(purpose: ChallengePurpose, code: bool = False) -> str:
        if purpose == ChallengePurpose.password_reset:
            return "Invalid or expired reset code" if code else "Invalid or expired reset token"
        return "Invalid or expired verification code" if code else "Invalid or expired verification token"
