"""Verification and password-reset codes over SMS (Twilio REST API)."""

import logging

from typing import Optional

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


class SmsService:
    """SMS collaborator. Without Twilio credentials it logs the code instead."""

    BASE_URL = "https://api.twilio.com/2010-04-01"

    def __init__(self, settings: Settings, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(
            self.settings.TWILIO_ACCOUNT_SID
            and self.settings.TWILIO_AUTH_TOKEN
            and self.settings.TWILIO_FROM_NUMBER
        )

    async def send_verification_sms(self, phone: str, code: str) -> dict:
        body = (
            f"Your समाधान verification code is: {code}. "
            f"Valid for {self.settings.PHONE_CODE_EXPIRE_MINUTES} minutes."
        )
        return await self._send(phone, body, code)

    async def send_password_reset_sms(self, phone: str, code: str) -> dict:
        body = (
            f"Your समाधान password reset code is: {code}. "
            f"Valid for {self.settings.PHONE_CODE_EXPIRE_MINUTES} minutes."
        )
        return await self._send(phone, body, code)

    async def _send(self, phone: str, body: str, code: str) -> dict:
        if not self.configured:
            logger.info(f"📱 SMS service not configured. Code for {phone}: {code}")
            return {"success": True, "status": "logged"}

        sid = self.settings.TWILIO_ACCOUNT_SID
        url = f"{self.BASE_URL}/Accounts/{sid}/Messages.json"
        data = {"To": phone, "From": self.settings.TWILIO_FROM_NUMBER, "Body": body}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, data=data, auth=(sid, self.settings.TWILIO_AUTH_TOKEN))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"❌ SMS sending to {phone} failed: {e}")
            return {"success": False, "error": str(e)}

        message_sid = response.json().get("sid")
        logger.info(f"✅ SMS sent successfully: {message_sid}")
        return {"success": True, "messageSid": message_sid}
