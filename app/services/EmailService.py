"""Verification and password-reset emails."""

import logging
from html import escape

import httpx

from app.core.config import Settings
from app.services.GraphMailClient import EmailDeliveryError, GraphMailClient

logger = logging.getLogger(__name__)

EMAIL_LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: linear-gradient(135deg, #0f766e 0%, #0369a1 100%); color: white; padding: 30px; border-radius: 10px 10px 0 0; text-align: center; }}
        .content {{ background: #f9fafb; padding: 40px 30px; border-radius: 0 0 10px 10px; }}
        .cta-button {{ display: inline-block; padding: 15px 40px; background: #0f766e; color: white; text-decoration: none; border-radius: 6px; font-weight: bold; margin: 20px 0; }}
        .expires {{ color: #6b7280; font-size: 14px; margin-top: 10px; }}
        .footer {{ text-align: center; margin-top: 30px; color: #6b7280; font-size: 12px; }}
        h1 {{ margin: 0; font-size: 24px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{title}</h1>
        </div>
        <div class="content">
            <p>Hi <strong>{name}</strong>,</p>
            <p>{intro}</p>
            <div style="text-align: center;">
                <a href="{link}" class="cta-button">{action}</a>
            </div>
            <p class="expires">⏱️ This link expires in {expires}.</p>
            <p style="color: #6b7280; font-size: 14px;">
                If you didn't request this, you can safely ignore this email.
            </p>
            <div class="footer">
                <p><strong>समाधान · Samadhan</strong></p>
                <p>Report it. Track it. Fix it.</p>
            </div>
        </div>
    </div>
</body>
</html>
"""


def _describe_minutes(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


class EmailService:
    """Email collaborator. Without Graph credentials it logs what it would have sent."""

    def __init__(self, settings: Settings, client: GraphMailClient = None):
        self.settings = settings
        self.client = client or GraphMailClient(
            tenant_id=settings.MICROSOFT_TENANT_ID,
            client_id=settings.MICROSOFT_CLIENT_ID,
            client_secret=settings.MICROSOFT_CLIENT_SECRET,
            sender=settings.EMAIL_SENDER,
        )

    async def send_verification_email(self, email: str, token: str, name: str) -> dict:
        link = f"{self.settings.FRONTEND_URL.rstrip('/')}/verify-email/{token}"
        html_content = EMAIL_LAYOUT.format(
            title="✅ Verify your email",
            name=escape(name or ""),
            intro="Thanks for joining Samadhan. Confirm your email address to start reporting civic issues.",
            link=link,
            action="Verify Email",
            expires=_describe_minutes(self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS * 60),
        )
        return await self._send(email, "Verify your Samadhan account", html_content, link)

    async def send_password_reset_email(self, email: str, token: str, name: str) -> dict:
        link = f"{self.settings.FRONTEND_URL.rstrip('/')}/reset-password/{token}"
        html_content = EMAIL_LAYOUT.format(
            title="🔐 Reset your password",
            name=escape(name or ""),
            intro="We received a request to reset your Samadhan password.",
            link=link,
            action="Reset Password",
            expires=_describe_minutes(self.settings.PASSWORD_RESET_EXPIRE_MINUTES),
        )
        return await self._send(email, "Reset your Samadhan password", html_content, link)

    async def _send(self, email: str, subject: str, html_content: str, link: str) -> dict:
        if not self.client.configured:
            logger.info(f"📧 Email service not configured. Link for {email}: {link}")
            return {"success": True, "status": "logged", "email": email}

        try:
            await self.client.send_mail(email, subject, html_content)
        except (EmailDeliveryError, httpx.HTTPError) as e:
            logger.error(f"❌ [EMAIL ERROR] Failed to send '{subject}' to {email}: {e}")
            return {"success": False, "status": "failed", "email": email, "error": str(e)}

        logger.info(f"✅ [EMAIL] Sent '{subject}' to {email}")
        return {"success": True, "status": "sent", "email": email}
