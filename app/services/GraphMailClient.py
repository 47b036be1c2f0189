"""Sends transactional mail from one shared mailbox through Microsoft Graph."""

import logging
from datetime import timedelta
from typing import Optional

import httpx

from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.microsoft.com/v1.0"
LOGIN_URL = "https://login.microsoftonline.com"
# renew a little before Graph would reject the token
TOKEN_LEEWAY = timedelta(minutes=5)


class EmailDeliveryError(Exception):
    """Graph refused the credentials or the message."""


class GraphMailClient:
    """
    App-only (client credentials) Graph client.

    The sender mailbox must grant Mail.Send to the app registration. Tokens
    are cached per client instance and renewed once on a 403.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        sender: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.sender = sender
        self.timeout = timeout
        self.transport = transport
        self._token: Optional[str] = None
        self._token_expires_at = None

    @property
    def configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret and self.sender)

    def _token_is_fresh(self) -> bool:
        return bool(self._token) and utcnow() < self._token_expires_at - TOKEN_LEEWAY

    def forget_token(self) -> None:
        self._token = None
        self._token_expires_at = None

    async def _app_token(self, client: httpx.AsyncClient) -> str:
        if self._token_is_fresh():
            return self._token

        response = await client.post(
            f"{LOGIN_URL}/{self.tenant_id}/oauth2/v2.0/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": "https://graph.microsoft.com/.default",
            },
        )
        if response.status_code != 200:
            raise EmailDeliveryError(f"Graph token request failed: HTTP {response.status_code}")

        payload = response.json()
        self._token = payload["access_token"]
        self._token_expires_at = utcnow() + timedelta(seconds=payload.get("expires_in", 3600))
        logger.info("✅ [Graph] App token refreshed")
        return self._token

    async def send_mail(self, to: str, subject: str, html: str) -> None:
        """Deliver one HTML message. Raises EmailDeliveryError on any refusal."""
        message = {
            "message": {
                "subject": subject,
                "body": {"contentType": "HTML", "content": html},
                "toRecipients": [{"emailAddress": {"address": to}}],
            },
            "saveToSentItems": False,
        }
        url = f"{GRAPH_URL}/users/{self.sender}/sendMail"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(2):
                token = await self._app_token(client)
                response = await client.post(url, json=message, headers={"Authorization": f"Bearer {token}"})
                if response.status_code == 403 and attempt == 0:
                    logger.warning("⚠️ [Graph] sendMail got 403, retrying with a new token")
                    self.forget_token()
                    continue
                break

        if response.status_code not in (200, 202):
            raise EmailDeliveryError(f"Graph sendMail failed: HTTP {response.status_code}")
