"""Per-address attempt quotas in front of the auth endpoints."""

import logging

from fastapi import Request
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import Settings
from app.core.exceptions import TooManyRequests

logger = logging.getLogger(__name__)


def build_limiter(settings: Settings) -> Limiter:
    """In-process moving-window limiter; counts reset on restart and are not shared between workers."""
    return Limiter(
        key_func=get_remote_address,
        strategy="moving-window",
        storage_uri="memory://",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


class RateLimit:
    """
    Dependency charging one attempt against a named quota.

    The quota string comes from Settings at request time, e.g.
    ``Depends(RateLimit("AUTH_RATE_LIMIT", "auth"))``. Endpoints sharing a
    scope share one counter per client address.
    """

    def __init__(self, setting_name: str, scope: str):
        self.setting_name = setting_name
        self.scope = scope

    async def __call__(self, request: Request) -> None:
        limiter: Limiter = request.app.state.limiter
        if not limiter.enabled:
            return

        settings: Settings = request.app.state.settings
        item = parse(getattr(settings, self.setting_name))
        client = get_remote_address(request)
        if not limiter.limiter.hit(item, self.scope, client):
            logger.warning(f"⛔ Rate limit {self.scope} exceeded for {client}")
            raise TooManyRequests()


auth_rate_limit = RateLimit("AUTH_RATE_LIMIT", "auth")
verification_rate_limit = RateLimit("VERIFICATION_RATE_LIMIT", "verification")
