"""Profile edits and moderation (ban/unban) for registered identities."""

import logging
from typing import Optional

from app.constants.constants import AVATAR_FOLDER
from app.core.exceptions import NotFound
from app.models.user import User
from app.services.CredentialStore import CredentialStore

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, store: CredentialStore, image_host):
        self.store = store
        self.image_host = image_host

    async def update_profile(
        self,
        user: User,
        name: Optional[str] = None,
        location: Optional[dict] = None,
        notifications: Optional[dict] = None,
        avatar: Optional[str] = None,
    ) -> User:
        fields = {}
        if name is not None:
            fields["name"] = name
        for key, value in (location or {}).items():
            fields[key] = value
        for key, value in (notifications or {}).items():
            fields[f"notify_{key}"] = value

        old_public_id = None
        if avatar:
            uploaded = await self.image_host.upload_image(avatar, AVATAR_FOLDER, owner=user.user_id)
            old_public_id = user.avatar_public_id
            fields["avatar_url"] = uploaded["url"]
            fields["avatar_public_id"] = uploaded["publicId"]

        await self.store.update(user, **fields)
        await self.store.commit()

        if old_public_id:
            await self.image_host.delete_image(old_public_id)

        logger.info(f"👤 Profile updated for user {user.user_id}: {sorted(fields)}")
        return user

    async def ban(self, user_id: str, reason: Optional[str] = None) -> User:
        user = await self.store.find_by_id(user_id)
        if not user:
            raise NotFound()
        await self.store.update(user, is_banned=True, ban_reason=reason)
        revoked = await self.store.revoke_all_refresh_tokens(user.user_id)
        await self.store.commit()
        logger.warning(f"🚫 User {user.user_id} banned ({reason or 'no reason given'}); {revoked} session(s) revoked")
        return user

    async def unban(self, user_id: str) -> User:
        user = await self.store.find_by_id(user_id)
        if not user:
            raise NotFound()
        await self.store.update(user, is_banned=False, ban_reason=None)
        await self.store.commit()
        logger.info(f"✅ User {user.user_id} unbanned")
        return user
