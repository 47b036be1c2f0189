import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

import argparse
import asyncio
import getpass

from app.constants.constants import AuthMethod, UserRole
from app.core.config import get_settings
from app.core.database import DatabaseSessionManager
from app.services.CredentialStore import CredentialStore


async def create_admin(email: str, name: str, password: str):
    """Create a verified admin identity, or promote the existing one for this email."""
    settings = get_settings()
    session_manager = DatabaseSessionManager(settings)
    await session_manager.init()
    await session_manager.create_all()
    try:
        async with session_manager.get_session() as db:
            store = CredentialStore(db, settings)
            user = await store.find_by_email(email)
            if user:
                await store.update(user, role=UserRole.admin, is_active=True, is_banned=False, ban_reason=None)
                print(f"✅ Promoted {email} to admin ({user.user_id})")
            else:
                user = await store.create_identity(
                    name=name,
                    auth_method=AuthMethod.email,
                    email=email.strip().lower(),
                    password=password,
                    verified=True,
                )
                await store.update(user, role=UserRole.admin)
                print(f"✅ Created admin {email} ({user.user_id})")
    finally:
        await session_manager.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote a Samadhan admin account")
    parser.add_argument("email")
    parser.add_argument("--name", default="Samadhan Admin")
    args = parser.parse_args()

    admin_password = getpass.getpass("Password for new admin (ignored when promoting): ")
    asyncio.run(create_admin(args.email, args.name, admin_password))
