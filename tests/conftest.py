"""Shared pytest fixtures: an isolated app per test on its own SQLite file, with recording collaborators."""

import os

# app.main builds a module-level app from the environment on import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./samadhan-import.db")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "import-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "import-refresh-secret")

import httpx
import pytest
from sqlalchemy import update

from app.constants.constants import UserRole
from app.core.config import Settings
from app.main import create_app
from app.models.user import User
from app.models.verificationchallenge import VerificationChallenge
from app.services.CredentialStore import CredentialStore
from app.utils.clock import utcnow

API = "/api/v1"
PASSWORD = "Aa123456"


class FakeEmailSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_verification_email(self, email, token, name):
        return self._record("verification", email, token, name)

    async def send_password_reset_email(self, email, token, name):
        return self._record("password_reset", email, token, name)

    def _record(self, kind, email, token, name):
        if self.fail:
            raise RuntimeError("mail relay down")
        self.sent.append({"kind": kind, "to": email, "token": token, "name": name})
        return {"success": True}

    def last_token(self, email, kind="verification"):
        for message in reversed(self.sent):
            if message["to"] == email and message["kind"] == kind:
                return message["token"]
        raise AssertionError(f"no {kind} email sent to {email}")


class FakeSmsSender:
    def __init__(self):
        self.sent = []

    async def send_verification_sms(self, phone, code):
        self.sent.append({"kind": "verification", "to": phone, "code": code})
        return {"success": True}

    async def send_password_reset_sms(self, phone, code):
        self.sent.append({"kind": "password_reset", "to": phone, "code": code})
        return {"success": True}

    def last_code(self, phone, kind="verification"):
        for message in reversed(self.sent):
            if message["to"] == phone and message["kind"] == kind:
                return message["code"]
        raise AssertionError(f"no {kind} sms sent to {phone}")


class FakeImageHost:
    def __init__(self):
        self.uploads = []
        self.deleted = []

    async def upload_image(self, payload, folder, owner=None):
        public_id = f"{folder}/{owner}/{len(self.uploads) + 1}.png"
        self.uploads.append(public_id)
        return {"url": f"https://cdn.test/{public_id}", "publicId": public_id, "width": 1, "height": 1}

    async def delete_image(self, public_id):
        self.deleted.append(public_id)
        return True


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'samadhan.db'}",
        ACCESS_TOKEN_SECRET="test-access-secret",
        REFRESH_TOKEN_SECRET="test-refresh-secret",
        BCRYPT_ROUNDS=4,
        AUTO_VERIFY=False,
        RATE_LIMIT_ENABLED=False,
        MICROSOFT_TENANT_ID="",
        MICROSOFT_CLIENT_ID="",
        MICROSOFT_CLIENT_SECRET="",
        TWILIO_ACCOUNT_SID="",
        TWILIO_AUTH_TOKEN="",
        TWILIO_FROM_NUMBER="",
    )


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def sms_sender():
    return FakeSmsSender()


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
async def app(settings, email_sender, sms_sender, image_host):
    application = create_app(settings)
    application.state.email_sender = email_sender
    application.state.sms_sender = sms_sender
    application.state.image_host = image_host
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session(app):
    async with app.state.db.get_session() as session:
        yield session


@pytest.fixture
def store(db_session, settings):
    return CredentialStore(db_session, settings)


class AuthFlow:
    """Drives the HTTP auth endpoints the way the mobile client does."""

    def __init__(self, app, client, email_sender, sms_sender):
        self.app = app
        self.client = client
        self.email_sender = email_sender
        self.sms_sender = sms_sender

    async def register_email(self, email="a@x.com", password=PASSWORD, name="Asha Rao"):
        return await self.client.post(
            f"{API}/auth/register",
            json={"name": name, "email": email, "password": password, "authMethod": "email"},
        )

    async def register_phone(self, phone="+15550001111", name="Ravi Kumar", password=None):
        body = {"name": name, "phone": phone, "authMethod": "phone"}
        if password:
            body["password"] = password
        return await self.client.post(f"{API}/auth/register", json=body)

    async def login_email(self, email="a@x.com", password=PASSWORD):
        return await self.client.post(
            f"{API}/auth/login",
            json={"email": email, "password": password, "authMethod": "email"},
        )

    async def verify_email(self, email="a@x.com"):
        token = self.email_sender.last_token(email)
        return await self.client.get(f"{API}/auth/verify-email/{token}")

    async def verify_phone(self, phone="+15550001111", password=PASSWORD, code=None):
        body = {"phone": phone, "code": code or self.sms_sender.last_code(phone)}
        if password:
            body["password"] = password
        return await self.client.post(f"{API}/auth/verify-phone", json=body)

    async def signed_in_email_user(self, email="a@x.com", password=PASSWORD, name="Asha Rao") -> dict:
        """Register, verify and log in; returns the login `data` payload."""
        assert (await self.register_email(email, password, name)).status_code == 201
        assert (await self.verify_email(email)).status_code == 200
        response = await self.login_email(email, password)
        assert response.status_code == 200, response.text
        return response.json()["data"]

    async def make_admin(self, user_id: str):
        async with self.app.state.db.get_session() as session:
            await session.execute(update(User).where(User.user_id == user_id).values(role=UserRole.admin))

    async def expire_challenges(self, user_id: str):
        async with self.app.state.db.get_session() as session:
            await session.execute(
                update(VerificationChallenge)
                .where(VerificationChallenge.user_id == user_id)
                .values(expires_at=utcnow().replace(year=2000))
            )


@pytest.fixture
def flow(app, client, email_sender, sms_sender):
    return AuthFlow(app, client, email_sender, sms_sender)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
