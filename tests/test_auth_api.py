"""End-to-end auth lifecycle over HTTP: register -> verify -> login -> refresh -> logout."""

import httpx
import pytest

from app.main import create_app

from conftest import API, PASSWORD, bearer


async def test_email_lifecycle(flow, client, email_sender):
    registered = await flow.register_email("a@x.com", "Aa123456")
    assert registered.status_code == 201
    body = registered.json()
    assert body["success"] is True
    assert body["data"]["isVerified"] is False
    assert body["data"]["authMethod"] == "email"
    assert "accessToken" not in body["data"]
    assert len(email_sender.sent) == 1

    early = await flow.login_email("a@x.com", "Aa123456")
    assert early.status_code == 401
    assert early.json()["message"] == "Please verify your email first"
    assert early.json()["code"] == "EMAIL_NOT_VERIFIED"
    # no automatic resend on email login
    assert len(email_sender.sent) == 1

    verified = await flow.verify_email("a@x.com")
    assert verified.status_code == 200
    assert verified.json()["data"]["isVerified"] is True
    assert "accessToken" not in verified.json()["data"]

    login = await flow.login_email("a@x.com", "Aa123456")
    assert login.status_code == 200
    data = login.json()["data"]
    assert data["accessToken"] and data["refreshToken"]
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["isVerified"] is True
    assert "password_hash" not in data["user"] and "passwordHash" not in data["user"]


async def test_duplicate_email_registration(flow):
    assert (await flow.register_email("a@x.com")).status_code == 201

    again = await flow.client.post(
        f"{API}/auth/register",
        json={"name": "Someone Else", "email": "a@x.com", "phone": "+15550009999",
              "password": "Zz987654", "authMethod": "email"},
    )
    assert again.status_code == 400
    assert again.json()["code"] == "DUPLICATE_IDENTITY"
    assert again.json()["message"] == "User with this email already exists"


async def test_verify_email_with_unknown_token(client):
    response = await client.get(f"{API}/auth/verify-email/{'0' * 64}")
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_OR_EXPIRED_TOKEN"


async def test_verification_token_stays_out_of_logs(flow, client, email_sender, caplog):
    await flow.register_email()
    token = email_sender.last_token("a@x.com")

    caplog.set_level("INFO")
    response = await client.get(f"{API}/auth/verify-email/{token}")
    assert response.status_code == 200

    assert "/auth/verify-email/***" in caplog.text
    assert all(token not in record.getMessage() for record in caplog.records)


async def test_expired_email_token_is_rejected(flow, client):
    registered = await flow.register_email()
    await flow.expire_challenges(registered.json()["data"]["userId"])
    response = await flow.verify_email()
    assert response.status_code == 400


async def test_wrong_password(flow):
    await flow.signed_in_email_user()
    response = await flow.login_email(password="Wrong1234")
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


async def test_unknown_identity_gets_invalid_credentials(flow):
    response = await flow.login_email("nobody@x.com")
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


async def test_phone_login_before_verification_reissues_code(flow, client, sms_sender):
    registered = await flow.register_phone("+15550001111")
    assert registered.status_code == 201
    assert registered.json()["data"]["needsVerification"] is True

    response = await client.post(f"{API}/auth/login", json={"phone": "+15550001111", "authMethod": "phone"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["needsVerification"] is True
    assert body["userId"] == registered.json()["data"]["userId"]
    assert len(sms_sender.sent) == 2
    assert sms_sender.sent[-1]["kind"] == "verification"
    assert (await flow.verify_phone("+15550001111")).status_code == 200


async def test_phone_verification_signs_in_and_sets_password(flow, client, sms_sender):
    await flow.register_phone("+15550001111")

    verified = await flow.verify_phone("+15550001111", password=PASSWORD)
    assert verified.status_code == 200
    data = verified.json()["data"]
    assert data["user"]["isVerified"] is True
    assert data["user"]["phone"] == "+15550001111"
    assert data["accessToken"] and data["refreshToken"]

    login = await client.post(
        f"{API}/auth/login", json={"phone": "+15550001111", "password": PASSWORD, "authMethod": "phone"}
    )
    assert login.status_code == 200
    assert login.json()["data"]["user"]["authMethod"] == "phone"

    no_password = await client.post(f"{API}/auth/login", json={"phone": "+15550001111", "authMethod": "phone"})
    assert no_password.status_code == 401


async def test_phone_code_replay_fails(flow, sms_sender):
    await flow.register_phone("+15550001111")
    code = sms_sender.last_code("+15550001111")

    assert (await flow.verify_phone("+15550001111", code=code)).status_code == 200
    replay = await flow.verify_phone("+15550001111", code=code)
    assert replay.status_code == 400
    assert replay.json()["code"] == "INVALID_OR_EXPIRED_TOKEN"


async def test_phone_verification_requires_password_when_none_on_file(flow, sms_sender):
    await flow.register_phone("+15550001111")
    code = sms_sender.last_code("+15550001111")

    missing = await flow.verify_phone("+15550001111", password=None, code=code)
    assert missing.status_code == 400
    assert missing.json()["errors"][0]["field"] == "password"

    # the code was not consumed
    assert (await flow.verify_phone("+15550001111", code=code)).status_code == 200


async def test_phone_registered_with_password_verifies_without_one(flow):
    await flow.register_phone("+15550001111", password=PASSWORD)
    assert (await flow.verify_phone("+15550001111", password=None)).status_code == 200


async def test_verify_phone_unknown_number(flow):
    response = await flow.verify_phone("+15550007777", code="123456")
    assert response.status_code == 404


async def test_resend_verification(flow, client, email_sender):
    await flow.register_email()
    response = await client.post(f"{API}/auth/resend-verification", json={"email": "a@x.com", "authMethod": "email"})
    assert response.status_code == 200
    assert len(email_sender.sent) == 2
    assert (await flow.verify_email()).status_code == 200

    again = await client.post(f"{API}/auth/resend-verification", json={"email": "a@x.com", "authMethod": "email"})
    assert again.status_code == 400
    assert again.json()["code"] == "ALREADY_VERIFIED"

    missing = await client.post(f"{API}/auth/resend-verification", json={"email": "z@x.com", "authMethod": "email"})
    assert missing.status_code == 404


async def test_logout_removes_only_the_submitted_token(flow, client):
    first = await flow.signed_in_email_user()
    second = (await flow.login_email()).json()["data"]

    out = await client.post(
        f"{API}/auth/logout",
        json={"refreshToken": first["refreshToken"]},
        headers=bearer(first["accessToken"]),
    )
    assert out.status_code == 200

    dead = await client.post(f"{API}/auth/refresh-token", json={"refreshToken": first["refreshToken"]})
    assert dead.status_code == 401
    alive = await client.post(f"{API}/auth/refresh-token", json={"refreshToken": second["refreshToken"]})
    assert alive.status_code == 200


async def test_logout_is_idempotent(flow, client):
    session = await flow.signed_in_email_user()
    body = {"refreshToken": session["refreshToken"]}
    headers = bearer(session["accessToken"])

    assert (await client.post(f"{API}/auth/logout", json=body, headers=headers)).status_code == 200
    assert (await client.post(f"{API}/auth/logout", json=body, headers=headers)).status_code == 200
    # anonymous logout changes nothing but still succeeds
    assert (await client.post(f"{API}/auth/logout", json=body)).status_code == 200
    assert (await client.post(f"{API}/auth/logout")).status_code == 200


async def test_anonymous_logout_does_not_revoke(flow, client):
    session = await flow.signed_in_email_user()
    await client.post(f"{API}/auth/logout", json={"refreshToken": session["refreshToken"]})
    refreshed = await client.post(f"{API}/auth/refresh-token", json={"refreshToken": session["refreshToken"]})
    assert refreshed.status_code == 200


async def test_me_returns_sanitized_projection(flow, client):
    session = await flow.signed_in_email_user()
    response = await client.get(f"{API}/auth/me", headers=bearer(session["accessToken"]))
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["email"] == "a@x.com"
    assert user["notifications"] == {"email": True, "sms": False, "push": True}
    assert user["location"]["country"] == "India"
    for hidden in ("password_hash", "passwordHash", "refreshTokens", "refresh_tokens", "challenges"):
        assert hidden not in user


async def test_auto_verify_override(settings, email_sender, sms_sender, image_host):
    auto_settings = settings.model_copy(update={"AUTO_VERIFY": True})
    application = create_app(auto_settings)
    application.state.email_sender = email_sender
    application.state.sms_sender = sms_sender
    application.state.image_host = image_host
    async with application.router.lifespan_context(application):
        transport = httpx.ASGITransport(app=application)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            registered = await ac.post(
                f"{API}/auth/register",
                json={"name": "Asha Rao", "email": "a@x.com", "password": PASSWORD, "authMethod": "email"},
            )
            assert registered.json()["data"]["isVerified"] is True
            assert email_sender.sent == []
            login = await ac.post(
                f"{API}/auth/login", json={"email": "a@x.com", "password": PASSWORD, "authMethod": "email"}
            )
            assert login.status_code == 200


@pytest.mark.parametrize(
    "body, field",
    [
        ({"name": "A", "email": "a@x.com", "password": PASSWORD, "authMethod": "email"}, "name"),
        ({"name": "Asha", "email": "not-an-email", "password": PASSWORD, "authMethod": "email"}, "email"),
        ({"name": "Asha", "email": "a@x.com", "password": "alllower1", "authMethod": "email"}, "password"),
        ({"name": "Asha", "phone": "0123", "authMethod": "phone"}, "phone"),
        ({"name": "Asha", "email": "a@x.com", "password": PASSWORD, "authMethod": "fax"}, "authMethod"),
    ],
)
async def test_register_validation_errors(client, body, field):
    response = await client.post(f"{API}/auth/register", json=body)
    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["code"] == "VALIDATION_ERROR"
    assert any(error["field"] == field for error in payload["errors"])


async def test_register_email_requires_password(client):
    response = await client.post(
        f"{API}/auth/register", json={"name": "Asha", "email": "a@x.com", "authMethod": "email"}
    )
    assert response.status_code == 400
    assert "Password is required" in response.json()["errors"][0]["message"]


async def test_health_check(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"
