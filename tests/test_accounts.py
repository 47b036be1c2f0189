"""Password reset, profile edits and moderation."""

from conftest import API, PASSWORD, bearer

NEW_PASSWORD = "Nn654321"


async def test_forgot_password_does_not_reveal_accounts(client, email_sender):
    response = await client.post(
        f"{API}/auth/forgot-password", json={"email": "ghost@x.com", "authMethod": "email"}
    )
    assert response.status_code == 200
    assert email_sender.sent == []


async def test_email_password_reset_signs_out_everywhere(flow, client, email_sender):
    session = await flow.signed_in_email_user()

    forgot = await client.post(f"{API}/auth/forgot-password", json={"email": "a@x.com", "authMethod": "email"})
    assert forgot.status_code == 200
    token = email_sender.last_token("a@x.com", kind="password_reset")

    reset = await client.post(f"{API}/auth/reset-password", json={"token": token, "newPassword": NEW_PASSWORD})
    assert reset.status_code == 200

    assert (await flow.login_email(password=PASSWORD)).status_code == 401
    assert (await flow.login_email(password=NEW_PASSWORD)).status_code == 200

    revoked = await client.post(f"{API}/auth/refresh-token", json={"refreshToken": session["refreshToken"]})
    assert revoked.status_code == 401

    replay = await client.post(f"{API}/auth/reset-password", json={"token": token, "newPassword": "Zz111111"})
    assert replay.status_code == 400
    assert replay.json()["code"] == "INVALID_OR_EXPIRED_TOKEN"


async def test_phone_password_reset_verifies_pending_identity(flow, client, sms_sender):
    await flow.register_phone("+15550001111")

    forgot = await client.post(
        f"{API}/auth/forgot-password", json={"phone": "+15550001111", "authMethod": "phone"}
    )
    assert forgot.status_code == 200
    code = sms_sender.last_code("+15550001111", kind="password_reset")

    reset = await client.post(
        f"{API}/auth/reset-password",
        json={"phone": "+15550001111", "code": code, "newPassword": NEW_PASSWORD},
    )
    assert reset.status_code == 200

    login = await client.post(
        f"{API}/auth/login",
        json={"phone": "+15550001111", "password": NEW_PASSWORD, "authMethod": "phone"},
    )
    assert login.status_code == 200
    assert login.json()["data"]["user"]["isVerified"] is True


async def test_email_password_reset_verifies_pending_identity(flow, client, email_sender):
    assert (await flow.register_email()).status_code == 201
    assert (await flow.login_email()).json()["code"] == "EMAIL_NOT_VERIFIED"

    await client.post(f"{API}/auth/forgot-password", json={"email": "a@x.com", "authMethod": "email"})
    token = email_sender.last_token("a@x.com", kind="password_reset")
    reset = await client.post(f"{API}/auth/reset-password", json={"token": token, "newPassword": NEW_PASSWORD})
    assert reset.status_code == 200

    login = await flow.login_email(password=NEW_PASSWORD)
    assert login.status_code == 200
    assert login.json()["data"]["user"]["isVerified"] is True


async def test_reset_password_enforces_policy(client):
    response = await client.post(f"{API}/auth/reset-password", json={"token": "abc", "newPassword": "short"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "newPassword"


async def test_update_profile(flow, client, image_host):
    session = await flow.signed_in_email_user()
    headers = bearer(session["accessToken"])

    response = await client.patch(
        f"{API}/users/me",
        json={
            "name": "Asha R.",
            "location": {"city": "Pune", "state": "Maharashtra"},
            "notifications": {"sms": True},
            "avatar": "data:image/png;base64,iVBORw0KGgo=",
        },
        headers=headers,
    )
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["name"] == "Asha R."
    assert user["location"] == {"city": "Pune", "state": "Maharashtra", "country": "India"}
    assert user["notifications"] == {"email": True, "sms": True, "push": True}
    assert user["avatar"]["url"].startswith("https://cdn.test/")

    second = await client.patch(f"{API}/users/me", json={"avatar": "iVBORw0KGgo="}, headers=headers)
    assert second.status_code == 200
    assert image_host.deleted == [image_host.uploads[0]]


async def test_null_notification_preference_is_rejected(flow, client):
    session = await flow.signed_in_email_user()

    response = await client.patch(
        f"{API}/users/me", json={"notifications": {"email": None}}, headers=bearer(session["accessToken"])
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["errors"][0]["field"] == "notifications.email"

    me = await client.get(f"{API}/auth/me", headers=bearer(session["accessToken"]))
    assert me.json()["data"]["user"]["notifications"]["email"] is True


async def test_update_profile_requires_session(client):
    response = await client.patch(f"{API}/users/me", json={"name": "Nobody"})
    assert response.status_code == 401


async def test_ban_and_unban(flow, client):
    admin = await flow.signed_in_email_user("admin@x.com", name="Admin User")
    await flow.make_admin(admin["user"]["id"])
    citizen = await flow.signed_in_email_user("c@x.com", name="Citizen Kane")
    admin_headers = bearer(admin["accessToken"])

    banned = await client.post(
        f"{API}/admin/users/{citizen['user']['id']}/ban", json={"reason": "abuse"}, headers=admin_headers
    )
    assert banned.json()["data"]["user"]["isBanned"] is True
    assert banned.json()["data"]["user"]["banReason"] == "abuse"

    assert (await flow.login_email("c@x.com")).json()["code"] == "ACCOUNT_DISABLED"
    refresh = await client.post(f"{API}/auth/refresh-token", json={"refreshToken": citizen["refreshToken"]})
    assert refresh.status_code == 401

    unbanned = await client.post(f"{API}/admin/users/{citizen['user']['id']}/unban", headers=admin_headers)
    assert unbanned.json()["data"]["user"]["isBanned"] is False
    assert (await flow.login_email("c@x.com")).status_code == 200


async def test_ban_unknown_identity(flow, client):
    admin = await flow.signed_in_email_user("admin@x.com", name="Admin User")
    await flow.make_admin(admin["user"]["id"])
    response = await client.post(f"{API}/admin/users/missing/ban", headers=bearer(admin["accessToken"]))
    assert response.status_code == 404
