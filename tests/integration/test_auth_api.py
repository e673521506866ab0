"""
Integration tests for the /api/auth endpoints: registration, verification,
login with and without 2FA, logout and password reset.
"""

from http.cookies import SimpleCookie

import pyotp
import pytest

from portal.config import settings

PASSWORD = "Engine1843"


def registration(**overrides):
    body = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
        "username": "ada",
        "password": PASSWORD,
    }
    body.update(overrides)
    return body


def session_cookie(response) -> str:
    """Value of the session cookie set by ``response`` ('' when none)."""
    cookie = SimpleCookie()
    for header in response.headers.get_list("set-cookie"):
        cookie.load(header)
    morsel = cookie.get(settings.session_cookie_name)
    return morsel.value if morsel else ""


async def register_and_verify(client, fake_db, **overrides):
    response = await client.post("/api/auth/register", json=registration(**overrides))
    assert response.status_code == 201
    stored = await fake_db.users.find_one({"email": response.json()["data"]["user"]["email"]})
    verify = await client.get("/api/auth/verify-email", params={"token": stored["email_verification_token"]})
    assert verify.status_code == 200
    return stored


class TestRegistration:

    async def test_register_creates_account_and_unverified_user(self, client, fake_db):
        response = await client.post("/api/auth/register", json=registration(accountName="Analytical Ltd"))

        assert response.status_code == 201
        user = response.json()["data"]["user"]
        assert user["email"] == "ada@example.com"
        assert user["isEmailVerified"] is False
        assert "passwordHash" not in user
        assert "emailVerificationToken" not in user

        account = await fake_db.accounts.find_one({"account_id": user["accountId"]})
        assert account["name"] == "Analytical Ltd"
        assert account["credits"] == settings.registration_free_credits

    async def test_duplicate_email_is_conflict(self, client, fake_db):
        await client.post("/api/auth/register", json=registration())

        response = await client.post("/api/auth/register", json=registration(username="ada2"))

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Email already registered"
        assert await fake_db.users.count_documents({}) == 1

    async def test_duplicate_username_is_conflict(self, client):
        await client.post("/api/auth/register", json=registration())

        response = await client.post("/api/auth/register", json=registration(email="other@example.com"))

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Username already taken"

    async def test_invalid_payload(self, client):
        response = await client.post("/api/auth/register", json=registration(email="not-an-email"))

        assert response.status_code == 400
        assert "email" in response.json()["error"]["message"]


class TestEmailVerification:

    async def test_unknown_token(self, client):
        response = await client.get("/api/auth/verify-email", params={"token": "nope"})

        assert response.status_code == 404

    async def test_missing_token(self, client):
        response = await client.get("/api/auth/verify-email")

        assert response.status_code == 400

    async def test_token_is_single_use(self, client, fake_db):
        await client.post("/api/auth/register", json=registration())
        stored = await fake_db.users.find_one({"email": "ada@example.com"})
        token = stored["email_verification_token"]

        first = await client.get("/api/auth/verify-email", params={"token": token})
        second = await client.get("/api/auth/verify-email", params={"token": token})

        assert first.status_code == 200
        assert second.status_code == 404


class TestLogin:

    async def test_unverified_user_cannot_log_in(self, client):
        await client.post("/api/auth/register", json=registration())

        response = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": PASSWORD})

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "email_not_verified"

    async def test_wrong_password(self, client, fake_db):
        await register_and_verify(client, fake_db)

        response = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "Wrong12345"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid credentials"

    async def test_login_sets_session_cookie(self, client, fake_db):
        await register_and_verify(client, fake_db)

        response = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["isEmailVerified"] is True
        token = session_cookie(response)
        assert token
        assert "httponly" in response.headers["set-cookie"].lower()

        me = await client.get("/api/auth/user", headers={"Cookie": f"session_id={token}"})
        assert me.status_code == 200
        assert me.json()["data"]["username"] == "ada"

    async def test_two_factor_challenge(self, client, fake_db):
        stored = await register_and_verify(client, fake_db)
        secret = pyotp.random_base32()
        await fake_db.users.update_one(
            {"user_id": stored["user_id"]},
            {"$set": {"two_factor_enabled": True, "two_factor_secret": secret}}
        )

        challenge = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
        assert challenge.status_code == 200
        assert challenge.json()["requiresTwoFactor"] is True
        assert session_cookie(challenge) == ""
        assert await fake_db.sessions.count_documents({}) == 0

        wrong = await client.post(
            "/api/auth/login",
            json={"email": "ada@example.com", "password": PASSWORD, "twoFactorCode": "000000"}
        )
        if wrong.status_code == 200:
            pytest.skip("000000 happened to be the current code")
        assert wrong.status_code == 401

        ok = await client.post(
            "/api/auth/login",
            json={"email": "ada@example.com", "password": PASSWORD, "twoFactorCode": pyotp.TOTP(secret).now()}
        )
        assert ok.status_code == 200
        assert session_cookie(ok)


class TestSession:

    async def test_user_requires_cookie(self, client):
        response = await client.get("/api/auth/user")

        assert response.status_code == 401

    async def test_unknown_session(self, client):
        response = await client.get("/api/auth/user", headers={"Cookie": "session_id=forged"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid or expired session"

    async def test_logout_closes_session(self, client, user_headers):
        response = await client.post("/api/auth/logout", headers=user_headers)

        assert response.status_code == 200
        assert 'session_id=""' in response.headers["set-cookie"] or "Max-Age=0" in response.headers["set-cookie"]

        me = await client.get("/api/auth/user", headers=user_headers)
        assert me.status_code == 401


class TestPasswordReset:

    async def test_same_message_for_unknown_email(self, client, fake_db):
        await register_and_verify(client, fake_db)

        known = await client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})
        unknown = await client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]

    async def test_reset_then_login_with_new_password(self, client, fake_db):
        await register_and_verify(client, fake_db)
        await client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})
        stored = await fake_db.users.find_one({"email": "ada@example.com"})

        reset = await client.post(
            "/api/auth/reset-password",
            json={"token": stored["password_reset_token"], "password": "Difference1"}
        )
        assert reset.status_code == 200

        old = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
        new = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "Difference1"})
        assert old.status_code == 401
        assert new.status_code == 200

    async def test_bad_reset_token(self, client):
        response = await client.post("/api/auth/reset-password", json={"token": "nope", "password": "Difference1"})

        assert response.status_code == 404


class TestTwoFactorEnrollment:

    async def test_setup_then_verify(self, client, fake_db, user, user_headers):
        setup = await client.post("/api/auth/2fa/setup", headers=user_headers)

        assert setup.status_code == 200
        data = setup.json()["data"]
        assert data["qrCodeUrl"].startswith("data:image/png;base64,")
        assert (await fake_db.users.find_one({"user_id": user["user_id"]}))["two_factor_enabled"] is False

        verify = await client.post(
            "/api/auth/2fa/verify",
            json={"secret": data["secret"], "token": pyotp.TOTP(data["secret"]).now()},
            headers=user_headers
        )

        assert verify.status_code == 200
        stored = await fake_db.users.find_one({"user_id": user["user_id"]})
        assert stored["two_factor_enabled"] is True
        assert stored["two_factor_secret"] == data["secret"]

    async def test_disable_when_not_enabled(self, client, user_headers):
        response = await client.post("/api/auth/2fa/disable", headers=user_headers)

        assert response.status_code == 400
