"""
Unit tests for AuthService: registration, email verification, login with
2FA, sessions and password reset.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pyotp
import pytest

from portal.config import settings
from portal.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailNotVerifiedError,
    NotFoundError,
    ValidationError,
)
from portal.models.auth_models import RegisterRequest
from portal.mongodb_models import utc_now
from portal.services.auth_service import (
    PASSWORD_RESET_MESSAGE,
    auth_service,
    hash_password,
    verify_password,
)

PASSWORD = "Engine1843"


def registration(**overrides) -> RegisterRequest:
    fields = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "username": "ada",
        "password": PASSWORD,
    }
    fields.update(overrides)
    return RegisterRequest(**fields)


@pytest.fixture
def sent_emails():
    """Capture outgoing emails instead of rendering and logging them."""
    with patch("portal.services.auth_service.email_service") as mock_email:
        mock_email.send_verification_email = AsyncMock()
        mock_email.send_password_reset_email = AsyncMock()
        yield mock_email


@pytest.fixture
async def verified_user(fake_db, sent_emails):
    user = await auth_service.register(registration())
    await auth_service.verify_email(user["email_verification_token"])
    return await fake_db.users.find_one({"user_id": user["user_id"]})


class TestPasswordHashing:

    async def test_hash_and_verify(self):
        hashed = await hash_password(PASSWORD)

        assert hashed.startswith("$2b$")
        assert hashed != PASSWORD
        assert await verify_password(PASSWORD, hashed) is True
        assert await verify_password("wrong-password1", hashed) is False

    async def test_missing_or_malformed_hash(self):
        assert await verify_password(PASSWORD, None) is False
        assert await verify_password(PASSWORD, "plain-text") is False


class TestRegister:

    async def test_creates_account_and_user(self, fake_db, sent_emails):
        # Act
        user = await auth_service.register(registration())

        # Assert
        account = await fake_db.accounts.find_one({"account_id": user["account_id"]})
        assert account["name"] == "Ada Lovelace's Account"
        assert account["credits"] == settings.registration_free_credits
        assert user["role"] == "user"
        assert user["is_email_verified"] is False
        assert user["password_hash"] != PASSWORD
        assert user["email_verification_token"]
        assert user["email_verification_expires"] > utc_now()

    async def test_sends_verification_email(self, sent_emails):
        user = await auth_service.register(registration())

        sent_emails.send_verification_email.assert_awaited_once()
        _, token = sent_emails.send_verification_email.await_args.args
        assert token == user["email_verification_token"]

    async def test_custom_account_name(self, fake_db, sent_emails):
        user = await auth_service.register(registration(account_name="Analytical Ltd"))

        account = await fake_db.accounts.find_one({"account_id": user["account_id"]})
        assert account["name"] == "Analytical Ltd"

    async def test_duplicate_email_conflicts(self, fake_db, sent_emails):
        await auth_service.register(registration())

        with pytest.raises(ConflictError, match="Email already registered"):
            await auth_service.register(registration(username="other"))

        assert await fake_db.users.count_documents({}) == 1
        assert await fake_db.accounts.count_documents({}) == 1

    async def test_duplicate_username_conflicts(self, sent_emails):
        await auth_service.register(registration())

        with pytest.raises(ConflictError, match="Username already taken"):
            await auth_service.register(registration(email="other@example.com"))


class TestVerifyEmail:

    async def test_marks_user_verified_and_clears_token(self, fake_db, sent_emails):
        user = await auth_service.register(registration())

        await auth_service.verify_email(user["email_verification_token"])

        stored = await fake_db.users.find_one({"user_id": user["user_id"]})
        assert stored["is_email_verified"] is True
        assert stored["email_verification_token"] is None

    async def test_token_is_single_use(self, sent_emails):
        user = await auth_service.register(registration())
        await auth_service.verify_email(user["email_verification_token"])

        with pytest.raises(NotFoundError):
            await auth_service.verify_email(user["email_verification_token"])

    async def test_missing_token(self):
        with pytest.raises(ValidationError):
            await auth_service.verify_email(None)

    async def test_expired_token(self, fake_db, sent_emails):
        user = await auth_service.register(registration())
        await fake_db.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"email_verification_expires": utc_now() - timedelta(minutes=1)}}
        )

        with pytest.raises(ValidationError, match="expired"):
            await auth_service.verify_email(user["email_verification_token"])


class TestLogin:

    async def test_unverified_user_is_rejected_after_password_check(self, sent_emails):
        await auth_service.register(registration())

        with pytest.raises(EmailNotVerifiedError) as exc_info:
            await auth_service.login("ada@example.com", PASSWORD)

        assert exc_info.value.status_code == 403

    async def test_unverified_user_with_wrong_password_gets_invalid_credentials(self, sent_emails):
        await auth_service.register(registration())

        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await auth_service.login("ada@example.com", "Wrong12345")

    async def test_unknown_email(self):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await auth_service.login("nobody@example.com", PASSWORD)

    async def test_success_creates_session(self, fake_db, verified_user):
        # Act
        result = await auth_service.login("ada@example.com", PASSWORD)

        # Assert
        session = await fake_db.sessions.find_one({"session_token": result["session_token"]})
        assert session["user_id"] == verified_user["user_id"]
        assert session["is_active"] is True
        assert result["expires_at"] > utc_now() + timedelta(hours=settings.session_ttl_hours - 1)
        assert result["user"]["last_login"] is not None

    async def test_two_factor_code_required(self, fake_db, verified_user):
        secret = pyotp.random_base32()
        await fake_db.users.update_one(
            {"user_id": verified_user["user_id"]},
            {"$set": {"two_factor_enabled": True, "two_factor_secret": secret}}
        )

        result = await auth_service.login("ada@example.com", PASSWORD)

        assert result == {"requires_two_factor": True}
        assert await fake_db.sessions.count_documents({}) == 0

    async def test_two_factor_valid_code(self, fake_db, verified_user):
        secret = pyotp.random_base32()
        await fake_db.users.update_one(
            {"user_id": verified_user["user_id"]},
            {"$set": {"two_factor_enabled": True, "two_factor_secret": secret}}
        )

        result = await auth_service.login("ada@example.com", PASSWORD, pyotp.TOTP(secret).now())

        assert "session_token" in result

    async def test_two_factor_wrong_code(self, fake_db, verified_user):
        secret = pyotp.random_base32()
        await fake_db.users.update_one(
            {"user_id": verified_user["user_id"]},
            {"$set": {"two_factor_enabled": True, "two_factor_secret": secret}}
        )
        wrong_code = str((int(pyotp.TOTP(secret).now()) + 500000) % 1000000).zfill(6)

        with pytest.raises(AuthenticationError, match="Invalid two-factor code"):
            await auth_service.login("ada@example.com", PASSWORD, wrong_code)


class TestSessions:

    async def test_verify_and_logout(self, verified_user):
        result = await auth_service.login("ada@example.com", PASSWORD)
        token = result["session_token"]

        assert (await auth_service.verify_session(token))["user_id"] == verified_user["user_id"]
        assert await auth_service.logout(token) is True
        assert await auth_service.verify_session(token) is None
        assert await auth_service.logout(token) is False

    async def test_expired_session_is_deactivated(self, fake_db, verified_user):
        result = await auth_service.login("ada@example.com", PASSWORD)
        await fake_db.sessions.update_one(
            {"session_token": result["session_token"]},
            {"$set": {"expires_at": utc_now() - timedelta(seconds=1)}}
        )

        assert await auth_service.verify_session(result["session_token"]) is None
        session = await fake_db.sessions.find_one({"session_token": result["session_token"]})
        assert session["is_active"] is False

    async def test_unknown_or_missing_token(self):
        assert await auth_service.verify_session(None) is None
        assert await auth_service.verify_session("no-such-session") is None


class TestPasswordReset:

    async def test_unknown_email_gets_same_message(self, sent_emails):
        message = await auth_service.forgot_password("nobody@example.com")

        assert message == PASSWORD_RESET_MESSAGE
        sent_emails.send_password_reset_email.assert_not_awaited()

    async def test_reset_flow(self, fake_db, sent_emails, verified_user):
        # Arrange
        login = await auth_service.login("ada@example.com", PASSWORD)
        assert await auth_service.forgot_password("ada@example.com") == PASSWORD_RESET_MESSAGE
        _, token = sent_emails.send_password_reset_email.await_args.args

        # Act
        await auth_service.reset_password(token, "NewPassword99")

        # Assert
        stored = await fake_db.users.find_one({"user_id": verified_user["user_id"]})
        assert stored["password_reset_token"] is None
        assert await verify_password("NewPassword99", stored["password_hash"])
        assert await auth_service.verify_session(login["session_token"]) is None
        with pytest.raises(AuthenticationError):
            await auth_service.login("ada@example.com", PASSWORD)

    async def test_token_is_single_use(self, sent_emails, verified_user):
        await auth_service.forgot_password("ada@example.com")
        _, token = sent_emails.send_password_reset_email.await_args.args
        await auth_service.reset_password(token, "NewPassword99")

        with pytest.raises(NotFoundError):
            await auth_service.reset_password(token, "Another12345")

    async def test_expired_token(self, fake_db, sent_emails, verified_user):
        await auth_service.forgot_password("ada@example.com")
        _, token = sent_emails.send_password_reset_email.await_args.args
        await fake_db.users.update_one(
            {"user_id": verified_user["user_id"]},
            {"$set": {"password_reset_expires": utc_now() - timedelta(seconds=1)}}
        )

        with pytest.raises(ValidationError, match="expired"):
            await auth_service.reset_password(token, "NewPassword99")

    async def test_change_password_requires_current(self, verified_user):
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            await auth_service.change_password(verified_user, "not-it-123", "NewPassword99")


class TestTwoFactorEnrollment:

    async def test_setup_does_not_persist_secret(self, fake_db, verified_user):
        enrollment = await auth_service.setup_two_factor(verified_user)

        assert enrollment["otpauth_url"].startswith("otpauth://totp/")
        assert enrollment["qr_code_url"].startswith("data:image/png;base64,")
        stored = await fake_db.users.find_one({"user_id": verified_user["user_id"]})
        assert stored["two_factor_secret"] is None
        assert stored["two_factor_enabled"] is False

    async def test_enable_with_valid_code(self, fake_db, verified_user):
        enrollment = await auth_service.setup_two_factor(verified_user)
        code = pyotp.TOTP(enrollment["secret"]).now()

        await auth_service.enable_two_factor(verified_user, enrollment["secret"], code)

        stored = await fake_db.users.find_one({"user_id": verified_user["user_id"]})
        assert stored["two_factor_enabled"] is True
        assert stored["two_factor_secret"] == enrollment["secret"]

    async def test_enable_with_invalid_code(self, verified_user):
        enrollment = await auth_service.setup_two_factor(verified_user)

        with pytest.raises(ValidationError, match="Invalid verification code"):
            await auth_service.enable_two_factor(verified_user, enrollment["secret"], "abcdef")

    async def test_setup_when_enabled_and_disable(self, fake_db, verified_user):
        verified_user["two_factor_enabled"] = True

        with pytest.raises(ValidationError, match="already enabled"):
            await auth_service.setup_two_factor(verified_user)

        await auth_service.disable_two_factor(verified_user)
        stored = await fake_db.users.find_one({"user_id": verified_user["user_id"]})
        assert stored["two_factor_enabled"] is False

    async def test_disable_when_not_enabled(self, verified_user):
        with pytest.raises(ValidationError, match="not enabled"):
            await auth_service.disable_two_factor(verified_user)
