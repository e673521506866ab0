"""
Authentication service with MongoDB and bcrypt.

Handles registration, email verification, login with optional TOTP 2FA,
server-side sessions, and password reset.
"""

import asyncio
import logging
import bcrypt
from datetime import timedelta
from functools import partial
from typing import Optional, Dict, Any

from pymongo.errors import DuplicateKeyError

from portal.config import settings
from portal.database.mongodb import database
from portal.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailNotVerifiedError,
    NotFoundError,
    ValidationError,
)
from portal.models.auth_models import RegisterRequest
from portal.mongodb_models import (
    AccountDocument,
    SessionDocument,
    UserDocument,
    UserRole,
    utc_now,
)
from portal.services.email_service import email_service
from portal.services.totp_service import totp_service
from portal.utils.id_generator import (
    ACCOUNT_PREFIX,
    USER_PREFIX,
    generate_id,
    generate_token,
)

logger = logging.getLogger(__name__)

# Returned by forgot_password whether or not the address exists
PASSWORD_RESET_MESSAGE = "If an account with that email exists, a password reset email has been sent."


async def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt in the default thread pool.

    bcrypt only looks at the first 72 bytes, so input is truncated explicitly.
    """
    password_bytes = password.encode('utf-8')[:72]
    loop = asyncio.get_running_loop()
    hashed = await loop.run_in_executor(
        None,
        partial(bcrypt.hashpw, password_bytes, bcrypt.gensalt())
    )
    return hashed.decode('utf-8')


async def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored bcrypt hash without blocking the event loop."""
    if not password_hash:
        return False
    password_bytes = password.encode('utf-8')[:72]
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            None,
            partial(bcrypt.checkpw, password_bytes, password_hash.encode('utf-8'))
        )
    except ValueError as e:
        # Stored value is not a bcrypt hash
        logger.error(f"[AUTH] Invalid password hash format: {e}")
        return False


def _is_expired(expires_at) -> bool:
    return expires_at is None or expires_at <= utc_now()


class AuthService:
    """Authentication service for portal users."""

    async def register(self, payload: RegisterRequest) -> Dict[str, Any]:
        """
        Register a new user together with a new Account.

        Returns:
            dict: The stored user document

        Raises:
            ConflictError: If the email or username is already taken
        """
        logger.info("=" * 80)
        logger.info(f"[AUTH] Registration attempt: {payload.email} ({payload.username})")
        logger.info("=" * 80)

        if await database.users.find_one({"email": payload.email}):
            logger.warning(f"[AUTH] FAILED - Email already registered: {payload.email}")
            raise ConflictError("Email already registered")

        if await database.users.find_one({"username": payload.username}):
            logger.warning(f"[AUTH] FAILED - Username already taken: {payload.username}")
            raise ConflictError("Username already taken")

        password_hash = await hash_password(payload.password)
        verification_token = generate_token()

        account = AccountDocument(
            account_id=generate_id(ACCOUNT_PREFIX),
            name=payload.account_name or f"{payload.first_name} {payload.last_name}'s Account",
            credits=settings.registration_free_credits,
            subscription_plan="free"
        ).to_mongo()

        user = UserDocument(
            user_id=generate_id(USER_PREFIX),
            account_id=account["account_id"],
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            username=payload.username,
            password_hash=password_hash,
            role=UserRole.USER,
            email_verification_token=verification_token,
            email_verification_expires=utc_now() + timedelta(hours=settings.email_verification_ttl_hours)
        ).to_mongo()

        try:
            async with database.transaction() as session:
                await database.accounts.insert_one(account, session=session)
                await database.users.insert_one(user, session=session)
        except DuplicateKeyError as e:
            # Lost a race with a concurrent registration for the same email/username
            logger.warning(f"[AUTH] FAILED - Duplicate key on registration: {e}")
            if not settings.mongodb_transactions_enabled:
                await database.accounts.delete_one({"account_id": account["account_id"]})
            raise ConflictError("Email or username already registered")

        logger.info(f"[AUTH] SUCCESS - Registered user {user['user_id']} in account {account['account_id']}")

        result = await email_service.send_verification_email(user, verification_token)
        if not result.success:
            logger.warning(f"[AUTH] Verification email not delivered to {user['email']}: {result.error}")

        return user

    async def verify_email(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Mark the user owning ``token`` as verified.

        Raises:
            ValidationError: Missing or expired token
            NotFoundError: Unknown token
        """
        if not token:
            raise ValidationError("Invalid verification token")

        user = await database.users.find_one({"email_verification_token": token})
        if not user:
            logger.warning("[AUTH] Email verification with unknown token")
            raise NotFoundError("Invalid or expired verification token")

        if _is_expired(user.get("email_verification_expires")):
            logger.warning(f"[AUTH] Expired verification token for {user['email']}")
            raise ValidationError("Verification token has expired")

        await database.users.update_one(
            {"user_id": user["user_id"]},
            {
                "$set": {
                    "is_email_verified": True,
                    "email_verification_token": None,
                    "email_verification_expires": None,
                    "updated_at": utc_now()
                }
            }
        )
        logger.info(f"[AUTH] Email verified for user {user['user_id']}")
        return user

    async def login(
        self,
        email: str,
        password: str,
        two_factor_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Authenticate a user and open a session.

        Returns:
            dict: Either ``{"requires_two_factor": True}`` when a TOTP code is
            still needed, or ``{"session_token", "expires_at", "user"}``.

        Raises:
            AuthenticationError: Unknown email, wrong password or wrong 2FA code
            EmailNotVerifiedError: Correct password but email not verified
        """
        logger.info("=" * 80)
        logger.info(f"[AUTH] Login attempt: {email}")
        logger.info("=" * 80)

        # Step 1: Find user
        logger.info("[AUTH] Step 1: Looking up user...")
        user = await database.users.find_one({"email": email})
        if not user:
            logger.warning(f"[AUTH] FAILED - User not found: {email}")
            raise AuthenticationError("Invalid credentials")

        # Step 2: Verify password
        logger.info("[AUTH] Step 2: Verifying password...")
        if not await verify_password(password, user.get("password_hash")):
            logger.warning(f"[AUTH] FAILED - Password verification failed for {email}")
            raise AuthenticationError("Invalid credentials")

        # Step 3: Email must be verified
        logger.info("[AUTH] Step 3: Checking email verification...")
        if not user.get("is_email_verified"):
            logger.warning(f"[AUTH] FAILED - Email not verified: {email}")
            raise EmailNotVerifiedError()

        # Step 4: Second factor
        if user.get("two_factor_enabled"):
            logger.info("[AUTH] Step 4: Two-factor authentication enabled")
            if not two_factor_code:
                logger.info(f"[AUTH] Two-factor code required for {email}")
                return {"requires_two_factor": True}
            if not totp_service.verify_code(user.get("two_factor_secret"), two_factor_code):
                logger.warning(f"[AUTH] FAILED - Invalid two-factor code for {email}")
                raise AuthenticationError("Invalid two-factor code")

        # Step 5: Create session
        logger.info("[AUTH] Step 5: Creating session...")
        now = utc_now()
        session_doc = SessionDocument(
            session_token=generate_token(),
            user_id=user["user_id"],
            account_id=user["account_id"],
            created_at=now,
            expires_at=now + timedelta(hours=settings.session_ttl_hours)
        ).to_mongo()
        await database.sessions.insert_one(session_doc)

        await database.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"last_login": now, "updated_at": now}}
        )
        user["last_login"] = now

        logger.info(f"[AUTH] SUCCESS - Session created for {email}, expires {session_doc['expires_at'].isoformat()}")

        return {
            "session_token": session_doc["session_token"],
            "expires_at": session_doc["expires_at"],
            "user": user
        }

    async def verify_session(self, session_token: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Resolve a session token to its user.

        Returns:
            dict: The user document, or None if the session is unknown, inactive or expired
        """
        if not session_token:
            return None

        session = await database.sessions.find_one({
            "session_token": session_token,
            "is_active": True
        })
        if not session:
            logger.debug("[AUTH] Session not found or inactive")
            return None

        if _is_expired(session.get("expires_at")):
            logger.info(f"[AUTH] Session expired for user {session.get('user_id')}")
            await database.sessions.update_one(
                {"session_token": session_token},
                {"$set": {"is_active": False}}
            )
            return None

        user = await database.users.find_one({"user_id": session["user_id"]})
        if not user:
            logger.warning(f"[AUTH] Session references missing user {session['user_id']}")
            return None

        return user

    async def logout(self, session_token: Optional[str]) -> bool:
        """Deactivate a session. Returns True if a session was closed."""
        if not session_token:
            return False
        result = await database.sessions.update_one(
            {"session_token": session_token, "is_active": True},
            {"$set": {"is_active": False, "logged_out_at": utc_now()}}
        )
        logger.info(f"[AUTH] Logout - session closed: {result.modified_count > 0}")
        return result.modified_count > 0

    async def forgot_password(self, email: str) -> str:
        """
        Issue a single-use reset token if the email belongs to a user.

        The same message is returned either way to avoid account enumeration.
        """
        user = await database.users.find_one({"email": email})
        if not user:
            logger.info("[AUTH] Password reset requested for unknown email")
            return PASSWORD_RESET_MESSAGE

        token = generate_token()
        await database.users.update_one(
            {"user_id": user["user_id"]},
            {
                "$set": {
                    "password_reset_token": token,
                    "password_reset_expires": utc_now() + timedelta(hours=settings.password_reset_ttl_hours),
                    "updated_at": utc_now()
                }
            }
        )
        result = await email_service.send_password_reset_email(user, token)
        if not result.success:
            logger.warning(f"[AUTH] Password reset email not delivered to {email}: {result.error}")

        logger.info(f"[AUTH] Password reset token issued for user {user['user_id']}")
        return PASSWORD_RESET_MESSAGE

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Set a new password using a reset token and consume the token.

        Raises:
            NotFoundError: Unknown (or already used) token
            ValidationError: Expired token
        """
        user = await database.users.find_one({"password_reset_token": token})
        if not user:
            raise NotFoundError("Invalid or expired reset token")

        if _is_expired(user.get("password_reset_expires")):
            raise ValidationError("Reset token has expired")

        password_hash = await hash_password(new_password)
        await database.users.update_one(
            {"user_id": user["user_id"]},
            {
                "$set": {
                    "password_hash": password_hash,
                    "password_reset_token": None,
                    "password_reset_expires": None,
                    "updated_at": utc_now()
                }
            }
        )
        # Existing sessions are closed once the password changes
        await database.sessions.update_many(
            {"user_id": user["user_id"], "is_active": True},
            {"$set": {"is_active": False}}
        )
        logger.info(f"[AUTH] Password reset completed for user {user['user_id']}")

    async def change_password(self, user: Dict[str, Any], current_password: str, new_password: str) -> None:
        """
        Raises:
            AuthenticationError: If the current password is wrong
        """
        if not await verify_password(current_password, user.get("password_hash")):
            raise AuthenticationError("Current password is incorrect")

        await database.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"password_hash": await hash_password(new_password), "updated_at": utc_now()}}
        )
        logger.info(f"[AUTH] Password changed for user {user['user_id']}")

    # ------------------------------------------------------------------
    # Two-factor authentication
    # ------------------------------------------------------------------

    async def setup_two_factor(self, user: Dict[str, Any]) -> Dict[str, str]:
        """
        Raises:
            ValidationError: If 2FA is already enabled
        """
        if user.get("two_factor_enabled"):
            raise ValidationError("Two-factor authentication is already enabled")
        return totp_service.create_enrollment(user["email"])

    async def enable_two_factor(self, user: Dict[str, Any], secret: str, code: str) -> None:
        """
        Persist ``secret`` once ``code`` proves the authenticator holds it.

        Raises:
            ValidationError: If the code does not match the secret
        """
        if not totp_service.verify_code(secret, code):
            logger.warning(f"[2FA] Invalid verification code for user {user['user_id']}")
            raise ValidationError("Invalid verification code")

        await database.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"two_factor_enabled": True, "two_factor_secret": secret, "updated_at": utc_now()}}
        )
        logger.info(f"[2FA] Enabled for user {user['user_id']}")

    async def disable_two_factor(self, user: Dict[str, Any]) -> None:
        """
        Raises:
            ValidationError: If 2FA is not enabled
        """
        if not user.get("two_factor_enabled"):
            raise ValidationError("Two-factor authentication is not enabled")

        await database.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"two_factor_enabled": False, "two_factor_secret": None, "updated_at": utc_now()}}
        )
        logger.info(f"[2FA] Disabled for user {user['user_id']}")


# Global auth service instance
auth_service = AuthService()
