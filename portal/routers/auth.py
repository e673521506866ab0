"""
Authentication API endpoints.

Registration, email verification, login (with optional TOTP second factor),
logout, password reset and 2FA enrollment. Sessions live server-side and
are referenced by the ``session_id`` cookie.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

from portal.config import settings
from portal.middleware.auth_middleware import get_current_user, get_session_token
from portal.middleware.rate_limiting import FORGOT_PASSWORD_RATE_LIMIT, LOGIN_RATE_LIMIT, limiter
from portal.models.auth_models import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TwoFactorSetupResponse,
    TwoFactorVerifyRequest,
    UserResponse,
)
from portal.services.auth_service import auth_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def user_payload(user: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a user document (no hashes, tokens or TOTP secret)."""
    return UserResponse.model_validate(user).to_api()


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest):
    """
    Create an account and its first user, then email a verification link.

    Responses:
    - **201**: user created, verification email sent
    - **409**: email or username already in use
    """
    user = await auth_service.register(payload)
    return {
        "success": True,
        "message": "Registration successful. Please check your email to verify your account.",
        "data": {"user": user_payload(user)}
    }


@router.get("/verify-email")
async def verify_email(token: Optional[str] = Query(None)):
    await auth_service.verify_email(token)
    return {"success": True, "message": "Email verified successfully. You can now log in."}


@router.post("/login")
@limiter.limit(LOGIN_RATE_LIMIT)  # Brute force protection
async def login(payload: LoginRequest, request: Request):
    """
    Log in with email and password (plus ``twoFactorCode`` when 2FA is on).

    Request body:
    ```json
    {"email": "ada@example.com", "password": "Engine1843", "twoFactorCode": "123456"}
    ```

    When 2FA is enabled and no code is sent the response is
    ``{"success": true, "requiresTwoFactor": true}`` and no session is created.
    """
    logger.info(f"🔑 LOGIN REQUEST: {payload.email}")

    result = await auth_service.login(payload.email, payload.password, payload.two_factor_code)

    if result.get("requires_two_factor"):
        return {
            "success": True,
            "requiresTwoFactor": True,
            "message": "Two-factor authentication code required"
        }

    response = JSONResponse(
        content={
            "success": True,
            "message": "Login successful",
            "data": {
                "user": user_payload(result["user"]),
                "expiresAt": result["expires_at"].isoformat()
            }
        }
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=result["session_token"],
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax"
    )
    logger.info(f"✅ Login successful: {payload.email}")
    return response


@router.post("/logout")
async def logout(request: Request):
    await auth_service.logout(get_session_token(request))
    response = JSONResponse(content={"success": True, "message": "Logged out successfully"})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/user")
async def get_user(current_user: Dict[str, Any] = Depends(get_current_user)):
    return {"success": True, "data": user_payload(current_user)}


@router.post("/forgot-password")
@limiter.limit(FORGOT_PASSWORD_RATE_LIMIT)
async def forgot_password(payload: ForgotPasswordRequest, request: Request):
    """Always answers with the same message, whether or not the email exists."""
    message = await auth_service.forgot_password(payload.email)
    return {"success": True, "message": message}


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest):
    await auth_service.reset_password(payload.token, payload.password)
    return {"success": True, "message": "Password has been reset successfully. You can now log in."}


# ============================================================================
# Two-factor authentication
# ============================================================================

@router.post("/2fa/setup")
async def setup_two_factor(current_user: Dict[str, Any] = Depends(get_current_user)):
    """Start enrollment: returns a new secret and its QR code. Nothing is saved yet."""
    enrollment = await auth_service.setup_two_factor(current_user)
    return {"success": True, "data": TwoFactorSetupResponse(**enrollment).to_api()}


@router.post("/2fa/verify")
async def verify_two_factor(
    payload: TwoFactorVerifyRequest,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    await auth_service.enable_two_factor(current_user, payload.secret, payload.token)
    return {"success": True, "message": "Two-factor authentication enabled successfully"}


@router.post("/2fa/disable")
async def disable_two_factor(current_user: Dict[str, Any] = Depends(get_current_user)):
    await auth_service.disable_two_factor(current_user)
    return {"success": True, "message": "Two-factor authentication disabled successfully"}
