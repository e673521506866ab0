"""
Authentication models for registration, login, password reset and 2FA.
"""

from pydantic import EmailStr, Field, validator
from typing import Optional, List
from datetime import datetime
import re

from portal.models.base import ApiModel, check_password_strength
from portal.mongodb_models import UserRole


class RegisterRequest(ApiModel):
    """Request model for self-service registration (creates an Account and its first User)."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., description="User email address")
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)
    account_name: Optional[str] = Field(None, max_length=200, description="Defaults to '<first> <last>'s Account'")

    @validator('first_name', 'last_name')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip()

    @validator('username')
    def validate_username(cls, v):
        v = v.strip()
        if not re.match(r'^[A-Za-z0-9_.-]+$', v):
            raise ValueError("Username may only contain letters, numbers, '.', '_' and '-'")
        return v

    @validator('password')
    def validate_password(cls, v):
        """
        Validate password strength requirements.

        Rules:
        - Minimum 8 characters
        - Must contain at least one letter (A-Z, a-z)
        - Must contain at least one number (0-9)
        """
        return check_password_strength(v)

    class Config:
        json_schema_extra = {
            "example": {
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "username": "ada",
                "password": "Engine1843",
                "accountName": "Analytical Ltd"
            }
        }


class LoginRequest(ApiModel):
    """Request model for login. ``twoFactorCode`` is only needed once 2FA is enabled."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    two_factor_code: Optional[str] = Field(None, max_length=10)

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip()


class ForgotPasswordRequest(ApiModel):
    email: EmailStr

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip()


class ResetPasswordRequest(ApiModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)

    @validator('password')
    def validate_password(cls, v):
        return check_password_strength(v)


class TwoFactorVerifyRequest(ApiModel):
    """Confirms enrollment: the secret from /2fa/setup and a current code from the authenticator app."""
    secret: str = Field(..., min_length=16)
    token: str = Field(..., min_length=6, max_length=8)


class TwoFactorSetupResponse(ApiModel):
    secret: str
    otpauth_url: str
    qr_code_url: str
    message: str = "Scan the QR code with your authenticator app and verify with a code to enable 2FA"


class UserResponse(ApiModel):
    """Public view of a user. Secrets, hashes and tokens are never included."""
    user_id: str
    account_id: str
    first_name: str
    last_name: str
    email: str
    username: str
    role: UserRole
    team_id: Optional[str] = None
    job_title: Optional[str] = None
    phone_number: Optional[str] = None
    preferred_languages: List[str] = []
    is_email_verified: bool = False
    two_factor_enabled: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
