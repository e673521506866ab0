"""
Account, team, user-management, credit and API key models.

These models back both the session API (/api/...) and the API-key
surface (/api/v1/...), so both share one contract per entity.
"""

from pydantic import EmailStr, Field, field_validator, model_validator, validator
from typing import Literal, Optional, List
from datetime import datetime

from portal.models.base import ApiModel, check_password_strength, reject_null
from portal.mongodb_models import (
    CreditTransactionType,
    SubscriptionStatus,
    UserRole,
)


# ==============================================================================
# ACCOUNTS
# ==============================================================================

class AccountResponse(ApiModel):
    account_id: str
    name: str
    credits: int
    subscription_plan: str
    subscription_status: SubscriptionStatus
    subscription_renewal: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SubscriptionUpdate(ApiModel):
    plan_id: str = Field(..., min_length=1)


class SubscriptionPlanResponse(ApiModel):
    plan_id: str
    name: str
    monthly_price: float
    monthly_credits: int
    features: List[str] = []


# ==============================================================================
# CREDITS
# ==============================================================================

class CreditAdjustment(ApiModel):
    """Admin credit top-up. ``amount`` must be a positive whole number."""
    amount: int = Field(..., gt=0, strict=True, description="Credits to add")
    description: str = Field(..., min_length=1, max_length=500)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        if not v.strip():
            raise ValueError("Description is required")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {"amount": 500, "description": "Monthly top-up"}
        }


class TeamCreditAdjustment(ApiModel):
    """Team top-up; the description defaults to one naming the team."""
    amount: int = Field(..., gt=0, strict=True)
    description: Optional[str] = Field(None, max_length=500)


class CreditPurchase(ApiModel):
    credits: int = Field(..., gt=0, strict=True)


class ApiCreditPurchase(ApiModel):
    """Credit purchase on the API-key surface."""
    credits: int = Field(..., gt=0, strict=True)
    payment_method: Literal["card", "invoice"]
    payment_token: Optional[str] = None

    @model_validator(mode="after")
    def require_token_for_card(self):
        if self.payment_method == "card" and not self.payment_token:
            raise ValueError("Payment token is required for card payments")
        return self


class QuickCreditPurchase(ApiModel):
    """Body of /api/v1/account/purchase-credits; numeric strings are accepted."""
    credit_amount: int = Field(..., gt=0)


class CreditTransactionResponse(ApiModel):
    transaction_id: str
    account_id: str
    team_id: Optional[str] = None
    user_id: Optional[str] = None
    amount: int
    type: CreditTransactionType
    description: str
    created_at: datetime


# ==============================================================================
# TEAMS
# ==============================================================================

class TeamCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    billing_email: Optional[EmailStr] = None
    credits: int = Field(0, ge=0, strict=True)
    subscription_plan: str = "free"
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Team name is required")
        return v.strip()


class TeamUpdate(ApiModel):
    """Partial update - only provided fields are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    billing_email: Optional[EmailStr] = None
    subscription_plan: Optional[str] = None
    subscription_status: Optional[SubscriptionStatus] = None

    @field_validator('name', 'subscription_plan', 'subscription_status')
    @classmethod
    def validate_not_null(cls, v):
        return reject_null(v)


class TeamResponse(ApiModel):
    team_id: str
    account_id: str
    name: str
    description: Optional[str] = None
    billing_email: Optional[str] = None
    credits: int = 0
    subscription_plan: str = "free"
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    user_count: Optional[int] = None
    created_at: Optional[datetime] = None


# ==============================================================================
# USERS
# ==============================================================================

class AdminUserCreate(ApiModel):
    """
    Request model for an admin creating a user in their own account.

    The password will be hashed before storage and never stored in plain text.
    """
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.CLIENT
    team_id: Optional[str] = None
    job_title: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=50)

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip()

    @validator('role')
    def validate_role(cls, v):
        if v not in (UserRole.ADMIN, UserRole.CLIENT, UserRole.ADMIN.value, UserRole.CLIENT.value):
            raise ValueError("Role must be 'admin' or 'client'")
        return v

    @validator('password')
    def validate_password(cls, v):
        return check_password_strength(v)

    class Config:
        json_schema_extra = {
            "example": {
                "firstName": "Grace",
                "lastName": "Hopper",
                "email": "grace@example.com",
                "username": "ghopper",
                "password": "Cobol1959x",
                "role": "client",
                "teamId": "team_0123456789abcdef",
                "jobTitle": "Localisation Manager"
            }
        }


class AdminUserUpdate(ApiModel):
    """Partial update of a user by an admin of the same account."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[UserRole] = None
    team_id: Optional[str] = None
    job_title: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=50)

    # teamId, jobTitle and phoneNumber may be cleared with null
    @field_validator('first_name', 'last_name', 'email', 'username', 'password', 'role')
    @classmethod
    def validate_not_null(cls, v):
        return reject_null(v)

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip() if v else v

    @validator('password')
    def validate_password(cls, v):
        return check_password_strength(v) if v else v


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    job_title: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=50)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_not_null(cls, v):
        return reject_null(v)


class PasswordChange(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @validator('new_password')
    def validate_new_password(cls, v):
        return check_password_strength(v)


class LanguagePreferencesUpdate(ApiModel):
    preferred_languages: List[str] = Field(..., min_length=1)

    @validator('preferred_languages')
    def strip_languages(cls, v):
        cleaned = [lang.strip() for lang in v if lang and lang.strip()]
        if not cleaned:
            raise ValueError("At least one language is required")
        return cleaned


# ==============================================================================
# API KEYS
# ==============================================================================

class ApiKeyCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)


class ApiKeyResponse(ApiModel):
    key_id: str
    name: str
    key_prefix: str
    is_active: bool
    created_at: datetime
    last_used_at: Optional[datetime] = None
