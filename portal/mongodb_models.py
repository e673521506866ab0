"""
MongoDB enums and document models for the Translation Order Portal.

Documents are stored with snake_case keys and a string business id per
collection (account_id, user_id, request_id ...). The Mongo ``_id`` never
leaves the service layer.
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum


# ==============================================================================
# ENUMS
# ==============================================================================

class OrderStatus(str, Enum):
    """Translation request pipeline status."""
    PENDING = "pending"
    TRANSLATION_IN_PROGRESS = "translation-in-progress"
    LQA_IN_PROGRESS = "lqa-in-progress"
    HUMAN_REVIEWER_ASSIGNED = "human-reviewer-assigned"
    HUMAN_REVIEW_IN_PROGRESS = "human-review-in-progress"
    COMPLETE = "complete"


class Priority(str, Enum):
    """Translation request priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Workflow(str, Enum):
    """Workflow tiers, cheapest first."""
    AI_NEURAL = "ai-neural"
    AI_TRANSLATION_QC = "ai-translation-qc"
    AI_TRANSLATION_HUMAN = "ai-translation-human"


class UpdateType(str, Enum):
    """Project update types."""
    NOTE = "note"
    STATUS_CHANGE = "status_change"
    MILESTONE = "milestone"
    ISSUE = "issue"


class UserRole(str, Enum):
    """User roles. Self-registered users get USER, admin-created users ADMIN or CLIENT."""
    ADMIN = "admin"
    CLIENT = "client"
    USER = "user"


class SubscriptionStatus(str, Enum):
    """Subscription status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class CreditTransactionType(str, Enum):
    """Credit ledger entry types."""
    ADMIN_ADJUSTMENT = "admin_adjustment"
    PURCHASE = "purchase"
    USAGE = "usage"


class UploadedFileType(str, Enum):
    """Files uploaded through the API are either source documents or reference assets."""
    TRANSLATION = "translation"
    ASSET = "asset"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ==============================================================================
# DOCUMENT MODELS
# ==============================================================================

class MongoDocument(BaseModel):
    """Base for stored documents; enums are stored as their plain values."""

    model_config = ConfigDict(use_enum_values=True)

    def to_mongo(self) -> dict:
        return self.model_dump()


class AccountDocument(MongoDocument):
    """accounts collection."""
    account_id: str
    name: str
    credits: int = Field(default=0, ge=0)
    subscription_plan: str = "free"
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    subscription_renewal: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class UserDocument(MongoDocument):
    """users collection."""
    user_id: str
    account_id: str
    first_name: str
    last_name: str
    email: str
    username: str
    password_hash: str
    role: UserRole = UserRole.USER
    team_id: Optional[str] = None
    job_title: Optional[str] = None
    phone_number: Optional[str] = None
    preferred_languages: List[str] = Field(
        default_factory=lambda: ["French", "Italian", "German", "Spanish"]
    )
    is_email_verified: bool = False
    email_verification_token: Optional[str] = None
    email_verification_expires: Optional[datetime] = None
    password_reset_token: Optional[str] = None
    password_reset_expires: Optional[datetime] = None
    two_factor_enabled: bool = False
    two_factor_secret: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class TeamDocument(MongoDocument):
    """teams collection."""
    team_id: str
    account_id: str
    name: str
    description: Optional[str] = None
    billing_email: Optional[str] = None
    credits: int = Field(default=0, ge=0)
    subscription_plan: str = "free"
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class TranslationRequestDocument(MongoDocument):
    """translation_requests collection."""
    request_id: str
    user_id: str
    account_id: str
    file_name: str
    file_format: str
    file_size: int = Field(ge=0)
    word_count: int = Field(default=0, ge=0)
    character_count: int = Field(default=0, ge=0)
    images_with_text: int = Field(default=0, ge=0)
    subject_matter: Optional[str] = None
    source_language: str
    target_languages: List[str] = Field(min_length=1)
    workflow: Workflow
    credits_required: int = Field(ge=0)
    total_cost: str
    status: OrderStatus = OrderStatus.PENDING
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    completion_percentage: int = Field(default=0, ge=0, le=100)
    assigned_to: Optional[str] = None
    file_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProjectUpdateDocument(MongoDocument):
    """project_updates collection (append-only)."""
    update_id: str
    request_id: str
    user_id: str
    update_text: str
    update_type: UpdateType
    new_status: Optional[OrderStatus] = None
    created_at: datetime = Field(default_factory=utc_now)


class CreditTransactionDocument(MongoDocument):
    """credit_transactions collection (append-only ledger)."""
    transaction_id: str
    account_id: str
    team_id: Optional[str] = None
    user_id: Optional[str] = None
    amount: int
    type: CreditTransactionType
    description: str
    created_at: datetime = Field(default_factory=utc_now)


class SessionDocument(MongoDocument):
    """sessions collection."""
    session_token: str
    user_id: str
    account_id: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime


class ApiKeyDocument(MongoDocument):
    """api_keys collection. Only the SHA-256 of the secret is stored."""
    key_id: str
    account_id: str
    user_id: str
    name: str
    key_hash: str
    key_prefix: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    last_used_at: Optional[datetime] = None


class UploadedFileDocument(MongoDocument):
    """uploaded_files collection (files received on the API-key surface)."""
    file_id: str
    account_id: str
    user_id: str
    file_type: UploadedFileType
    file_name: str
    stored_path: str
    description: Optional[str] = None
    file_size: int = Field(default=0, ge=0)
    analysis: Optional[dict] = None
    created_at: datetime = Field(default_factory=utc_now)
