"""
Email-related models.
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, validator
from enum import Enum


class EmailTemplate(str, Enum):
    """Available email templates (``<name>.html`` and ``<name>.txt``)."""
    VERIFY_EMAIL = "verify_email"
    PASSWORD_RESET = "password_reset"


class EmailRequest(BaseModel):
    """Request model for sending emails."""
    to_email: EmailStr = Field(..., description="Recipient email address")
    to_name: str = Field(..., description="Recipient name")
    subject: str = Field(..., description="Email subject")
    body_html: str = Field(..., description="HTML email body")
    body_text: str = Field(..., description="Plain text email body")

    @validator('subject', 'body_text', 'body_html')
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Email subject and body cannot be empty")
        return v.strip()


class EmailSendResult(BaseModel):
    """Outcome of one send attempt."""
    success: bool
    message: str
    recipient: str
    delivered_via: str = Field("smtp", description="'smtp' or 'console'")
    error: Optional[str] = None
    sent_at: Optional[str] = None
