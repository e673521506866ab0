"""
Translation request (order) and project update models.

One schema per operation is shared by the session API and the API-key
surface; the server always recomputes credits and cost from these inputs.
"""

from pydantic import Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from portal.models.base import ApiModel, reject_null
from portal.mongodb_models import OrderStatus, Priority, UpdateType, Workflow


def _clean_languages(v: List[str]) -> List[str]:
    cleaned = [lang.strip() for lang in v if lang and lang.strip()]
    if not cleaned:
        raise ValueError("At least one target language is required")
    return cleaned


class TranslationRequestCreate(ApiModel):
    """
    Order submission from the web client.

    File metadata comes from the /api/files/upload analysis. Any
    client-computed estimate is ignored.
    """
    file_name: str = Field(..., min_length=1, max_length=500)
    file_format: str = Field(..., min_length=1, max_length=100)
    file_size: int = Field(..., ge=0)
    word_count: int = Field(0, ge=0)
    character_count: int = Field(0, ge=0)
    images_with_text: int = Field(0, ge=0)
    subject_matter: Optional[str] = Field(None, max_length=200)
    source_language: str = Field(..., min_length=1, max_length=100)
    target_languages: List[str] = Field(..., min_length=1)
    workflow: Workflow
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None

    @field_validator('target_languages')
    @classmethod
    def validate_target_languages(cls, v):
        return _clean_languages(v)

    class Config:
        json_schema_extra = {
            "example": {
                "fileName": "contract.docx",
                "fileFormat": "DOCX",
                "fileSize": 20480,
                "wordCount": 2048,
                "characterCount": 10240,
                "imagesWithText": 1,
                "subjectMatter": "Legal",
                "sourceLanguage": "English",
                "targetLanguages": ["French", "German"],
                "workflow": "ai-translation-qc",
                "priority": "high"
            }
        }


class ApiTranslationRequestCreate(ApiModel):
    """Order submission on the API-key surface: references a previously uploaded file."""
    file_id: str = Field(..., min_length=1)
    file_name: Optional[str] = None
    source_language: str = Field(..., min_length=1, max_length=100)
    target_languages: List[str] = Field(..., min_length=1)
    workflow: Workflow
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None

    @field_validator('target_languages')
    @classmethod
    def validate_target_languages(cls, v):
        return _clean_languages(v)


class TranslationRequestUpdate(ApiModel):
    """
    PATCH body. Status may be set to any pipeline value in any order;
    no transition graph is enforced.
    """
    status: Optional[OrderStatus] = None
    priority: Optional[Priority] = None
    completion_percentage: Optional[int] = Field(None, ge=0, le=100)
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = Field(None, max_length=200)

    # dueDate and assignedTo may be cleared with null, the rest may not
    @field_validator('status', 'priority', 'completion_percentage')
    @classmethod
    def validate_not_null(cls, v):
        return reject_null(v)


class ProjectUpdateCreate(ApiModel):
    update_type: UpdateType
    update_text: str = Field(..., min_length=1, max_length=5000)
    new_status: Optional[OrderStatus] = None

    @field_validator('update_text')
    @classmethod
    def validate_update_text(cls, v):
        if not v.strip():
            raise ValueError("Update text is required")
        return v.strip()

    @model_validator(mode='after')
    def require_status_for_status_change(self):
        if self.update_type == UpdateType.STATUS_CHANGE.value and self.new_status is None:
            raise ValueError("newStatus is required for status_change updates")
        return self


class ProjectUpdateResponse(ApiModel):
    update_id: str
    request_id: str
    user_id: str
    update_text: str
    update_type: UpdateType
    new_status: Optional[OrderStatus] = None
    created_at: datetime


class TranslationRequestResponse(ApiModel):
    request_id: str
    user_id: str
    account_id: str
    file_name: str
    file_format: str
    file_size: int
    word_count: int
    character_count: int
    images_with_text: int
    subject_matter: Optional[str] = None
    source_language: str
    target_languages: List[str]
    workflow: Workflow
    credits_required: int
    total_cost: str
    status: OrderStatus
    priority: Priority
    due_date: Optional[datetime] = None
    completion_percentage: int
    assigned_to: Optional[str] = None
    file_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    updates: Optional[List[ProjectUpdateResponse]] = None


class TranslationRequestSummary(ApiModel):
    """Row shape for the paginated list on the API-key surface."""
    request_id: str
    file_name: str
    status: OrderStatus
    source_language: str
    target_languages: List[str]
    completion_percentage: int
    created_at: datetime


class CostEstimateRequest(ApiModel):
    character_count: int = Field(..., ge=0)
    target_languages: List[str] = Field(..., min_length=1)
    workflow: Workflow


class CostEstimateResponse(ApiModel):
    total_chars: int
    credits_required: int
    total_cost: str


class FileAnalysisResponse(ApiModel):
    file_name: str
    file_format: str
    file_size: int
    word_count: int
    character_count: int
    images_with_text: int
    subject_matter: str
    source_language: str
