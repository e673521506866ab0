"""
Models package exports.
"""

from portal.models.base import ApiModel
from portal.models.translation_request import (
    TranslationRequestCreate,
    ApiTranslationRequestCreate,
    TranslationRequestUpdate,
    TranslationRequestResponse,
    TranslationRequestSummary,
    ProjectUpdateCreate,
    ProjectUpdateResponse,
    CostEstimateRequest,
    CostEstimateResponse,
    FileAnalysisResponse,
)

__all__ = [
    "ApiModel",
    # Translation request models
    "TranslationRequestCreate",
    "ApiTranslationRequestCreate",
    "TranslationRequestUpdate",
    "TranslationRequestResponse",
    "TranslationRequestSummary",
    "ProjectUpdateCreate",
    "ProjectUpdateResponse",
    "CostEstimateRequest",
    "CostEstimateResponse",
    "FileAnalysisResponse",
]
