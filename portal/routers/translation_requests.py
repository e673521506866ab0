"""
Translation request (order) API endpoints for signed-in users.
"""

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query

from portal.middleware.auth_middleware import get_current_user
from portal.models.translation_request import (
    CostEstimateRequest,
    CostEstimateResponse,
    ProjectUpdateCreate,
    ProjectUpdateResponse,
    TranslationRequestCreate,
    TranslationRequestResponse,
    TranslationRequestUpdate,
)
from portal.mongodb_models import OrderStatus
from portal.services.translation_request_service import translation_request_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/translation-requests", tags=["Translation Requests"])


def request_payload(request: Dict[str, Any]) -> Dict[str, Any]:
    return TranslationRequestResponse.model_validate(request).to_api()


@router.post("/estimate")
async def estimate_cost(
    payload: CostEstimateRequest,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """
    Price a prospective order without creating it.

    ``creditsRequired = ceil(characterCount × len(targetLanguages) × rate[workflow])``
    """
    cost = translation_request_service.estimate_cost(
        payload.character_count, payload.target_languages, payload.workflow
    )
    return {
        "success": True,
        "data": CostEstimateResponse(
            total_chars=cost.total_chars,
            credits_required=cost.credits_required,
            total_cost=cost.total_cost
        ).to_api()
    }


@router.post("", status_code=201)
async def create_translation_request(
    payload: TranslationRequestCreate,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """
    Submit an order. Credits and cost are always computed on the server.

    Responses:
    - **201**: order created in ``pending`` state
    - **402**: credit deduction enabled and balance too low
    """
    logger.info("=" * 80)
    logger.info(f"📝 NEW TRANSLATION REQUEST from {current_user['email']}: {payload.file_name}")
    logger.info("=" * 80)

    request = await translation_request_service.create_request(current_user, payload)
    return {"success": True, "data": request_payload(request)}


@router.get("")
async def list_translation_requests(
    status: Optional[OrderStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    total, results = await translation_request_service.list_requests(
        current_user["account_id"],
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset
    )
    return {
        "success": True,
        "data": {
            "totalCount": total,
            "results": [request_payload(r) for r in results]
        }
    }


@router.get("/{request_id}")
async def get_translation_request(
    request_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """Order details with its project updates, newest first."""
    request = await translation_request_service.get_request(current_user["account_id"], request_id)
    return {"success": True, "data": request_payload(request)}


@router.patch("/{request_id}")
async def update_translation_request(
    request_id: str,
    payload: TranslationRequestUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    request = await translation_request_service.update_request(current_user["account_id"], request_id, payload)
    return {"success": True, "data": request_payload(request)}


@router.post("/{request_id}/updates", status_code=201)
async def add_project_update(
    request_id: str,
    payload: ProjectUpdateCreate,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """Append a note, milestone, issue or status change to an order."""
    update = await translation_request_service.add_update(
        current_user["account_id"], request_id, current_user, payload
    )
    return {"success": True, "data": ProjectUpdateResponse.model_validate(update).to_api()}
