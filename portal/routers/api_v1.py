"""
External API (``/api/v1``) authenticated with API keys.

Mirrors a subset of the session API for system integrations. Paginated
lists use a ``{"totalCount": n, "results": [...]}`` wrapper and errors are
returned as ``{"error": "<message>"}`` (see the exception handlers in
``portal.main``).
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging
import os

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from portal.exceptions import ValidationError
from portal.middleware.auth_middleware import get_api_key_user
from portal.models.account_models import (
    AccountResponse,
    ApiCreditPurchase,
    CreditTransactionResponse,
    ProfileUpdate,
    QuickCreditPurchase,
)
from portal.models.translation_request import (
    ApiTranslationRequestCreate,
    FileAnalysisResponse,
    ProjectUpdateCreate,
    ProjectUpdateResponse,
    TranslationRequestResponse,
    TranslationRequestSummary,
    TranslationRequestUpdate,
)
from portal.mongodb_models import CreditTransactionType, OrderStatus, utc_now
from portal.routers.auth import user_payload
from portal.services.account_service import account_service
from portal.services.credit_service import credit_service
from portal.services.file_service import file_service
from portal.services.translation_request_service import translation_request_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["API v1"])

ESTIMATED_TURNAROUND = timedelta(days=1)


def _analysis_payload(analysis: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not analysis:
        return None
    return FileAnalysisResponse(**analysis).to_api()


# ============================================================================
# Translation requests
# ============================================================================

@router.post("/translation-requests", status_code=201)
async def create_translation_request(
    payload: ApiTranslationRequestCreate,
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    """Create an order for a file uploaded through ``/api/v1/files/upload``."""
    logger.info(f"🔌 API order from {api_user['account_id']} for file {payload.file_id}")
    request = await translation_request_service.create_request_from_file(api_user, payload)
    return {
        "requestId": request["request_id"],
        "status": request["status"],
        "creditsRequired": request["credits_required"],
        "totalCost": request["total_cost"],
        "estimatedCompletionTime": (utc_now() + ESTIMATED_TURNAROUND).isoformat()
    }


@router.get("/translation-requests")
async def list_translation_requests(
    status: Optional[OrderStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    total, results = await translation_request_service.list_requests(
        api_user["account_id"],
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset
    )
    return {
        "totalCount": total,
        "results": [TranslationRequestSummary.model_validate(r).to_api() for r in results]
    }


@router.get("/translation-requests/{request_id}")
async def get_translation_request(request_id: str, api_user: Dict[str, Any] = Depends(get_api_key_user)):
    request = await translation_request_service.get_request(api_user["account_id"], request_id)
    return TranslationRequestResponse.model_validate(request).to_api()


@router.patch("/translation-requests/{request_id}")
async def update_translation_request(
    request_id: str,
    payload: TranslationRequestUpdate,
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    request = await translation_request_service.update_request(api_user["account_id"], request_id, payload)
    return {
        "requestId": request["request_id"],
        "status": request["status"],
        "completionPercentage": request["completion_percentage"],
        "updatedAt": request["updated_at"].isoformat()
    }


@router.post("/translation-requests/{request_id}/updates", status_code=201)
async def add_project_update(
    request_id: str,
    payload: ProjectUpdateCreate,
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    update = await translation_request_service.add_update(api_user["account_id"], request_id, api_user, payload)
    return ProjectUpdateResponse.model_validate(update).to_api()


# ============================================================================
# Files
# ============================================================================

@router.post("/files/upload", status_code=201)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    file_type: Optional[str] = Form(None, alias="type"),
    description: Optional[str] = Form(None),
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    """
    Store a ``translation`` source file or a reference ``asset``.

    Translation files are analysed on upload; the returned ``fileId`` is
    what ``POST /api/v1/translation-requests`` expects.
    """
    if file is None:
        raise ValidationError("No file uploaded")

    content = await file.read()
    stored = await file_service.store_upload(
        api_user, file.filename or "upload", content, file_type or "", description
    )
    extension = os.path.splitext(stored["file_name"])[1].lstrip(".") or "unknown"

    return {
        "fileId": stored["file_id"],
        "fileName": stored["file_name"],
        "fileSize": stored["file_size"],
        "fileFormat": extension.upper(),
        "uploadedAt": stored["created_at"].isoformat(),
        "description": stored["description"],
        "analysis": _analysis_payload(stored["analysis"])
    }


@router.get("/files/{file_id}/analysis")
async def get_file_analysis(file_id: str, api_user: Dict[str, Any] = Depends(get_api_key_user)):
    stored = await file_service.get_file(api_user["account_id"], file_id)
    analysis = stored.get("analysis") or {}
    return {
        "fileId": stored["file_id"],
        "fileName": stored["file_name"],
        "fileSize": stored.get("file_size", 0),
        "fileFormat": analysis.get("file_format"),
        "analysis": _analysis_payload(analysis)
    }


# ============================================================================
# Account and users
# ============================================================================

@router.get("/account")
async def get_account(api_user: Dict[str, Any] = Depends(get_api_key_user)):
    account = await account_service.get_account(api_user["account_id"])
    users = await account_service.list_users(api_user["account_id"])
    data = AccountResponse.model_validate(account).to_api()
    data["usersCount"] = len(users)
    return data


@router.get("/account/users")
async def list_account_users(api_user: Dict[str, Any] = Depends(get_api_key_user)):
    users = await account_service.list_users(api_user["account_id"])
    results = []
    for user in users:
        data = user_payload(user)
        data["lastActive"] = user["updated_at"].isoformat()
        results.append(data)
    return {"totalCount": len(results), "results": results}


@router.get("/users")
async def list_users(api_user: Dict[str, Any] = Depends(get_api_key_user)):
    users = await account_service.list_users(api_user["account_id"])
    return [user_payload(u) for u in users]


@router.get("/user")
async def get_user(api_user: Dict[str, Any] = Depends(get_api_key_user)):
    return user_payload(api_user)


@router.get("/user/profile")
async def get_profile(api_user: Dict[str, Any] = Depends(get_api_key_user)):
    return user_payload(api_user)


@router.patch("/user/profile")
async def update_profile(payload: ProfileUpdate, api_user: Dict[str, Any] = Depends(get_api_key_user)):
    user = await account_service.update_profile(api_user, payload)
    return user_payload(user)


# ============================================================================
# Credits
# ============================================================================

@router.post("/account/purchase-credits")
async def purchase_credits_quick(
    payload: QuickCreditPurchase,
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    result = await credit_service.purchase_credits(
        api_user["account_id"], payload.credit_amount, user_id=api_user["user_id"]
    )
    return {
        "accountId": api_user["account_id"],
        "credits": result["balance"],
        "purchasedCredits": payload.credit_amount,
        "purchaseDate": result["transaction"]["created_at"].isoformat()
    }


@router.post("/account/credits/purchase")
async def purchase_credits(payload: ApiCreditPurchase, api_user: Dict[str, Any] = Depends(get_api_key_user)):
    """Payment is not processed here; ``paymentMethod`` is validated and recorded in the log only."""
    logger.info(f"🔌 API credit purchase: {payload.credits} credits via {payload.payment_method}")
    result = await credit_service.purchase_credits(
        api_user["account_id"], payload.credits, user_id=api_user["user_id"]
    )
    return {
        "transactionId": result["transaction"]["transaction_id"],
        "creditsAdded": payload.credits,
        "totalCredits": result["balance"]
    }


@router.get("/account/credits/history")
async def credit_history(
    transaction_type: Optional[CreditTransactionType] = Query(None, alias="type"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    api_user: Dict[str, Any] = Depends(get_api_key_user)
):
    total, results = await credit_service.list_transactions(
        api_user["account_id"],
        transaction_type=transaction_type.value if transaction_type else None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset
    )
    return {
        "totalCount": total,
        "results": [CreditTransactionResponse.model_validate(t).to_api() for t in results]
    }
