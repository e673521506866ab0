"""
Account, subscription and profile endpoints for the signed-in user.
"""

from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends

from portal.middleware.auth_middleware import get_current_user
from portal.models.account_models import (
    AccountResponse,
    CreditPurchase,
    CreditTransactionResponse,
    LanguagePreferencesUpdate,
    PasswordChange,
    ProfileUpdate,
    SubscriptionPlanResponse,
    SubscriptionUpdate,
)
from portal.routers.auth import user_payload
from portal.services.account_service import account_service
from portal.services.auth_service import auth_service
from portal.services.credit_service import credit_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Account"])


@router.get("/account")
async def get_account(current_user: Dict[str, Any] = Depends(get_current_user)):
    account = await account_service.get_account(current_user["account_id"])
    return {"success": True, "data": AccountResponse.model_validate(account).to_api()}


@router.get("/account/plans")
async def list_plans(current_user: Dict[str, Any] = Depends(get_current_user)):
    plans = [SubscriptionPlanResponse(**plan).to_api() for plan in account_service.list_plans()]
    return {"success": True, "data": plans}


@router.post("/account/credits/purchase")
async def purchase_credits(
    payload: CreditPurchase,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """Add purchased credits to the account; recorded as a ``purchase`` ledger entry."""
    logger.info(f"💳 Credit purchase: {payload.credits} credits for {current_user['account_id']}")
    result = await credit_service.purchase_credits(
        current_user["account_id"], payload.credits, user_id=current_user["user_id"]
    )
    return {
        "success": True,
        "message": f"Successfully purchased {payload.credits} credits",
        "data": {
            "credits": result["balance"],
            "transaction": CreditTransactionResponse.model_validate(result["transaction"]).to_api()
        }
    }


@router.post("/account/subscription")
async def update_subscription(
    payload: SubscriptionUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    result = await account_service.update_subscription(current_user["account_id"], payload.plan_id)
    subscription = result["subscription"]
    return {
        "success": True,
        "message": result["message"],
        "data": {
            "subscriptionPlan": subscription["plan"],
            "subscriptionStatus": subscription["status"],
            "subscriptionRenewal": subscription["renewal"].isoformat()
        }
    }


# ============================================================================
# User profile
# ============================================================================

@router.get("/user/profile")
async def get_profile(current_user: Dict[str, Any] = Depends(get_current_user)):
    return {"success": True, "data": user_payload(current_user)}


@router.patch("/user/profile")
async def update_profile(
    payload: ProfileUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    user = await account_service.update_profile(current_user, payload)
    return {"success": True, "message": "Profile updated successfully", "data": user_payload(user)}


@router.patch("/user/password")
async def change_password(
    payload: PasswordChange,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    await auth_service.change_password(current_user, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.patch("/user/language-preferences")
async def update_language_preferences(
    payload: LanguagePreferencesUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    user = await account_service.update_language_preferences(current_user, payload.preferred_languages)
    return {
        "success": True,
        "message": "Language preferences updated successfully",
        "data": {"preferredLanguages": user["preferred_languages"]}
    }
