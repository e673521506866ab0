"""
Administration endpoints: teams, users, credits and API keys.

Every route requires the ``admin`` role and operates on the admin's own
account only.
"""

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query

from portal.middleware.auth_middleware import get_admin_user
from portal.models.account_models import (
    AccountResponse,
    AdminUserCreate,
    AdminUserUpdate,
    ApiKeyCreate,
    ApiKeyResponse,
    CreditAdjustment,
    CreditTransactionResponse,
    TeamCreate,
    TeamCreditAdjustment,
    TeamResponse,
    TeamUpdate,
)
from portal.mongodb_models import CreditTransactionType
from portal.routers.auth import user_payload
from portal.services.account_service import account_service
from portal.services.api_key_service import api_key_service
from portal.services.credit_service import credit_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["Administration"])


def team_payload(team: Dict[str, Any]) -> Dict[str, Any]:
    return TeamResponse.model_validate(team).to_api()


# ============================================================================
# Teams
# ============================================================================

@router.get("/teams")
async def list_teams(admin: Dict[str, Any] = Depends(get_admin_user)):
    teams = await account_service.list_teams(admin["account_id"])
    return {"success": True, "data": [team_payload(t) for t in teams]}


@router.post("/teams", status_code=201)
async def create_team(payload: TeamCreate, admin: Dict[str, Any] = Depends(get_admin_user)):
    team = await account_service.create_team(admin["account_id"], payload)
    return {"success": True, "data": team_payload(team)}


@router.get("/teams/{team_id}")
async def get_team(team_id: str, admin: Dict[str, Any] = Depends(get_admin_user)):
    team = await account_service.get_team(admin["account_id"], team_id)
    return {"success": True, "data": team_payload(team)}


@router.patch("/teams/{team_id}")
async def update_team(team_id: str, payload: TeamUpdate, admin: Dict[str, Any] = Depends(get_admin_user)):
    team = await account_service.update_team(admin["account_id"], team_id, payload)
    return {"success": True, "data": team_payload(team)}


@router.delete("/teams/{team_id}")
async def delete_team(team_id: str, admin: Dict[str, Any] = Depends(get_admin_user)):
    """
    Responses:
    - **200**: team deleted
    - **409**: users are still assigned to the team
    """
    await account_service.delete_team(admin["account_id"], team_id)
    return {"success": True, "message": "Team deleted successfully"}


@router.get("/teams/{team_id}/users")
async def list_team_users(team_id: str, admin: Dict[str, Any] = Depends(get_admin_user)):
    await account_service.get_team(admin["account_id"], team_id)
    users = await account_service.list_users(admin["account_id"], team_id=team_id)
    return {"success": True, "data": [user_payload(u) for u in users]}


@router.post("/teams/{team_id}/credits")
async def add_team_credits(
    team_id: str,
    payload: TeamCreditAdjustment,
    admin: Dict[str, Any] = Depends(get_admin_user)
):
    team = await account_service.get_team(admin["account_id"], team_id)
    result = await credit_service.add_credits(
        admin["account_id"],
        payload.amount,
        payload.description or f"Credits added to team: {team['name']}",
        user_id=admin["user_id"],
        team_id=team_id
    )
    return {
        "success": True,
        "message": "Credits added successfully",
        "data": {"amount": payload.amount, "balance": result["balance"]}
    }


# ============================================================================
# Users
# ============================================================================

@router.get("/users")
async def list_users(admin: Dict[str, Any] = Depends(get_admin_user)):
    users = await account_service.list_users(admin["account_id"])
    return {"success": True, "data": [user_payload(u) for u in users]}


@router.post("/users", status_code=201)
async def create_user(payload: AdminUserCreate, admin: Dict[str, Any] = Depends(get_admin_user)):
    """
    Create a user in the admin's account. The user can log in immediately.

    Responses:
    - **201**: user created
    - **409**: email or username already in use
    """
    user = await account_service.create_user(admin, payload)
    return {"success": True, "data": user_payload(user)}


@router.patch("/users/{user_id}")
async def update_user(user_id: str, payload: AdminUserUpdate, admin: Dict[str, Any] = Depends(get_admin_user)):
    user = await account_service.update_user(admin, user_id, payload)
    return {"success": True, "data": user_payload(user)}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, admin: Dict[str, Any] = Depends(get_admin_user)):
    await account_service.delete_user(admin, user_id)
    return {"success": True, "message": "User deleted successfully"}


# ============================================================================
# Account and credits
# ============================================================================

@router.get("/account")
async def get_account(admin: Dict[str, Any] = Depends(get_admin_user)):
    account = await account_service.get_account(admin["account_id"])
    return {"success": True, "data": AccountResponse.model_validate(account).to_api()}


@router.post("/credits")
async def add_credits(payload: CreditAdjustment, admin: Dict[str, Any] = Depends(get_admin_user)):
    """
    Top up the admin's account balance.

    The ledger entry and the balance change are written together.
    """
    logger.info(f"💰 Admin {admin['email']} adding {payload.amount} credits to {admin['account_id']}")
    result = await credit_service.add_credits(
        admin["account_id"], payload.amount, payload.description, user_id=admin["user_id"]
    )
    return {
        "success": True,
        "message": "Credits added successfully",
        "data": {
            "amount": payload.amount,
            "balance": result["balance"],
            "transaction": CreditTransactionResponse.model_validate(result["transaction"]).to_api()
        }
    }


@router.get("/credit-transactions")
async def list_credit_transactions(
    transaction_type: Optional[CreditTransactionType] = Query(None, alias="type"),
    team_id: Optional[str] = Query(None, alias="teamId"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Dict[str, Any] = Depends(get_admin_user)
):
    total, results = await credit_service.list_transactions(
        admin["account_id"],
        transaction_type=transaction_type.value if transaction_type else None,
        team_id=team_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset
    )
    return {
        "success": True,
        "data": {
            "totalCount": total,
            "results": [CreditTransactionResponse.model_validate(t).to_api() for t in results]
        }
    }


# ============================================================================
# API keys
# ============================================================================

@router.get("/api-keys")
async def list_api_keys(admin: Dict[str, Any] = Depends(get_admin_user)):
    keys = await api_key_service.list_keys(admin["account_id"])
    return {"success": True, "data": [ApiKeyResponse.model_validate(k).to_api() for k in keys]}


@router.post("/api-keys", status_code=201)
async def create_api_key(payload: ApiKeyCreate, admin: Dict[str, Any] = Depends(get_admin_user)):
    """The plain key is returned in this response only; store it safely."""
    key, secret = await api_key_service.create_key(admin, payload.name)
    data = ApiKeyResponse.model_validate(key).to_api()
    data["apiKey"] = secret
    return {"success": True, "message": "API key created. It will not be shown again.", "data": data}


@router.delete("/api-keys/{key_id}")
async def revoke_api_key(key_id: str, admin: Dict[str, Any] = Depends(get_admin_user)):
    await api_key_service.revoke_key(admin["account_id"], key_id)
    return {"success": True, "message": "API key revoked"}
