"""
Account, team and user management.

Every operation is scoped to the caller's account: admins manage the
teams and users of their own account only.
"""

import logging
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from portal.config import settings
from portal.database.mongodb import database
from portal.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from portal.models.account_models import (
    AdminUserCreate,
    AdminUserUpdate,
    ProfileUpdate,
    TeamCreate,
    TeamUpdate,
)
from portal.mongodb_models import (
    SubscriptionStatus,
    TeamDocument,
    UserDocument,
    utc_now,
)
from portal.pricing.pricing_config import PricingConfig, load_pricing_config
from portal.services.auth_service import hash_password
from portal.utils.id_generator import TEAM_PREFIX, USER_PREFIX, generate_id

logger = logging.getLogger(__name__)


class AccountService:
    """CRUD over accounts, users and teams."""

    def __init__(self, pricing_config: Optional[PricingConfig] = None):
        self._pricing_config = pricing_config

    @property
    def pricing_config(self) -> PricingConfig:
        if self._pricing_config is None:
            self._pricing_config = load_pricing_config(settings.pricing_config_path)
        return self._pricing_config

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account(self, account_id: str) -> Dict[str, Any]:
        account = await database.accounts.find_one({"account_id": account_id})
        if not account:
            raise NotFoundError("Account not found")
        return account

    def list_plans(self) -> List[Dict[str, Any]]:
        return [
            {
                "plan_id": plan_id,
                "name": plan.name,
                "monthly_price": float(plan.monthly_price),
                "monthly_credits": plan.monthly_credits,
                "features": list(plan.features)
            }
            for plan_id, plan in self.pricing_config.subscription_plans.items()
        ]

    async def update_subscription(self, account_id: str, plan_id: str) -> Dict[str, Any]:
        """
        Switch an account to ``plan_id``; renewal is one calendar month from now.

        Raises:
            ValidationError: Unknown plan
            NotFoundError: Unknown account
        """
        plan = self.pricing_config.subscription_plans.get(plan_id)
        if plan is None:
            raise ValidationError("Invalid subscription plan")

        renewal = utc_now() + relativedelta(months=1)
        account = await database.accounts.find_one_and_update(
            {"account_id": account_id},
            {
                "$set": {
                    "subscription_plan": plan_id,
                    "subscription_status": SubscriptionStatus.ACTIVE.value,
                    "subscription_renewal": renewal,
                    "updated_at": utc_now()
                }
            },
            return_document=ReturnDocument.AFTER
        )
        if not account:
            raise NotFoundError("Account not found")

        logger.info(f"[ACCOUNTS] Account {account_id} moved to plan '{plan_id}' (renews {renewal.date()})")
        return {
            "message": f"Subscription updated to {plan.name} plan",
            "subscription": {
                "plan": plan_id,
                "status": SubscriptionStatus.ACTIVE.value,
                "renewal": renewal
            }
        }

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, account_id: str, user_id: str) -> Dict[str, Any]:
        user = await database.users.find_one({"user_id": user_id, "account_id": account_id})
        if not user:
            raise NotFoundError("User not found")
        return user

    async def list_users(self, account_id: str, team_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"account_id": account_id}
        if team_id is not None:
            query["team_id"] = team_id
        return await database.users.find(query).sort("created_at", ASCENDING).to_list(length=None)

    async def _ensure_unique(self, email: Optional[str], username: Optional[str], exclude_user_id: Optional[str] = None):
        if email:
            existing = await database.users.find_one({"email": email})
            if existing and existing["user_id"] != exclude_user_id:
                raise ConflictError("Email already in use")
        if username:
            existing = await database.users.find_one({"username": username})
            if existing and existing["user_id"] != exclude_user_id:
                raise ConflictError("Username already taken")

    async def _ensure_team_in_account(self, account_id: str, team_id: Optional[str]):
        if team_id and not await database.teams.find_one({"team_id": team_id, "account_id": account_id}):
            raise ValidationError("Team does not exist in this account")

    async def create_user(self, admin: Dict[str, Any], payload: AdminUserCreate) -> Dict[str, Any]:
        """
        Create a verified user in the admin's account.

        Raises:
            ConflictError: Email or username already exists
            ValidationError: Team outside the admin's account
        """
        account_id = admin["account_id"]
        logger.info(f"[USERS] Admin {admin['user_id']} creating user {payload.email} in {account_id}")

        await self._ensure_unique(payload.email, payload.username)
        await self._ensure_team_in_account(account_id, payload.team_id)

        user = UserDocument(
            user_id=generate_id(USER_PREFIX),
            account_id=account_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            username=payload.username,
            password_hash=await hash_password(payload.password),
            role=payload.role,
            team_id=payload.team_id,
            job_title=payload.job_title,
            phone_number=payload.phone_number,
            # Admin-created users are vouched for by the admin
            is_email_verified=True
        ).to_mongo()

        try:
            await database.users.insert_one(user)
        except DuplicateKeyError:
            raise ConflictError("Email or username already in use")

        logger.info(f"[USERS] Created user {user['user_id']} ({user['role']})")
        return user

    async def update_user(self, admin: Dict[str, Any], user_id: str, payload: AdminUserUpdate) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: Unknown user
            PermissionDeniedError: User belongs to another account
            ValidationError: Admin changing their own role, or foreign team
            ConflictError: Email/username collision
        """
        target = await database.users.find_one({"user_id": user_id})
        if not target:
            raise NotFoundError("User not found")
        if target["account_id"] != admin["account_id"]:
            raise PermissionDeniedError("You can only manage users in your own account")

        changes = payload.model_dump(exclude_unset=True)
        if "role" in changes and user_id == admin["user_id"] and changes["role"] != target.get("role"):
            raise ValidationError("You cannot change your own role")

        await self._ensure_unique(changes.get("email"), changes.get("username"), exclude_user_id=user_id)
        if "team_id" in changes:
            await self._ensure_team_in_account(admin["account_id"], changes["team_id"])

        if "password" in changes:
            password = changes.pop("password")
            if password:
                changes["password_hash"] = await hash_password(password)

        changes["updated_at"] = utc_now()
        updated = await database.users.find_one_and_update(
            {"user_id": user_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        logger.info(f"[USERS] User {user_id} updated by {admin['user_id']}: {sorted(k for k in changes if k != 'password_hash')}")
        return updated

    async def delete_user(self, admin: Dict[str, Any], user_id: str) -> None:
        if user_id == admin["user_id"]:
            raise ValidationError("You cannot delete your own account")

        target = await database.users.find_one({"user_id": user_id})
        if not target:
            raise NotFoundError("User not found")
        if target["account_id"] != admin["account_id"]:
            raise PermissionDeniedError("You can only manage users in your own account")

        await database.users.delete_one({"user_id": user_id})
        await database.sessions.update_many({"user_id": user_id}, {"$set": {"is_active": False}})
        logger.info(f"[USERS] User {user_id} deleted by {admin['user_id']}")

    async def update_profile(self, user: Dict[str, Any], payload: ProfileUpdate) -> Dict[str, Any]:
        changes = payload.model_dump(exclude_unset=True)
        changes["updated_at"] = utc_now()
        return await database.users.find_one_and_update(
            {"user_id": user["user_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )

    async def update_language_preferences(self, user: Dict[str, Any], languages: List[str]) -> Dict[str, Any]:
        return await database.users.find_one_and_update(
            {"user_id": user["user_id"]},
            {"$set": {"preferred_languages": languages, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER
        )

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def list_teams(self, account_id: str) -> List[Dict[str, Any]]:
        teams = await database.teams.find({"account_id": account_id}).sort("created_at", ASCENDING).to_list(length=None)
        for team in teams:
            team["user_count"] = await database.users.count_documents({"team_id": team["team_id"]})
        return teams

    async def get_team(self, account_id: str, team_id: str) -> Dict[str, Any]:
        team = await database.teams.find_one({"team_id": team_id, "account_id": account_id})
        if not team:
            raise NotFoundError("Team not found")
        return team

    async def create_team(self, account_id: str, payload: TeamCreate) -> Dict[str, Any]:
        team = TeamDocument(
            team_id=generate_id(TEAM_PREFIX),
            account_id=account_id,
            **payload.model_dump()
        ).to_mongo()
        await database.teams.insert_one(team)
        logger.info(f"[TEAMS] Created team {team['team_id']} '{team['name']}' in {account_id}")
        return team

    async def update_team(self, account_id: str, team_id: str, payload: TeamUpdate) -> Dict[str, Any]:
        changes = payload.model_dump(exclude_unset=True)
        changes["updated_at"] = utc_now()
        team = await database.teams.find_one_and_update(
            {"team_id": team_id, "account_id": account_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not team:
            raise NotFoundError("Team not found")
        return team

    async def delete_team(self, account_id: str, team_id: str) -> None:
        """
        Delete a team that has no users.

        Raises:
            NotFoundError: Unknown team
            ConflictError: Team still has assigned users
        """
        await self.get_team(account_id, team_id)

        user_count = await database.users.count_documents({"team_id": team_id})
        if user_count > 0:
            logger.warning(f"[TEAMS] Refusing to delete team {team_id}: {user_count} user(s) assigned")
            raise ConflictError("Cannot delete team with users. Please reassign or remove users first.")

        await database.teams.delete_one({"team_id": team_id, "account_id": account_id})
        logger.info(f"[TEAMS] Deleted team {team_id}")


# Global account service instance
account_service = AccountService()
