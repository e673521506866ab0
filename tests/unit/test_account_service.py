"""
Unit tests for account, user and team management.
"""

from datetime import timedelta

import pytest

from portal.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from portal.models.account_models import AdminUserCreate, AdminUserUpdate, ProfileUpdate, TeamCreate, TeamUpdate
from portal.mongodb_models import UserRole, utc_now
from portal.services.account_service import account_service
from portal.services.auth_service import verify_password


def new_user(**overrides) -> AdminUserCreate:
    fields = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "username": "ghopper",
        "password": "Cobol1959x",
    }
    fields.update(overrides)
    return AdminUserCreate(**fields)


class TestAccountsAndPlans:

    async def test_get_account(self, account):
        assert (await account_service.get_account(account["account_id"]))["name"] == "Acme Localisation"

    async def test_get_unknown_account(self):
        with pytest.raises(NotFoundError, match="Account not found"):
            await account_service.get_account("acct_missing")

    def test_list_plans(self):
        plans = {p["plan_id"]: p for p in account_service.list_plans()}

        assert set(plans) == {"free", "starter", "pro", "enterprise"}
        assert plans["starter"]["monthly_price"] == 49.0
        assert plans["starter"]["monthly_credits"] == 50000

    async def test_update_subscription(self, fake_db, account):
        result = await account_service.update_subscription(account["account_id"], "pro")

        stored = await fake_db.accounts.find_one({"account_id": account["account_id"]})
        assert stored["subscription_plan"] == "pro"
        assert stored["subscription_status"] == "active"
        assert result["message"] == "Subscription updated to Professional plan"
        assert utc_now() + timedelta(days=27) < stored["subscription_renewal"] < utc_now() + timedelta(days=32)

    async def test_update_subscription_unknown_plan(self, account):
        with pytest.raises(ValidationError, match="Invalid subscription plan"):
            await account_service.update_subscription(account["account_id"], "platinum")


class TestUsers:

    async def test_create_user_is_verified_and_hashed(self, admin):
        user = await account_service.create_user(admin, new_user())

        assert user["account_id"] == admin["account_id"]
        assert user["role"] == "client"
        assert user["is_email_verified"] is True
        assert await verify_password("Cobol1959x", user["password_hash"])

    async def test_create_user_duplicate_email(self, admin, user):
        with pytest.raises(ConflictError, match="Email already in use"):
            await account_service.create_user(admin, new_user(email=user["email"]))

    async def test_create_user_duplicate_username(self, admin, user):
        with pytest.raises(ConflictError, match="Username already taken"):
            await account_service.create_user(admin, new_user(username=user["username"]))

    async def test_create_user_with_foreign_team(self, fake_db, admin):
        await fake_db.teams.insert_one({"team_id": "team_foreign", "account_id": "acct_other", "name": "X"})

        with pytest.raises(ValidationError, match="Team does not exist"):
            await account_service.create_user(admin, new_user(team_id="team_foreign"))

    async def test_list_users_by_team(self, admin, make_user):
        await make_user(team_id="team_a")
        await make_user(team_id="team_b")

        assert len(await account_service.list_users(admin["account_id"])) == 3
        assert len(await account_service.list_users(admin["account_id"], team_id="team_a")) == 1

    async def test_update_user(self, admin, user):
        updated = await account_service.update_user(
            admin, user["user_id"], AdminUserUpdate(job_title="Reviewer", password="Another123")
        )

        assert updated["job_title"] == "Reviewer"
        assert await verify_password("Another123", updated["password_hash"])
        assert "password" not in updated

    async def test_update_user_in_other_account(self, admin, make_user):
        outsider = await make_user(account_id="acct_other")

        with pytest.raises(PermissionDeniedError):
            await account_service.update_user(admin, outsider["user_id"], AdminUserUpdate(job_title="X"))

    async def test_admin_cannot_change_own_role(self, admin):
        with pytest.raises(ValidationError, match="cannot change your own role"):
            await account_service.update_user(admin, admin["user_id"], AdminUserUpdate(role=UserRole.CLIENT))

    async def test_update_email_collision(self, admin, user):
        with pytest.raises(ConflictError):
            await account_service.update_user(admin, user["user_id"], AdminUserUpdate(email=admin["email"]))

    async def test_update_unknown_user(self, admin):
        with pytest.raises(NotFoundError):
            await account_service.update_user(admin, "user_missing", AdminUserUpdate(job_title="X"))

    async def test_delete_user_closes_sessions(self, fake_db, admin, user, open_session):
        await open_session(user)

        await account_service.delete_user(admin, user["user_id"])

        assert await fake_db.users.find_one({"user_id": user["user_id"]}) is None
        assert await fake_db.sessions.count_documents({"user_id": user["user_id"], "is_active": True}) == 0

    async def test_admin_cannot_delete_self(self, admin):
        with pytest.raises(ValidationError, match="cannot delete your own account"):
            await account_service.delete_user(admin, admin["user_id"])

    async def test_delete_user_in_other_account(self, admin, make_user):
        outsider = await make_user(account_id="acct_other")

        with pytest.raises(PermissionDeniedError):
            await account_service.delete_user(admin, outsider["user_id"])

    async def test_update_profile(self, user):
        updated = await account_service.update_profile(user, ProfileUpdate(first_name="Augusta"))

        assert updated["first_name"] == "Augusta"
        assert updated["last_name"] == user["last_name"]

    async def test_update_language_preferences(self, user):
        updated = await account_service.update_language_preferences(user, ["Japanese", "Korean"])

        assert updated["preferred_languages"] == ["Japanese", "Korean"]


class TestTeams:

    async def test_create_and_list_with_user_count(self, account, make_user):
        team = await account_service.create_team(account["account_id"], TeamCreate(name="  Legal  "))
        await make_user(team_id=team["team_id"])

        teams = await account_service.list_teams(account["account_id"])

        assert len(teams) == 1
        assert teams[0]["name"] == "Legal"
        assert teams[0]["user_count"] == 1

    async def test_update_team(self, account):
        team = await account_service.create_team(account["account_id"], TeamCreate(name="Legal"))

        updated = await account_service.update_team(
            account["account_id"], team["team_id"], TeamUpdate(description="Contracts")
        )

        assert updated["description"] == "Contracts"
        assert updated["name"] == "Legal"

    async def test_team_is_scoped_to_account(self, account):
        team = await account_service.create_team(account["account_id"], TeamCreate(name="Legal"))

        with pytest.raises(NotFoundError, match="Team not found"):
            await account_service.get_team("acct_other", team["team_id"])

    async def test_delete_team_with_users_conflicts(self, fake_db, account, make_user):
        team = await account_service.create_team(account["account_id"], TeamCreate(name="Legal"))
        member = await make_user(team_id=team["team_id"])

        with pytest.raises(ConflictError, match="Cannot delete team with users"):
            await account_service.delete_team(account["account_id"], team["team_id"])

        await fake_db.users.update_one({"user_id": member["user_id"]}, {"$set": {"team_id": None}})
        await account_service.delete_team(account["account_id"], team["team_id"])

        assert await fake_db.teams.count_documents({}) == 0

    async def test_delete_unknown_team(self, account):
        with pytest.raises(NotFoundError):
            await account_service.delete_team(account["account_id"], "team_missing")
