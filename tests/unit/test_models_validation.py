"""
Unit tests for API model validation and camelCase serialization.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from portal.models.account_models import (
    AdminUserCreate,
    AdminUserUpdate,
    ApiCreditPurchase,
    CreditAdjustment,
    PasswordChange,
    ProfileUpdate,
    QuickCreditPurchase,
    TeamUpdate,
)
from portal.models.auth_models import RegisterRequest, ResetPasswordRequest, UserResponse
from portal.models.translation_request import (
    ProjectUpdateCreate,
    TranslationRequestCreate,
    TranslationRequestSummary,
    TranslationRequestUpdate,
)
from portal.mongodb_models import UserDocument


class TestRegisterRequest:

    def test_accepts_camel_case_and_normalizes(self):
        request = RegisterRequest(**{
            "firstName": " Ada ",
            "lastName": "Lovelace",
            "email": "Ada@Example.COM",
            "username": "ada",
            "password": "Engine1843",
        })

        assert request.first_name == "Ada"
        assert request.email == "ada@example.com"

    @pytest.mark.parametrize("password", ["short1", "lettersonly", "1234567890"])
    def test_weak_passwords(self, password):
        with pytest.raises(ValidationError):
            RegisterRequest(first_name="A", last_name="B", email="a@example.com", username="abc", password=password)

    def test_username_characters(self):
        with pytest.raises(ValidationError, match="Username may only contain"):
            RegisterRequest(first_name="A", last_name="B", email="a@example.com", username="a b c", password="Engine1843")


class TestTranslationRequestCreate:

    def base(self, **overrides):
        fields = {
            "fileName": "a.txt",
            "fileFormat": "TXT",
            "fileSize": 10,
            "sourceLanguage": "English",
            "targetLanguages": ["French"],
            "workflow": "ai-neural",
        }
        fields.update(overrides)
        return fields

    def test_defaults(self):
        request = TranslationRequestCreate(**self.base())

        assert request.priority == "medium"
        assert request.character_count == 0

    def test_unknown_workflow(self):
        with pytest.raises(ValidationError):
            TranslationRequestCreate(**self.base(workflow="machine-only"))

    def test_blank_target_languages(self):
        with pytest.raises(ValidationError, match="At least one target language"):
            TranslationRequestCreate(**self.base(targetLanguages=["  ", ""]))

    def test_negative_counts(self):
        with pytest.raises(ValidationError):
            TranslationRequestCreate(**self.base(characterCount=-1))


class TestProjectUpdateCreate:

    def test_status_change_requires_new_status(self):
        with pytest.raises(ValidationError, match="newStatus is required"):
            ProjectUpdateCreate(updateType="status_change", updateText="Moving on")

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            ProjectUpdateCreate(updateType="status_change", updateText="x", newStatus="archived")

    def test_blank_text(self):
        with pytest.raises(ValidationError):
            ProjectUpdateCreate(updateType="note", updateText="   ")


class TestCreditModels:

    @pytest.mark.parametrize("amount", [0, -1, 1.5, "10"])
    def test_credit_adjustment_requires_positive_integer(self, amount):
        with pytest.raises(ValidationError):
            CreditAdjustment(amount=amount, description="Top-up")

    def test_card_purchase_requires_token(self):
        with pytest.raises(ValidationError, match="Payment token is required"):
            ApiCreditPurchase(credits=100, paymentMethod="card")

    def test_invoice_purchase_without_token(self):
        assert ApiCreditPurchase(credits=100, paymentMethod="invoice").payment_token is None

    def test_unknown_payment_method(self):
        with pytest.raises(ValidationError):
            ApiCreditPurchase(credits=100, paymentMethod="cash")

    def test_quick_purchase_accepts_numeric_string(self):
        assert QuickCreditPurchase(creditAmount="250").credit_amount == 250


class TestAdminUserCreate:

    def test_role_restricted_to_admin_or_client(self):
        with pytest.raises(ValidationError, match="Role must be"):
            AdminUserCreate(
                first_name="A", last_name="B", email="a@example.com",
                username="abc", password="Password1", role="user"
            )


class TestPasswordRules:
    """Every model that sets a password applies the same strength rule."""

    @pytest.mark.parametrize("password", ["lettersonly", "1234567890"])
    def test_reset_rejects_weak_password(self, password):
        with pytest.raises(ValidationError, match="one letter and one number"):
            ResetPasswordRequest(token="abc", password=password)

    def test_reset_accepts_strong_password(self):
        assert ResetPasswordRequest(token="abc", password="Difference1").password == "Difference1"

    def test_admin_create_rejects_weak_password(self):
        with pytest.raises(ValidationError, match="one letter and one number"):
            AdminUserCreate(
                first_name="A", last_name="B", email="a@example.com", username="abc", password="lettersonly"
            )

    def test_admin_update_rejects_weak_password(self):
        with pytest.raises(ValidationError, match="one letter and one number"):
            AdminUserUpdate(password="12345678")

    def test_password_change_rejects_weak_password(self):
        with pytest.raises(ValidationError, match="one letter and one number"):
            PasswordChange(current_password="old", new_password="onlyletters")


class TestPartialUpdatesRejectNull:

    @pytest.mark.parametrize("field", ["status", "priority", "completionPercentage"])
    def test_order_update(self, field):
        with pytest.raises(ValidationError, match="cannot be null"):
            TranslationRequestUpdate(**{field: None})

    def test_order_update_may_clear_assignment(self):
        update = TranslationRequestUpdate(assignedTo=None, dueDate=None)

        assert update.model_dump(exclude_unset=True) == {"assigned_to": None, "due_date": None}

    @pytest.mark.parametrize("field", ["firstName", "email", "username", "password", "role"])
    def test_admin_user_update(self, field):
        with pytest.raises(ValidationError, match="cannot be null"):
            AdminUserUpdate(**{field: None})

    def test_admin_user_update_may_clear_team(self):
        assert AdminUserUpdate(teamId=None).model_dump(exclude_unset=True) == {"team_id": None}

    @pytest.mark.parametrize("field", ["name", "subscriptionPlan", "subscriptionStatus"])
    def test_team_update(self, field):
        with pytest.raises(ValidationError, match="cannot be null"):
            TeamUpdate(**{field: None})

    def test_profile_update(self):
        with pytest.raises(ValidationError, match="cannot be null"):
            ProfileUpdate(lastName=None)

    def test_omitted_fields_are_not_validated(self):
        assert TranslationRequestUpdate(status="complete").model_dump(exclude_unset=True) == {"status": "complete"}


class TestSerialization:

    def test_user_response_hides_secrets(self):
        document = UserDocument(
            user_id="user_1",
            account_id="acct_1",
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            username="ada",
            password_hash="$2b$12$hash",
            two_factor_secret="JBSWY3DPEHPK3PXP",
            email_verification_token="tok",
        ).to_mongo()
        document["_id"] = "mongo-object-id"

        data = UserResponse.model_validate(document).to_api()

        assert data["userId"] == "user_1"
        assert data["firstName"] == "Ada"
        assert data["role"] == "user"
        for hidden in ("passwordHash", "password_hash", "twoFactorSecret", "emailVerificationToken", "_id"):
            assert hidden not in data

    def test_datetimes_are_iso_strings(self):
        summary = TranslationRequestSummary(
            request_id="req_1",
            file_name="a.txt",
            status="pending",
            source_language="English",
            target_languages=["French"],
            completion_percentage=0,
            created_at=datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )

        data = summary.to_api()

        assert data["createdAt"] == "2025-01-02T03:04:05Z"
        assert data["requestId"] == "req_1"
