"""
Translation request (order) store and its project update log.

Orders are scoped to an account; looking up another account's order
behaves exactly like looking up one that does not exist.
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument

from portal.config import settings
from portal.database.mongodb import database
from portal.exceptions import NotFoundError, ValidationError
from portal.models.translation_request import (
    ApiTranslationRequestCreate,
    ProjectUpdateCreate,
    TranslationRequestCreate,
    TranslationRequestUpdate,
)
from portal.mongodb_models import (
    OrderStatus,
    ProjectUpdateDocument,
    TranslationRequestDocument,
    UpdateType,
    UploadedFileType,
    utc_now,
)
from portal.pricing.pricing_calculator import CostEstimate, estimate
from portal.pricing.pricing_config import PricingConfig, load_pricing_config
from portal.services.credit_service import credit_service
from portal.services.file_service import file_service
from portal.utils.id_generator import REQUEST_PREFIX, UPDATE_PREFIX, generate_id

logger = logging.getLogger(__name__)


class TranslationRequestService:
    """Create, read, patch and annotate translation requests."""

    def __init__(self, pricing_config: Optional[PricingConfig] = None):
        self._pricing_config = pricing_config

    @property
    def pricing_config(self) -> PricingConfig:
        if self._pricing_config is None:
            self._pricing_config = load_pricing_config(settings.pricing_config_path)
        return self._pricing_config

    def estimate_cost(self, character_count: int, target_languages: List[str], workflow: str) -> CostEstimate:
        """
        Raises:
            ValidationError: Unknown workflow
        """
        try:
            return estimate(character_count, len(target_languages), workflow, self.pricing_config)
        except ValueError as e:
            raise ValidationError(str(e), original_error=e)

    async def create_request(self, user: Dict[str, Any], payload: TranslationRequestCreate, file_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Store a new order in ``pending`` state with a server-computed estimate.

        When ``deduct_credits_on_submission`` is on, the account is debited
        in the same transaction as the insert.

        Raises:
            ValidationError: Unknown workflow
            InsufficientCreditsError: Deduction enabled and balance too low
        """
        cost = self.estimate_cost(payload.character_count, payload.target_languages, payload.workflow)

        request = TranslationRequestDocument(
            request_id=generate_id(REQUEST_PREFIX),
            user_id=user["user_id"],
            account_id=user["account_id"],
            file_name=payload.file_name,
            file_format=payload.file_format,
            file_size=payload.file_size,
            word_count=payload.word_count,
            character_count=payload.character_count,
            images_with_text=payload.images_with_text,
            subject_matter=payload.subject_matter,
            source_language=payload.source_language,
            target_languages=payload.target_languages,
            workflow=payload.workflow,
            priority=payload.priority,
            due_date=payload.due_date,
            credits_required=cost.credits_required,
            total_cost=cost.total_cost,
            file_id=file_id
        ).to_mongo()

        logger.info(
            f"[ORDERS] Creating request {request['request_id']} for {user['user_id']}: "
            f"{request['file_name']} -> {', '.join(request['target_languages'])} "
            f"({request['workflow']}, {cost.credits_required} credits, {cost.total_cost})"
        )

        async with database.transaction() as session:
            if settings.deduct_credits_on_submission:
                await credit_service.debit_credits(
                    user["account_id"],
                    cost.credits_required,
                    f"Translation request {request['request_id']}",
                    user_id=user["user_id"],
                    session=session
                )
            await database.translation_requests.insert_one(request, session=session)

        logger.info(f"[ORDERS] ✅ Request {request['request_id']} created - ready for workflow pickup")
        return request

    async def create_request_from_file(self, user: Dict[str, Any], payload: ApiTranslationRequestCreate) -> Dict[str, Any]:
        """
        Create an order for a file previously uploaded through ``/api/v1/files/upload``.

        Raises:
            NotFoundError: Unknown file id (or file of another account)
            ValidationError: The file is a reference asset, not a translation source
        """
        uploaded = await file_service.get_file(user["account_id"], payload.file_id)
        if uploaded.get("file_type") != UploadedFileType.TRANSLATION.value:
            logger.info(f"[ORDERS] Refusing order for asset {payload.file_id}")
            raise ValidationError("Only files uploaded as \"translation\" can be ordered")

        analysis = uploaded.get("analysis") or {}
        extension = os.path.splitext(uploaded["file_name"])[1].lstrip(".")
        order = TranslationRequestCreate(
            file_name=payload.file_name or uploaded["file_name"],
            file_format=analysis.get("file_format") or (extension or "unknown").upper(),
            file_size=analysis.get("file_size", uploaded.get("file_size", 0)),
            word_count=analysis.get("word_count", 0),
            character_count=analysis.get("character_count", 0),
            images_with_text=analysis.get("images_with_text", 0),
            subject_matter=analysis.get("subject_matter"),
            source_language=payload.source_language,
            target_languages=payload.target_languages,
            workflow=payload.workflow,
            priority=payload.priority,
            due_date=payload.due_date
        )
        return await self.create_request(user, order, file_id=payload.file_id)

    async def _find_request(self, account_id: str, request_id: str) -> Dict[str, Any]:
        request = await database.translation_requests.find_one({"request_id": request_id, "account_id": account_id})
        if not request:
            raise NotFoundError("Translation request not found")
        return request

    async def get_request(self, account_id: str, request_id: str) -> Dict[str, Any]:
        """Order with its ``updates`` list, newest first."""
        request = await self._find_request(account_id, request_id)
        request["updates"] = await (
            database.project_updates.find({"request_id": request_id})
            .sort("created_at", DESCENDING)
            .to_list(length=None)
        )
        return request

    async def list_requests(
        self,
        account_id: str,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[int, List[Dict[str, Any]]]:
        query: Dict[str, Any] = {"account_id": account_id}
        if status:
            query["status"] = status
        if date_from or date_to:
            query["created_at"] = {}
            if date_from:
                query["created_at"]["$gte"] = date_from
            if date_to:
                query["created_at"]["$lte"] = date_to

        total = await database.translation_requests.count_documents(query)
        results = await (
            database.translation_requests.find(query)
            .sort("created_at", DESCENDING)
            .skip(offset)
            .limit(limit)
            .to_list(length=limit)
        )
        return total, results

    async def update_request(self, account_id: str, request_id: str, payload: TranslationRequestUpdate) -> Dict[str, Any]:
        """
        Apply a partial update.

        Any status value is accepted regardless of the current one so that
        administrators can correct a stuck or mis-advanced order.
        """
        await self._find_request(account_id, request_id)

        changes = payload.model_dump(exclude_unset=True)
        changes["updated_at"] = utc_now()
        updated = await database.translation_requests.find_one_and_update(
            {"request_id": request_id, "account_id": account_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        logger.info(f"[ORDERS] Request {request_id} updated: {sorted(k for k in changes if k != 'updated_at')}")
        return updated

    async def add_update(
        self,
        account_id: str,
        request_id: str,
        user: Dict[str, Any],
        payload: ProjectUpdateCreate
    ) -> Dict[str, Any]:
        """
        Append a project update. A ``status_change`` update also moves the
        order to ``new_status`` inside the same transaction.

        Raises:
            NotFoundError: Unknown order
            ValidationError: status_change without new_status
        """
        await self._find_request(account_id, request_id)

        is_status_change = payload.update_type == UpdateType.STATUS_CHANGE.value
        if is_status_change and not payload.new_status:
            raise ValidationError("newStatus is required for status_change updates")

        update = ProjectUpdateDocument(
            update_id=generate_id(UPDATE_PREFIX),
            request_id=request_id,
            user_id=user["user_id"],
            update_text=payload.update_text,
            update_type=payload.update_type,
            new_status=payload.new_status
        ).to_mongo()

        async with database.transaction() as session:
            await database.project_updates.insert_one(update, session=session)
            if is_status_change:
                await database.translation_requests.update_one(
                    {"request_id": request_id, "account_id": account_id},
                    {"$set": {"status": update["new_status"], "updated_at": utc_now()}},
                    session=session
                )

        if is_status_change:
            logger.info(f"[ORDERS] Request {request_id} status -> {update['new_status']} (update {update['update_id']})")
            if update["new_status"] == OrderStatus.COMPLETE.value:
                logger.info(f"[ORDERS] 🎉 Request {request_id} marked complete")
        else:
            logger.info(f"[ORDERS] {update['update_type']} added to {request_id} by {user['user_id']}")

        return update


# Global translation request service instance
translation_request_service = TranslationRequestService()
