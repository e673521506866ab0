"""
Credit ledger service.

Every balance change writes one ledger entry to ``credit_transactions`` and
applies the matching ``$inc`` to the stored balance inside one database
transaction, so a stored balance always equals the sum of its entries.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument

from portal.database.mongodb import database
from portal.exceptions import InsufficientCreditsError, NotFoundError, ValidationError
from portal.mongodb_models import CreditTransactionDocument, CreditTransactionType, utc_now
from portal.utils.id_generator import TRANSACTION_PREFIX, generate_id

logger = logging.getLogger(__name__)


def _validate_amount(amount: Any) -> int:
    # bool is an int subclass; True must not pass as 1 credit
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer")
    return amount


class CreditService:
    """Ledger writes and balance reads for accounts and teams."""

    async def add_credits(
        self,
        account_id: str,
        amount: int,
        description: str,
        user_id: Optional[str] = None,
        team_id: Optional[str] = None,
        transaction_type: CreditTransactionType = CreditTransactionType.ADMIN_ADJUSTMENT
    ) -> Dict[str, Any]:
        """
        Credit an account (or one of its teams when ``team_id`` is given).

        Args:
            account_id: Owning account
            amount: Positive whole number of credits
            description: Reason shown in the ledger
            user_id: Who made the change
            team_id: Credit this team's balance instead of the account's
            transaction_type: Ledger entry type

        Returns:
            dict: ``{"transaction": <ledger entry>, "balance": <new balance>}``

        Raises:
            ValidationError: Non-positive or non-integer amount, empty description
            NotFoundError: Unknown account or team
        """
        amount = _validate_amount(amount)
        if not description or not description.strip():
            raise ValidationError("Description is required")

        if team_id:
            collection = database.teams
            target_query = {"team_id": team_id, "account_id": account_id}
            target_label = f"team {team_id}"
        else:
            collection = database.accounts
            target_query = {"account_id": account_id}
            target_label = f"account {account_id}"

        entry = CreditTransactionDocument(
            transaction_id=generate_id(TRANSACTION_PREFIX),
            account_id=account_id,
            team_id=team_id,
            user_id=user_id,
            amount=amount,
            type=transaction_type,
            description=description.strip()
        ).to_mongo()

        logger.info(f"[CREDITS] Adding {amount} credits to {target_label} ({entry['type']})")

        async with database.transaction() as session:
            # Balance first: an unknown target aborts before any ledger row exists
            target = await collection.find_one_and_update(
                target_query,
                {"$inc": {"credits": amount}, "$set": {"updated_at": utc_now()}},
                return_document=ReturnDocument.AFTER,
                session=session
            )
            if not target:
                logger.warning(f"[CREDITS] FAILED - {target_label} not found")
                raise NotFoundError("Team not found" if team_id else "Account not found")

            await database.credit_transactions.insert_one(entry, session=session)

        logger.info(f"[CREDITS] ✅ {target_label} balance is now {target['credits']} (entry {entry['transaction_id']})")
        return {"transaction": entry, "balance": target["credits"]}

    async def purchase_credits(self, account_id: str, credits: int, user_id: Optional[str] = None) -> Dict[str, Any]:
        return await self.add_credits(
            account_id,
            credits,
            f"Purchased {credits} credits",
            user_id=user_id,
            transaction_type=CreditTransactionType.PURCHASE
        )

    async def debit_credits(
        self,
        account_id: str,
        amount: int,
        description: str,
        user_id: Optional[str] = None,
        session=None
    ) -> Dict[str, Any]:
        """
        Debit an account's balance with a ``usage`` entry.

        The balance check and the decrement are a single conditional update.
        Pass ``session`` to join a caller's transaction.

        Raises:
            InsufficientCreditsError: Balance lower than ``amount``
        """
        if amount == 0:
            return {"transaction": None, "balance": None}
        amount = _validate_amount(amount)

        account = await database.accounts.find_one_and_update(
            {"account_id": account_id, "credits": {"$gte": amount}},
            {"$inc": {"credits": -amount}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        if not account:
            logger.warning(f"[CREDITS] Insufficient credits in {account_id} for debit of {amount}")
            raise InsufficientCreditsError(f"Insufficient credits: {amount} required")

        entry = CreditTransactionDocument(
            transaction_id=generate_id(TRANSACTION_PREFIX),
            account_id=account_id,
            user_id=user_id,
            amount=-amount,
            type=CreditTransactionType.USAGE,
            description=description
        ).to_mongo()
        await database.credit_transactions.insert_one(entry, session=session)

        logger.info(f"[CREDITS] Debited {amount} credits from {account_id}; balance {account['credits']}")
        return {"transaction": entry, "balance": account["credits"]}

    async def list_transactions(
        self,
        account_id: str,
        transaction_type: Optional[str] = None,
        team_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[int, List[Dict[str, Any]]]:
        """Newest-first ledger page and the total number of matching entries."""
        query: Dict[str, Any] = {"account_id": account_id}
        if transaction_type:
            query["type"] = transaction_type
        if team_id:
            query["team_id"] = team_id
        if date_from or date_to:
            query["created_at"] = {}
            if date_from:
                query["created_at"]["$gte"] = date_from
            if date_to:
                query["created_at"]["$lte"] = date_to

        total = await database.credit_transactions.count_documents(query)
        results = await (
            database.credit_transactions.find(query)
            .sort("created_at", DESCENDING)
            .skip(offset)
            .limit(limit)
            .to_list(length=limit)
        )
        return total, results


# Global credit service instance
credit_service = CreditService()
