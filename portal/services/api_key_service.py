"""
API keys for the ``/api/v1`` surface.

The plain secret is returned once at creation; only its SHA-256 digest and
a short display prefix are stored.
"""

import hashlib
import logging
import secrets
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING

from portal.database.mongodb import database
from portal.exceptions import NotFoundError
from portal.mongodb_models import ApiKeyDocument, utc_now
from portal.utils.id_generator import API_KEY_PREFIX, generate_id

logger = logging.getLogger(__name__)

SECRET_PREFIX = "top_"
DISPLAY_PREFIX_LENGTH = 12


def hash_api_key(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class ApiKeyService:
    """Issue, list, revoke and authenticate API keys."""

    async def create_key(self, user: Dict[str, Any], name: str) -> Tuple[Dict[str, Any], str]:
        """
        Issue a key for ``user``'s account.

        Returns:
            tuple: (stored key document, plain secret)
        """
        secret = f"{SECRET_PREFIX}{secrets.token_hex(20)}"
        key = ApiKeyDocument(
            key_id=generate_id(API_KEY_PREFIX),
            account_id=user["account_id"],
            user_id=user["user_id"],
            name=name.strip(),
            key_hash=hash_api_key(secret),
            key_prefix=secret[:DISPLAY_PREFIX_LENGTH]
        ).to_mongo()
        await database.api_keys.insert_one(key)

        logger.info(f"[API-KEYS] Key {key['key_id']} ('{key['name']}') issued to {user['user_id']}")
        return key, secret

    async def list_keys(self, account_id: str) -> List[Dict[str, Any]]:
        return await (
            database.api_keys.find({"account_id": account_id, "is_active": True})
            .sort("created_at", DESCENDING)
            .to_list(length=None)
        )

    async def revoke_key(self, account_id: str, key_id: str) -> None:
        result = await database.api_keys.update_one(
            {"key_id": key_id, "account_id": account_id, "is_active": True},
            {"$set": {"is_active": False}}
        )
        if result.matched_count == 0:
            raise NotFoundError("API key not found")
        logger.info(f"[API-KEYS] Key {key_id} revoked")

    async def authenticate(self, secret: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Resolve a presented secret to the user who owns the key.

        Returns:
            dict: User document, or None for unknown/revoked keys
        """
        if not secret:
            return None

        key = await database.api_keys.find_one({"key_hash": hash_api_key(secret), "is_active": True})
        if not key:
            logger.warning(f"[API-KEYS] Rejected key {secret[:DISPLAY_PREFIX_LENGTH]}...")
            return None

        user = await database.users.find_one({"user_id": key["user_id"]})
        if not user:
            logger.warning(f"[API-KEYS] Key {key['key_id']} belongs to missing user {key['user_id']}")
            return None

        await database.api_keys.update_one(
            {"key_id": key["key_id"]},
            {"$set": {"last_used_at": utc_now()}}
        )
        return user


# Global API key service instance
api_key_service = ApiKeyService()
