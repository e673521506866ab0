"""
MongoDB access for the portal.

A single ``database`` object owns the motor client. Services reach their
collections through its properties (``database.users``,
``database.translation_requests`` ...) and group related writes with
``database.transaction()``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError, ServerSelectionTimeoutError

from portal.config import settings

logger = logging.getLogger(__name__)


INDEXES: Dict[str, List[IndexModel]] = {
    "accounts": [
        IndexModel([("account_id", ASCENDING)], unique=True, name="account_id_unique"),
    ],
    "users": [
        IndexModel([("user_id", ASCENDING)], unique=True, name="user_id_unique"),
        IndexModel([("email", ASCENDING)], unique=True, name="email_unique"),
        IndexModel([("username", ASCENDING)], unique=True, name="username_unique"),
        IndexModel([("account_id", ASCENDING)], name="account_id_idx"),
        IndexModel([("team_id", ASCENDING)], name="team_id_idx"),
        IndexModel([("email_verification_token", ASCENDING)], sparse=True, name="email_verification_token_idx"),
        IndexModel([("password_reset_token", ASCENDING)], sparse=True, name="password_reset_token_idx"),
    ],
    "teams": [
        IndexModel([("team_id", ASCENDING)], unique=True, name="team_id_unique"),
        IndexModel([("account_id", ASCENDING)], name="account_id_idx"),
    ],
    "translation_requests": [
        IndexModel([("request_id", ASCENDING)], unique=True, name="request_id_unique"),
        IndexModel([("account_id", ASCENDING), ("created_at", DESCENDING)], name="account_created_idx"),
        IndexModel([("account_id", ASCENDING), ("status", ASCENDING)], name="account_status_idx"),
    ],
    "project_updates": [
        IndexModel([("update_id", ASCENDING)], unique=True, name="update_id_unique"),
        IndexModel([("request_id", ASCENDING), ("created_at", DESCENDING)], name="request_created_idx"),
    ],
    "credit_transactions": [
        IndexModel([("transaction_id", ASCENDING)], unique=True, name="transaction_id_unique"),
        IndexModel([("account_id", ASCENDING), ("created_at", DESCENDING)], name="account_created_idx"),
        IndexModel([("team_id", ASCENDING)], sparse=True, name="team_id_idx"),
    ],
    "sessions": [
        IndexModel([("session_token", ASCENDING)], unique=True, name="session_token_unique"),
        IndexModel([("user_id", ASCENDING)], name="user_id_idx"),
        # MongoDB removes the document once expires_at has passed
        IndexModel([("expires_at", ASCENDING)], expireAfterSeconds=0, name="expires_at_ttl"),
    ],
    "api_keys": [
        IndexModel([("key_id", ASCENDING)], unique=True, name="key_id_unique"),
        IndexModel([("key_hash", ASCENDING)], unique=True, name="key_hash_unique"),
        IndexModel([("account_id", ASCENDING)], name="account_id_idx"),
    ],
    "uploaded_files": [
        IndexModel([("file_id", ASCENDING)], unique=True, name="file_id_unique"),
        IndexModel([("account_id", ASCENDING)], name="account_id_idx"),
    ],
}


def _redacted_uri(uri: str) -> str:
    """Host part of a MongoDB URI, without credentials."""
    return uri.rsplit("@", 1)[-1] if "@" in uri else uri


class MongoDB:
    """Owner of the motor client and the portal's collections."""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None
        self._connected: bool = False

    async def connect(self) -> bool:
        """
        Open the client, ping the server and make sure indexes exist.

        Returns False (and logs why) instead of raising, so the app can come
        up and report itself unhealthy.
        """
        logger.info(f"[MongoDB] Connecting to {_redacted_uri(settings.mongodb_uri)} / {settings.mongodb_database}")

        # tz_aware so stored expiry timestamps compare with aware UTC datetimes
        self.client = AsyncIOMotorClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=5000,
            maxPoolSize=50,
            minPoolSize=5,
            tz_aware=True
        )
        self.db = self.client[settings.mongodb_database]

        try:
            await self.client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"[MongoDB] Server not reachable: {e}")
            self._connected = False
            return False

        self._connected = True
        logger.info("[MongoDB] ✅ Connected")
        await self._ensure_indexes()
        return True

    async def disconnect(self) -> None:
        if self.client is None:
            return
        self.client.close()
        self._connected = False
        logger.info("[MongoDB] Connection closed")

    async def health_check(self) -> Dict[str, Any]:
        """Ping the server; the result feeds ``GET /health``."""
        if self.client is None or not self._connected:
            return {"healthy": False, "status": "disconnected", "message": "MongoDB not connected"}

        try:
            await self.client.admin.command("ping")
            build_info = await self.client.server_info()
        except PyMongoError as e:
            logger.error(f"[MongoDB] Health check failed: {e}")
            return {"healthy": False, "status": "error", "message": str(e)}

        return {
            "healthy": True,
            "status": "connected",
            "database": settings.mongodb_database,
            "version": build_info.get("version"),
            "transactions_enabled": settings.mongodb_transactions_enabled
        }

    @asynccontextmanager
    async def transaction(self):
        """
        Run a block of writes inside one multi-document transaction.

        Yields the client session to pass as ``session=`` to each write. With
        transactions disabled (standalone server, tests) it yields None and the
        writes are applied one after another.

        Usage:
            async with database.transaction() as session:
                await database.credit_transactions.insert_one(entry, session=session)
                await database.accounts.update_one(query, update, session=session)
        """
        if not settings.mongodb_transactions_enabled or self.client is None:
            yield None
            return

        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def _ensure_indexes(self) -> None:
        failed = []
        for name, indexes in INDEXES.items():
            try:
                await self.db[name].create_indexes(indexes)
            except OperationFailure as e:
                # An existing index with other options; the rest still gets created
                logger.warning(f"[MongoDB] Index setup for '{name}' failed: {e}")
                failed.append(name)

        if failed:
            logger.warning(f"[MongoDB] Indexes incomplete for: {', '.join(failed)}")
        else:
            logger.info(f"[MongoDB] Indexes ready on {len(INDEXES)} collections")

    def _collection(self, name: str) -> AsyncIOMotorCollection:
        if self.db is None:
            raise RuntimeError("MongoDB is not connected")
        return self.db[name]

    @property
    def accounts(self):
        return self._collection("accounts")

    @property
    def users(self):
        return self._collection("users")

    @property
    def teams(self):
        return self._collection("teams")

    @property
    def translation_requests(self):
        return self._collection("translation_requests")

    @property
    def project_updates(self):
        return self._collection("project_updates")

    @property
    def credit_transactions(self):
        return self._collection("credit_transactions")

    @property
    def sessions(self):
        return self._collection("sessions")

    @property
    def api_keys(self):
        return self._collection("api_keys")

    @property
    def uploaded_files(self):
        return self._collection("uploaded_files")


database = MongoDB()
