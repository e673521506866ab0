"""
Pytest configuration shared by unit and integration tests.

The environment is set BEFORE anything from ``portal`` is imported: the
settings object is created at import time and refuses to start without
its required values. Tests never touch a real MongoDB; the global
``database`` is pointed at an in-memory fake for each test.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="portal-tests-")

os.environ.update({
    "ENVIRONMENT": "test",
    "SECRET_KEY": "test-secret-key",
    "MONGODB_URI": "mongodb://localhost:27017",
    "MONGODB_DATABASE": "portal_test",
    "MONGODB_TRANSACTIONS_ENABLED": "false",
    "APP_BASE_URL": "http://portal.test",
    "CORS_ORIGINS": "http://localhost:3000",
    "RATE_LIMITING_ENABLED": "false",
    "DEDUCT_CREDITS_ON_SUBMISSION": "false",
    "EMAIL_ENABLED": "false",
    "LOG_FILE": os.path.join(_TMP_DIR, "logs", "portal.log"),
    "UPLOAD_DIR": os.path.join(_TMP_DIR, "uploads"),
})

from datetime import timedelta

import httpx
import pytest
from typing import Any, Dict

from portal.config import settings
from portal.database.mongodb import database
from portal.main import app
from portal.mongodb_models import AccountDocument, SessionDocument, UserDocument, UserRole, utc_now
from portal.services.api_key_service import api_key_service
from portal.utils.id_generator import ACCOUNT_PREFIX, USER_PREFIX, generate_id, generate_token
from tests.fixtures.fake_mongo import FakeDatabase


def pytest_configure(config):
    """Refuse to run against anything but a *_test database."""
    if not settings.is_test_mode():
        pytest.exit(
            f"FATAL ERROR: tests must run against a *_test database, not '{settings.mongodb_database}'",
            returncode=1
        )


# ============================================================================
# Database and HTTP client
# ============================================================================

@pytest.fixture(autouse=True)
def fake_db():
    """Point the global database at a fresh in-memory fake for every test."""
    fake = FakeDatabase()
    database.db = fake
    database._connected = True
    yield fake
    database.db = None
    database._connected = False


@pytest.fixture
async def client():
    """HTTP client talking to the app in-process (lifespan is not run)."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


# ============================================================================
# Seed data
# ============================================================================

@pytest.fixture
async def account(fake_db) -> Dict[str, Any]:
    doc = AccountDocument(
        account_id=generate_id(ACCOUNT_PREFIX),
        name="Acme Localisation",
        credits=1000
    ).to_mongo()
    await fake_db.accounts.insert_one(doc)
    return doc


@pytest.fixture
def make_user(fake_db, account):
    """Factory inserting a verified user; pass ``account_id`` to place it in another account."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.USER, **overrides) -> Dict[str, Any]:
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "user_id": generate_id(USER_PREFIX),
            "account_id": account["account_id"],
            "first_name": "Test",
            "last_name": f"User{n}",
            "email": f"user{n}@example.com",
            "username": f"user{n}",
            "password_hash": "not-a-bcrypt-hash",
            "role": role,
            "is_email_verified": True,
        }
        fields.update(overrides)
        doc = UserDocument(**fields).to_mongo()
        await fake_db.users.insert_one(doc)
        return doc

    return _make


@pytest.fixture
def open_session(fake_db):
    """Factory creating an active session; returns request headers carrying its cookie."""
    async def _open(user: Dict[str, Any]) -> Dict[str, str]:
        now = utc_now()
        session = SessionDocument(
            session_token=generate_token(),
            user_id=user["user_id"],
            account_id=user["account_id"],
            created_at=now,
            expires_at=now + timedelta(hours=1)
        ).to_mongo()
        await fake_db.sessions.insert_one(session)
        return {"Cookie": f"{settings.session_cookie_name}={session['session_token']}"}

    return _open


@pytest.fixture
async def user(make_user) -> Dict[str, Any]:
    return await make_user(UserRole.USER)


@pytest.fixture
async def admin(make_user) -> Dict[str, Any]:
    return await make_user(UserRole.ADMIN, first_name="Admin", email="admin@example.com", username="admin")


@pytest.fixture
async def user_headers(user, open_session) -> Dict[str, str]:
    return await open_session(user)


@pytest.fixture
async def admin_headers(admin, open_session) -> Dict[str, str]:
    return await open_session(admin)


@pytest.fixture
async def api_headers(admin) -> Dict[str, str]:
    """Bearer header for an API key owned by the admin."""
    _, secret = await api_key_service.create_key(admin, "Integration tests")
    return {"Authorization": f"Bearer {secret}"}
