"""
Business identifier generation.

Every stored entity carries a readable string id of the form
``<prefix>_<16 hex chars>`` (e.g. ``req_3f9c2b7a1d004e5f``).
"""

import secrets
import uuid

ACCOUNT_PREFIX = "acct"
USER_PREFIX = "user"
TEAM_PREFIX = "team"
REQUEST_PREFIX = "req"
UPDATE_PREFIX = "upd"
TRANSACTION_PREFIX = "ctx"
API_KEY_PREFIX = "key"
FILE_PREFIX = "file"


def generate_id(prefix: str) -> str:
    """Generate a unique id with the given prefix."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def generate_token(nbytes: int = 32) -> str:
    """URL-safe random token for sessions, email verification and password reset links."""
    return secrets.token_urlsafe(nbytes)
