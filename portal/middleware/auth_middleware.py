"""
Authentication dependencies for protecting routes.

Browser routes authenticate with the server-side session referenced by the
``session_id`` cookie; ``/api/v1`` routes authenticate with an API key sent
as ``Authorization: Bearer <key>``.
"""

from fastapi import Depends, Header, Request
from typing import Optional, Dict, Any
import logging

from portal.config import settings
from portal.exceptions import AuthenticationError, PermissionDeniedError
from portal.mongodb_models import UserRole
from portal.services.api_key_service import api_key_service
from portal.services.auth_service import auth_service

logger = logging.getLogger(__name__)


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user(request: Request) -> Dict[str, Any]:
    """
    Dependency that resolves the session cookie to the current user.

    Usage:
        ```python
        @router.get("/protected")
        async def protected_route(current_user: dict = Depends(get_current_user)):
            return {"userId": current_user["user_id"]}
        ```

    Raises:
        AuthenticationError: Missing, unknown, inactive or expired session
    """
    session_token = get_session_token(request)
    if not session_token:
        logger.debug(f"[AUTH MIDDLEWARE] No session cookie on {request.url.path}")
        raise AuthenticationError("Not authenticated")

    user = await auth_service.verify_session(session_token)
    if not user:
        logger.warning(f"[AUTH MIDDLEWARE] Session verification failed for {request.url.path}")
        raise AuthenticationError("Invalid or expired session")

    return user


async def get_admin_user(
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    """
    Dependency to enforce the admin role.

    Raises:
        PermissionDeniedError: User is not an admin
    """
    role = current_user.get("role", UserRole.USER.value)
    if role != UserRole.ADMIN.value:
        logger.warning(f"[AUTH MIDDLEWARE] Admin access denied - User: {current_user['email']}, Role: {role}")
        raise PermissionDeniedError("Admin permissions required")

    logger.info(f"[AUTH MIDDLEWARE] Admin access granted - User: {current_user['email']}")
    return current_user


async def get_api_key_user(
    authorization: Optional[str] = Header(None)
) -> Dict[str, Any]:
    """
    Dependency for ``/api/v1``: resolves a Bearer API key to its owner.

    Raises:
        AuthenticationError: Header missing, malformed, or key unknown/revoked
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("[AUTH MIDDLEWARE] API request without Bearer key")
        raise AuthenticationError("Missing or invalid API key")

    api_key = authorization[len("Bearer "):].strip()
    user = await api_key_service.authenticate(api_key)
    if not user:
        raise AuthenticationError("Missing or invalid API key")

    return user
