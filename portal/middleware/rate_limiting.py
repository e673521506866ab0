"""
Endpoint-specific rate limiting with slowapi.

The limiter is shared by the routers (``@limiter.limit(...)``) and the
application (``app.state.limiter``); tests disable it with
``RATE_LIMITING_ENABLED=false``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from portal.config import settings

LOGIN_RATE_LIMIT = "20/5minutes"
FORGOT_PASSWORD_RATE_LIMIT = "5/15minutes"

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limiting_enabled)
