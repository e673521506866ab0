"""
Request logging middleware.

Every request gets an id (taken from ``X-Request-ID`` when the caller sends
one), is timed, and is logged once on the way in and once on the way out.
Credentials never reach the log: sensitive headers and JSON body fields are
replaced with ``[REDACTED]``.
"""

import json
import logging
import time
import uuid
from typing import Any, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from portal.config import settings


logger = logging.getLogger("portal.middleware")

REDACTED = "[REDACTED]"
SENSITIVE_HEADERS = {'authorization', 'x-api-key', 'cookie', 'set-cookie'}
SENSITIVE_BODY_FIELDS = ('password', 'token', 'secret', 'twofactorcode', 'two_factor_code', 'api_key')


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {name: REDACTED if name.lower() in SENSITIVE_HEADERS else value for name, value in headers.items()}


def redact_body(body: Any) -> Any:
    """Recursively blank out any key that looks like a credential."""
    if isinstance(body, list):
        return [redact_body(item) for item in body]
    if not isinstance(body, dict):
        return body
    cleaned = {}
    for key, value in body.items():
        lowered = key.lower()
        cleaned[key] = REDACTED if any(field in lowered for field in SENSITIVE_BODY_FIELDS) else redact_body(value)
    return cleaned


def client_address(request: Request) -> str:
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else "unknown"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Adds ``X-Request-ID`` and ``X-Process-Time`` to every response."""

    def __init__(self, app):
        super().__init__(app)
        # bodies are only logged while debugging
        self.log_request_body = settings.debug

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        await self._log_incoming(request, request_id)

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            logger.exception(f"[REQUEST] {request_id} {request.method} {request.url.path} crashed after {elapsed:.4f}s")
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}s"

        status = response.status_code
        level = logging.ERROR if status >= 500 else logging.WARNING if status >= 400 else logging.INFO
        logger.log(level, f"[RESPONSE] {request_id} {status} {request.method} {request.url.path} ({elapsed:.4f}s)")
        return response

    async def _log_incoming(self, request: Request, request_id: str) -> None:
        details: Dict[str, Any] = {
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'query': dict(request.query_params),
            'client_ip': client_address(request),
            'user_agent': request.headers.get('User-Agent', 'Unknown'),
            'headers': redact_headers(dict(request.headers)),
        }

        is_json = 'application/json' in request.headers.get('Content-Type', '').lower()
        if self.log_request_body and is_json and request.method in ('POST', 'PUT', 'PATCH'):
            raw = await request.body()
            try:
                details['body'] = redact_body(json.loads(raw)) if raw else None
            except ValueError:
                details['body'] = f"<{len(raw)} bytes, not valid JSON>"

        logger.info(
            f"[REQUEST] {request_id} {request.method} {request.url.path} from {details['client_ip']}",
            extra={'request_data': details}
        )
        if settings.is_development:
            logger.debug(f"[REQUEST] {request_id} details: {json.dumps(details, default=str)}")
