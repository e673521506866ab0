"""
Translation Order Portal: FastAPI application.

Run locally with ``python -m portal.main`` or ``uvicorn portal.main:app``.
"""

import logging
import logging.config
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.config import settings
from portal.database.mongodb import database
from portal.exceptions import PortalError
from portal.middleware.logging import LoggingMiddleware
from portal.middleware.rate_limiting import limiter
from portal.routers import account, admin, api_v1, auth, files, translation_requests

logger = logging.getLogger(__name__)

API_V1_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # the file handler needs its directory before dictConfig opens it
    settings.ensure_directories()
    logging.config.dictConfig(settings.log_config)

    logger.info("=" * 80)
    logger.info(f"[STARTUP] {settings.app_name} v{settings.app_version} ({settings.environment})")
    if not await database.connect():
        logger.warning("[STARTUP] ⚠️ MongoDB unavailable, /health will report unhealthy")
    logger.info("=" * 80)

    yield

    logger.info(f"[SHUTDOWN] Stopping {settings.app_name}")
    await database.disconnect()


# interactive docs only while debugging
_docs_enabled = settings.debug

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Translation orders: cost estimates, progress updates, teams and credits",
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    openapi_url="/openapi.json" if _docs_enabled else None,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# last added runs first: CORS wraps the logging middleware and every error response
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_credentials,
    allow_methods=settings.cors_methods,
    allow_headers=["*"] if settings.cors_headers == "*" else [h.strip() for h in settings.cors_headers.split(",")],
    expose_headers=["X-Request-ID", "X-Process-Time"]
)

for module in (auth, translation_requests, files, account, admin, api_v1):
    app.include_router(module.router)


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "docs": "/docs" if _docs_enabled else None,
        "endpoints": {
            "auth": "/api/auth",
            "translation_requests": "/api/translation-requests",
            "account": "/api/account",
            "admin": "/api/admin",
            "api_v1": API_V1_PREFIX,
            "health": "/health"
        }
    }


@app.get("/health", tags=["Health"])
async def health():
    """503 while MongoDB is unreachable, so load balancers take us out of rotation."""
    db = await database.health_check()
    healthy = db["healthy"]
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unhealthy", "database": db["status"], "timestamp": time.time()}
    )


# ============================================================================
# Error responses
# ============================================================================

def error_response(request: Request, status_code: int, message: str, error_type: str) -> JSONResponse:
    """
    Build the error body for ``request``.

    Session routes get the portal envelope (``success``, ``error``,
    ``timestamp``, ``path``). API-key clients under ``/api/v1`` get the
    flat ``{"error": message}``.
    """
    if request.url.path.startswith(API_V1_PREFIX):
        body = {"error": message}
    else:
        body = {
            "success": False,
            "error": {"code": status_code, "message": message, "type": error_type},
            "timestamp": time.time(),
            "path": str(request.url)
        }
    return JSONResponse(status_code=status_code, content=body)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts) or "Validation error"


@app.exception_handler(PortalError)
async def on_portal_error(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error(f"[ERROR] {exc.error_type} on {request.url.path}: {exc.message}", exc_info=exc.original_error)
    else:
        logger.info(f"[ERROR] {exc.status_code} {exc.error_type} on {request.url.path}: {exc.message}")
    return error_response(request, exc.status_code, exc.message, exc.error_type)


@app.exception_handler(RequestValidationError)
async def on_validation_error(request: Request, exc: RequestValidationError):
    # malformed input is a 400, not FastAPI's default 422
    message = _describe_validation_errors(exc)
    logger.info(f"[ERROR] Validation failed on {request.url.path}: {message}")
    return error_response(request, 400, message, "validation_error")


@app.exception_handler(StarletteHTTPException)
async def on_http_error(request: Request, exc: StarletteHTTPException):
    return error_response(request, exc.status_code, str(exc.detail), "http_error")


@app.exception_handler(Exception)
async def on_unhandled_error(request: Request, exc: Exception):
    logger.exception(f"[ERROR] Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
    return error_response(request, 500, str(exc) if settings.debug else "Internal server error", "internal_error")


if __name__ == "__main__":
    uvicorn.run(
        "portal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=settings.log_config
    )
