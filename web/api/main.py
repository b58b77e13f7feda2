"""FastAPI mail portal API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

import config
from portal.errors import (
    AuthenticationFailure,
    ConfigurationError,
    DuplicateCredential,
    Forbidden,
    InvalidOrExpiredToken,
    MailRejected,
    NotFound,
    PortalError,
    StoreError,
    ValidationError,
)
from portal.models import init_db
from portal.services.background import drain, spawn
from portal.services.notifier import ResendNotifier
from web.api.admin_routes import router as admin_router
from web.api.auth_routes import router as auth_router
from web.api.routes import router as api_router
from web.auth import configure, get_services

logger = logging.getLogger("mailportal.api")

_STATUS_BY_ERROR = {
    ValidationError: 400,
    InvalidOrExpiredToken: 400,
    AuthenticationFailure: 401,
    Forbidden: 403,
    NotFound: 404,
    DuplicateCredential: 409,
    MailRejected: 422,
    ConfigurationError: 500,
    StoreError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    capabilities = await init_db()
    configure(capabilities, notifier=ResendNotifier())
    yield
    await drain()


app = FastAPI(title="Mail Portal API", lifespan=lifespan)


class SweepExpiredMiddleware(BaseHTTPMiddleware):
    """Kick off a detached sweep of expired sessions and reset tokens on every API request."""

    async def dispatch(self, request, call_next):
        if config.SWEEP_ON_REQUEST and request.url.path.startswith("/api"):
            spawn(get_services().sweep_expired(), name="sweep-expired")
        return await call_next(request)


app.add_middleware(SweepExpiredMiddleware)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    status_code = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        400,
    )
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc.message)
    return JSONResponse({"ok": False, "error": exc.message}, status_code=status_code)


app.include_router(auth_router)
app.include_router(api_router)
app.include_router(admin_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
