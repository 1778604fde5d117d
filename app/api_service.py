from __future__ import annotations

import logging
import os
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ops.structured_logger import setup_logging
from utils.errors import ServiceError
from utils.request_context import clear_request_context, set_request_id

from app.routers.ai import router as ai_router
from app.routers.events import router as events_router
from app.routers.health import router as health_router
from app.routers.jobs import router as jobs_router
from app.routers.subscriptions import router as subscriptions_router
from app.routers.webhooks import router as webhooks_router

setup_logging()

app = FastAPI(title="DRK Backend", version="1.0.0")
log = logging.getLogger("drk.api")


def _get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or ""


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    set_request_id(rid)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    rid = _get_request_id(request)
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    log.log(
        level,
        "service_error",
        extra={
            "extra": {
                "event": "service_error",
                "code": exc.code,
                "status_code": exc.status_code,
                "detail": exc.message,
                "path": request.url.path,
                "method": request.method,
                "request_id": rid,
                **exc.context,
            }
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message, "request_id": rid, "revision": os.getenv("K_REVISION") or ""},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    rid = _get_request_id(request)
    log.warning(
        "http_exception",
        extra={
            "extra": {
                "event": "http_exception",
                "status_code": exc.status_code,
                "detail": exc.detail,
                "path": request.url.path,
                "method": request.method,
                "request_id": rid,
            }
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "request_id": rid, "revision": os.getenv("K_REVISION") or ""},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = _get_request_id(request)
    log.warning(
        "validation_error",
        extra={
            "extra": {
                "event": "validation_error",
                "path": request.url.path,
                "method": request.method,
                "request_id": rid,
            }
        },
    )
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(), "request_id": rid, "revision": os.getenv("K_REVISION") or ""},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _get_request_id(request)
    log.error(
        "internal_unhandled_exception",
        extra={
            "extra": {
                "event": "internal_unhandled_exception",
                "error_type": type(exc).__name__,
                "message": str(exc),
                "path": request.url.path,
                "method": request.method,
                "request_id": rid,
            }
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal", "request_id": rid, "revision": os.getenv("K_REVISION") or ""},
    )


# The mobile app calls /api/* directly; no browser origins beyond local tooling.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health_router, tags=["health"])
app.include_router(subscriptions_router, prefix="/api", tags=["subscriptions"])
app.include_router(ai_router, prefix="/api", tags=["ai"])
app.include_router(webhooks_router, prefix="/webhooks", tags=["webhooks"])
app.include_router(jobs_router, prefix="/jobs", tags=["jobs"])
app.include_router(events_router, prefix="/events", tags=["events"])
