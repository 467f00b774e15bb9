from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from notifications.engine import SourceFetchError
from ops.structured_logger import setup_logging
from utils.log_context import clear_request_id, set_request_id

from app.routers.health import router as health_router
from app.routers.notifications import router as notifications_router

setup_logging()

app = FastAPI(title="Notifier Sync", version="1.0.0")
log = logging.getLogger("notifier.api")


def _get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or ""


def _error_response(request: Request, status_code: int, body: Dict[str, Any]) -> JSONResponse:
    body["request_id"] = _get_request_id(request)
    body["revision"] = os.getenv("K_REVISION") or ""
    return JSONResponse(status_code=status_code, content=body)


def _request_fields(request: Request) -> Dict[str, Any]:
    return {"path": request.url.path, "method": request.method, "request_id": _get_request_id(request)}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    set_request_id(rid)
    try:
        response = await call_next(request)
    finally:
        clear_request_id()
    response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(SourceFetchError)
async def source_fetch_error_handler(request: Request, exc: SourceFetchError):
    # Dashboard shows an error; stored notifications stay readable.
    log.error("sync_source_unavailable", extra={"extra": {**_request_fields(request), "message": str(exc)}})
    return _error_response(request, 503, {"detail": "source_fetch_failed"})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    log.warning(
        "http_exception",
        extra={"extra": {**_request_fields(request), "status_code": exc.status_code, "detail": exc.detail}},
    )
    return _error_response(request, exc.status_code, {"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    log.warning("validation_error", extra={"extra": _request_fields(request)})
    return _error_response(request, 422, {"detail": exc.errors()})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.error(
        "internal_unhandled_exception",
        extra={"extra": {**_request_fields(request), "error_type": type(exc).__name__, "message": str(exc)}},
        exc_info=True,
    )
    return _error_response(request, 500, {"error": "internal_unhandled_exception"})


app.include_router(health_router, tags=["health"])
app.include_router(notifications_router, tags=["notifications"])
